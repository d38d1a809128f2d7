from __future__ import annotations

from typing import Tuple

# Act categories used by the reference table.
CATEGORY_CHOICES: Tuple[str, ...] = (
    "soin",
    "prothese",
    "chirurgie",
    "implantologie",
    "orthodontie",
    "parodontologie",
    "prevention",
    "esthetique",
    "autre",
)

STATUS_DRAFT = "draft"
STATUS_SENT = "sent"
STATUS_ACCEPTED = "accepted"

STATUS_CHOICES: Tuple[str, ...] = (STATUS_DRAFT, STATUS_SENT, STATUS_ACCEPTED)

ROLE_TITULAIRE = "titulaire"
ROLE_COLLABORATEUR = "collaborateur"
ROLE_ASSISTANTE = "assistante"

ROLE_CHOICES: Tuple[str, ...] = (ROLE_TITULAIRE, ROLE_COLLABORATEUR, ROLE_ASSISTANTE)

CHANNEL_EMAIL = "email"
CHANNEL_SMS = "sms"
CHANNEL_WHATSAPP = "whatsapp"

CHANNEL_CHOICES: Tuple[str, ...] = (CHANNEL_EMAIL, CHANNEL_SMS, CHANNEL_WHATSAPP)
DEFAULT_CHANNELS: Tuple[str, ...] = (CHANNEL_EMAIL, CHANNEL_SMS)

UNKNOWN_ACT_CODE = "INCONNU"
