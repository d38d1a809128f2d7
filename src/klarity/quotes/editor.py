from __future__ import annotations

import secrets
import string
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_LINK_TTL_DAYS
from ..domain.constants import CHANNEL_CHOICES, DEFAULT_CHANNELS, STATUS_SENT
from ..domain.models import CCAMAct, Quote
from ..domain.normalize import format_iso, normalize_amount, utc_now
from ..errors import QuoteValidationError
from ..logging import get_logger
from ..pricing import price_breakdown, quote_total, reference_price


LOG = get_logger("quote-editor")

QUOTE_ID_ALPHABET = string.digits + string.ascii_lowercase
QUOTE_ID_LENGTH = 9


def new_quote_id() -> str:
    return "".join(secrets.choice(QUOTE_ID_ALPHABET) for _ in range(QUOTE_ID_LENGTH))


class QuoteDraft:
    """A practitioner's quote while it is being composed.

    Acts keep their insertion order and may repeat; custom prices are keyed
    by act code, so repeated acts share one price.
    """

    def __init__(self, patient_name: str = "", patient_email: str = "") -> None:
        self.patient_name = patient_name
        self.patient_email = patient_email
        self.acts: List[CCAMAct] = []
        self.custom_prices: Dict[str, float] = {}
        self.delivery_channels: List[str] = list(DEFAULT_CHANNELS)

    def add_act(self, act: CCAMAct) -> None:
        self.acts.append(act)
        if not self.custom_prices.get(act.code):
            self.custom_prices[act.code] = reference_price(act)

    def remove_act(self, index: int) -> CCAMAct:
        if index < 0 or index >= len(self.acts):
            raise IndexError(f"no act at position {index}")
        return self.acts.pop(index)

    def set_price(self, code: str, value: Any) -> float:
        price = normalize_amount(value)
        if price is None:
            price = 0.0
        self.custom_prices[code] = price
        return price

    def toggle_channel(self, channel: str) -> List[str]:
        if channel not in CHANNEL_CHOICES:
            raise QuoteValidationError(f"Canal inconnu : {channel}")
        if channel in self.delivery_channels:
            self.delivery_channels = [c for c in self.delivery_channels if c != channel]
        else:
            self.delivery_channels = self.delivery_channels + [channel]
        return self.delivery_channels

    @property
    def total(self) -> float:
        return quote_total(self.acts, self.custom_prices)

    def summary(self) -> Dict[str, Any]:
        payload = price_breakdown(self.acts, self.custom_prices)
        payload["delivery_channels"] = list(self.delivery_channels)
        return payload

    def validate(self) -> None:
        if not self.patient_name.strip():
            raise QuoteValidationError("Veuillez entrer un nom de patient")
        if not self.delivery_channels:
            raise QuoteValidationError("Choisissez au moins un canal d’envoi (SMS / Email / WhatsApp).")
        if not self.acts:
            raise QuoteValidationError("Veuillez ajouter au moins un acte")

    def finalize(self, *, now: Optional[datetime] = None, ttl_days: int = DEFAULT_LINK_TTL_DAYS) -> Quote:
        """Validate and freeze the draft into a sent quote."""
        self.validate()
        now = now or utc_now()
        quote = Quote(
            id=new_quote_id(),
            patient_name=self.patient_name.strip(),
            patient_email=self.patient_email.strip() or None,
            date=format_iso(now),
            status=STATUS_SENT,
            acts=list(self.acts),
            custom_prices=dict(self.custom_prices),
            total=self.total,
            delivery_channels=list(self.delivery_channels),
            link_expires_at=format_iso(now + timedelta(days=ttl_days)),
        )
        LOG.info("Finalized quote %s: %d act(s), total %.2f", quote.id, len(quote.acts), quote.total)
        return quote
