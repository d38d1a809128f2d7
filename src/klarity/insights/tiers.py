from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..domain.models import CCAMAct
from ..domain.normalize import round_euros
from ..pricing import monthly_installment

EMPTY_PLAN_BASE = 900.0
UNPRICED_ACT_FALLBACK = 250.0
DEFAULT_CHOICE = "better"


@dataclass(frozen=True)
class TierOption:
    id: str
    title: str
    description: str
    multiplier: float
    badge: Optional[str] = None


TIER_OPTIONS: Tuple[TierOption, ...] = (
    TierOption("good", "Standard", "Solution économique, matériaux basiques, confort correct.", 0.8),
    TierOption("better", "Recommandée", "Équilibre entre confort, esthétique et durabilité.", 1.0, "Conseillée"),
    TierOption("best", "Premium", "Matériaux haut de gamme, esthétique renforcée et long terme.", 1.35, "Longévité"),
)


def tier_base(acts: Sequence[CCAMAct]) -> float:
    if not acts:
        return EMPTY_PLAN_BASE
    return sum(
        (act.price_avg_province or act.base_remboursement or UNPRICED_ACT_FALLBACK for act in acts),
        0.0,
    )


def good_better_best(acts: Sequence[CCAMAct], selected: str = DEFAULT_CHOICE) -> Dict[str, Any]:
    base = tier_base(acts)
    if selected not in {o.id for o in TIER_OPTIONS}:
        selected = DEFAULT_CHOICE
    options: List[Dict[str, Any]] = []
    for option in TIER_OPTIONS:
        price = round_euros(base * option.multiplier)
        options.append(
            {
                "id": option.id,
                "title": option.title,
                "description": option.description,
                "multiplier": option.multiplier,
                "badge": option.badge,
                "price": price,
                "monthly": monthly_installment(price),
                "selected": option.id == selected,
            }
        )
    return {"base": base, "selected": selected, "options": options}
