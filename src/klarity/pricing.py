"""Price arithmetic shared by the editor, dashboard and patient views.

Amounts are euros as floats. Missing act prices count as 0.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, Mapping, Sequence

from .domain.models import CCAMAct

INSTALLMENTS = 4
MIN_MONTHLY = 25
FAIR_PRICE_HIGH_RATIO = 1.2
FAIR_PRICE_LOW_RATIO = 0.8
DEFAULT_COMPLICATION_COST = 200.0

INDICATOR_HIGH = "high"
INDICATOR_LOW = "low"
INDICATOR_FAIR = "fair"


def reference_price(act: CCAMAct) -> float:
    """Province average, else the reimbursement base, else 0 (zero falls through)."""
    return act.price_avg_province or act.base_remboursement or 0.0


def applied_price(act: CCAMAct, custom_prices: Mapping[str, float]) -> float:
    price = custom_prices.get(act.code)
    if price is None:
        return reference_price(act)
    return float(price)


def quote_total(acts: Iterable[CCAMAct], custom_prices: Mapping[str, float]) -> float:
    return sum((applied_price(act, custom_prices) for act in acts), 0.0)


def base_remboursement_total(acts: Iterable[CCAMAct]) -> float:
    return sum((act.base_remboursement or 0.0 for act in acts), 0.0)


def out_of_pocket(total: float, base: float, *, clamp: bool = True) -> float:
    """Reste à charge before complementary insurance."""
    rest = total - base
    return max(0.0, rest) if clamp else rest


def act_out_of_pocket(act: CCAMAct) -> float:
    return (act.price_avg_province or 0.0) - (act.base_remboursement or 0.0)


def monthly_installment(amount: float) -> int:
    return max(MIN_MONTHLY, math.ceil(amount / INSTALLMENTS))


def fair_price_indicator(applied: float | None, average: float | None) -> str:
    applied = applied or 0.0
    average = average or 0.0
    if applied > average * FAIR_PRICE_HIGH_RATIO:
        return INDICATOR_HIGH
    if applied < average * FAIR_PRICE_LOW_RATIO:
        return INDICATOR_LOW
    return INDICATOR_FAIR


def complication_estimate(acts: Sequence[CCAMAct]) -> float:
    highest = max((act.price_avg_province or 0.0 for act in acts), default=0.0)
    return highest or DEFAULT_COMPLICATION_COST


def price_breakdown(acts: Sequence[CCAMAct], custom_prices: Dict[str, float]) -> Dict[str, object]:
    """Editor summary: totals plus a per-line fair price check."""
    total = quote_total(acts, custom_prices)
    base = base_remboursement_total(acts)
    lines = []
    for index, act in enumerate(acts):
        price = applied_price(act, custom_prices)
        lines.append(
            {
                "index": index,
                "code": act.code,
                "label_patient": act.label_patient,
                "applied_price": price,
                "reference_price": reference_price(act),
                "indicator": fair_price_indicator(price, act.price_avg_province),
            }
        )
    return {
        "act_count": len(acts),
        "total": total,
        "base_remboursement": base,
        "reste_a_charge": out_of_pocket(total, base, clamp=False),
        "lines": lines,
    }
