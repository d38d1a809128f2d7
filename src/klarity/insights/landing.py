from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from ..domain.models import CCAMAct, Quote
from ..pricing import (
    act_out_of_pocket,
    base_remboursement_total,
    complication_estimate,
    monthly_installment,
    out_of_pocket,
)
from ..quotes.links import is_link_expired
from .financing import financing_offer
from .inaction import inaction_scenario
from .social_proof import reviews_for_acts
from .tiers import good_better_best

PREVIEW_ACTS = 3


def build_landing(quote: Quote, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Everything the patient sees when opening a quote link."""
    base = base_remboursement_total(quote.acts)
    reste = out_of_pocket(quote.total, base)
    first: Optional[CCAMAct] = quote.acts[0] if quote.acts else None
    inaction = (
        inaction_scenario(first, first.price_avg_province or 0).to_dict() if first is not None else None
    )
    return {
        "quote_id": quote.id,
        "patient_name": quote.patient_name,
        "status": quote.status,
        "magic_link_token": quote.magic_link_token,
        "link_expires_at": quote.link_expires_at,
        "link_expired": is_link_expired(quote, now=now),
        "total": quote.total,
        "base_remboursement": base,
        "reste_a_charge": reste,
        "monthly": monthly_installment(reste),
        "acts_preview": [act.to_dict() for act in quote.acts[:PREVIEW_ACTS]],
        "more_acts": max(0, len(quote.acts) - PREVIEW_ACTS),
        "tiers": good_better_best(quote.acts),
        "financing": financing_offer(reste),
        "reviews": [r.to_dict() for r in reviews_for_acts(quote.acts)],
        "inaction": inaction,
        "complication_estimate": complication_estimate(quote.acts),
    }


def build_act_result(act: CCAMAct) -> Dict[str, Any]:
    """Single-act explanation shown after a scan or a manual lookup."""
    return {
        "act": act.to_dict(),
        "reste_a_charge": act_out_of_pocket(act),
        "inaction": inaction_scenario(act, act.price_avg_province or 0).to_dict(),
    }
