from __future__ import annotations

from typing import List, Optional, Sequence

from ..catalog import load_reference_table
from ..domain.constants import UNKNOWN_ACT_CODE
from ..domain.models import AnalyzedAct, CCAMAct
from ..domain.normalize import fold
from ..logging import get_logger


LOG = get_logger("analysis-mapping")

UNKNOWN_LABEL_TECHNICAL = "Acte non reconnu dans la base locale"
UNKNOWN_DESCRIPTION = "Acte identifié par l'IA mais non présent dans la base locale."


def _fuzzy_match(description: str, table: Sequence[CCAMAct]) -> Optional[CCAMAct]:
    needle = fold(description).strip()
    if not needle:
        return None
    for act in table:
        if needle in fold(act.label_patient):
            return act
        if any(fold(k) and fold(k) in needle for k in act.keywords):
            return act
    return None


def unknown_act(analyzed: AnalyzedAct) -> CCAMAct:
    return CCAMAct(
        code=analyzed.code or UNKNOWN_ACT_CODE,
        label_technical=UNKNOWN_LABEL_TECHNICAL,
        label_patient=analyzed.description,
        description=UNKNOWN_DESCRIPTION,
        category=analyzed.type,
        reimbursable=False,
        keywords=[],
        price_avg_province=analyzed.price,
        base_remboursement=0.0,
    )


def map_analyzed_act(analyzed: AnalyzedAct, table: Optional[Sequence[CCAMAct]] = None) -> CCAMAct:
    table = load_reference_table() if table is None else table
    if analyzed.code:
        for act in table:
            if act.code == analyzed.code:
                return act
    match = _fuzzy_match(analyzed.description, table)
    if match is not None:
        LOG.debug("Fuzzy-matched %r to %s", analyzed.description, match.code)
        return match
    LOG.info("No catalog match for %r (code=%s); keeping it as an unknown act", analyzed.description, analyzed.code)
    return unknown_act(analyzed)


def map_analyzed_to_catalog(
    analyzed_acts: Sequence[AnalyzedAct], table: Optional[Sequence[CCAMAct]] = None
) -> List[CCAMAct]:
    """One catalog act per analysed act, in input order."""
    return [map_analyzed_act(a, table) for a in analyzed_acts]
