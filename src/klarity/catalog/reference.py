from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import List, Optional, Sequence, Tuple

from ..domain.models import CCAMAct
from ..domain.normalize import fold
from ..logging import get_logger


LOG = get_logger("catalog")

DATA_PACKAGE = "klarity.catalog.data"
DATA_FILENAME = "ccam_acts.json"

SUGGEST_LIMIT = 5


@lru_cache(maxsize=1)
def load_reference_table() -> Tuple[CCAMAct, ...]:
    """Load the static CCAM reference table shipped with the package (cached)."""
    raw = resources.files(DATA_PACKAGE).joinpath(DATA_FILENAME).read_text(encoding="utf-8")
    rows = json.loads(raw)
    acts = tuple(CCAMAct.from_dict(row) for row in rows)
    LOG.debug("Loaded %d reference acts", len(acts))
    return acts


def find_act(code: Optional[str], table: Optional[Sequence[CCAMAct]] = None) -> Optional[CCAMAct]:
    if not code:
        return None
    for act in table if table is not None else load_reference_table():
        if act.code == code:
            return act
    return None


def search_acts(term: Optional[str], table: Optional[Sequence[CCAMAct]] = None) -> List[CCAMAct]:
    """Patient search over code, both labels and keywords.

    An empty term returns the whole table.
    """
    acts = list(table if table is not None else load_reference_table())
    if not term:
        return acts
    needle = fold(term)
    return [
        act
        for act in acts
        if needle in fold(act.code)
        or needle in fold(act.label_patient)
        or needle in fold(act.label_technical)
        or any(needle in fold(k) for k in act.keywords)
    ]


def suggest_acts(
    term: Optional[str],
    *,
    limit: int = SUGGEST_LIMIT,
    table: Optional[Sequence[CCAMAct]] = None,
) -> List[CCAMAct]:
    """Practitioner editor lookup: code or patient label only, first ``limit`` hits."""
    if not term:
        return []
    needle = fold(term)
    acts = table if table is not None else load_reference_table()
    hits = [act for act in acts if needle in fold(act.code) or needle in fold(act.label_patient)]
    return hits[:limit]
