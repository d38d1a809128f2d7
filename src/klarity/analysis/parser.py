from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from ..domain.models import AnalyzedAct
from ..domain.normalize import normalize_amount
from ..errors import AnalysisError
from ..logging import get_logger


LOG = get_logger("analysis-parser")

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_fences(text: str) -> str:
    """Drop markdown code fences (``` and ```json) and surrounding whitespace."""
    return _FENCE_RE.sub("", text or "").strip()


def _scavenge_json_object(s: str) -> Optional[Dict[str, Any]]:
    start = s.find("{")
    end = s.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    try:
        data = json.loads(s[start : end + 1])
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def parse_model_reply(content: Optional[str]) -> Dict[str, Any]:
    """Turn the raw model text into the JSON object it was asked to produce."""
    if not content or not content.strip():
        raise AnalysisError("Empty response from AI")
    text = strip_fences(content)
    try:
        data = json.loads(text)
    except ValueError as exc:
        data = _scavenge_json_object(text)
        if data is None:
            LOG.error("Model reply is not valid JSON; first 300 chars: %r", text[:300])
            raise AnalysisError(f"Invalid JSON in model reply: {exc}") from exc
    if not isinstance(data, dict):
        raise AnalysisError("Model reply is not a JSON object")
    return data


def parse_analyzed_acts(payload: Any) -> List[AnalyzedAct]:
    """Normalize the `acts` array of an analysis payload.

    Missing or non-list `acts` gives an empty list; entries that are not
    objects are dropped.
    """
    if not isinstance(payload, dict):
        return []
    raw_acts = payload.get("acts")
    if not isinstance(raw_acts, list):
        return []
    acts: List[AnalyzedAct] = []
    for raw in raw_acts:
        if not isinstance(raw, dict):
            LOG.debug("Dropping non-object act entry: %r", raw)
            continue
        code = raw.get("code")
        code = str(code).strip() if code not in (None, "") else None
        acts.append(
            AnalyzedAct(
                code=code or None,
                description=str(raw.get("description") or "").strip(),
                price=normalize_amount(raw.get("price")) or 0.0,
                type=str(raw.get("type") or "").strip(),
            )
        )
    return acts
