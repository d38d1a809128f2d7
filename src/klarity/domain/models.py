from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .constants import STATUS_DRAFT


def _opt_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class CCAMAct:
    code: str
    label_technical: str
    label_patient: str
    description: str
    category: str
    reimbursable: bool
    keywords: List[str] = field(default_factory=list)
    label_vibe: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    price_avg_province: Optional[float] = None
    price_avg_paris: Optional[float] = None
    base_remboursement: Optional[float] = None
    video_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CCAMAct":
        if not isinstance(data, dict):
            raise ValueError("act must be an object")
        code = data.get("code")
        if not isinstance(code, str) or not code.strip():
            raise ValueError("act.code required")
        keywords = data.get("keywords") or []
        if not isinstance(keywords, list):
            keywords = []
        return cls(
            code=code.strip(),
            label_technical=str(data.get("label_technical") or ""),
            label_patient=str(data.get("label_patient") or ""),
            description=str(data.get("description") or ""),
            category=str(data.get("category") or "autre"),
            reimbursable=bool(data.get("reimbursable", False)),
            keywords=[str(k) for k in keywords],
            label_vibe=data.get("label_vibe"),
            price_min=_opt_float(data.get("price_min")),
            price_max=_opt_float(data.get("price_max")),
            price_avg_province=_opt_float(data.get("price_avg_province")),
            price_avg_paris=_opt_float(data.get("price_avg_paris")),
            base_remboursement=_opt_float(data.get("base_remboursement")),
            video_url=data.get("video_url"),
        )


@dataclass
class AnalyzedAct:
    """One act as read from a quote image by the vision model."""

    code: Optional[str]
    description: str
    price: float
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DentistUser:
    id: str
    name: str
    email: str
    role: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Quote:
    id: str
    patient_name: str
    date: str                # ISO-8601 UTC
    status: str = STATUS_DRAFT
    acts: List[CCAMAct] = field(default_factory=list)
    custom_prices: Dict[str, float] = field(default_factory=dict)
    total: float = 0.0
    patient_email: Optional[str] = None
    magic_link_token: Optional[str] = None
    magic_link_url: Optional[str] = None
    link_expires_at: Optional[str] = None
    open_count: int = 0
    last_opened_at: Optional[str] = None
    delivery_channels: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["acts"] = [a.to_dict() for a in self.acts]
        return payload
