import math
import re
import unicodedata
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from ..logging import get_logger

_LOG = get_logger("normalize")


def fold(text: Optional[str]) -> str:
    """Lower-case and NFC-normalize text for substring matching."""
    return unicodedata.normalize("NFC", text or "").lower()


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves up, not to even."""
    quant = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP))


def round_euros(value: float) -> int:
    return int(round_half_up(value))


def normalize_amount(val: Any) -> Optional[float]:
    """Normalize a price to a float in euros.

    Handles numbers and strings like '550', '14,70', '1 470,00 €', '1,470.00'.
    The number must lead the string; NaN, infinities and overflowing values give None.
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return _finite(val)
    s = str(val).strip().replace(" ", "").replace(" ", "").replace("€", "")
    if not s:
        return None
    has_dot = "." in s
    has_comma = "," in s
    if has_dot and has_comma:
        if re.search(r",\d{1,2}$", s):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif has_comma:
        if re.search(r",\d{1,2}$", s):
            s = s.replace(",", ".")
        else:
            s = s.replace(",", "")

    m = re.match(r"[-+]?\d+(?:\.\d+)?", s)
    if not m:
        _LOG.debug(f"Unparseable amount: {val!r}")
        return None
    try:
        return _finite(Decimal(m.group(0)))
    except InvalidOperation:
        return None


def _finite(val: Any) -> Optional[float]:
    try:
        num = float(val)
    except OverflowError:
        return None
    return num if math.isfinite(num) else None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_iso(dt: datetime) -> str:
    """ISO-8601 in UTC with milliseconds and a trailing Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        _LOG.warning(f"Invalid ISO timestamp: {value!r}")
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
