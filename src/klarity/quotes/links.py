from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from ..config import DEFAULT_LINK_BASE_URL, DEFAULT_LINK_TTL_DAYS
from ..domain.models import Quote
from ..domain.normalize import format_iso, parse_iso, utc_now


def link_url(token: str, base_url: str = DEFAULT_LINK_BASE_URL) -> str:
    return f"{base_url.rstrip('/')}/d/{token}"


def default_expiry(now: Optional[datetime] = None, ttl_days: int = DEFAULT_LINK_TTL_DAYS) -> str:
    return format_iso((now or utc_now()) + timedelta(days=ttl_days))


def build_magic_link(
    quote: Quote,
    *,
    now: Optional[datetime] = None,
    base_url: str = DEFAULT_LINK_BASE_URL,
    ttl_days: int = DEFAULT_LINK_TTL_DAYS,
) -> Quote:
    """Return a copy of ``quote`` with token, url, expiry and tracking fields filled.

    Existing values are kept, so calling this twice changes nothing.
    """
    token = quote.magic_link_token or str(uuid.uuid4())
    return replace(
        quote,
        magic_link_token=token,
        magic_link_url=quote.magic_link_url or link_url(token, base_url),
        link_expires_at=quote.link_expires_at or default_expiry(now, ttl_days),
        open_count=quote.open_count or 0,
        last_opened_at=quote.last_opened_at or None,
        delivery_channels=list(quote.delivery_channels or []),
    )


def is_link_expired(quote: Quote, *, now: Optional[datetime] = None) -> bool:
    expires = parse_iso(quote.link_expires_at)
    if expires is None:
        return False
    return (now or utc_now()) >= expires


def record_open(quote: Quote, *, now: Optional[datetime] = None) -> Quote:
    return replace(
        quote,
        open_count=(quote.open_count or 0) + 1,
        last_opened_at=format_iso(now or utc_now()),
    )
