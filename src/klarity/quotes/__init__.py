"""Quote drafting, share links and the SQLite-backed quote store."""

from .db import QuoteDatabase
from .editor import QuoteDraft, new_quote_id
from .links import build_magic_link, is_link_expired, link_url, record_open
from .service import DashboardStats, QuoteService, ScanResult

__all__ = [
    "DashboardStats",
    "QuoteDatabase",
    "QuoteDraft",
    "QuoteService",
    "ScanResult",
    "build_magic_link",
    "is_link_expired",
    "link_url",
    "new_quote_id",
    "record_open",
]
