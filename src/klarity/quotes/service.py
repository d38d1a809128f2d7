from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol

from ..analysis.mapping import map_analyzed_to_catalog
from ..analysis.parser import parse_analyzed_acts
from ..catalog import find_act
from ..config import Settings
from ..domain.constants import (
    ROLE_CHOICES,
    ROLE_TITULAIRE,
    STATUS_ACCEPTED,
    STATUS_CHOICES,
    STATUS_DRAFT,
    STATUS_SENT,
)
from ..domain.models import CCAMAct, DentistUser, Quote
from ..domain.normalize import round_euros, utc_now
from ..errors import (
    AnalysisError,
    LinkExpiredError,
    LoginError,
    QuoteNotFoundError,
    StatusTransitionError,
    UnknownActError,
)
from ..logging import get_logger
from .db import QuoteDatabase
from .editor import QuoteDraft
from .links import build_magic_link, is_link_expired, record_open


LOG = get_logger("quote-service")

# Forward moves only; staying put is a no-op.
ALLOWED_TRANSITIONS: Dict[str, tuple] = {
    STATUS_DRAFT: (STATUS_SENT, STATUS_ACCEPTED),
    STATUS_SENT: (STATUS_ACCEPTED,),
    STATUS_ACCEPTED: (),
}

SCAN_OK = "ok"
SCAN_EMPTY = "empty"


class QuoteAnalyzer(Protocol):
    def analyze(self, image: str) -> Dict[str, Any]: ...


@dataclass
class ScanResult:
    status: str
    acts: List[CCAMAct] = field(default_factory=list)

    @property
    def highlighted(self) -> Optional[CCAMAct]:
        return self.acts[0] if self.acts else None


@dataclass
class DashboardStats:
    quote_count: int
    acceptance_rate: int
    total_amount: float
    pending_amount: float
    open_events: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quote_count": self.quote_count,
            "acceptance_rate": self.acceptance_rate,
            "total_amount": self.total_amount,
            "pending_amount": self.pending_amount,
            "open_events": self.open_events,
        }


class QuoteService:
    """Quotes, basket and practitioner session on top of the SQLite store."""

    def __init__(
        self,
        db: QuoteDatabase,
        *,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db = db
        self.settings = settings or Settings()
        self.clock = clock
        self._backfill_links()

    def _link(self, quote: Quote) -> Quote:
        return build_magic_link(
            quote,
            now=self.clock(),
            base_url=self.settings.link_base_url,
            ttl_days=self.settings.link_ttl_days,
        )

    def _backfill_links(self) -> None:
        ids = self.db.fetch_quote_ids_without_link()
        for quote_id in ids:
            quote = self.db.fetch_quote(quote_id)
            if quote is None:
                continue
            self.db.update_link_fields(self._link(quote))
        if ids:
            LOG.info("Back-filled share links for %d stored quote(s)", len(ids))

    # ---------------- quotes ----------------
    def save_quote(self, quote: Quote) -> Quote:
        linked = self._link(quote)
        self.db.insert_quote(linked)
        LOG.info("Saved quote %s for %r (%s)", linked.id, linked.patient_name, linked.status)
        return linked

    def create_quote(self, draft: QuoteDraft) -> Quote:
        """Validate a draft, freeze it and store it with its share link."""
        quote = draft.finalize(now=self.clock(), ttl_days=self.settings.link_ttl_days)
        return self.save_quote(quote)

    def list_quotes(self) -> List[Quote]:
        return self.db.fetch_quotes()

    def get_quote(self, quote_id: str) -> Quote:
        quote = self.db.fetch_quote(quote_id)
        if quote is None:
            raise QuoteNotFoundError(f"Quote not found: {quote_id}")
        return quote

    def get_by_token(self, token: str) -> Quote:
        quote = self.db.fetch_quote_by_token(token)
        if quote is None:
            raise QuoteNotFoundError("Unknown quote link")
        return quote

    def _record_open(self, quote: Quote) -> Quote:
        opened = record_open(quote, now=self.clock())
        # open_count is incremented in SQL, not copied from the in-memory quote
        self.db.increment_open(quote.id, opened.last_opened_at)
        return self.get_quote(quote.id)

    def open_quote(self, quote_id: str) -> Quote:
        """Practitioner preview; counts as an open even after expiry."""
        return self._record_open(self.get_quote(quote_id))

    def open_link(self, token: str) -> Quote:
        quote = self.get_by_token(token)
        if is_link_expired(quote, now=self.clock()):
            LOG.info("Refusing expired link for quote %s (expired %s)", quote.id, quote.link_expires_at)
            raise LinkExpiredError("Ce lien a expiré")
        return self._record_open(quote)

    def set_status(self, quote_id: str, status: str) -> Quote:
        if status not in STATUS_CHOICES:
            raise StatusTransitionError(f"Unknown status: {status}")
        quote = self.get_quote(quote_id)
        if quote.status == status:
            return quote
        if status not in ALLOWED_TRANSITIONS.get(quote.status, ()):
            raise StatusTransitionError(f"Cannot move quote {quote_id} from {quote.status} to {status}")
        quote.status = status
        self.db.update_link_fields(quote)
        LOG.info("Quote %s is now %s", quote_id, status)
        return quote

    def accept_quote(self, quote_id: str) -> Quote:
        return self.set_status(quote_id, STATUS_ACCEPTED)

    def accept_by_token(self, token: str) -> Quote:
        quote = self.get_by_token(token)
        if quote.status != STATUS_ACCEPTED and is_link_expired(quote, now=self.clock()):
            raise LinkExpiredError("Ce lien a expiré")
        return self.set_status(quote.id, STATUS_ACCEPTED)

    def dashboard_stats(self) -> DashboardStats:
        quotes = self.list_quotes()
        count = len(quotes)
        accepted = sum(1 for q in quotes if q.status == STATUS_ACCEPTED)
        return DashboardStats(
            quote_count=count,
            acceptance_rate=round_euros(accepted / count * 100) if count else 0,
            total_amount=sum((q.total for q in quotes), 0.0),
            pending_amount=sum((q.total for q in quotes if q.status != STATUS_ACCEPTED), 0.0),
            open_events=sum(q.open_count or 0 for q in quotes),
        )

    # ---------------- basket ----------------
    def basket(self) -> List[CCAMAct]:
        return self.db.fetch_basket()

    def add_to_basket(self, code: str) -> List[CCAMAct]:
        act = find_act(code)
        if act is None:
            raise UnknownActError(f"Unknown act code: {code}")
        self.db.insert_basket_items([act])
        return self.basket()

    def remove_from_basket(self, index: int) -> List[CCAMAct]:
        if self.db.delete_basket_item_at(index) is None:
            raise IndexError(f"no basket item at position {index}")
        return self.basket()

    def clear_basket(self) -> None:
        removed = self.db.clear_basket()
        LOG.debug("Cleared %d basket item(s)", removed)

    # ---------------- session ----------------
    def login(self, name: str, email: str, code: str, role: str = ROLE_TITULAIRE) -> DentistUser:
        name, email, code = (name or "").strip(), (email or "").strip(), (code or "").strip()
        if not name or not email or not code:
            raise LoginError("Merci de renseigner nom, email et code d'accès.")
        role = role or ROLE_TITULAIRE
        if role not in ROLE_CHOICES:
            raise LoginError(f"Rôle inconnu : {role}")
        user = DentistUser(id=str(uuid.uuid4()), name=name, email=email, role=role)
        self.db.save_session(user)
        LOG.info("Practitioner %s logged in as %s", user.email, user.role)
        return user

    def logout(self) -> None:
        self.db.delete_session()

    def current_user(self) -> Optional[DentistUser]:
        return self.db.fetch_session()

    # ---------------- scan ----------------
    def scan(self, analyzer: QuoteAnalyzer, image: str) -> ScanResult:
        """Analyse a quote image, map it onto the catalog and fill the basket.

        Raises AnalysisError when the analysis itself fails.
        """
        try:
            payload = analyzer.analyze(image)
        except AnalysisError:
            raise
        except Exception as exc:
            LOG.error("Quote analysis failed: %s", exc)
            raise AnalysisError(str(exc)) from exc
        acts = map_analyzed_to_catalog(parse_analyzed_acts(payload))
        if not acts:
            LOG.info("Scan found no acts")
            return ScanResult(status=SCAN_EMPTY)
        self.db.insert_basket_items(acts)
        LOG.info("Scan added %d act(s) to the basket", len(acts))
        return ScanResult(status=SCAN_OK, acts=acts)
