from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from ..domain.constants import STATUS_CHOICES
from ..domain.models import CCAMAct, DentistUser, Quote
from ..errors import DuplicateQuoteError
from ..logging import get_logger
from ..paths import find_project_root, var_dir


LOG = get_logger("quote-db")

DEFAULT_DB_FOLDER = "klarity"
DEFAULT_DB_FILENAME = "klarity.sqlite3"

STATUS_ENUM_SQL = ", ".join(f"'{value}'" for value in STATUS_CHOICES)


SCHEMA_SQL = f"""
PRAGMA foreign_keys = ON;

-- 1) Practitioner quotes (newest first by rowid)
CREATE TABLE IF NOT EXISTS quotes (
  quote_id           TEXT PRIMARY KEY,
  patient_name       TEXT NOT NULL,
  patient_email      TEXT,
  created_at         TEXT NOT NULL,      -- ISO-8601 UTC
  status             TEXT NOT NULL CHECK (status IN ({STATUS_ENUM_SQL})),
  total              REAL NOT NULL DEFAULT 0,
  custom_prices      TEXT NOT NULL DEFAULT '{{}}',   -- JSON object code -> price
  magic_link_token   TEXT UNIQUE,
  magic_link_url     TEXT,
  link_expires_at    TEXT,
  open_count         INTEGER NOT NULL DEFAULT 0 CHECK (open_count >= 0),
  last_opened_at     TEXT,
  delivery_channels  TEXT NOT NULL DEFAULT '[]'      -- JSON array
);

-- 2) Act snapshots per quote, in selection order
CREATE TABLE IF NOT EXISTS quote_acts (
  quote_id   TEXT NOT NULL REFERENCES quotes(quote_id) ON DELETE CASCADE,
  position   INTEGER NOT NULL,
  code       TEXT NOT NULL,
  act_json   TEXT NOT NULL,
  PRIMARY KEY (quote_id, position)
);

-- 3) Patient basket (simulated quote)
CREATE TABLE IF NOT EXISTS basket_items (
  item_id    INTEGER PRIMARY KEY AUTOINCREMENT,
  code       TEXT NOT NULL,
  act_json   TEXT NOT NULL,
  added_at   TEXT DEFAULT (datetime('now'))
);

-- 4) Practitioner session (at most one row)
CREATE TABLE IF NOT EXISTS dentist_session (
  slot       INTEGER PRIMARY KEY CHECK (slot = 1),
  user_id    TEXT NOT NULL,
  name       TEXT NOT NULL,
  email      TEXT NOT NULL,
  role       TEXT NOT NULL,
  created_at TEXT DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_quote_acts_code ON quote_acts(code);
CREATE INDEX IF NOT EXISTS idx_quotes_status   ON quotes(status);
"""


class QuoteDatabase:
    """SQLite-backed store for quotes, the patient basket and the practitioner session.

    - Places DB under `<repo-root>/var/klarity/klarity.sqlite3`.
    - Ensures schema on first use.
    """

    def __init__(self, root_dir: Optional[str] = None, *, db_path: Optional[str] = None) -> None:
        if db_path is None:
            root = find_project_root(root_dir)
            folder = os.path.join(var_dir(root), DEFAULT_DB_FOLDER)
            os.makedirs(folder, exist_ok=True)
            db_path = os.path.join(folder, DEFAULT_DB_FILENAME)
        self.db_path = db_path
        LOG.info(f"Quote DB path: {self.db_path}")
        self._ensure_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            cur = conn.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA synchronous=NORMAL;")
            except sqlite3.DatabaseError as exc:
                LOG.debug("Could not switch journal mode: %s", exc)
            cur.executescript(SCHEMA_SQL)
            conn.commit()
            LOG.debug("Quote DB schema ensured.")

    # ---------------- quotes ----------------
    def insert_quote(self, quote: Quote) -> str:
        """Insert a quote, or replace the stored one with the same id.

        Replacing keeps the original rowid, so list order is unchanged.
        Raises DuplicateQuoteError when another quote holds the same link token.
        """
        with self.connect() as conn:
            cur = conn.cursor()
            try:
                self._upsert_quote(cur, quote)
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                LOG.warning("Refusing to store quote_id=%s: %s", quote.id, exc)
                raise DuplicateQuoteError(f"Share link already used by another quote ({quote.id})") from exc
            conn.commit()
        LOG.debug("Stored quote_id=%s with %d act(s)", quote.id, len(quote.acts))
        return quote.id

    def _upsert_quote(self, cur: sqlite3.Cursor, quote: Quote) -> None:
        cur.execute(
            """
            INSERT INTO quotes (
              quote_id, patient_name, patient_email, created_at, status, total,
              custom_prices, magic_link_token, magic_link_url, link_expires_at,
              open_count, last_opened_at, delivery_channels
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(quote_id) DO UPDATE SET
              patient_name = excluded.patient_name, patient_email = excluded.patient_email,
              created_at = excluded.created_at, status = excluded.status, total = excluded.total,
              custom_prices = excluded.custom_prices, magic_link_token = excluded.magic_link_token,
              magic_link_url = excluded.magic_link_url, link_expires_at = excluded.link_expires_at,
              open_count = excluded.open_count, last_opened_at = excluded.last_opened_at,
              delivery_channels = excluded.delivery_channels;
            """,
            (
                quote.id,
                quote.patient_name,
                quote.patient_email,
                quote.date,
                quote.status,
                float(quote.total),
                json.dumps(quote.custom_prices, ensure_ascii=False),
                quote.magic_link_token,
                quote.magic_link_url,
                quote.link_expires_at,
                int(quote.open_count or 0),
                quote.last_opened_at,
                json.dumps(list(quote.delivery_channels or []), ensure_ascii=False),
            ),
        )
        cur.execute("DELETE FROM quote_acts WHERE quote_id = ?;", (quote.id,))
        cur.executemany(
            "INSERT INTO quote_acts (quote_id, position, code, act_json) VALUES (?, ?, ?, ?);",
            [
                (quote.id, position, act.code, json.dumps(act.to_dict(), ensure_ascii=False))
                for position, act in enumerate(quote.acts)
            ],
        )

    def update_link_fields(self, quote: Quote) -> None:
        """Persist the mutable link/tracking/status fields of an existing quote."""
        with self.connect() as conn:
            conn.execute(
                """
                UPDATE quotes
                   SET status = ?, magic_link_token = ?, magic_link_url = ?, link_expires_at = ?,
                       open_count = ?, last_opened_at = ?, delivery_channels = ?
                 WHERE quote_id = ?;
                """,
                (
                    quote.status,
                    quote.magic_link_token,
                    quote.magic_link_url,
                    quote.link_expires_at,
                    int(quote.open_count or 0),
                    quote.last_opened_at,
                    json.dumps(list(quote.delivery_channels or []), ensure_ascii=False),
                    quote.id,
                ),
            )
            conn.commit()

    def increment_open(self, quote_id: str, opened_at: str) -> None:
        with self.connect() as conn:
            conn.execute(
                "UPDATE quotes SET open_count = open_count + 1, last_opened_at = ? WHERE quote_id = ?;",
                (opened_at, quote_id),
            )
            conn.commit()

    def fetch_quotes(self) -> List[Quote]:
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM quotes ORDER BY rowid DESC;").fetchall()
            quotes = [self._load_quote(conn, row) for row in rows]
        return [q for q in quotes if q is not None]

    def fetch_quote(self, quote_id: str) -> Optional[Quote]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM quotes WHERE quote_id = ?;", (quote_id,)).fetchone()
            return self._load_quote(conn, row) if row else None

    def fetch_quote_by_token(self, token: str) -> Optional[Quote]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM quotes WHERE magic_link_token = ?;", (token,)).fetchone()
            return self._load_quote(conn, row) if row else None

    def _load_quote(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Optional[Quote]:
        quote_id = row["quote_id"]
        try:
            act_rows = conn.execute(
                "SELECT act_json FROM quote_acts WHERE quote_id = ? ORDER BY position;",
                (quote_id,),
            ).fetchall()
            acts = [CCAMAct.from_dict(json.loads(r["act_json"])) for r in act_rows]
            custom_prices = {str(k): float(v) for k, v in json.loads(row["custom_prices"] or "{}").items()}
            channels = [str(c) for c in json.loads(row["delivery_channels"] or "[]")]
        except (ValueError, TypeError, AttributeError) as exc:
            LOG.warning("Skipping quote %s with unreadable stored data: %s", quote_id, exc)
            return None
        return Quote(
            id=quote_id,
            patient_name=row["patient_name"],
            patient_email=row["patient_email"],
            date=row["created_at"],
            status=row["status"],
            acts=acts,
            custom_prices=custom_prices,
            total=float(row["total"] or 0.0),
            magic_link_token=row["magic_link_token"],
            magic_link_url=row["magic_link_url"],
            link_expires_at=row["link_expires_at"],
            open_count=int(row["open_count"] or 0),
            last_opened_at=row["last_opened_at"],
            delivery_channels=channels,
        )

    def fetch_quote_ids_without_link(self) -> List[str]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT quote_id FROM quotes WHERE magic_link_token IS NULL OR magic_link_url IS NULL "
                "OR link_expires_at IS NULL;"
            ).fetchall()
        return [r["quote_id"] for r in rows]

    # ---------------- basket ----------------
    def insert_basket_items(self, acts: List[CCAMAct]) -> int:
        with self.connect() as conn:
            conn.executemany(
                "INSERT INTO basket_items (code, act_json) VALUES (?, ?);",
                [(act.code, json.dumps(act.to_dict(), ensure_ascii=False)) for act in acts],
            )
            conn.commit()
        return len(acts)

    def fetch_basket(self) -> List[CCAMAct]:
        with self.connect() as conn:
            rows = conn.execute("SELECT item_id, act_json FROM basket_items ORDER BY item_id;").fetchall()
        acts: List[CCAMAct] = []
        for row in rows:
            try:
                acts.append(CCAMAct.from_dict(json.loads(row["act_json"])))
            except ValueError as exc:
                LOG.warning("Skipping unreadable basket item %s: %s", row["item_id"], exc)
        return acts

    def delete_basket_item_at(self, index: int) -> Optional[str]:
        """Remove the index-th basket entry; return its code or None if out of range."""
        if index < 0:
            return None
        with self.connect() as conn:
            row = conn.execute(
                "SELECT item_id, code FROM basket_items ORDER BY item_id LIMIT 1 OFFSET ?;",
                (index,),
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM basket_items WHERE item_id = ?;", (row["item_id"],))
            conn.commit()
            return row["code"]

    def clear_basket(self) -> int:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM basket_items;")
            conn.commit()
            return cur.rowcount

    # ---------------- session ----------------
    def save_session(self, user: DentistUser) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO dentist_session (slot, user_id, name, email, role) VALUES (1, ?, ?, ?, ?)
                ON CONFLICT(slot) DO UPDATE SET
                  user_id = excluded.user_id, name = excluded.name,
                  email = excluded.email, role = excluded.role,
                  created_at = datetime('now');
                """,
                (user.id, user.name, user.email, user.role),
            )
            conn.commit()

    def fetch_session(self) -> Optional[DentistUser]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM dentist_session WHERE slot = 1;").fetchone()
        if row is None:
            return None
        return DentistUser(id=row["user_id"], name=row["name"], email=row["email"], role=row["role"])

    def delete_session(self) -> None:
        with self.connect() as conn:
            conn.execute("DELETE FROM dentist_session;")
            conn.commit()

    def fetch_counts(self) -> Dict[str, Any]:
        with self.connect() as conn:
            counts = {}
            for table in ("quotes", "quote_acts", "basket_items"):
                counts[table] = conn.execute(f"SELECT COUNT(*) FROM {table};").fetchone()[0]
        return counts
