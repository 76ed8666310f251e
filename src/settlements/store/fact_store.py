#!/usr/bin/env python3
"""
Payment Fact Store

SQLite-backed persistence for extracted payment facts. The store is the
single owner of fact rows: ingestion inserts through it, reports query it
by receipt-time range, and the maintenance pass updates rows in place.

At-most-once ingestion per mailbox message is enforced by a UNIQUE
constraint on `external_id`, so concurrent pollers cannot both insert the
same message.
"""

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..core.config import get_config
from ..core.datastore_mixin import DataStoreMixin
from ..core.dates import from_storage_string, to_storage_string
from ..core.errors import ConflictError, UpstreamFailure
from ..core.models import FactKind, PaymentFact
from ..core.money import Money

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS payment_facts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id TEXT UNIQUE NOT NULL,
    received_at TEXT NOT NULL,
    kind TEXT NOT NULL,
    virtual_amount INTEGER,
    bank_credit INTEGER,
    indifi_deduction INTEGER,
    transaction_ref TEXT,
    virtual_code TEXT,
    bank_account TEXT,
    raw_subject TEXT NOT NULL DEFAULT '',
    raw_body TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    reparsed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_payment_facts_received_at ON payment_facts (received_at);
"""

# Applied to stores created before the column existed
MIGRATIONS = ("ALTER TABLE payment_facts ADD COLUMN reparsed_at TEXT",)

# Columns the maintenance pass may rewrite; identity columns are never updatable
UPDATABLE_FIELDS = frozenset(
    {
        "kind",
        "virtual_amount",
        "bank_credit",
        "indifi_deduction",
        "transaction_ref",
        "virtual_code",
        "bank_account",
    }
)

_MONEY_FIELDS = ("virtual_amount", "bank_credit", "indifi_deduction")

# SQLite caps bound parameters per statement
_ID_CHUNK = 500


class FactStore(DataStoreMixin):
    """
    SQLite store for PaymentFact rows.

    Amounts are stored as integer paise and timestamps as fixed-width UTC
    text, so range queries and ordering happen in SQL.
    """

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the store, creating the schema on first use.

        Args:
            db_path: SQLite database file (default: from configuration)
        """
        self.db_path = Path(db_path) if db_path is not None else get_config().store.db_path
        self._initialized = False

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and rolls back on error."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
        except (OSError, sqlite3.Error) as e:
            raise UpstreamFailure(f"Cannot open fact store at {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            if not self._initialized:
                conn.executescript(SCHEMA)
                _migrate(conn)
                self._initialized = True
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def insert(self, fact: PaymentFact) -> PaymentFact:
        """
        Insert a new fact.

        Args:
            fact: Fact without an id

        Returns:
            Copy of the fact carrying its assigned id

        Raises:
            ConflictError: If a fact for the same external_id already exists
        """
        now = to_storage_string(datetime.now(timezone.utc))
        row = _fact_to_row(fact)
        try:
            with self._connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO payment_facts (
                        external_id, received_at, kind,
                        virtual_amount, bank_credit, indifi_deduction,
                        transaction_ref, virtual_code, bank_account,
                        raw_subject, raw_body, created_at, updated_at
                    ) VALUES (
                        :external_id, :received_at, :kind,
                        :virtual_amount, :bank_credit, :indifi_deduction,
                        :transaction_ref, :virtual_code, :bank_account,
                        :raw_subject, :raw_body, :now, :now
                    )
                    """,
                    {**row, "now": now},
                )
                fact_id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise ConflictError(fact.external_id) from e

        logger.debug(f"Stored {fact.kind.value} fact {fact_id} for {fact.external_id}")
        return fact.with_id(fact_id)

    def query(self, start: datetime | None = None, end: datetime | None = None) -> list[PaymentFact]:
        """
        Fetch facts received within [start, end], ascending by receipt time.

        Either bound may be None for an open range. Ties on receipt time
        come back in insertion order.
        """
        clauses = []
        params: list[Any] = []
        if start is not None:
            clauses.append("received_at >= ?")
            params.append(to_storage_string(start))
        if end is not None:
            clauses.append("received_at <= ?")
            params.append(to_storage_string(end))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM payment_facts {where} ORDER BY received_at ASC, id ASC",
                params,
            ).fetchall()
        return [_row_to_fact(row) for row in rows]

    def get(self, fact_id: int) -> PaymentFact | None:
        """Fetch one fact by id."""
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM payment_facts WHERE id = ?", (fact_id,)).fetchone()
        return _row_to_fact(row) if row else None

    def update(self, fact_id: int, fields: dict[str, Any]) -> bool:
        """
        Overwrite selected fields of a stored fact.

        Args:
            fact_id: Row id
            fields: Mapping of field name to new value (Money, FactKind or str)

        Returns:
            True if a row was updated

        Raises:
            ValueError: If a field is not updatable
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if not fields:
            return False

        values = {name: _to_column(name, value) for name, value in fields.items()}
        assignments = ", ".join(f"{name} = :{name}" for name in values)
        with self._connection() as conn:
            cursor = conn.execute(
                f"UPDATE payment_facts SET {assignments}, updated_at = :updated_at WHERE id = :id",
                {**values, "updated_at": to_storage_string(datetime.now(timezone.utc)), "id": fact_id},
            )
            return cursor.rowcount > 0

    def existing_external_ids(self, external_ids: Iterable[str]) -> set[str]:
        """Return the subset of the given message ids that already have facts."""
        ids = list(dict.fromkeys(external_ids))
        found: set[str] = set()
        if not ids:
            return found

        with self._connection() as conn:
            for offset in range(0, len(ids), _ID_CHUNK):
                chunk = ids[offset : offset + _ID_CHUNK]
                placeholders = ",".join("?" for _ in chunk)
                rows = conn.execute(
                    f"SELECT external_id FROM payment_facts WHERE external_id IN ({placeholders})",
                    chunk,
                ).fetchall()
                found.update(row["external_id"] for row in rows)
        return found

    def find_incomplete(self, limit: int = 1000, min_reference_length: int = 6) -> list[PaymentFact]:
        """
        Fetch facts worth re-extracting.

        A fact qualifies when its kind is unknown, its reference is missing
        or too short, or the amount its kind should carry is missing. Facts
        never re-extracted come first, then those re-extracted longest ago,
        so rows that stay incomplete cannot crowd others out of the limit.
        """
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM payment_facts
                WHERE kind = 'unknown'
                   OR transaction_ref IS NULL
                   OR length(transaction_ref) < :min_ref
                   OR (kind = 'virtual_credit' AND virtual_amount IS NULL)
                   OR (kind = 'release_to_bank' AND bank_credit IS NULL)
                   OR (kind = 'emi_deduction_explicit' AND indifi_deduction IS NULL)
                ORDER BY reparsed_at IS NOT NULL, reparsed_at ASC, id ASC
                LIMIT :limit
                """,
                {"min_ref": min_reference_length, "limit": limit},
            ).fetchall()
        return [_row_to_fact(row) for row in rows]

    def mark_reparsed(self, fact_ids: Iterable[int]) -> None:
        """Stamp facts as re-extracted now, moving them to the back of find_incomplete."""
        ids = list(fact_ids)
        if not ids:
            return

        now = to_storage_string(datetime.now(timezone.utc))
        with self._connection() as conn:
            conn.executemany("UPDATE payment_facts SET reparsed_at = ? WHERE id = ?", [(now, i) for i in ids])

    # DataStoreMixin status methods

    def exists(self) -> bool:
        return self.db_path.exists()

    def last_modified(self) -> datetime | None:
        if not self.exists():
            return None
        return datetime.fromtimestamp(self.db_path.stat().st_mtime)

    def item_count(self) -> int | None:
        if not self.exists():
            return None
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM payment_facts").fetchone()[0]

    def size_bytes(self) -> int | None:
        if not self.exists():
            return None
        return self.db_path.stat().st_size

    def summary_text(self) -> str:
        if not self.exists():
            return "No fact store found"

        with self._connection() as conn:
            rows = conn.execute("SELECT kind, COUNT(*) AS n FROM payment_facts GROUP BY kind ORDER BY kind").fetchall()
            span = conn.execute("SELECT MIN(received_at), MAX(received_at) FROM payment_facts").fetchone()

        total = sum(row["n"] for row in rows)
        if total == 0:
            return "Fact store is empty"

        by_kind = ", ".join(f"{row['kind']}: {row['n']}" for row in rows)
        first = from_storage_string(span[0]).date().isoformat()
        last = from_storage_string(span[1]).date().isoformat()
        return f"{total} facts ({by_kind}) from {first} to {last}"


def _migrate(conn: sqlite3.Connection) -> None:
    for statement in MIGRATIONS:
        try:
            conn.execute(statement)
        except sqlite3.OperationalError:
            pass  # column already exists

def _to_column(name: str, value: Any) -> Any:
    """Convert a model value to its column representation."""
    if value is None:
        return None
    if name in _MONEY_FIELDS:
        return value.to_paise()
    if name == "kind":
        return value.value if isinstance(value, FactKind) else FactKind(value).value
    return value


def _fact_to_row(fact: PaymentFact) -> dict[str, Any]:
    return {
        "external_id": fact.external_id,
        "received_at": to_storage_string(fact.received_at),
        "kind": fact.kind.value,
        "virtual_amount": _to_column("virtual_amount", fact.virtual_amount),
        "bank_credit": _to_column("bank_credit", fact.bank_credit),
        "indifi_deduction": _to_column("indifi_deduction", fact.indifi_deduction),
        "transaction_ref": fact.transaction_ref,
        "virtual_code": fact.virtual_code,
        "bank_account": fact.bank_account,
        "raw_subject": fact.raw_subject or "",
        "raw_body": fact.raw_body or "",
    }


def _money(paise: int | None) -> Money | None:
    return Money.from_paise(paise) if paise is not None else None


def _row_to_fact(row: sqlite3.Row) -> PaymentFact:
    return PaymentFact(
        id=row["id"],
        external_id=row["external_id"],
        received_at=from_storage_string(row["received_at"]),
        kind=FactKind(row["kind"]),
        virtual_amount=_money(row["virtual_amount"]),
        bank_credit=_money(row["bank_credit"]),
        indifi_deduction=_money(row["indifi_deduction"]),
        transaction_ref=row["transaction_ref"],
        virtual_code=row["virtual_code"],
        bank_account=row["bank_account"],
        raw_subject=row["raw_subject"],
        raw_body=row["raw_body"],
    )
