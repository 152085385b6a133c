"""PostgreSQL buyer store backed by psycopg."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from buyer_leads.config import PostgresConfig
from buyer_leads.exceptions import EntityNotFoundError, PersistenceError
from buyer_leads.models import EDITABLE_FIELDS, BuyerFilter, BuyerRecord, HistoryEntry, encode_tags
from buyer_leads.sinks.serialization import serialize_value
from buyer_leads.store.base import BuyerStore, BuyerTransaction

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS buyers (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    full_name TEXT NOT NULL,
    email TEXT,
    phone TEXT NOT NULL,
    city TEXT NOT NULL,
    property_type TEXT,
    bhk TEXT,
    purpose TEXT NOT NULL,
    budget_min INTEGER CHECK (budget_min >= 0),
    budget_max INTEGER CHECK (budget_max >= 0),
    timeline TEXT,
    source TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'New',
    notes TEXT,
    tags JSONB NOT NULL DEFAULT '[]'::jsonb,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_buyers_updated_at ON buyers (updated_at DESC);
CREATE INDEX IF NOT EXISTS idx_buyers_owner ON buyers (owner_id);

CREATE TABLE IF NOT EXISTS buyer_history (
    entry_id TEXT PRIMARY KEY,
    buyer_id TEXT NOT NULL REFERENCES buyers(id) ON DELETE CASCADE,
    changed_by TEXT NOT NULL,
    diff JSONB NOT NULL,
    changed_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_buyer_history_buyer ON buyer_history (buyer_id, changed_at DESC);
"""

BUYER_COLUMNS = ("id", "owner_id", *EDITABLE_FIELDS, "created_at", "updated_at")


def _column_value(name: str, value: Any) -> Any:
    """Convert a record attribute into a query parameter."""
    if name == "tags":
        return Jsonb(list(value or []), dumps=encode_tags)
    if isinstance(value, datetime):
        return value
    return serialize_value(value)


def _history_from_row(row: dict[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        entry_id=row["entry_id"],
        buyer_id=row["buyer_id"],
        changed_by=row["changed_by"],
        diff=row["diff"],
        changed_at=row["changed_at"],
    )


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresBuyerStore(BuyerStore):
    """Buyer store on PostgreSQL.

    Each transaction runs on its own connection. Rows being mutated are
    locked with ``SELECT ... FOR UPDATE`` so the ownership check, the
    timestamp guard and the write cannot interleave with another writer.

    Parameters
    ----------
    conninfo : str | PostgresConfig
        libpq connection string or configuration.
    """

    def __init__(self, conninfo: str | PostgresConfig) -> None:
        if isinstance(conninfo, PostgresConfig):
            conninfo = conninfo.connection_string
        self.conninfo = conninfo

    @contextmanager
    def _connect(self) -> Iterator[psycopg.Connection]:
        try:
            with psycopg.connect(self.conninfo, row_factory=dict_row) as conn:
                yield conn
        except psycopg.Error as e:
            logger.error("PostgreSQL operation failed: %s", e)
            raise PersistenceError(f"Database operation failed: {e}") from e

    def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        with self._connect() as conn:
            conn.execute(SCHEMA_SQL)
        logger.info("Buyer schema ready")

    @contextmanager
    def transaction(self) -> Iterator["PostgresTransaction"]:
        with self._connect() as conn:
            with conn.transaction():
                yield PostgresTransaction(conn)

    def get(self, buyer_id: str) -> BuyerRecord | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM buyers WHERE id = %s", (buyer_id,)).fetchone()
        return BuyerRecord.from_row(row) if row else None

    def list_buyers(self, filters: BuyerFilter) -> list[BuyerRecord]:
        clauses: list[sql.Composable] = []
        params: list[Any] = []

        if filters.search:
            pattern = f"%{_escape_like(filters.search)}%"
            clauses.append(sql.SQL("(full_name ILIKE %s OR email ILIKE %s OR phone LIKE %s)"))
            params.extend([pattern, pattern, pattern])

        for name in ("city", "property_type", "status", "timeline", "owner_id"):
            value = getattr(filters, name)
            if value is not None:
                clauses.append(sql.SQL("{} = %s").format(sql.Identifier(name)))
                params.append(serialize_value(value))

        query = sql.SQL("SELECT * FROM buyers")
        if clauses:
            query = sql.SQL("{} WHERE {}").format(query, sql.SQL(" AND ").join(clauses))

        direction = sql.SQL("DESC") if filters.descending else sql.SQL("ASC")
        query = sql.SQL("{} ORDER BY {} {} NULLS LAST").format(
            query, sql.Identifier(filters.sort_by), direction
        )

        if filters.limit is not None:
            query = sql.SQL("{} LIMIT %s").format(query)
            params.append(filters.limit)
        if filters.offset:
            query = sql.SQL("{} OFFSET %s").format(query)
            params.append(filters.offset)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [BuyerRecord.from_row(row) for row in rows]

    def list_history(self, buyer_id: str, limit: int | None = None) -> list[HistoryEntry]:
        query = "SELECT * FROM buyer_history WHERE buyer_id = %s ORDER BY changed_at DESC"
        params: list[Any] = [buyer_id]
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_history_from_row(row) for row in rows]


class PostgresTransaction(BuyerTransaction):
    """Transaction handle bound to an open psycopg connection."""

    def __init__(self, conn: psycopg.Connection) -> None:
        self._conn = conn

    def get_for_update(self, buyer_id: str) -> BuyerRecord | None:
        row = self._conn.execute(
            "SELECT * FROM buyers WHERE id = %s FOR UPDATE", (buyer_id,)
        ).fetchone()
        return BuyerRecord.from_row(row) if row else None

    def insert(self, record: BuyerRecord) -> BuyerRecord:
        query = sql.SQL("INSERT INTO buyers ({}) VALUES ({}) RETURNING *").format(
            sql.SQL(", ").join(sql.Identifier(c) for c in BUYER_COLUMNS),
            sql.SQL(", ").join(sql.Placeholder() for _ in BUYER_COLUMNS),
        )
        params = [_column_value(c, getattr(record, c)) for c in BUYER_COLUMNS]
        row = self._conn.execute(query, params).fetchone()
        return BuyerRecord.from_row(row)

    def update(self, buyer_id: str, changes: dict[str, Any], updated_at: datetime) -> BuyerRecord:
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise PersistenceError(f"Refusing to update non-editable columns: {sorted(unknown)}")

        columns = [*changes, "updated_at"]
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(c), sql.Placeholder()) for c in columns
        )
        query = sql.SQL("UPDATE buyers SET {} WHERE id = {} RETURNING *").format(
            assignments, sql.Placeholder()
        )
        params = [_column_value(c, v) for c, v in changes.items()]
        params.extend([updated_at, buyer_id])

        row = self._conn.execute(query, params).fetchone()
        if row is None:
            raise EntityNotFoundError(f"Buyer {buyer_id} not found")
        return BuyerRecord.from_row(row)

    def delete(self, buyer_id: str) -> None:
        cur = self._conn.execute("DELETE FROM buyers WHERE id = %s", (buyer_id,))
        if cur.rowcount == 0:
            raise EntityNotFoundError(f"Buyer {buyer_id} not found")

    def append_history(self, entry: HistoryEntry) -> None:
        self._conn.execute(
            "INSERT INTO buyer_history (entry_id, buyer_id, changed_by, diff, changed_at) "
            "VALUES (%s, %s, %s, %s, %s)",
            (entry.entry_id, entry.buyer_id, entry.changed_by, Jsonb(entry.diff), entry.changed_at),
        )
