"""
Balance - Record store.

Created by Balance Terminal contributors
Version: 1.0.0

The user directory and message store talk to a relational backend through
the small ``RecordStore`` interface: insert, filtered select, single-row
fetch and update, with equality / IS NULL / AND / OR filter composition.
``SQLiteRecordStore`` is the bundled implementation.

Uniqueness of usernames is enforced by the schema; a violation surfaces as
``DuplicateRecordError`` so callers never rely on check-then-insert alone.

Thread safety:
- All database operations are protected by a threading.Lock
- A single connection is shared with check_same_thread disabled
"""

import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .constants import CHAT_SESSIONS_TABLE, MESSAGES_TABLE, USERS_TABLE
from .errors import DuplicateRecordError, ErrorCode, StoreError
from .utils import new_id, utc_now_iso

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


# --- Filters ---


@dataclass(frozen=True)
class Eq:
    """``column = value``"""

    column: str
    value: Any


@dataclass(frozen=True)
class IsNull:
    """``column IS NULL``"""

    column: str


class And:
    """Conjunction of clauses."""

    def __init__(self, *clauses: "Clause"):
        self.clauses = clauses

    def __repr__(self) -> str:
        return f"And{self.clauses!r}"


class Or:
    """Disjunction of clauses."""

    def __init__(self, *clauses: "Clause"):
        self.clauses = clauses

    def __repr__(self) -> str:
        return f"Or{self.clauses!r}"


Clause = Union[Eq, IsNull, And, Or]


# --- Schema ---

SCHEMA: Dict[str, Tuple[str, ...]] = {
    USERS_TABLE: ("id", "username", "password_hash", "created_at", "last_seen"),
    MESSAGES_TABLE: (
        "id",
        "from_user_id",
        "to_user_id",
        "content",
        "message_type",
        "read_at",
        "created_at",
    ),
    CHAT_SESSIONS_TABLE: ("id", "user1_id", "user2_id", "last_message_at", "created_at"),
}

_DDL = (
    f"""
    CREATE TABLE IF NOT EXISTS {USERS_TABLE} (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL,
        last_seen TEXT
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {MESSAGES_TABLE} (
        id TEXT PRIMARY KEY,
        from_user_id TEXT NOT NULL REFERENCES {USERS_TABLE} (id),
        to_user_id TEXT NOT NULL REFERENCES {USERS_TABLE} (id),
        content TEXT NOT NULL,
        message_type TEXT NOT NULL CHECK (message_type IN ('chat', 'mail')),
        read_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {CHAT_SESSIONS_TABLE} (
        id TEXT PRIMARY KEY,
        user1_id TEXT NOT NULL REFERENCES {USERS_TABLE} (id),
        user2_id TEXT NOT NULL REFERENCES {USERS_TABLE} (id),
        last_message_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_messages_to ON {MESSAGES_TABLE} (to_user_id, read_at)",
    f"CREATE INDEX IF NOT EXISTS idx_messages_pair ON {MESSAGES_TABLE} (from_user_id, to_user_id)",
)


class RecordStore:
    """Interface to the relational backend.

    Subclasses implement the synchronous primitives; the ``*_async``
    wrappers are what the async services await.
    """

    def insert(self, table: str, record: Record) -> Record:
        """Insert one row and return it as stored (with generated id/created_at)."""
        raise NotImplementedError

    def select(
        self,
        table: str,
        where: Optional[Clause] = None,
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]:
        """Select rows matching ``where``; ties in ``order_by`` keep insertion order."""
        raise NotImplementedError

    def fetch_one(
        self, table: str, where: Clause, columns: Optional[Sequence[str]] = None
    ) -> Optional[Record]:
        """Fetch the first row matching ``where``, or None."""
        rows = self.select(table, where, columns=columns, limit=1)
        return rows[0] if rows else None

    def update(self, table: str, values: Record, where: Clause) -> int:
        """Update rows matching ``where``; returns the number of rows changed."""
        raise NotImplementedError

    def close(self) -> None:
        """Release backend resources."""

    # Async wrappers for use in async context (directory.py, message.py)

    async def insert_async(self, table: str, record: Record) -> Record:
        """Async wrapper for insert method."""
        return self.insert(table, record)

    async def select_async(
        self,
        table: str,
        where: Optional[Clause] = None,
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]:
        """Async wrapper for select method."""
        return self.select(table, where, columns, order_by, descending, limit)

    async def fetch_one_async(
        self, table: str, where: Clause, columns: Optional[Sequence[str]] = None
    ) -> Optional[Record]:
        """Async wrapper for fetch_one method."""
        return self.fetch_one(table, where, columns)

    async def update_async(self, table: str, values: Record, where: Clause) -> int:
        """Async wrapper for update method."""
        return self.update(table, values, where)

    def __enter__(self) -> "RecordStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


def _check_columns(table: str, columns) -> None:
    known = SCHEMA.get(table)
    if known is None:
        raise StoreError(ErrorCode.E503_QUERY_FAILED, f"Unknown table: {table}")
    for column in columns:
        if column not in known:
            raise StoreError(
                ErrorCode.E503_QUERY_FAILED,
                f"Unknown column {column!r} for table {table}",
                {"table": table, "column": column},
            )


def compile_clause(table: str, clause: Clause) -> Tuple[str, List[Any]]:
    """Render a filter clause as an SQL fragment with positional parameters.

    Column names are checked against the schema, values are always bound.
    """
    if isinstance(clause, Eq):
        _check_columns(table, [clause.column])
        if clause.value is None:
            return f"{clause.column} IS NULL", []
        return f"{clause.column} = ?", [clause.value]
    if isinstance(clause, IsNull):
        _check_columns(table, [clause.column])
        return f"{clause.column} IS NULL", []
    if isinstance(clause, (And, Or)):
        if not clause.clauses:
            raise StoreError(ErrorCode.E503_QUERY_FAILED, "Empty filter group")
        joiner = " AND " if isinstance(clause, And) else " OR "
        parts, params = [], []
        for sub in clause.clauses:
            sql, sub_params = compile_clause(table, sub)
            parts.append(f"({sql})")
            params.extend(sub_params)
        return joiner.join(parts), params
    raise StoreError(ErrorCode.E503_QUERY_FAILED, f"Unsupported filter: {clause!r}")


class SQLiteRecordStore(RecordStore):
    """
    SQLite-backed record store.

    Args:
        db_path: Path to the database file, or ``":memory:"``
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn: Optional[sqlite3.Connection] = None

        # Thread safety: Lock for all database operations
        self._db_lock = threading.Lock()

        self._init_database()

    def _init_database(self) -> None:
        """Open the connection and create tables if needed."""
        try:
            with self._db_lock:
                self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
                self.conn.row_factory = sqlite3.Row
                self.conn.execute("PRAGMA foreign_keys = ON")
                for statement in _DDL:
                    self.conn.execute(statement)
                self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(
                ErrorCode.E501_STORE_UNAVAILABLE,
                f"Cannot open record store: {e}",
                {"path": self.db_path},
            ) from e
        logger.info(f"Record store initialized: {self.db_path}")

    def _execute(self, sql: str, params: Sequence[Any]) -> sqlite3.Cursor:
        if self.conn is None:
            raise StoreError(ErrorCode.E501_STORE_UNAVAILABLE, "Record store is closed")
        try:
            cursor = self.conn.execute(sql, params)
            self.conn.commit()
            return cursor
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            if "UNIQUE" in str(e):
                raise DuplicateRecordError(
                    ErrorCode.E502_DUPLICATE_RECORD, f"Record already exists: {e}"
                ) from e
            raise StoreError(ErrorCode.E503_QUERY_FAILED, f"Constraint violated: {e}") from e
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.error(f"Record store query failed: {e}")
            raise StoreError(ErrorCode.E503_QUERY_FAILED, f"Query failed: {e}") from e

    def insert(self, table: str, record: Record) -> Record:
        row = dict(record)
        row.setdefault("id", new_id())
        row.setdefault("created_at", utc_now_iso())
        _check_columns(table, row.keys())

        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" for _ in row)
        with self._db_lock:
            self._execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", list(row.values())
            )

        logger.debug(f"Inserted row {row['id']} into {table}")
        return {column: row.get(column) for column in SCHEMA[table]}

    def select(
        self,
        table: str,
        where: Optional[Clause] = None,
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]:
        columns = list(columns) if columns else list(SCHEMA.get(table, ()))
        _check_columns(table, columns)

        sql = f"SELECT {', '.join(columns)} FROM {table}"
        params: List[Any] = []
        if where is not None:
            clause_sql, params = compile_clause(table, where)
            sql += f" WHERE {clause_sql}"

        direction = "DESC" if descending else "ASC"
        if order_by:
            _check_columns(table, [order_by])
            sql += f" ORDER BY {order_by} {direction}, rowid {direction}"
        else:
            sql += f" ORDER BY rowid {direction}"

        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        with self._db_lock:
            rows = self._execute(sql, params).fetchall()

        return [dict(row) for row in rows]

    def update(self, table: str, values: Record, where: Clause) -> int:
        if not values:
            return 0
        _check_columns(table, values.keys())

        assignments = ", ".join(f"{column} = ?" for column in values)
        clause_sql, clause_params = compile_clause(table, where)
        with self._db_lock:
            cursor = self._execute(
                f"UPDATE {table} SET {assignments} WHERE {clause_sql}",
                list(values.values()) + clause_params,
            )
            rowcount = cursor.rowcount

        logger.debug(f"Updated {rowcount} row(s) in {table}")
        return rowcount

    def close(self) -> None:
        """Close database connection with thread-safe access."""
        with self._db_lock:
            if self.conn:
                self.conn.close()
                self.conn = None
                logger.debug("Record store closed")
