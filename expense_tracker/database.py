# expense_tracker/database.py
from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from expense_tracker.core.errors import (
    ConstraintViolation,
    ForeignKeyViolation,
    StorageError,
    StorageUnavailable,
)

logger = logging.getLogger(__name__)

DEFAULT_DB_NAME = "money_saver.db"

DEFAULT_CATEGORIES: List[Dict[str, str]] = [
    {"name": "Food", "color": "#FF6B6B"},
    {"name": "Transport", "color": "#4D96FF"},
    {"name": "Shopping", "color": "#F2C94C"},
    {"name": "Bills", "color": "#9B51E0"},
    {"name": "Entertainment", "color": "#00BFA6"},
    {"name": "Other", "color": "#6C63FF"},
]

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        color TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS expenses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        amount REAL NOT NULL,
        category_id INTEGER NOT NULL,
        date TEXT NOT NULL,
        notes TEXT,
        FOREIGN KEY(category_id) REFERENCES categories(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_expenses_date ON expenses(date)",
    "CREATE INDEX IF NOT EXISTS idx_expenses_category ON expenses(category_id)",
)

Statement = Tuple[str, Sequence[Any]]


@dataclass
class ExecuteResult:
    inserted_id: Optional[int]
    rowcount: int


def _translate_error(exc: sqlite3.Error) -> StorageError:
    message = str(exc)
    if isinstance(exc, sqlite3.IntegrityError):
        if "FOREIGN KEY" in message.upper():
            return ForeignKeyViolation(message)
        return ConstraintViolation(message)
    return StorageUnavailable(message)


class ExpenseStore:
    """Owner of the single SQLite connection used by the repositories.

    Construct one per process and pass it to the repositories. The
    connection is opened lazily and released by :meth:`close` or by leaving
    a ``with`` block.
    """

    def __init__(self, db_path: str | Path = DEFAULT_DB_NAME) -> None:
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def __enter__(self) -> "ExpenseStore":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is not None:
                return self._conn
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON")
            except (OSError, sqlite3.Error) as exc:
                raise StorageUnavailable(
                    f"Could not open database {self.db_path}: {exc}"
                ) from exc
            self._conn = conn
            logger.debug("Opened database %s", self.db_path)
            return conn

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
            logger.debug("Closed database %s", self.db_path)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield the connection inside a transaction.

        Commits when the block succeeds and rolls back otherwise. Driver
        errors leave as :class:`StorageError` subclasses.
        """
        with self._lock:
            conn = self.open()
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                logger.debug("Statement failed: %s", exc)
                raise _translate_error(exc) from exc
            except Exception:
                conn.rollback()
                raise

    def initialize(self, seed: Iterable[Dict[str, str]] | None = None) -> int:
        """Create the schema and seed default categories into an empty store.

        Parameters
        ----------
        seed:
            Name/color mappings inserted when the category table is empty.
            Defaults to :data:`DEFAULT_CATEGORIES`.

        Returns the number of categories seeded, which is zero on every call
        after the first.
        """
        seed_rows = list(DEFAULT_CATEGORIES if seed is None else seed)
        with self._transaction() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
        logger.debug("Schema ready in %s", self.db_path)

        rows = []
        for row in seed_rows:
            if not isinstance(row, dict) or not row.get("name") or not row.get("color"):
                raise ValueError(f"Seed category needs a name and a color: {row!r}")
            rows.append((row["name"].strip(), row["color"]))

        # the emptiness check and the inserts share one write lock so that
        # concurrent first runs seed exactly once
        with self._transaction() as conn:
            conn.execute("BEGIN IMMEDIATE")
            count = conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0]
            if count:
                return 0
            conn.executemany("INSERT INTO categories (name, color) VALUES (?, ?)", rows)
        logger.info("Seeded %d default categories", len(seed_rows))
        return len(seed_rows)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        """Run a single mutating statement and commit it."""
        with self._transaction() as conn:
            cursor = conn.execute(sql, tuple(params))
            inserted_id = cursor.lastrowid if sql.lstrip().upper().startswith("INSERT") else None
            return ExecuteResult(inserted_id=inserted_id, rowcount=cursor.rowcount)

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Return every row produced by *sql* as a plain dict."""
        with self._transaction() as conn:
            rows = conn.execute(sql, tuple(params)).fetchall()
        return [dict(row) for row in rows]

    def run_in_transaction(self, statements: Iterable[Statement]) -> int:
        """Execute ``(sql, params)`` pairs atomically.

        Either every statement is committed or none is. Returns the total
        number of rows affected.
        """
        affected = 0
        with self._transaction() as conn:
            for sql, params in statements:
                affected += max(conn.execute(sql, tuple(params)).rowcount, 0)
        return affected
