"""SQLite database operations for duo-ledger."""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from .exceptions import StorageError
from .models import Party, Transaction

logger = logging.getLogger(__name__)

_TRANSACTION_COLUMNS = """
    id, amount, payer, category, percent_a, percent_b, is_settled,
    description, spent_on, created_at, updated_at
"""

# Columns a correction may change
_AMENDABLE_COLUMNS = frozenset(
    {"amount", "payer", "category", "percent_a", "percent_b", "description", "spent_on"}
)


class Database:
    """SQLite database manager.

    The connection runs in autocommit mode; multi-statement atomicity comes
    from ``unit_of_work()``, which opens a ``BEGIN IMMEDIATE`` transaction so
    that concurrent writers (other connections or processes on the same file)
    serialize on the database lock.
    """

    def __init__(self, db_path: Path, busy_timeout: float = 5.0):
        """Initialize database connection."""
        self.db_path = db_path
        try:
            self.conn = sqlite3.connect(
                str(db_path), timeout=busy_timeout, isolation_level=None
            )
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open ledger database {db_path}: {e}") from e
        self.conn.row_factory = sqlite3.Row
        self._uow_depth = 0
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        with self.unit_of_work():
            # AUTOINCREMENT: ids are never reused, even after deletes, so an
            # id watermark always bounds exactly the rows that existed.
            self._execute(
                """
                CREATE TABLE IF NOT EXISTS transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    amount TEXT NOT NULL CHECK (CAST(amount AS REAL) > 0),
                    payer TEXT NOT NULL CHECK (payer IN ('A', 'B')),
                    category TEXT NOT NULL,
                    percent_a REAL,
                    percent_b REAL,
                    is_settled INTEGER NOT NULL DEFAULT 0,
                    description TEXT NOT NULL DEFAULT '',
                    spent_on DATE NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL,
                    CHECK (
                        (percent_a IS NULL AND percent_b IS NULL)
                        OR (
                            percent_a BETWEEN 0 AND 1
                            AND percent_b BETWEEN 0 AND 1
                            AND abs(percent_a + percent_b - 1.0) < 0.001
                        )
                    )
                )
                """
            )
            self._execute(
                """
                CREATE INDEX IF NOT EXISTS idx_transactions_unsettled
                ON transactions (is_settled, id)
                """
            )

            # Config table (named configuration blobs)
            self._execute(
                """
                CREATE TABLE IF NOT EXISTS config (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

    def close(self):
        """Close database connection."""
        self.conn.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    # ========================================================================
    # Unit of work
    # ========================================================================

    @contextmanager
    def unit_of_work(self) -> Iterator["Database"]:
        """
        Run the enclosed operations as one atomic transaction.

        Nested units join the outermost one. On any exception the whole unit
        is rolled back and the exception propagates.
        """
        if self._uow_depth > 0:
            self._uow_depth += 1
            try:
                yield self
            finally:
                self._uow_depth -= 1
            return

        self._execute("BEGIN IMMEDIATE")
        self._uow_depth = 1
        try:
            yield self
            self._execute("COMMIT")
        except Exception:
            self._rollback()
            raise
        finally:
            self._uow_depth = 0

    def _rollback(self):
        if not self.conn.in_transaction:
            return
        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.error(f"Rollback failed: {e}")

    @property
    def in_unit_of_work(self) -> bool:
        """True while inside ``unit_of_work()``."""
        return self._uow_depth > 0

    def _execute(self, sql: str, params: tuple | list = ()) -> sqlite3.Cursor:
        """Execute a statement, translating driver failures into StorageError."""
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            logger.error(f"Database error: {e}")
            raise StorageError(f"Ledger database error: {e}") from e

    # ========================================================================
    # Config operations
    # ========================================================================

    def get_config(self, key: str) -> str | None:
        """Get a config value by key."""
        cursor = self._execute("SELECT value FROM config WHERE key = ?", (key,))
        row = cursor.fetchone()
        return str(row["value"]) if row else None

    def set_config(self, key: str, value: str):
        """Set a config value."""
        self._execute(
            """
            INSERT INTO config (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, datetime.now().isoformat()),
        )

    def delete_config(self, key: str) -> bool:
        """Delete a config value. Returns False if it did not exist."""
        cursor = self._execute("DELETE FROM config WHERE key = ?", (key,))
        return cursor.rowcount > 0

    # ========================================================================
    # Transaction operations
    # ========================================================================

    def insert_transaction(self, transaction: Transaction) -> Transaction:
        """Insert a ledger row and return it with its assigned id."""
        cursor = self._execute(
            """
            INSERT INTO transactions (
                amount, payer, category, percent_a, percent_b, is_settled,
                description, spent_on, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(transaction.amount),
                transaction.payer.value,
                transaction.category,
                transaction.percent_a,
                transaction.percent_b,
                int(transaction.is_settled),
                transaction.description,
                transaction.spent_on.isoformat(),
                transaction.created_at.isoformat(),
                transaction.updated_at.isoformat(),
            ),
        )
        row_id = cursor.lastrowid
        if row_id is None:
            raise StorageError("Failed to insert transaction")
        return transaction.model_copy(update={"id": row_id})

    def get_transaction(self, transaction_id: int) -> Transaction | None:
        """Get a ledger row by id."""
        cursor = self._execute(
            f"SELECT {_TRANSACTION_COLUMNS} FROM transactions WHERE id = ?",
            (transaction_id,),
        )
        row = cursor.fetchone()
        return _row_to_transaction(row) if row else None

    def get_unsettled_transactions(
        self, max_id: int | None = None, newest_first: bool = False
    ) -> list[Transaction]:
        """
        Read unsettled ledger rows.

        Args:
            max_id: If given, only rows with id <= max_id
            newest_first: Order by id descending instead of ascending

        Returns:
            Matching transactions
        """
        sql = f"SELECT {_TRANSACTION_COLUMNS} FROM transactions WHERE is_settled = 0"
        params: list[Any] = []
        if max_id is not None:
            sql += " AND id <= ?"
            params.append(max_id)
        sql += " ORDER BY id DESC" if newest_first else " ORDER BY id ASC"
        cursor = self._execute(sql, params)
        return [_row_to_transaction(row) for row in cursor.fetchall()]

    def mark_settled_up_to(self, max_id: int) -> list[int]:
        """
        Flip every unsettled row with id <= max_id to settled.

        The ``is_settled = 0`` predicate is part of the UPDATE itself, so a
        concurrent caller that already settled these rows leaves nothing to
        match. Runs inside a unit of work so the returned ids are exactly the
        rows this call changed.

        Returns:
            Ids of the rows that were settled by this call
        """
        with self.unit_of_work():
            cursor = self._execute(
                "SELECT id FROM transactions WHERE is_settled = 0 AND id <= ? "
                "ORDER BY id ASC",
                (max_id,),
            )
            ids = [int(row["id"]) for row in cursor.fetchall()]
            if not ids:
                return []
            cursor = self._execute(
                """
                UPDATE transactions
                SET is_settled = 1, updated_at = ?
                WHERE is_settled = 0 AND id <= ?
                """,
                (datetime.now().isoformat(), max_id),
            )
            if cursor.rowcount != len(ids):
                raise StorageError(
                    f"Settlement matched {len(ids)} rows but updated {cursor.rowcount}"
                )
            return ids

    def mark_unsettled(self, transaction_ids: list[int]) -> list[int]:
        """
        Flip the given settled rows back to unsettled.

        Returns:
            Ids that were actually reverted (settled rows among the input)
        """
        if not transaction_ids:
            return []
        placeholders = ", ".join("?" for _ in transaction_ids)
        with self.unit_of_work():
            cursor = self._execute(
                f"SELECT id FROM transactions WHERE is_settled = 1 "
                f"AND id IN ({placeholders}) ORDER BY id ASC",
                transaction_ids,
            )
            ids = [int(row["id"]) for row in cursor.fetchall()]
            if ids:
                self._execute(
                    f"UPDATE transactions SET is_settled = 0, updated_at = ? "
                    f"WHERE is_settled = 1 AND id IN ({placeholders})",
                    [datetime.now().isoformat(), *transaction_ids],
                )
            return ids

    def update_transaction(self, transaction_id: int, **fields: Any) -> bool:
        """
        Update correctable fields on a ledger row.

        Returns:
            False if no row has this id
        """
        unknown = set(fields) - _AMENDABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")

        assignments = []
        params: list[Any] = []
        for column, value in fields.items():
            assignments.append(f"{column} = ?")
            params.append(_to_db_value(value))
        assignments.append("updated_at = ?")
        params.append(datetime.now().isoformat())
        params.append(transaction_id)

        cursor = self._execute(
            f"UPDATE transactions SET {', '.join(assignments)} WHERE id = ?",
            params,
        )
        return cursor.rowcount > 0

    def delete_transaction(self, transaction_id: int) -> bool:
        """Delete a ledger row. Returns False if it did not exist."""
        cursor = self._execute(
            "DELETE FROM transactions WHERE id = ?", (transaction_id,)
        )
        return cursor.rowcount > 0


def _to_db_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Party):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        amount=Decimal(row["amount"]),
        payer=Party(row["payer"]),
        category=row["category"],
        percent_a=row["percent_a"],
        percent_b=row["percent_b"],
        is_settled=bool(row["is_settled"]),
        description=row["description"],
        spent_on=date.fromisoformat(row["spent_on"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )
