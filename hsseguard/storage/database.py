"""
SQLite connection management for the HSSEGuard audit store.

This module provides the Database class used by the audit trail. It keeps
a small pool of connections that can be shared across the engine's worker
threads, runs in WAL mode and applies the schema on initialization.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from hsseguard.exceptions import StorageError

logger = logging.getLogger("hsseguard.storage.database")

Params = tuple[Any, ...] | dict[str, Any] | None


class Database:
    """
    Pooled SQLite database for escalation and notification history.

    Connections are created with check_same_thread disabled and handed out
    one per operation, so concurrent escalation workers never share a
    cursor. Writes that must be atomic go through transaction().

    Attributes:
        path: Path to the SQLite database file.
        pool_size: Maximum number of idle connections kept in the pool.
        timeout: Seconds to wait on a locked database before failing.

    Example:
        Basic usage::

            db = Database("hsseguard.db")
            db.initialize()
            rows = db.execute("SELECT * FROM escalation_history")
    """

    def __init__(
        self,
        path: str | Path = "hsseguard.db",
        pool_size: int = 5,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the database manager.

        Args:
            path: Path to the SQLite database file. ":memory:" is accepted
                but every pooled connection then sees its own database, so
                it is only suitable for single-connection use.
            pool_size: Maximum number of idle connections to keep.
            timeout: Busy timeout in seconds.
        """
        self.path = Path(path) if str(path) != ":memory:" else ":memory:"
        self.pool_size = pool_size
        self.timeout = timeout

        self._pool: list[sqlite3.Connection] = []
        self._pool_lock = threading.Lock()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        """Whether initialize() has applied the schema."""
        return self._initialized

    def initialize(self) -> None:
        """
        Create the database file if needed and apply the schema.

        Safe to call more than once; every statement in the schema is
        idempotent.

        Raises:
            StorageError: If the schema cannot be applied.
        """
        if isinstance(self.path, Path):
            self.path.parent.mkdir(parents=True, exist_ok=True)

        from hsseguard.storage.schema import SCHEMA_SQL

        try:
            with self.connection() as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.executescript(SCHEMA_SQL)
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to initialize database: {e}",
                details={"path": str(self.path)},
            ) from e

        self._initialized = True
        logger.debug("Initialized audit database at %s", self.path)

    def _create_connection(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                str(self.path),
                timeout=self.timeout,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to open database: {e}",
                details={"path": str(self.path)},
            ) from e
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute(f"PRAGMA busy_timeout={int(self.timeout * 1000)}")
        return conn

    def _acquire(self) -> sqlite3.Connection:
        with self._pool_lock:
            if self._pool:
                return self._pool.pop()
        return self._create_connection()

    def _release(self, conn: sqlite3.Connection) -> None:
        with self._pool_lock:
            if len(self._pool) < self.pool_size:
                self._pool.append(conn)
                return
        conn.close()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """
        Borrow a connection from the pool.

        The connection is rolled back if the block raises and is always
        returned to the pool.

        Yields:
            A database connection.
        """
        conn = self._acquire()
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Borrow a connection and commit when the block succeeds.

        Yields:
            A database connection inside an open transaction.
        """
        with self.connection() as conn:
            yield conn
            conn.commit()

    def execute(self, sql: str, params: Params = None) -> list[dict[str, Any]]:
        """
        Run a query and return every row as a dictionary.

        Args:
            sql: Parameterized SQL.
            params: Positional or named parameters.

        Returns:
            List of result rows.

        Raises:
            StorageError: If the query fails.
        """
        try:
            with self.connection() as conn:
                cursor = conn.execute(sql, params or ())
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(
                f"Query execution failed: {e}",
                details={"sql": sql[:100]},
            ) from e

    def execute_one(self, sql: str, params: Params = None) -> dict[str, Any] | None:
        """Run a query and return the first row, or None."""
        rows = self.execute(sql, params)
        return rows[0] if rows else None

    def execute_write(self, sql: str, params: Params = None) -> int:
        """
        Run an INSERT, UPDATE or DELETE in its own transaction.

        Returns:
            Number of rows affected.

        Raises:
            StorageError: If the statement fails.
        """
        try:
            with self.transaction() as conn:
                return conn.execute(sql, params or ()).rowcount
        except sqlite3.Error as e:
            raise StorageError(
                f"Write query failed: {e}",
                details={"sql": sql[:100]},
            ) from e

    def execute_insert(self, sql: str, params: Params = None) -> int:
        """
        Run an INSERT in its own transaction.

        Returns:
            The row id of the inserted row.

        Raises:
            StorageError: If the statement fails.
        """
        try:
            with self.transaction() as conn:
                return conn.execute(sql, params or ()).lastrowid or 0
        except sqlite3.Error as e:
            raise StorageError(
                f"Insert query failed: {e}",
                details={"sql": sql[:100]},
            ) from e

    def get_schema_version(self) -> int:
        """Return the applied schema version, or 0 before initialization."""
        try:
            row = self.execute_one(
                "SELECT MAX(version) AS version FROM schema_version"
            )
        except StorageError:
            return 0
        return row["version"] if row and row["version"] is not None else 0

    def describe(self) -> dict[str, Any]:
        """
        Collect diagnostic information about the database.

        Returns:
            Dictionary with the path, journal mode, schema version and the
            number of rows in each history table.

        Raises:
            StorageError: If the database cannot be read.
        """
        from hsseguard.storage.schema import HISTORY_TABLES

        try:
            with self.connection() as conn:
                journal = conn.execute("PRAGMA journal_mode").fetchone()[0]
                counts = {
                    table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                    for table in HISTORY_TABLES
                }
        except sqlite3.Error as e:
            raise StorageError(
                f"Database inspection failed: {e}",
                details={"path": str(self.path)},
            ) from e

        return {
            "path": str(self.path),
            "journal_mode": journal,
            "schema_version": self.get_schema_version(),
            "row_counts": counts,
        }

    def close(self) -> None:
        """Close every pooled connection."""
        with self._pool_lock:
            pool, self._pool = self._pool, []
        for conn in pool:
            try:
                conn.close()
            except sqlite3.Error as e:
                logger.warning("Error closing database connection: %s", e)

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Database(path={str(self.path)!r}, pool_size={self.pool_size})"
