"""SQLite connection and initialization utilities."""

import sqlite3
from pathlib import Path
import threading

from .schema import get_init_schema
from ..core.exceptions import StorageError


class DatabaseConnection:
    """Manage per-thread SQLite connections and schema init.

    Store I/O runs on executor threads, so every thread gets its own
    connection. All of them are tracked and closed together by ``close()``.
    """

    __slots__ = ("db_path", "_local", "_lock", "_conn_lock", "_connections", "_generation", "_initialized")

    def __init__(self, db_path="./sealbox.db"):
        """Initialize connection state."""
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._lock = threading.Lock()
        self._conn_lock = threading.Lock()
        self._connections = []
        # bumped by close() so threads drop connections opened before it
        self._generation = 0
        self._initialized = False

    def initialize(self):
        """Initialize schema if not already initialized."""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

                conn = self._get_connection()
                for statement in get_init_schema():
                    conn.execute(statement)

                self._initialized = True

            except sqlite3.Error as e:
                raise StorageError(f"Failed to initialize database: {e}") from e

    def _get_connection(self):
        """Get or create the calling thread's SQLite connection."""
        conn = getattr(self._local, "connection", None)
        if conn is None or self._local.generation != self._generation:
            conn = sqlite3.connect(
                str(self.db_path), check_same_thread=False, isolation_level=None
            )
            conn.row_factory = sqlite3.Row
            with self._conn_lock:
                self._connections.append(conn)
                self._local.generation = self._generation
            self._local.connection = conn

        return conn

    def transaction(self):
        """Return a transaction context manager (BEGIN/COMMIT/ROLLBACK)."""
        return TransactionContext(self._get_connection())

    def execute(self, query, params=()):
        """Execute a single statement in autocommit mode."""
        try:
            self._get_connection().execute(query, params)
        except sqlite3.Error as e:
            raise StorageError(f"Query failed: {e}") from e

    def fetch_one(self, query, params=()):
        """Fetch a single row as a dict or None."""
        try:
            row = self._get_connection().execute(query, params).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Query failed: {e}") from e
        return dict(row) if row else None

    def close(self):
        """Close every connection opened by any thread."""
        with self._conn_lock:
            connections, self._connections = self._connections, []
            self._generation += 1
        for conn in connections:
            conn.close()
        self._local.connection = None


class TransactionContext:
    """Context manager for transactions (BEGIN IMMEDIATE/COMMIT/ROLLBACK)."""

    __slots__ = ("connection", "cursor")

    def __init__(self, connection):
        """Initialize with a SQLite connection."""
        self.connection = connection
        self.cursor = None

    def __enter__(self):
        """Begin a write transaction and return a cursor."""
        self.cursor = self.connection.cursor()
        # take the write lock up front so revision checks are not interleaved
        self.cursor.execute("BEGIN IMMEDIATE")
        return self.cursor

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Commit on success, rollback on error, then close cursor."""
        try:
            if exc_type is None:
                self.connection.commit()
            else:
                self.connection.rollback()
        finally:
            if self.cursor:
                self.cursor.close()
