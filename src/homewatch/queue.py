"""SQLite-backed queue of rescan requests for the indexer."""

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .connection import BaseConnection
from .exceptions import QueueError


class ScanQueue(BaseConnection):
    """
    SQLite-backed FIFO of rescan requests.

    The watcher only appends: one pending row per scan target. Claiming,
    acknowledging and deleting rows belong to the indexer reading the same
    table. The queue is also the database connection the watcher
    re-validates before every batch.
    """

    def __init__(self, db_path: Path, table_name: str = "scan_requests", timeout: float = 5.0):
        """
        Initialize the scan queue (not yet connected).

        Args:
            db_path: Path to the SQLite database file
            table_name: Name of the table for this queue
            timeout: Seconds SQLite waits on a locked database
        """
        self.db_path = Path(db_path)
        self.table_name = table_name
        self.timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        """Open the database and create the schema if needed."""
        if self._conn is not None:
            return

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.timeout,
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table_name} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    payload TEXT NOT NULL,
                    status TEXT DEFAULT 'pending',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
            """)
            conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{self.table_name}_status
                ON {self.table_name}(status)
            """)
        except sqlite3.Error:
            conn.close()
            raise
        self._conn = conn

    def close(self) -> None:
        """Close the connection. Safe to call when not connected."""
        if self._conn is None:
            return
        conn = self._conn
        self._conn = None
        conn.close()

    def is_connected(self) -> bool:
        if self._conn is None:
            return False
        try:
            self._conn.execute("SELECT 1")
            return True
        except sqlite3.Error:
            return False

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise QueueError("Queue is not connected")
        return self._conn

    def enqueue(self, request: Dict[str, Any]) -> int:
        """
        Append one scan request.

        Args:
            request: JSON-serializable request ({"user", "path", "recursive", "lock"})

        Returns:
            Row id of the request
        """
        conn = self._connection()
        now = time.time()
        cursor = conn.execute(
            f"INSERT INTO {self.table_name} (payload, status, created_at, updated_at) VALUES (?, 'pending', ?, ?)",
            (json.dumps(request), now, now)
        )
        return cursor.lastrowid

    def peek(self, limit: int = 20) -> List[Tuple[int, Dict[str, Any]]]:
        """Oldest pending requests, left in place for the indexer."""
        cursor = self._connection().execute(
            f"SELECT id, payload FROM {self.table_name} WHERE status = 'pending' ORDER BY id LIMIT ?",
            (limit,)
        )
        return [(row_id, json.loads(payload)) for row_id, payload in cursor.fetchall()]

    def size(self) -> int:
        """Number of requests the indexer has not picked up yet."""
        cursor = self._connection().execute(
            f"SELECT COUNT(*) FROM {self.table_name} WHERE status = 'pending'"
        )
        return cursor.fetchone()[0]

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
