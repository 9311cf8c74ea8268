# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
SQLite client owning the single shared store connection.

Every read-modify-write sequence in the processing layer (ingestion,
retention, presence sweep, stats publication) runs while holding the
client's lock, so the ingestion path and the stats path never interleave
partial writes.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..errors import StoreUnavailable

logger = logging.getLogger(__name__)


class SQLiteClient:
    """
    Thread-safe wrapper around one sqlite3 connection.

    Features:
    - WAL journal for concurrent readers (CLI reports while the server runs)
    - Busy timeout delegated to sqlite3
    - Re-entrant lock so helpers can nest get_connection() calls
    """

    def __init__(self, db_path: str, timeout: float = 10.0):
        """
        Initialize SQLite client.

        Args:
            db_path: Path to the database file
            timeout: Seconds sqlite3 waits on a locked database before failing
        """
        self.db_path = Path(db_path).expanduser()
        self.timeout = timeout
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(
                    str(self.db_path),
                    timeout=self.timeout,
                    check_same_thread=False,
                )
            except sqlite3.Error as e:
                raise StoreUnavailable(f"Cannot open database {self.db_path}: {e}") from e
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def initialize_database(self) -> None:
        """Create the database directory and apply connection PRAGMAs."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self.get_connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA foreign_keys=ON")
        logger.debug(f"Database ready: {self.db_path}")

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """
        Yield the shared connection while holding the store lock.

        Raises:
            StoreUnavailable: If the database is locked past the timeout or
                cannot be opened
        """
        with self._lock:
            conn = self._connect()
            try:
                yield conn
            except sqlite3.OperationalError as e:
                raise StoreUnavailable(str(e)) from e

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Yield the connection inside an all-or-nothing transaction.

        Commits when the block exits cleanly, rolls back on any exception and
        re-raises it.
        """
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except BaseException:
                conn.rollback()
                raise

    def exists(self) -> bool:
        """Check whether the database file exists."""
        return self.db_path.exists()

    def close(self) -> None:
        """Close the shared connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
