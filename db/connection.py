from __future__ import annotations

import sqlite3
import threading
from typing import Optional


class SerializedConnection(sqlite3.Connection):
    """sqlite3 connection carrying the lock its repos hold around each transaction."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.lock = threading.RLock()


def get_connection(db_path: str, timeout: Optional[float] = 30.0) -> SerializedConnection:
    """Open a SQLite connection with sane pragmas for concurrent local use.

    - WAL journal for fewer writer blocks
    - NORMAL synchronous for performance
    - foreign_keys ON to enforce integrity
    - usable from the ranker's worker threads (callers serialize writes)
    """
    conn = sqlite3.connect(
        db_path,
        timeout=timeout or 30.0,
        check_same_thread=False,
        factory=SerializedConnection,
    )
    # Pragmas
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def connection_lock(conn: sqlite3.Connection) -> threading.RLock:
    """The lock owned by ``conn``; it lives and dies with the connection."""
    lock = getattr(conn, "lock", None)
    if lock is None:
        raise TypeError("connection must be opened with db.connection.get_connection()")
    return lock
