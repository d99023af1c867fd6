"""
Database connection management.

Provides SQLite connections for data persistence.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "network_stats.db"

# Seconds a connection waits on a locked database before failing.
DEFAULT_TIMEOUT = 5.0


def get_connection(
    db_path: str = DEFAULT_DB_PATH,
    timeout: float = DEFAULT_TIMEOUT,
    shared: bool = False
) -> sqlite3.Connection:
    """Create and return a SQLite connection in WAL journal mode.

    WAL lets readers proceed while the single writer commits, and every
    reader sees a consistent snapshot of committed rows.

    Args:
        db_path: Path to SQLite database file
        timeout: Busy timeout in seconds
        shared: Allow the connection to be used from threads other than
            the one that created it (caller must serialize access)

    Returns:
        SQLite connection with WAL journaling enabled
    """
    path = Path(db_path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=timeout, check_same_thread=not shared)
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    return conn
