"""
Repository pattern for data access.

Handles database operations and data persistence logic for usage samples
and settings.
"""

import logging
import sqlite3
import threading
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from netusage.core.aggregation import aggregate_rows, rollup_daily
from netusage.errors import QueryFailed, StorageUnavailable, WriteFailed

from .db import DEFAULT_DB_PATH, DEFAULT_TIMEOUT, get_connection
from .models import DailyUsage, UsageSample

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS network_usage (
        timestamp INTEGER NOT NULL,
        download_bytes INTEGER NOT NULL,
        upload_bytes INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_network_usage_timestamp ON network_usage(timestamp)",
    """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT
    )
    """,
)

_RANGE_QUERY = """
    SELECT timestamp, download_bytes, upload_bytes
    FROM network_usage
    WHERE timestamp BETWEEN ? AND ?
    ORDER BY timestamp ASC
"""


class UsageStore:
    """Durable store for usage samples and settings.

    Writes go through one lazily opened connection and are serialized by a
    lock. Each read opens its own short-lived connection, so reads never
    wait on each other and see either the state before or after any write.

    Storage errors never escape a public method: they are logged and the
    caller gets an empty or zero result (queries) or the write is dropped.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH, timeout: float = DEFAULT_TIMEOUT):
        """Open the store and create its schema.

        Args:
            db_path: Path to SQLite database file
            timeout: Busy timeout in seconds for every connection

        Raises:
            StorageUnavailable: If the database cannot be opened or initialized
        """
        self.db_path = db_path
        self.timeout = timeout
        self._writer: Optional[sqlite3.Connection] = None
        self._write_lock = threading.Lock()
        self._closed = False
        self.initialize_schema()

    def initialize_schema(self) -> None:
        """Create tables and indexes if they don't exist.

        Raises:
            StorageUnavailable: If schema creation fails
        """
        try:
            with self._write_lock:
                conn = self._writer_connection()
                for statement in _SCHEMA:
                    conn.execute(statement)
                conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Cannot initialize database {self.db_path}: {e}") from e

    # -- connections ---------------------------------------------------

    def _writer_connection(self) -> sqlite3.Connection:
        """Return the writer connection, opening it on first use.

        Caller must hold the write lock.
        """
        if self._closed:
            raise sqlite3.ProgrammingError("store is closed")
        if self._writer is None:
            self._writer = get_connection(self.db_path, self.timeout, shared=True)
        return self._writer

    def _write(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Execute one write statement atomically and return the affected row count."""
        with self._write_lock:
            try:
                conn = self._writer_connection()
                try:
                    cursor = conn.execute(sql, params)
                    conn.commit()
                except sqlite3.Error:
                    conn.rollback()
                    raise
            except (sqlite3.Error, OSError, OverflowError) as e:
                raise WriteFailed(str(e)) from e
            return cursor.rowcount

    def _read(self, sql: str, params: Sequence[Any] = ()) -> List[Tuple]:
        """Run a read statement on a fresh connection and return all rows."""
        return list(self._iter_read(sql, params))

    def _iter_read(self, sql: str, params: Sequence[Any] = ()) -> Iterator[Tuple]:
        """Stream rows of a read statement from a fresh connection."""
        if self._closed:
            raise QueryFailed("store is closed")
        try:
            conn = get_connection(self.db_path, self.timeout)
        except (sqlite3.Error, OSError) as e:
            raise QueryFailed(str(e)) from e
        try:
            cursor = conn.execute(sql, params)
            for row in cursor:
                yield row
        except (sqlite3.Error, OverflowError, ValueError) as e:
            # OverflowError: a bound outside SQLite's 64-bit INTEGER range
            raise QueryFailed(str(e)) from e
        finally:
            conn.close()

    # -- samples -------------------------------------------------------

    def insert(self, sample: UsageSample) -> None:
        """Append one sample.

        A failed write is logged and the sample is dropped; monitoring
        data is advisory, so the caller is never interrupted.
        """
        try:
            self._write(
                "INSERT INTO network_usage (timestamp, download_bytes, upload_bytes) VALUES (?, ?, ?)",
                (sample.timestamp, sample.download_bytes, sample.upload_bytes)
            )
        except WriteFailed as e:
            logger.error("WriteFailed: dropping sample at %d: %s", sample.timestamp, e)

    def query_range(self, start: int, end: int) -> List[UsageSample]:
        """Get all samples with start <= timestamp <= end, oldest first."""
        try:
            rows = self._read(_RANGE_QUERY, (start, end))
        except QueryFailed as e:
            logger.error("QueryFailed: range [%d, %d]: %s", start, end, e)
            return []
        return [UsageSample(timestamp=ts, download_bytes=down, upload_bytes=up)
                for ts, down, up in rows]

    def query_aggregated(self, start: int, end: int, interval_ms: int) -> List[UsageSample]:
        """Sum samples in [start, end] into buckets of interval_ms.

        Each result is stamped with its bucket start
        (floor(timestamp / interval_ms) * interval_ms). Empty buckets are
        omitted. Rows are streamed so memory grows with the number of
        buckets, not the number of samples.

        Raises:
            ValueError: If interval_ms is not positive
        """
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        try:
            return aggregate_rows(self._iter_read(_RANGE_QUERY, (start, end)), interval_ms)
        except QueryFailed as e:
            logger.error("QueryFailed: aggregate [%d, %d] every %d ms: %s", start, end, interval_ms, e)
            return []

    def query_total(self, start: int, end: int) -> UsageSample:
        """Sum all samples in [start, end]; the result is stamped with end."""
        try:
            rows = self._read(
                """
                SELECT COALESCE(SUM(download_bytes), 0), COALESCE(SUM(upload_bytes), 0)
                FROM network_usage
                WHERE timestamp BETWEEN ? AND ?
                """,
                (start, end)
            )
        except QueryFailed as e:
            logger.error("QueryFailed: total [%d, %d]: %s", start, end, e)
            return UsageSample(timestamp=end, download_bytes=0, upload_bytes=0)
        down, up = rows[0]
        return UsageSample(timestamp=end, download_bytes=down, upload_bytes=up)

    def query_daily_rollup(self, start: int, end: int) -> List[DailyUsage]:
        """Sum samples in [start, end] per local calendar day, oldest day first."""
        try:
            return rollup_daily(self._iter_read(_RANGE_QUERY, (start, end)))
        except QueryFailed as e:
            logger.error("QueryFailed: daily rollup [%d, %d]: %s", start, end, e)
            return []

    def count(self) -> int:
        """Number of stored samples, or 0 if the store cannot be read."""
        try:
            return self._read("SELECT COUNT(*) FROM network_usage")[0][0]
        except QueryFailed as e:
            logger.error("QueryFailed: count: %s", e)
            return 0

    def prune_older_than(self, cutoff: int) -> int:
        """Delete samples with timestamp < cutoff and return how many were removed."""
        try:
            deleted = self._write("DELETE FROM network_usage WHERE timestamp < ?", (cutoff,))
        except WriteFailed as e:
            logger.error("WriteFailed: prune before %d: %s", cutoff, e)
            return 0
        logger.info("Pruned %d samples older than %d", deleted, cutoff)
        return deleted

    def clear_range(self, start: int, end: int) -> int:
        """Delete samples with start <= timestamp <= end and return how many were removed."""
        try:
            deleted = self._write(
                "DELETE FROM network_usage WHERE timestamp BETWEEN ? AND ?", (start, end)
            )
        except WriteFailed as e:
            logger.error("WriteFailed: clear [%d, %d]: %s", start, end, e)
            return 0
        logger.info("Cleared %d samples in [%d, %d]", deleted, start, end)
        return deleted

    # -- settings ------------------------------------------------------

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the stored value for key, or default if absent or unreadable."""
        try:
            rows = self._read("SELECT value FROM settings WHERE key = ?", (key,))
        except QueryFailed as e:
            logger.error("QueryFailed: setting %r: %s", key, e)
            return default
        if not rows:
            return default
        return rows[0][0]

    def put_setting(self, key: str, value: str) -> None:
        """Insert or replace a setting (last write wins)."""
        try:
            self._write(
                """
                INSERT INTO settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value)
            )
        except WriteFailed as e:
            logger.error("WriteFailed: setting %r: %s", key, e)

    # -- lifecycle -----------------------------------------------------

    def close(self) -> None:
        """Release the writer connection. Safe to call more than once."""
        with self._write_lock:
            if self._closed:
                return
            self._closed = True
            if self._writer is not None:
                try:
                    self._writer.close()
                except sqlite3.Error as e:
                    logger.warning("Error closing database connection: %s", e)
                self._writer = None

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "UsageStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
