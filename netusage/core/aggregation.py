"""
Time bucketing and daily rollups.

Buckets are computed with explicit integer arithmetic so the same inputs
always produce the same boundaries regardless of the storage engine.
"""

from datetime import date, datetime
from typing import Dict, Iterable, List, Tuple

from netusage.errors import QueryFailed
from netusage.storage.models import DailyUsage, UsageSample

# (timestamp, download_bytes, upload_bytes) as read from storage
Row = Tuple[int, int, int]


def bucket_start(timestamp: int, interval_ms: int) -> int:
    """Return the start of the bucket containing timestamp.

    Args:
        timestamp: Epoch milliseconds
        interval_ms: Bucket width in milliseconds

    Returns:
        floor(timestamp / interval_ms) * interval_ms
    """
    if interval_ms <= 0:
        raise ValueError("interval_ms must be > 0")
    return (timestamp // interval_ms) * interval_ms


def aggregate_rows(rows: Iterable[Row], interval_ms: int) -> List[UsageSample]:
    """Sum rows into fixed-width buckets.

    Only non-empty buckets are returned, ordered by bucket start. Each
    result is stamped with its bucket start. Rows may arrive in any order.

    Args:
        rows: Iterable of (timestamp, download_bytes, upload_bytes)
        interval_ms: Bucket width in milliseconds

    Returns:
        One UsageSample per non-empty bucket, ascending
    """
    if interval_ms <= 0:
        raise ValueError("interval_ms must be > 0")

    buckets: Dict[int, List[int]] = {}
    for timestamp, download, upload in rows:
        key = (timestamp // interval_ms) * interval_ms
        totals = buckets.get(key)
        if totals is None:
            buckets[key] = [download, upload]
        else:
            totals[0] += download
            totals[1] += upload

    return [
        UsageSample(timestamp=key, download_bytes=down, upload_bytes=up)
        for key, (down, up) in sorted(buckets.items())
    ]


def local_day(timestamp: int) -> date:
    """Local calendar date of an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(timestamp / 1000).date()


def rollup_daily(rows: Iterable[Row]) -> List[DailyUsage]:
    """Sum rows per local calendar day.

    The day boundary follows the time zone of the running process. Each
    row carries the latest timestamp seen for that day.

    Raises:
        QueryFailed: If a stored timestamp has no local calendar date
    """
    days: Dict[date, List[int]] = {}
    for timestamp, download, upload in rows:
        try:
            day = local_day(timestamp)
        except (OverflowError, OSError, ValueError) as e:
            raise QueryFailed(f"timestamp {timestamp} has no calendar date: {e}") from e
        totals = days.get(day)
        if totals is None:
            days[day] = [download, upload, timestamp]
        else:
            totals[0] += download
            totals[1] += upload
            if timestamp > totals[2]:
                totals[2] = timestamp

    return [
        DailyUsage(day=day, download_bytes=down, upload_bytes=up, last_timestamp=last)
        for day, (down, up, last) in sorted(days.items())
    ]
