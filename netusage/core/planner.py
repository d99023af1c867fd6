"""
Query planning for charted time windows.

Chooses between raw samples and server-side buckets so that both live
views and year-long ranges stay cheap to query and render. The policy is
fixed, not configurable.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import List, Tuple

from netusage.storage.models import UsageSample
from netusage.storage.repository import UsageStore

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

# Longest live window served at raw resolution
LIVE_RAW_LIMIT_MS = HOUR_MS
# Aggregated queries aim for this many points
TARGET_POINTS = 60
MIN_INTERVAL_MS = SECOND_MS


class PlanMode(Enum):
    """How a window is read from storage."""
    RAW = "raw"
    AGGREGATED = "aggregated"


class TimeWindow(Enum):
    """Preset chart windows, valued by their length in milliseconds."""
    MINUTES_5 = 5 * MINUTE_MS
    MINUTES_15 = 15 * MINUTE_MS
    MINUTES_30 = 30 * MINUTE_MS
    HOUR_1 = HOUR_MS
    HOURS_3 = 3 * HOUR_MS
    HOURS_24 = DAY_MS
    DAYS_7 = 7 * DAY_MS
    DAYS_30 = 30 * DAY_MS
    DAYS_365 = 365 * DAY_MS

    @property
    def millis(self) -> int:
        return self.value


_WINDOW_LABELS = {
    "5m": TimeWindow.MINUTES_5,
    "15m": TimeWindow.MINUTES_15,
    "30m": TimeWindow.MINUTES_30,
    "1h": TimeWindow.HOUR_1,
    "3h": TimeWindow.HOURS_3,
    "24h": TimeWindow.HOURS_24,
    "7d": TimeWindow.DAYS_7,
    "30d": TimeWindow.DAYS_30,
    "365d": TimeWindow.DAYS_365,
}


def parse_window(label: str) -> TimeWindow:
    """Parse a window label such as '15m', '24h' or '30d'.

    Raises:
        ValueError: If the label is not a known preset
    """
    try:
        return _WINDOW_LABELS[label.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown window '{label}', expected one of: {list(_WINDOW_LABELS)}")


def window_bounds(window: TimeWindow, now: int) -> Tuple[int, int]:
    """Return (start, end) of a window ending at now."""
    return now - window.millis, now


def is_live_window(window: TimeWindow) -> bool:
    """Windows up to an hour follow the clock in real time."""
    return window.millis <= LIVE_RAW_LIMIT_MS


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD date.

    Raises:
        ValueError: If the value is not an ISO calendar date
    """
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")


def date_range_bounds(start_date: date, end_date: date) -> Tuple[int, int]:
    """Return (start, end) covering whole local calendar days.

    The range runs from local midnight of start_date up to, but not
    including, local midnight of the day after end_date. A date range is
    never queried as a live window.

    Raises:
        ValueError: If end_date is before start_date
    """
    if end_date < start_date:
        raise ValueError("end date must not be before start date")
    start = datetime.combine(start_date, time.min)
    end = datetime.combine(end_date + timedelta(days=1), time.min)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000) - 1


@dataclass(frozen=True)
class QueryPlan:
    """Decision for one window query."""
    mode: PlanMode
    interval_ms: int


def plan_query(start: int, end: int, live: bool) -> QueryPlan:
    """Decide how to read [start, end].

    Live windows of an hour or less use raw samples. Everything else is
    bucketed to about TARGET_POINTS points with buckets of at least one
    second.

    Args:
        start: Window start, epoch milliseconds
        end: Window end, epoch milliseconds
        live: Whether the window slides forward in real time

    Returns:
        QueryPlan; interval_ms is 0 for RAW plans
    """
    span = end - start
    if live and span <= LIVE_RAW_LIMIT_MS:
        return QueryPlan(mode=PlanMode.RAW, interval_ms=0)
    return QueryPlan(
        mode=PlanMode.AGGREGATED,
        interval_ms=max(MIN_INTERVAL_MS, span // TARGET_POINTS)
    )


def execute_plan(store: UsageStore, start: int, end: int, live: bool) -> Tuple[QueryPlan, List[UsageSample]]:
    """Plan and run a window query against the store."""
    plan = plan_query(start, end, live)
    if plan.mode is PlanMode.RAW:
        return plan, store.query_range(start, end)
    return plan, store.query_aggregated(start, end, plan.interval_ms)


def to_rates(samples: List[UsageSample], interval_ms: int) -> List[Tuple[int, float, float]]:
    """Convert per-interval byte sums into bytes per second.

    Args:
        samples: Raw samples or aggregated buckets
        interval_ms: Width each sample covers, in milliseconds

    Returns:
        List of (timestamp, download_per_sec, upload_per_sec)
    """
    if interval_ms <= 0:
        raise ValueError("interval_ms must be > 0")
    seconds = interval_ms / 1000.0
    return [
        (s.timestamp, s.download_bytes / seconds, s.upload_bytes / seconds)
        for s in samples
    ]
