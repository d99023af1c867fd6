"""
Unit tests for query planning.

Tests the raw/aggregated decision, bucket width, window presets and rate
conversion.
"""

import os
import tempfile
from datetime import date, datetime

import pytest

from netusage.core.planner import (
    DAY_MS,
    HOUR_MS,
    PlanMode,
    TimeWindow,
    date_range_bounds,
    execute_plan,
    is_live_window,
    parse_date,
    parse_window,
    plan_query,
    to_rates,
    window_bounds
)
from netusage.storage.models import UsageSample
from netusage.storage.repository import UsageStore


class TestPlanQuery:
    """Test the fixed planning policy."""

    def test_live_short_window_uses_raw(self):
        plan = plan_query(0, HOUR_MS, live=True)

        assert plan.mode is PlanMode.RAW

    def test_live_window_over_an_hour_is_aggregated(self):
        plan = plan_query(0, HOUR_MS + 1, live=True)

        assert plan.mode is PlanMode.AGGREGATED
        assert plan.interval_ms == (HOUR_MS + 1) // 60

    def test_non_live_short_window_is_aggregated(self):
        plan = plan_query(0, 15 * 60 * 1000, live=False)

        assert plan.mode is PlanMode.AGGREGATED
        assert plan.interval_ms == 15 * 1000

    def test_interval_targets_sixty_points(self):
        span = 7 * 24 * HOUR_MS

        plan = plan_query(1_000_000, 1_000_000 + span, live=False)

        assert plan.interval_ms == span // 60

    def test_interval_floor_of_one_second(self):
        plan = plan_query(0, 30 * 1000, live=False)

        assert plan.interval_ms == 1000

    def test_empty_window_still_has_valid_interval(self):
        assert plan_query(5000, 5000, live=False).interval_ms == 1000


class TestExecutePlan:
    """Test running a plan against a store."""

    def setup_method(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.store = UsageStore(os.path.join(self.temp_dir.name, "test.db"))
        for t in range(0, 2 * HOUR_MS, 2000):
            self.store.insert(UsageSample(t, 100, 10))

    def teardown_method(self):
        self.store.close()
        self.temp_dir.cleanup()

    def test_raw_plan_returns_samples(self):
        plan, samples = execute_plan(self.store, 0, 60 * 1000, live=True)

        assert plan.mode is PlanMode.RAW
        assert len(samples) == 31

    def test_aggregated_plan_returns_about_sixty_buckets(self):
        plan, samples = execute_plan(self.store, 0, 2 * HOUR_MS - 1, live=False)

        assert plan.mode is PlanMode.AGGREGATED
        assert 60 <= len(samples) <= 61
        assert sum(s.download_bytes for s in samples) == 3600 * 100


class TestTimeWindows:
    """Test preset windows."""

    def test_parse_window(self):
        assert parse_window("15m") is TimeWindow.MINUTES_15
        assert parse_window("24H") is TimeWindow.HOURS_24
        assert parse_window("365d") is TimeWindow.DAYS_365

    def test_parse_unknown_window(self):
        with pytest.raises(ValueError, match="Unknown window"):
            parse_window("2w")

    def test_window_bounds(self):
        assert window_bounds(TimeWindow.HOUR_1, 10 * HOUR_MS) == (9 * HOUR_MS, 10 * HOUR_MS)

    def test_live_windows(self):
        assert is_live_window(TimeWindow.MINUTES_5)
        assert is_live_window(TimeWindow.HOUR_1)
        assert not is_live_window(TimeWindow.HOURS_3)
        assert not is_live_window(TimeWindow.DAYS_30)


class TestDateRanges:
    """Test whole-day date ranges."""

    def test_parse_date(self):
        assert parse_date(" 2024-01-31 ") == date(2024, 1, 31)

    def test_parse_invalid_date(self):
        with pytest.raises(ValueError, match="Invalid date"):
            parse_date("2024-02-30")
        with pytest.raises(ValueError, match="Invalid date"):
            parse_date("last week")

    def test_single_day(self):
        start, end = date_range_bounds(date(2024, 3, 10), date(2024, 3, 10))

        assert start == int(datetime(2024, 3, 10).timestamp() * 1000)
        assert end == int(datetime(2024, 3, 11).timestamp() * 1000) - 1

    def test_range_ends_before_next_midnight(self):
        start, end = date_range_bounds(date(2024, 1, 1), date(2024, 1, 31))

        assert start == int(datetime(2024, 1, 1).timestamp() * 1000)
        assert end + 1 == int(datetime(2024, 2, 1).timestamp() * 1000)
        assert end - start + 1 == 31 * DAY_MS

    def test_reversed_range(self):
        with pytest.raises(ValueError, match="before start date"):
            date_range_bounds(date(2024, 2, 1), date(2024, 1, 31))

    def test_date_range_is_aggregated(self):
        start, end = date_range_bounds(date(2024, 3, 10), date(2024, 3, 10))

        assert plan_query(start, end, live=False).mode is PlanMode.AGGREGATED


class TestToRates:
    """Test conversion of sums to per-second rates."""

    def test_divides_by_interval_seconds(self):
        rates = to_rates([UsageSample(0, 60000, 6000)], 60000)

        assert rates == [(0, 1000.0, 100.0)]

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            to_rates([], 0)
