"""
Unit tests for time bucketing and daily rollups.

Tests deterministic arithmetic bucketing independent of storage.
"""

from datetime import date, datetime

import pytest

from netusage.core.aggregation import aggregate_rows, bucket_start, local_day, rollup_daily
from netusage.errors import QueryFailed
from netusage.storage.models import UsageSample


def ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


class TestBucketStart:
    """Test bucket boundary arithmetic."""

    def test_floor_division(self):
        assert bucket_start(0, 1000) == 0
        assert bucket_start(999, 1000) == 0
        assert bucket_start(1000, 1000) == 1000
        assert bucket_start(123456, 60000) == 120000

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            bucket_start(1000, 0)


class TestAggregateRows:
    """Test summing rows into buckets."""

    def test_unsorted_rows_produce_sorted_buckets(self):
        rows = [(5500, 1, 2), (1200, 3, 4), (5100, 5, 6), (1900, 7, 8)]

        result = aggregate_rows(rows, 1000)

        assert result == [UsageSample(1000, 10, 12), UsageSample(5000, 6, 8)]

    def test_accepts_iterators(self):
        result = aggregate_rows(iter([(10, 1, 1), (20, 1, 1)]), 100)

        assert result == [UsageSample(0, 2, 2)]

    def test_empty_input(self):
        assert aggregate_rows([], 1000) == []

    def test_same_inputs_same_output(self):
        rows = [(t, t % 7, t % 11) for t in range(0, 50000, 333)]

        assert aggregate_rows(rows, 4096) == aggregate_rows(list(rows), 4096)


class TestRollupDaily:
    """Test per-day rollups."""

    def test_local_day(self):
        assert local_day(ms(datetime(2024, 3, 10, 23, 0))) == date(2024, 3, 10)

    def test_rollup(self):
        first = ms(datetime(2024, 5, 1, 9, 0))
        second = ms(datetime(2024, 5, 1, 21, 0))
        other = ms(datetime(2024, 4, 30, 12, 0))

        result = rollup_daily([(second, 2, 20), (other, 5, 50), (first, 1, 10)])

        assert [r.day for r in result] == [date(2024, 4, 30), date(2024, 5, 1)]
        assert result[1].download_bytes == 3
        assert result[1].upload_bytes == 30
        assert result[1].last_timestamp == second
        assert result[0].last_timestamp == other

    def test_timestamp_without_calendar_date(self):
        with pytest.raises(QueryFailed, match="no calendar date"):
            rollup_daily([(10 ** 15, 1, 1)])
