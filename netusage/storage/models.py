"""
Data models for storage layer.

Defines database entities and data structures.
"""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class UsageSample:
    """Immutable record of network usage for one sampling interval.

    Samples are append-only: created by the sampling loop, never updated,
    and removed only by retention pruning or an explicit range clear.
    Timestamps are epoch milliseconds and are not required to be unique.
    """
    timestamp: int
    download_bytes: int
    upload_bytes: int

    def __post_init__(self):
        """Validate byte counts are non-negative."""
        if self.download_bytes < 0:
            raise ValueError("download_bytes cannot be negative")
        if self.upload_bytes < 0:
            raise ValueError("upload_bytes cannot be negative")

    @property
    def total_bytes(self) -> int:
        return self.download_bytes + self.upload_bytes


@dataclass(frozen=True)
class DailyUsage:
    """Usage summed over one local calendar day."""
    day: date
    download_bytes: int
    upload_bytes: int
    last_timestamp: int


@dataclass(frozen=True)
class SettingEntry:
    """A persisted key/value setting."""
    key: str
    value: str
