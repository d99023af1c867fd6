"""
Retention policy for stored samples.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from netusage.storage.repository import UsageStore

from .planner import DAY_MS
from .sampler import now_millis

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 365


@dataclass(frozen=True)
class RetentionPolicy:
    """Keep samples for a fixed number of days."""
    days: int = DEFAULT_RETENTION_DAYS

    def __post_init__(self):
        if self.days <= 0:
            raise ValueError("retention days must be > 0")

    def cutoff(self, now: int) -> int:
        """Oldest timestamp that survives pruning at time now."""
        return now - self.days * DAY_MS

    def apply(self, store: UsageStore, now: Optional[int] = None) -> int:
        """Prune samples older than the retention window and return how many were removed."""
        if now is None:
            now = now_millis()
        deleted = store.prune_older_than(self.cutoff(now))
        logger.info("Retention (%d days): removed %d samples", self.days, deleted)
        return deleted
