"""
Composition root for the monitoring engine.

Owns the one UsageStore handle for the process together with the sampler
and sampling loop, and tears them down in order: loop first, then store.
"""

import logging
from typing import Optional

from netusage.config.loader import AppConfig
from netusage.storage.repository import UsageStore

from .retention import RetentionPolicy
from .sampler import CounterProbe, CounterSampler, psutil_probe
from .sampling_loop import SamplingLoop

logger = logging.getLogger(__name__)


class Monitor:
    """Wires store, sampler and loop together for one process.

    The store is opened lazily on first access and closed exactly once by
    close(). Usable as a context manager.
    """

    def __init__(self, config: Optional[AppConfig] = None, probe: Optional[CounterProbe] = None):
        self.config = config or AppConfig()
        self._probe = probe
        self._store: Optional[UsageStore] = None
        self._loop: Optional[SamplingLoop] = None
        self._closed = False

    @property
    def store(self) -> UsageStore:
        """The process-wide store, created on first use.

        Raises:
            StorageUnavailable: If the database cannot be opened
            RuntimeError: If the monitor has been closed
        """
        if self._closed:
            raise RuntimeError("monitor is closed")
        if self._store is None:
            self._store = UsageStore(self.config.storage.path)
            logger.info("Opened usage store at %s", self.config.storage.path)
        return self._store

    @property
    def retention(self) -> RetentionPolicy:
        return RetentionPolicy(days=self.config.retention.days)

    @property
    def loop(self) -> SamplingLoop:
        """The sampling loop, built on first use (not started)."""
        if self._loop is None:
            probe = self._probe or psutil_probe(self.config.sampling.include_loopback)
            self._loop = SamplingLoop(
                sampler=CounterSampler(probe=probe),
                store=self.store,
                interval=self.config.sampling.interval_seconds,
                retention=self.retention if self.config.retention.auto_prune else None
            )
        return self._loop

    def start(self) -> SamplingLoop:
        """Start sampling and return the running loop."""
        loop = self.loop
        loop.start()
        return loop

    def close(self) -> None:
        """Stop sampling, then close the store. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._loop is not None:
            self._loop.stop()
        if self._store is not None:
            self._store.close()

    def __enter__(self) -> "Monitor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
