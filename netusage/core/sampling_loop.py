"""
Periodic sampling driver.

Pulls a delta from the CounterSampler on a fixed cadence, writes it to the
UsageStore, and notifies live subscribers. The loop runs on its own thread
and is bound to the process lifetime, not to any consumer.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

from netusage.storage.models import UsageSample
from netusage.storage.repository import UsageStore

from .retention import RetentionPolicy
from .sampler import CounterSampler

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 2.0
DEFAULT_RETENTION_CHECK_SECONDS = 3600.0

SampleCallback = Callable[[UsageSample], None]


class SamplingLoop:
    """Cancellable periodic task: sample, store, notify.

    A failing tick is logged and never stops later ticks. stop() is
    immediate and idempotent; once it returns no tick is running and no
    further tick will start.
    """

    def __init__(
        self,
        sampler: CounterSampler,
        store: UsageStore,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        retention: Optional[RetentionPolicy] = None,
        retention_check_interval: float = DEFAULT_RETENTION_CHECK_SECONDS
    ):
        """
        Args:
            sampler: Source of usage deltas
            store: Destination for samples
            interval: Seconds between ticks
            retention: Prune old samples automatically when given
            retention_check_interval: Seconds between automatic prunes
        """
        if interval <= 0:
            raise ValueError("interval must be > 0")
        if retention_check_interval <= 0:
            raise ValueError("retention_check_interval must be > 0")

        self.sampler = sampler
        self.store = store
        self.interval = interval
        self.retention = retention
        self.retention_check_interval = retention_check_interval

        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stopped = False
        self._subscribers: List[SampleCallback] = []
        self._latest: Optional[UsageSample] = None
        self._last_prune: Optional[float] = None

    @property
    def latest(self) -> Optional[UsageSample]:
        """Most recent sample produced, for consumers that poll."""
        return self._latest

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def subscribe(self, callback: SampleCallback) -> Callable[[], None]:
        """Register a callback for every new sample.

        Callbacks run on the sampling thread and should return quickly.

        Returns:
            A function that removes the subscription
        """
        with self._state_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._state_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def start(self) -> None:
        """Start the sampling thread. Does nothing if already running.

        Raises:
            RuntimeError: If the loop has already been stopped
        """
        with self._state_lock:
            if self._stopped:
                raise RuntimeError("sampling loop cannot be restarted after stop()")
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, name="netusage-sampler", daemon=True)
            self._thread.start()
        logger.info("Sampling loop started (every %.1fs)", self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the loop and wait for an in-flight tick to finish."""
        with self._state_lock:
            already_stopped = self._stopped
            self._stopped = True
            self._stop_event.set()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if not already_stopped:
            logger.info("Sampling loop stopped")

    def tick(self) -> Optional[UsageSample]:
        """Run one iteration. Returns the sample, or None if the tick failed or the loop is stopped."""
        if self._stop_event.is_set():
            return None
        try:
            sample = self.sampler.sample()
            self.store.insert(sample)
        except Exception:
            logger.exception("Sampling tick failed")
            return None

        self._latest = sample
        self._notify(sample)
        self._maybe_prune()
        return sample

    def _notify(self, sample: UsageSample) -> None:
        with self._state_lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(sample)
            except Exception:
                logger.exception("Sample subscriber %r failed", callback)

    def _maybe_prune(self) -> None:
        if self.retention is None:
            return
        now = time.monotonic()
        if self._last_prune is not None and now - self._last_prune < self.retention_check_interval:
            return
        self._last_prune = now
        try:
            self.retention.apply(self.store)
        except Exception:
            logger.exception("Automatic retention prune failed")

    def _run(self) -> None:
        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            self.tick()
            next_tick += self.interval
            delay = next_tick - time.monotonic()
            if delay < 0:
                # Fell behind; resume the cadence from now instead of bursting.
                next_tick = time.monotonic()
                delay = 0
            if self._stop_event.wait(delay):
                break
