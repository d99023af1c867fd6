"""
Network counter sampling.

Turns the host's cumulative receive/send byte counters into per-interval
usage deltas.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import psutil

from netusage.errors import CounterReadFailed
from netusage.storage.models import UsageSample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterTotals:
    """Cumulative byte counters summed over interfaces."""
    recv: int
    sent: int


CounterProbe = Callable[[], CounterTotals]
Clock = Callable[[], int]


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _is_loopback(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith("lo") or "loopback" in lowered


def psutil_probe(include_loopback: bool = False) -> CounterProbe:
    """Build a probe reading cumulative counters of all active interfaces.

    Interfaces reported down by psutil are skipped, and so are loopback
    interfaces unless include_loopback is set.

    Args:
        include_loopback: Count loopback traffic too

    Returns:
        Callable returning the summed CounterTotals
    """
    def probe() -> CounterTotals:
        counters = psutil.net_io_counters(pernic=True)
        stats = psutil.net_if_stats()
        recv = 0
        sent = 0
        for name, io in counters.items():
            if not include_loopback and _is_loopback(name):
                continue
            nic = stats.get(name)
            if nic is not None and not nic.isup:
                continue
            recv += io.bytes_recv
            sent += io.bytes_sent
        return CounterTotals(recv=recv, sent=sent)

    return probe


class CounterSampler:
    """Converts cumulative counters into non-negative per-call deltas.

    The first successful read only establishes the baseline and yields a
    zero sample. A counter that goes backwards (interface reset, unplug,
    wraparound) yields 0 for that direction rather than a negative delta.
    The baseline read-modify-write is done under a lock, so concurrent
    callers never double count.
    """

    def __init__(self, probe: Optional[CounterProbe] = None, clock: Optional[Clock] = None):
        """
        Args:
            probe: Returns cumulative CounterTotals (default: psutil, all active interfaces)
            clock: Returns epoch milliseconds (default: wall clock)
        """
        self._probe = probe or psutil_probe()
        self._clock = clock or now_millis
        self._lock = threading.Lock()
        self._last_totals = CounterTotals(recv=0, sent=0)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _read_totals(self) -> CounterTotals:
        try:
            return self._probe()
        except Exception as e:
            raise CounterReadFailed(str(e)) from e

    def sample(self) -> UsageSample:
        """Read the counters and return the usage since the previous call.

        If the probe fails, a zero sample is returned and the baseline is
        kept, so the traffic shows up in the next successful delta.
        """
        with self._lock:
            timestamp = self._clock()
            try:
                current = self._read_totals()
            except CounterReadFailed as e:
                logger.warning("CounterReadFailed: recording zero delta: %s", e)
                return UsageSample(timestamp=timestamp, download_bytes=0, upload_bytes=0)

            if not self._initialized:
                self._initialized = True
                download = 0
                upload = 0
            else:
                download = max(current.recv - self._last_totals.recv, 0)
                upload = max(current.sent - self._last_totals.sent, 0)

            self._last_totals = current
            return UsageSample(timestamp=timestamp, download_bytes=download, upload_bytes=upload)
