"""
Throughput Governor for batch uploads.

Bounds the number of concurrently running batch sends and paces batch
starts to a queries-per-second ceiling. Pacing only delays admission; no
batch is ever rejected.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class GovernorStats:
    """Statistics for governor monitoring."""

    def __init__(self) -> None:
        self.admitted: int = 0
        self.in_flight: int = 0
        self.peak_in_flight: int = 0
        self.throttled_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "admitted": self.admitted,
            "in_flight": self.in_flight,
            "peak_in_flight": self.peak_in_flight,
            "throttled_seconds": round(self.throttled_seconds, 3),
        }


class ThroughputGovernor:
    """
    Admission control for one upload invocation.

    A semaphore caps concurrency at ``max_concurrency``. Rate limiting is a
    leaky bucket: consecutive admissions are spaced at least ``1 / qps``
    seconds apart, so no one-second window holds more than ``qps`` starts.
    """

    def __init__(self, max_concurrency: int = 1, qps: Optional[float] = None):
        """
        Initialize Throughput Governor.

        Args:
            max_concurrency: Maximum batch sends running at once
            qps: Maximum batch starts per second (None = unlimited)
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        if qps is not None and qps <= 0:
            raise ValueError(f"qps must be positive, got {qps}")

        self.max_concurrency = max_concurrency
        self.qps = qps
        self.interval = 1.0 / qps if qps else 0.0
        self.stats = GovernorStats()
        self._slots = asyncio.Semaphore(max_concurrency)
        self._rate_lock = asyncio.Lock()
        self._next_start: Optional[float] = None
        logger.debug(
            f"ThroughputGovernor initialized (max_concurrency={max_concurrency}, qps={qps})"
        )

    async def acquire(self) -> None:
        """Wait for a concurrency slot, then for the next rate slot."""
        await self._slots.acquire()
        try:
            await self._wait_for_rate_slot()
        except BaseException:
            self._slots.release()
            raise

        self.stats.admitted += 1
        self.stats.in_flight += 1
        self.stats.peak_in_flight = max(self.stats.peak_in_flight, self.stats.in_flight)

    def release(self) -> None:
        """Free the concurrency slot held by a finished batch."""
        self.stats.in_flight -= 1
        self._slots.release()

    async def __aenter__(self) -> "ThroughputGovernor":
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.release()

    async def _wait_for_rate_slot(self) -> None:
        if not self.interval:
            return

        # Held across the sleep: concurrent acquire() calls queue behind one another
        async with self._rate_lock:
            now = time.monotonic()
            if self._next_start is not None and self._next_start > now:
                waited_from = now
                # Loop: asyncio.sleep may wake marginally early
                while (delay := self._next_start - time.monotonic()) > 0:
                    await asyncio.sleep(delay)
                now = time.monotonic()
                self.stats.throttled_seconds += now - waited_from
            self._next_start = now + self.interval

    def get_stats(self) -> Dict[str, Any]:
        """Get governor statistics."""
        stats_dict = self.stats.to_dict()
        stats_dict["max_concurrency"] = self.max_concurrency
        stats_dict["qps"] = self.qps
        return stats_dict
