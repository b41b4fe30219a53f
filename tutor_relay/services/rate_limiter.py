"""Per-identity fixed-window admission control for chat turns.

Each identity gets ``max_requests`` admitted turns per ``window_seconds``.
The table lives in process memory, so with several app instances behind a
load balancer the effective limit is ``max_requests × instances``.

Usage:
    limiter = RateLimiter(max_requests=15, window_seconds=60)
    if not limiter.admit(user_id):
        raise RateLimitExceeded()
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class RateLimitRecord:
    """Admission counter for one identity."""
    count: int
    window_reset_at: float


class RateLimiter:
    """Thread-safe fixed-window rate limiter keyed by caller identity.

    Denied calls do not increment the counter, so a caller hammering the
    endpoint does not push its own window further out.

    Records whose window expired more than ``evict_after_seconds`` ago are
    swept at most once per window. A swept record would have been reset on
    its next request anyway, so eviction never changes an admission outcome.

    Args:
        max_requests: Admitted requests per identity per window.
        window_seconds: Window length.
        evict_after_seconds: Grace period before expired records are dropped.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        max_requests: int = 15,
        window_seconds: float = 60.0,
        evict_after_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._evict_after = evict_after_seconds
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()
        self._next_sweep_at = clock() + window_seconds

    def admit(self, identity: str) -> bool:
        """Record one request for ``identity`` and say whether it may proceed."""
        with self._lock:
            now = self._clock()
            self._maybe_sweep(now)

            record = self._records.get(identity)
            if record is None or now > record.window_reset_at:
                self._records[identity] = RateLimitRecord(count=1, window_reset_at=now + self._window)
                return True

            if record.count < self._max_requests:
                record.count += 1
                return True

            logger.info(
                "rate_limit_exceeded",
                limit=self._max_requests,
                retry_after=round(record.window_reset_at - now, 1),
            )
            return False

    def retry_after(self, identity: str) -> float | None:
        """Seconds until the identity's current window resets, if it has one."""
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                return None
            return max(0.0, record.window_reset_at - self._clock())

    def count_for(self, identity: str) -> int:
        """Admitted requests in the identity's current window (0 if none)."""
        with self._lock:
            record = self._records.get(identity)
            if record is None or self._clock() > record.window_reset_at:
                return 0
            return record.count

    @property
    def size(self) -> int:
        return len(self._records)

    def reset(self) -> None:
        with self._lock:
            self._records.clear()

    def _maybe_sweep(self, now: float) -> None:
        """Drop long-expired records. Must be called while holding the lock."""
        if now < self._next_sweep_at:
            return
        self._next_sweep_at = now + self._window
        cutoff = now - self._evict_after
        stale = [key for key, rec in self._records.items() if rec.window_reset_at < cutoff]
        for key in stale:
            del self._records[key]
        if stale:
            logger.debug("rate_limit_records_evicted", evicted=len(stale), remaining=len(self._records))
