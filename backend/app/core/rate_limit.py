"""
In-process token bucket limiter for the unauthenticated auth endpoints.

One limiter instance lives on ``app.state.rate_limiter``; tests reset it
between cases instead of poking at module globals.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable


BUCKET_TTL_SECONDS = 600
CLEANUP_INTERVAL_SECONDS = 60


@dataclass
class TokenBucket:
    capacity: float
    tokens: float
    refill_rate: float
    updated_at: float
    last_seen: float


class RateLimiter:
    def __init__(
        self,
        *,
        capacity: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0 or window_seconds <= 0:
            raise ValueError("capacity and window_seconds must be positive")
        self.capacity = capacity
        self.refill_rate = capacity / float(window_seconds)
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._last_cleanup = 0.0
        self._lock = Lock()

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < CLEANUP_INTERVAL_SECONDS:
            return
        self._last_cleanup = now
        expired = [
            key
            for key, bucket in self._buckets.items()
            if now - bucket.last_seen > BUCKET_TTL_SECONDS
        ]
        for key in expired:
            self._buckets.pop(key, None)

    def allow(self, key: str) -> tuple[bool, int]:
        """Take one token for ``key``. Returns (allowed, retry_after_seconds)."""
        now = self._clock()
        with self._lock:
            self._cleanup(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(
                    capacity=float(self.capacity),
                    tokens=float(self.capacity),
                    refill_rate=self.refill_rate,
                    updated_at=now,
                    last_seen=now,
                )
                self._buckets[key] = bucket
            else:
                elapsed = max(0.0, now - bucket.updated_at)
                bucket.tokens = min(bucket.capacity, bucket.tokens + elapsed * bucket.refill_rate)
                bucket.updated_at = now
                bucket.last_seen = now

            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return True, 0
            retry_after = max(1, int((1.0 - bucket.tokens) / bucket.refill_rate))
            return False, retry_after

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._last_cleanup = 0.0

    def close(self) -> None:
        self.reset()
