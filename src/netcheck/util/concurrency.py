"""Admission control for inbound requests.

Token bucket per (client IP, route). Buckets refill continuously from
elapsed wall-clock time rather than on a fixed timer.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Tuple


@dataclass
class TokenBucket:
    """Bucket state for one (client IP, route) pair."""
    capacity: int
    tokens: float
    refill_rate: float  # tokens per second
    last_refill: float


class RateLimiter:
    """Per-client, per-route token bucket rate limiter.

    Capacity is the route's requests-per-minute override, or the default.
    A limit of zero or less disables limiting for that route.

    Buckets are never evicted, so the map grows with the number of
    distinct (IP, route) keys seen by a long-lived process.
    """

    def __init__(
        self,
        default_rpm: int = 60,
        per_route: Optional[Mapping[str, int]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter with a default rpm and per-route overrides."""
        self.default_rpm = default_rpm
        self.per_route = dict(per_route or {})
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: Dict[Tuple[str, str], TokenBucket] = {}

    def limit_for(self, route: str) -> int:
        """Requests per minute configured for a route."""
        return self.per_route.get(route, self.default_rpm)

    def allow(self, client_ip: str, route: str) -> bool:
        """Consume one token for (client_ip, route). Returns False when empty."""
        rpm = self.limit_for(route)
        if rpm <= 0:
            return True

        with self._lock:
            now = self._clock()
            key = (client_ip, route)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(
                    capacity=rpm,
                    tokens=float(rpm),
                    refill_rate=rpm / 60.0,
                    last_refill=now,
                )
                self._buckets[key] = bucket

            elapsed = now - bucket.last_refill
            if elapsed > 0:
                bucket.tokens = min(float(bucket.capacity), bucket.tokens + elapsed * bucket.refill_rate)
                bucket.last_refill = now

            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return True
            return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)
