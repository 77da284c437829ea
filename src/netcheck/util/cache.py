"""In-memory TTL cache for API responses.

Avoids re-running the same check when a fresh result is already known.
Entries carry an absolute expiry and are evicted lazily on read.
"""

import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple


def cache_key(route: str, params: Optional[Mapping[str, str]] = None) -> str:
    """Build a deterministic cache key from a route and its query parameters.

    Parameter names are sorted so insertion order never changes the key.
    """
    if not params:
        return route
    query = "&".join(f"{name}={params[name]}" for name in sorted(params))
    return f"{route}?{query}"


class ResponseCache:
    """Process-wide TTL key/value store.

    One coarse lock guards the item map. No background sweep:
    expired entries are dropped the next time they are read.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """Initialize an empty cache. ``clock`` returns seconds (monotonic)."""
        self._clock = clock
        self._lock = threading.Lock()
        self._items: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Tuple[Any, bool]:
        """Return (value, True) for a live entry, (None, False) on miss or expiry."""
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None, False

            value, expiry = item
            if self._clock() >= expiry:
                del self._items[key]
                return None, False

            return value, True

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store value under key for ttl seconds."""
        with self._lock:
            self._items[key] = (value, self._clock() + ttl)

    def clear(self) -> int:
        """Drop every entry. Returns number of entries removed."""
        with self._lock:
            count = len(self._items)
            self._items.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
