"""Timestamp and duration utilities.

Simple helpers to keep time handling consistent across the probes.
"""

import time
from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def elapsed_ms(start: float, end: Optional[float] = None) -> int:
    """Milliseconds between two ``time.monotonic()`` readings.

    If end is None, uses the current monotonic time.
    """
    if end is None:
        end = time.monotonic()
    return int((end - start) * 1000)


def days_until(moment: datetime, now: Optional[datetime] = None) -> int:
    """Whole days from now until moment, truncated toward zero (negative once passed)."""
    if now is None:
        now = now_utc()
    return int((moment - now).total_seconds() / 86400)
