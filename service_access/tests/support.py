"""
Clocks and constants shared by the access service tests.
"""

from datetime import datetime, timedelta, timezone

NOW = datetime(2024, 5, 15, 12, 0, 0, tzinfo=timezone.utc)
PASSWORD = "correct-horse-battery"


class MutableClock:
    """Wall clock whose time only moves when a test says so."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


class MonotonicClock:
    """Stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> float:
        self.value += seconds
        return self.value
