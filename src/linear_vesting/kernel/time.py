"""
Time provider abstraction

Vesting math works on integer Unix seconds. Every operation asks the
provider for "now" at call time; nothing caches it.
"""

import time
from datetime import datetime, timezone
from typing import Protocol

SECONDS_PER_DAY = 86_400


class TimeProvider(Protocol):
    """Protocol for time providers - allows deterministic testing"""

    def now(self) -> int:
        """Return current Unix time in whole seconds"""
        ...


class RealTimeProvider:
    """Production time provider using system clock"""

    def now(self) -> int:
        return int(time.time())


class TestTimeProvider:
    """
    Controllable time provider for deterministic tests

    Lets tests pin the clock to an exact second and move it forward.
    """

    def __init__(self, initial_time: int = 0) -> None:
        self._current_time = initial_time

    def now(self) -> int:
        return self._current_time

    def set_time(self, timestamp: int) -> None:
        self._current_time = timestamp

    def advance_seconds(self, seconds: int) -> None:
        self._current_time += seconds

    def advance_days(self, days: int) -> None:
        self._current_time += days * SECONDS_PER_DAY


def to_datetime(timestamp: int) -> datetime:
    """Convert Unix seconds to an aware UTC datetime (for event envelopes)"""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class FixedTimeProvider:
    """Time provider pinned to one instant (CLI --now, replays)"""

    def __init__(self, timestamp: int) -> None:
        self._timestamp = timestamp

    def now(self) -> int:
        return self._timestamp
