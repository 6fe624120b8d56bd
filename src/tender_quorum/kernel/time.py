"""
Time provider abstraction

Version timestamps (updated_at) and entity creation times come from an
injectable clock so tests can freeze and advance time deterministically.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class TimeProvider(Protocol):
    """Protocol for time providers"""

    def now(self) -> datetime:
        """Return current UTC datetime"""
        ...


class RealTimeProvider:
    """Production time provider using system clock"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class TestTimeProvider:
    """
    Controllable time provider for deterministic tests

    Args:
        initial_time: Starting time (defaults to Unix epoch)
    """

    __test__ = False  # not a pytest test class

    def __init__(self, initial_time: datetime | None = None) -> None:
        self._current_time = initial_time or datetime(1970, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current_time

    def set_time(self, dt: datetime) -> None:
        self._current_time = dt

    def advance(self, **delta: float) -> None:
        """Advance time, e.g. advance(minutes=5) or advance(days=1)"""
        self._current_time += timedelta(**delta)


default_time_provider: TimeProvider = RealTimeProvider()
