"""
Time source for the services.

Services never read the wall clock themselves. They receive a clock
so tests can pin "now" to a known instant.
"""

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Naive UTC timestamps, matching the DateTime columns."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


def get_clock() -> Clock:
    """FastAPI dependency returning the production clock."""
    return SystemClock()
