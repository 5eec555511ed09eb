# devicehub/core/clock.py
from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the form MongoDB hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock:
    """Source of "today" for the lending workflows."""

    def now(self) -> datetime:
        return utcnow()

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """Clock pinned to a given day. Used by tests and maintenance scripts."""

    def __init__(self, today: date):
        self._today = today

    def now(self) -> datetime:
        return datetime.combine(self._today, utcnow().time())

    def today(self) -> date:
        return self._today


clock = Clock()


def get_clock() -> Clock:
    return clock
