from __future__ import annotations
from datetime import date, datetime, timedelta


class SystemClock:
    """Wall-clock dates; the default for a running library."""

    def today(self) -> date:
        return date.today()

    def now(self) -> datetime:
        return datetime.now()

    @staticmethod
    def days_between(start: date, end: date) -> int:
        return (end - start).days


class FixedClock(SystemClock):
    """A clock that only moves when told to. Used by tests and the demo."""

    def __init__(self, current: date) -> None:
        self.current = current

    def today(self) -> date:
        return self.current

    def now(self) -> datetime:
        return datetime.combine(self.current, datetime.min.time())

    def advance(self, days: int = 1) -> date:
        self.current = self.current + timedelta(days=days)
        return self.current

    def set(self, when: date) -> None:
        self.current = when
