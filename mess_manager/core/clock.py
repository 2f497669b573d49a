"""Injectable clocks for entry-window and token-expiry rules."""

from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from mess_manager.config import settings


class Clock(Protocol):
    """Source of the current mess-local time (naive datetime)."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in the configured mess timezone."""

    def __init__(self, tz_name: str | None = None):
        self.tz = ZoneInfo(tz_name or settings.TIMEZONE)

    def now(self) -> datetime:
        return datetime.now(self.tz).replace(tzinfo=None)


class FixedClock:
    """
    Clock frozen at a given instant.

    Used in tests and for replaying calculations at a known time.
    """

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


def today(clock: Clock) -> date:
    return clock.now().date()
