from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from config.settings import settings


class Clock:
    """
    Local-calendar view of "now" for the sync marker and day arithmetic.

    Naive datetimes coming from the store are read as local wall time.
    """

    def __init__(self, tz_name: Optional[str] = None):
        self.tz = ZoneInfo(tz_name or settings.SYNC_TIMEZONE)

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def local_date(self, ts: datetime) -> date:
        if ts.tzinfo is None:
            return ts.date()
        return ts.astimezone(self.tz).date()

    def start_of_day(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.tz)

    def days_until(self, ts: datetime) -> int:
        return (self.local_date(ts) - self.today()).days

