# fieldops/calendar.py

"""Working calendars: weekly on-duty patterns plus blackout periods."""

from datetime import date, datetime, time, timedelta, tzinfo
from functools import lru_cache
from typing import Iterable, List, Optional, Protocol
from zoneinfo import ZoneInfo

from sqlmodel import Session, select

from fieldops.config import settings
from fieldops.core import Interval, clip, to_utc
from fieldops.models import Blackout, WorkingHours


class WorkingCalendarProvider(Protocol):
    def get_open_intervals(self, service_person_id: int, start: datetime, end: datetime) -> List[Interval]:
        ...

    def get_blackouts(self, service_person_id: int, start: datetime, end: datetime) -> List[Interval]:
        ...


@lru_cache(maxsize=None)
def local_zone(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or settings.TIMEZONE)


def expand_weekly_pattern(
    working_days: Iterable[int],
    day_start: time,
    day_end: time,
    start: datetime,
    end: datetime,
    tz: tzinfo,
) -> List[Interval]:
    """On-duty intervals (UTC) for every working weekday touching ``[start, end)``."""
    days = set(working_days)
    first = start.astimezone(tz).date() - timedelta(days=1)
    last = end.astimezone(tz).date()

    intervals = []
    current: date = first
    while current <= last:
        if current.weekday() in days:
            shift_start = to_utc(datetime.combine(current, day_start, tzinfo=tz))
            shift_end = to_utc(datetime.combine(current, day_end, tzinfo=tz))
            intervals.append(Interval(shift_start, shift_end))
        current += timedelta(days=1)
    return clip(intervals, start, end)


class SQLWorkingCalendar:
    """Calendar backed by the ``WorkingHours`` and ``Blackout`` tables.

    Service persons without a ``WorkingHours`` row get the configured default week.
    """

    def __init__(self, session: Session, tz: Optional[tzinfo] = None):
        self.session = session
        self.tz = tz or local_zone()

    def get_open_intervals(self, service_person_id: int, start: datetime, end: datetime) -> List[Interval]:
        pattern = self.session.get(WorkingHours, service_person_id)
        if pattern is None:
            return expand_weekly_pattern(
                settings.WORKING_DAYS, settings.WORKDAY_START, settings.WORKDAY_END, start, end, self.tz
            )
        return expand_weekly_pattern(
            pattern.working_days, pattern.day_start, pattern.day_end, start, end, self.tz
        )

    def get_blackouts(self, service_person_id: int, start: datetime, end: datetime) -> List[Interval]:
        rows = self.session.exec(
            select(Blackout)
            .where(Blackout.service_person_id == service_person_id)
            .where(Blackout.start < end)
            .where(Blackout.end > start)
            .order_by(Blackout.start)
        ).all()
        return clip((Interval(b.start, b.end) for b in rows), start, end)
