# fieldops/availability.py

from datetime import datetime
from typing import Callable, Iterator, List, Optional, Tuple

from fieldops.calendar import WorkingCalendarProvider
from fieldops.core import BusyInterval, Interval, clip, covers, subtract_intervals
from fieldops.repository import ScheduleRepository


class FreeIntervals:
    """Re-iterable view of a service person's free time inside a window.

    Sources are fetched on first iteration and kept, so iterating again
    replays the same sweep without touching the store.
    """

    def __init__(self, loader: Callable[[], Tuple[List[Interval], List]], start: datetime, end: datetime):
        self._loader = loader
        self.start = start
        self.end = end
        self._sources: Optional[Tuple[List[Interval], List]] = None

    def __iter__(self) -> Iterator[Interval]:
        if self._sources is None:
            self._sources = self._loader()
        open_intervals, blocked = self._sources
        return subtract_intervals(open_intervals, blocked)


class AvailabilityCalculator:
    def __init__(self, repository: ScheduleRepository, calendar: WorkingCalendarProvider):
        self.repository = repository
        self.calendar = calendar

    def busy_intervals(
        self,
        service_person_id: int,
        start: datetime,
        end: datetime,
        exclude_schedule_id: Optional[int] = None,
    ) -> List[BusyInterval]:
        schedules = self.repository.find_overlapping(
            service_person_id, start, end, exclude_schedule_id=exclude_schedule_id
        )
        return [BusyInterval(s.scheduled_start, s.scheduled_end, s.id) for s in schedules]

    def working_intervals(self, service_person_id: int, start: datetime, end: datetime) -> List[Interval]:
        """On-duty time in ``[start, end)`` with blackouts already removed."""
        open_intervals = clip(self.calendar.get_open_intervals(service_person_id, start, end), start, end)
        blackouts = self.calendar.get_blackouts(service_person_id, start, end)
        return list(subtract_intervals(open_intervals, blackouts))

    def within_calendar(self, service_person_id: int, start: datetime, end: datetime) -> bool:
        return covers(self.working_intervals(service_person_id, start, end), start, end)

    def free_intervals(self, service_person_id: int, start: datetime, end: datetime) -> FreeIntervals:
        def load():
            if end <= start:
                return [], []
            open_intervals = clip(self.calendar.get_open_intervals(service_person_id, start, end), start, end)
            blocked = list(self.calendar.get_blackouts(service_person_id, start, end))
            blocked.extend(
                Interval(b.start, b.end) for b in self.busy_intervals(service_person_id, start, end)
            )
            return open_intervals, clip(blocked, start, end)

        return FreeIntervals(load, start, end)
