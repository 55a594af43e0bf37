# fieldops/suggester.py

"""Greedy slot suggestions for a new activity in a zone.

Candidates are ranked by earliest start, then by how many PENDING/ACCEPTED
schedules they already carry around the window, then by id. This is a
"soonest available, least loaded" pick, not a global assignment.
"""

import heapq
from datetime import datetime, timedelta
from itertools import islice
from typing import Iterable, List, Optional

import structlog

from fieldops.availability import AvailabilityCalculator
from fieldops.config import settings
from fieldops.core import Interval
from fieldops.repository import ScheduleRepository, ServicePersonDirectory
from fieldops.schemas import Suggestion

logger = structlog.get_logger("fieldops.suggester")


class ScheduleSuggester:
    def __init__(
        self,
        calculator: AvailabilityCalculator,
        repository: ScheduleRepository,
        directory: ServicePersonDirectory,
        max_candidates: Optional[int] = None,
        load_window: Optional[timedelta] = None,
    ):
        self.calculator = calculator
        self.repository = repository
        self.directory = directory
        self.max_candidates = max_candidates or settings.SUGGEST_MAX_CANDIDATES
        if load_window is None:
            load_window = timedelta(hours=settings.SUGGEST_LOAD_WINDOW_HOURS)
        self.load_window = load_window

    def earliest_slot(
        self, service_person_id: int, start: datetime, end: datetime, duration: timedelta
    ) -> Optional[Interval]:
        for free in self.calculator.free_intervals(service_person_id, start, end):
            if free.duration >= duration:
                return Interval(free.start, free.start + duration)
        return None

    def suggest(
        self,
        zone_id: int,
        start: datetime,
        end: datetime,
        duration: timedelta,
        candidate_ids: Optional[Iterable[int]] = None,
        skill: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Suggestion]:
        limit = limit or settings.SUGGEST_DEFAULT_LIMIT
        candidates = self.directory.active_in_zone(zone_id, skill=skill, only_ids=candidate_ids)

        ranked = []
        unbeatable = 0
        evaluated = 0
        for person_id in islice(candidates, self.max_candidates):
            evaluated += 1
            slot = self.earliest_slot(person_id, start, end, duration)
            if slot is None:
                continue
            load = self.repository.count_active(
                person_id, start - self.load_window, end + self.load_window
            )
            ranked.append((slot.start, load, person_id, slot))

            # Ids arrive ascending, so later candidates cannot beat a
            # window-start, zero-load slot.
            if slot.start == start and load == 0:
                unbeatable += 1
                if unbeatable >= limit:
                    break

        best = heapq.nsmallest(limit, ranked, key=lambda r: r[:3])
        logger.info(
            "schedule_suggestions",
            zone_id=zone_id,
            evaluated=evaluated,
            qualifying=len(ranked),
            returned=len(best),
        )
        return [
            Suggestion(
                service_person_id=person_id,
                slot_start=slot.start,
                slot_end=slot.end,
                active_load=load,
            )
            for _, load, person_id, slot in best
        ]
