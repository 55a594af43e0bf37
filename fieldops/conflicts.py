# fieldops/conflicts.py

from datetime import datetime
from typing import Optional

import structlog

from fieldops.availability import AvailabilityCalculator
from fieldops.core import overlaps
from fieldops.errors import ConflictError

logger = structlog.get_logger("fieldops.conflicts")


class ConflictDetector:
    """Decides whether ``[start, end)`` may be booked for a service person.

    Callers must run ``check`` and the write that follows under the
    service person's lock; see ``fieldops.locks``.
    """

    def __init__(self, calculator: AvailabilityCalculator):
        self.calculator = calculator

    def check(
        self,
        service_person_id: int,
        start: datetime,
        end: datetime,
        exclude_schedule_id: Optional[int] = None,
    ) -> None:
        busy = self.calculator.busy_intervals(
            service_person_id, start, end, exclude_schedule_id=exclude_schedule_id
        )
        conflicting = [b.schedule_id for b in busy if overlaps(b.start, b.end, start, end)]
        if conflicting:
            logger.info(
                "schedule_conflict",
                service_person_id=service_person_id,
                start=start.isoformat(),
                end=end.isoformat(),
                conflicting_ids=conflicting,
            )
            raise ConflictError(
                f"Service person {service_person_id} is already booked in that window",
                conflicting_ids=conflicting,
            )

        if not self.calculator.within_calendar(service_person_id, start, end):
            logger.info(
                "schedule_outside_calendar",
                service_person_id=service_person_id,
                start=start.isoformat(),
                end=end.isoformat(),
            )
            raise ConflictError(
                f"Window falls outside the working calendar of service person {service_person_id}"
            )
