# fieldops/service.py

"""Activity scheduling operations.

``ScheduleService`` is what the routers call. It owns no storage; it is
wired to a repository, a working calendar and a roster, and serialises
check-then-write sequences per service person with ``KeyedLock``.
"""

from datetime import datetime, tzinfo
from typing import Callable, List, Optional

import structlog
from sqlmodel import Session

from fieldops.availability import AvailabilityCalculator, FreeIntervals
from fieldops.calendar import SQLWorkingCalendar, WorkingCalendarProvider, local_zone
from fieldops.conflicts import ConflictDetector
from fieldops.core import to_utc
from fieldops.errors import AuthorizationError, NotFoundError, ValidationError
from fieldops.locks import KeyedLock, service_person_locks
from fieldops.models import ActivitySchedule, User, utc_now
from fieldops.repository import ScheduleRepository, ServicePersonDirectory, SQLScheduleRepository
from fieldops.schemas import (
    ScheduleCreate,
    ScheduleFilters,
    ScheduleStats,
    ScheduleStatus,
    ScheduleUpdate,
    SuggestRequest,
    Suggestion,
)
from fieldops.state_machine import (
    Action,
    Actor,
    RolePolicy,
    TransitionResult,
    apply_transition,
    next_status,
)
from fieldops.suggester import ScheduleSuggester

logger = structlog.get_logger("fieldops.schedules")

_TIME_FIELDS = ("scheduled_start", "scheduled_end", "service_person_id")
_REQUIRED_FIELDS = _TIME_FIELDS + ("zone_id", "activity_type", "priority")
_RANGE_FILTERS = ("start_from", "start_to")


class ScheduleService:
    def __init__(
        self,
        repository: ScheduleRepository,
        calendar: WorkingCalendarProvider,
        directory: ServicePersonDirectory,
        policy: Optional[RolePolicy] = None,
        locks: Optional[KeyedLock] = None,
        clock: Callable[[], datetime] = utc_now,
        tz: Optional[tzinfo] = None,
    ):
        self.repository = repository
        self.directory = directory
        self.policy = policy or RolePolicy()
        self.locks = locks or service_person_locks
        self.clock = clock
        self.tz = tz or local_zone()
        self.calculator = AvailabilityCalculator(repository, calendar)
        self.detector = ConflictDetector(self.calculator)
        self.suggester = ScheduleSuggester(self.calculator, repository, directory)

    @classmethod
    def for_session(cls, session: Session, tz: Optional[tzinfo] = None, **kwargs) -> "ScheduleService":
        tz = tz or local_zone()
        return cls(
            SQLScheduleRepository(session),
            SQLWorkingCalendar(session, tz=tz),
            ServicePersonDirectory(session),
            tz=tz,
            **kwargs,
        )

    # -- helpers -----------------------------------------------------------

    def _window(self, start: datetime, end: datetime) -> tuple:
        start = to_utc(start, self.tz)
        end = to_utc(end, self.tz)
        if end <= start:
            raise ValidationError("scheduled_end must be after scheduled_start", field="scheduled_end")
        return start, end

    def _in_utc(self, filters: ScheduleFilters) -> ScheduleFilters:
        """Naive date-range bounds are read in the service timezone."""
        updates = {}
        for key in _RANGE_FILTERS:
            value = getattr(filters, key)
            if value is not None:
                updates[key] = to_utc(value, self.tz)
        return filters.model_copy(update=updates)

    def _require_service_person(self, service_person_id: int) -> User:
        person = self.directory.get_active(service_person_id)
        if person is None:
            raise NotFoundError("service person", service_person_id)
        return person

    def _require_same_zone(self, person: User, zone_id: int) -> None:
        if person.zone_id != zone_id:
            raise ValidationError(
                f"Service person {person.id} belongs to zone {person.zone_id}, not zone {zone_id}",
                field="zone_id",
            )

    def _authorize(self, actor: Actor, action: Action, schedule: ActivitySchedule) -> None:
        if not self.policy.actor_can_perform(actor, action, schedule):
            logger.info(
                "schedule_action_denied",
                action=action.value,
                actor_id=actor.id,
                actor_role=actor.role,
                schedule_id=schedule.id,
            )
            raise AuthorizationError(f"Role {actor.role} may not {action.value} this schedule", action=action.value)

    # -- queries -----------------------------------------------------------

    def get_schedule(self, schedule_id: int) -> ActivitySchedule:
        schedule = self.repository.find_by_id(schedule_id)
        if schedule is None:
            raise NotFoundError("schedule", schedule_id)
        return schedule

    def list_schedules(self, filters: ScheduleFilters) -> List[ActivitySchedule]:
        return self.repository.search(self._in_utc(filters))

    def schedule_stats(self, filters: ScheduleFilters) -> ScheduleStats:
        counts = self.repository.count_by_status(self._in_utc(filters))
        pending = counts.get(ScheduleStatus.PENDING.value, 0)
        accepted = counts.get(ScheduleStatus.ACCEPTED.value, 0)
        completed = counts.get(ScheduleStatus.COMPLETED.value, 0)
        rejected = counts.get(ScheduleStatus.REJECTED.value, 0)
        cancelled = counts.get(ScheduleStatus.CANCELLED.value, 0)
        total = sum(counts.values())
        answered = pending + accepted + rejected
        return ScheduleStats(
            total=total,
            pending=pending,
            accepted=accepted,
            completed=completed,
            rejected=rejected,
            cancelled=cancelled,
            completion_rate=round(completed / total * 100) if total else 0,
            acceptance_rate=round(accepted / answered * 100) if answered else 0,
        )

    def get_availability(self, service_person_id: int, start: datetime, end: datetime) -> FreeIntervals:
        start, end = self._window(start, end)
        self._require_service_person(service_person_id)
        return self.calculator.free_intervals(service_person_id, start, end)

    def suggest_schedule(self, request: SuggestRequest) -> List[Suggestion]:
        start, end = self._window(request.start, request.end)
        if request.duration > end - start:
            raise ValidationError("duration does not fit in the requested window", field="duration_minutes")

        start = max(start, self.clock())
        if end - start < request.duration:
            return []
        return self.suggester.suggest(
            request.zone_id,
            start,
            end,
            request.duration,
            candidate_ids=request.service_person_ids,
            skill=request.skill,
            limit=request.limit,
        )

    # -- writes ------------------------------------------------------------

    def create_schedule(self, data: ScheduleCreate, actor: Actor) -> ActivitySchedule:
        start, end = self._window(data.scheduled_start, data.scheduled_end)
        now = self.clock()
        if start < now:
            raise ValidationError("Cannot schedule an activity in the past", field="scheduled_start")

        person = self._require_service_person(data.service_person_id)

        schedule = ActivitySchedule(
            service_person_id=data.service_person_id,
            zone_id=data.zone_id,
            activity_type=data.activity_type.value,
            scheduled_start=start,
            scheduled_end=end,
            status=ScheduleStatus.PENDING.value,
            priority=data.priority.value,
            description=data.description,
            notes=data.notes,
            location=data.location,
            customer_id=data.customer_id,
            ticket_id=data.ticket_id,
            asset_ids=list(data.asset_ids),
            created_by=actor.id,
            created_at=now,
            updated_at=now,
        )
        self._authorize(actor, Action.CREATE, schedule)
        self._require_same_zone(person, schedule.zone_id)

        with self.locks.hold(schedule.service_person_id):
            self.detector.check(schedule.service_person_id, start, end)
            schedule = self.repository.save(schedule)

        logger.info(
            "schedule_created",
            schedule_id=schedule.id,
            service_person_id=schedule.service_person_id,
            created_by=actor.id,
        )
        return schedule

    def update_schedule(self, schedule_id: int, changes: ScheduleUpdate, actor: Actor) -> ActivitySchedule:
        schedule = self.get_schedule(schedule_id)
        next_status(schedule.status, Action.EDIT)
        self._authorize(actor, Action.EDIT, schedule)

        fields = changes.model_dump(exclude_unset=True)
        for key in _REQUIRED_FIELDS:
            if key in fields and fields[key] is None:
                del fields[key]
        for key in ("activity_type", "priority"):
            if key in fields:
                fields[key] = fields[key].value

        previous_person_id = schedule.service_person_id
        person_id = fields.get("service_person_id") or previous_person_id
        if "zone_id" in fields or "service_person_id" in fields:
            zone_id = fields.get("zone_id", schedule.zone_id)
            # the edited schedule must still be inside the actor's reach
            self._authorize(
                actor,
                Action.EDIT,
                ActivitySchedule(
                    id=schedule.id,
                    service_person_id=person_id,
                    zone_id=zone_id,
                    activity_type=schedule.activity_type,
                    scheduled_start=schedule.scheduled_start,
                    scheduled_end=schedule.scheduled_end,
                    status=schedule.status,
                    created_by=schedule.created_by,
                ),
            )
            self._require_same_zone(self._require_service_person(person_id), zone_id)

        now = self.clock()
        timed = any(key in fields for key in _TIME_FIELDS)
        if timed:
            start, end = self._window(
                fields.get("scheduled_start") or schedule.scheduled_start,
                fields.get("scheduled_end") or schedule.scheduled_end,
            )
            if start < now:
                raise ValidationError("Cannot move an activity into the past", field="scheduled_start")

        with self.locks.hold_many(previous_person_id, person_id):
            schedule = self.repository.refresh(schedule)
            next_status(schedule.status, Action.EDIT)
            if timed:
                self.detector.check(person_id, start, end, exclude_schedule_id=schedule.id)
            for key, value in fields.items():
                setattr(schedule, key, value)
            if timed:
                schedule.service_person_id = person_id
                schedule.scheduled_start = start
                schedule.scheduled_end = end
            schedule.updated_at = now
            schedule = self.repository.save(schedule)

        logger.info("schedule_updated", schedule_id=schedule.id, actor_id=actor.id, fields=sorted(fields))
        return schedule

    def _transition(
        self, schedule_id: int, action: Action, actor: Actor, reason: Optional[str] = None
    ) -> TransitionResult:
        schedule = self.get_schedule(schedule_id)
        with self.locks.hold(schedule.service_person_id):
            schedule = self.repository.refresh(schedule)
            next_status(schedule.status, action)
            self._authorize(actor, action, schedule)
            if action == Action.ACCEPT:
                # the window may have been taken by a rival request since creation
                self.detector.check(
                    schedule.service_person_id,
                    schedule.scheduled_start,
                    schedule.scheduled_end,
                    exclude_schedule_id=schedule.id,
                )
            result = apply_transition(schedule, action, actor, self.clock(), reason=reason)
            result.schedule = self.repository.save(schedule)

        logger.info(
            "schedule_transition",
            schedule_id=schedule_id,
            action=action.value,
            previous_status=result.previous_status.value,
            status=result.schedule.status,
            actor_id=actor.id,
        )
        return result

    def accept_schedule(self, schedule_id: int, actor: Actor) -> TransitionResult:
        return self._transition(schedule_id, Action.ACCEPT, actor)

    def reject_schedule(self, schedule_id: int, actor: Actor, reason: Optional[str] = None) -> TransitionResult:
        return self._transition(schedule_id, Action.REJECT, actor, reason=reason)

    def complete_schedule(self, schedule_id: int, actor: Actor) -> TransitionResult:
        return self._transition(schedule_id, Action.COMPLETE, actor)

    def cancel_schedule(self, schedule_id: int, actor: Actor, reason: Optional[str] = None) -> TransitionResult:
        return self._transition(schedule_id, Action.CANCEL, actor, reason=reason)
