# fieldops/repository.py

from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Protocol

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from fieldops.config import settings
from fieldops.models import ActivitySchedule, User
from fieldops.schemas import BUSY_STATUSES, ScheduleFilters, UserRole

_BUSY = [s.value for s in BUSY_STATUSES]


class ScheduleRepository(Protocol):
    def save(self, schedule: ActivitySchedule) -> ActivitySchedule:
        ...

    def refresh(self, schedule: ActivitySchedule) -> ActivitySchedule:
        ...

    def find_by_id(self, schedule_id: int) -> Optional[ActivitySchedule]:
        ...

    def find_overlapping(
        self,
        service_person_id: int,
        start: datetime,
        end: datetime,
        exclude_schedule_id: Optional[int] = None,
    ) -> List[ActivitySchedule]:
        ...

    def find_by_service_person_and_range(
        self,
        service_person_id: int,
        start: datetime,
        end: datetime,
        statuses: Optional[Iterable[str]] = None,
    ) -> List[ActivitySchedule]:
        ...

    def count_active(self, service_person_id: int, start: datetime, end: datetime) -> int:
        ...

    def search(self, filters: ScheduleFilters) -> List[ActivitySchedule]:
        ...

    def count_by_status(self, filters: ScheduleFilters) -> Dict[str, int]:
        ...


class SQLScheduleRepository:
    def __init__(self, session: Session):
        self.session = session

    def save(self, schedule: ActivitySchedule) -> ActivitySchedule:
        self.session.add(schedule)
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self.session.refresh(schedule)  # fills schedule.id
        return schedule

    def refresh(self, schedule: ActivitySchedule) -> ActivitySchedule:
        self.session.refresh(schedule)
        return schedule

    def find_by_id(self, schedule_id: int) -> Optional[ActivitySchedule]:
        return self.session.get(ActivitySchedule, schedule_id)

    def find_overlapping(self, service_person_id, start, end, exclude_schedule_id=None):
        stmt = (
            select(ActivitySchedule)
            .where(ActivitySchedule.service_person_id == service_person_id)
            .where(ActivitySchedule.status.in_(_BUSY))
            .where(ActivitySchedule.scheduled_start < end)
            .where(ActivitySchedule.scheduled_end > start)
        )
        if exclude_schedule_id is not None:
            stmt = stmt.where(ActivitySchedule.id != exclude_schedule_id)
        return list(self.session.exec(stmt.order_by(ActivitySchedule.scheduled_start)).all())

    def find_by_service_person_and_range(self, service_person_id, start, end, statuses=None):
        stmt = (
            select(ActivitySchedule)
            .where(ActivitySchedule.service_person_id == service_person_id)
            .where(ActivitySchedule.scheduled_start < end)
            .where(ActivitySchedule.scheduled_end > start)
        )
        if statuses is not None:
            stmt = stmt.where(ActivitySchedule.status.in_([str(getattr(s, "value", s)) for s in statuses]))
        return list(self.session.exec(stmt.order_by(ActivitySchedule.scheduled_start)).all())

    def count_active(self, service_person_id, start, end) -> int:
        stmt = (
            select(func.count())
            .select_from(ActivitySchedule)
            .where(ActivitySchedule.service_person_id == service_person_id)
            .where(ActivitySchedule.status.in_(_BUSY))
            .where(ActivitySchedule.scheduled_start < end)
            .where(ActivitySchedule.scheduled_end > start)
        )
        return int(self.session.exec(stmt).one())

    def _filtered(self, stmt, filters: ScheduleFilters):
        if filters.status:
            stmt = stmt.where(ActivitySchedule.status.in_([s.value for s in filters.status]))
        if filters.priority is not None:
            stmt = stmt.where(ActivitySchedule.priority == filters.priority.value)
        if filters.activity_type is not None:
            stmt = stmt.where(ActivitySchedule.activity_type == filters.activity_type.value)
        if filters.zone_id is not None:
            stmt = stmt.where(ActivitySchedule.zone_id == filters.zone_id)
        if filters.service_person_id is not None:
            stmt = stmt.where(ActivitySchedule.service_person_id == filters.service_person_id)
        if filters.start_from is not None:
            stmt = stmt.where(ActivitySchedule.scheduled_start >= filters.start_from)
        if filters.start_to is not None:
            stmt = stmt.where(ActivitySchedule.scheduled_start < filters.start_to)
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            stmt = stmt.where(
                or_(
                    ActivitySchedule.notes.ilike(pattern),
                    ActivitySchedule.description.ilike(pattern),
                    ActivitySchedule.location.ilike(pattern),
                )
            )
        return stmt

    def search(self, filters: ScheduleFilters) -> List[ActivitySchedule]:
        stmt = self._filtered(select(ActivitySchedule), filters)

        if filters.sort_order == "desc":
            stmt = stmt.order_by(ActivitySchedule.scheduled_start.desc(), ActivitySchedule.id.desc())
        else:
            stmt = stmt.order_by(ActivitySchedule.scheduled_start, ActivitySchedule.id)

        limit = filters.limit or settings.LIST_DEFAULT_LIMIT
        stmt = stmt.offset((filters.page - 1) * limit).limit(limit)
        return list(self.session.exec(stmt).all())

    def count_by_status(self, filters: ScheduleFilters) -> Dict[str, int]:
        stmt = self._filtered(
            select(ActivitySchedule.status, func.count()).select_from(ActivitySchedule), filters
        ).group_by(ActivitySchedule.status)
        return {status: int(count) for status, count in self.session.exec(stmt).all()}


class ServicePersonDirectory:
    """Roster lookups: which service persons exist and which serve a zone."""

    def __init__(self, session: Session):
        self.session = session

    def get_active(self, service_person_id: int) -> Optional[User]:
        user = self.session.get(User, service_person_id)
        if user is None or not user.is_active or user.role != UserRole.service_person.value:
            return None
        return user

    def active_in_zone(
        self,
        zone_id: int,
        skill: Optional[str] = None,
        only_ids: Optional[Iterable[int]] = None,
    ) -> Iterator[int]:
        """Yield matching service person ids in ascending order."""
        stmt = (
            select(User)
            .where(User.role == UserRole.service_person.value)
            .where(User.is_active == True)  # noqa: E712
            .where(User.zone_id == zone_id)
        )
        if only_ids is not None:
            stmt = stmt.where(User.id.in_(list(only_ids)))
        for user in self.session.exec(stmt.order_by(User.id)).all():
            if skill and skill not in (user.skills or []):
                continue
            yield user.id
