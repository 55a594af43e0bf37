# fieldops/routers/service_persons_routes.py

from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from fieldops.db import get_session
from fieldops.models import Blackout, User, WorkingHours as WorkingHoursModel
from fieldops.schemas import (
    BlackoutCreate,
    BlackoutPublic,
    UserRole,
    WorkingHoursSchema,
)
from fieldops.auth import get_current_actor
from fieldops.calendar import local_zone
from fieldops.config import settings
from fieldops.core import overlaps, to_utc
from fieldops.deps import require_role
from fieldops.state_machine import Actor

router = APIRouter(
    prefix="/service-persons",
    tags=["service-persons"],
)

MANAGERS = (UserRole.admin.value, UserRole.zone_manager.value)


def _service_person_or_404(session: Session, service_person_id: int) -> User:
    person = session.get(User, service_person_id)
    if person is None or person.role != UserRole.service_person.value:
        raise HTTPException(status_code=404, detail="Service person not found")
    return person


def _require_self_or_manager(actor: Actor, service_person_id: int):
    if actor.id != service_person_id:
        require_role(actor, *MANAGERS)


@router.put('/{service_person_id}/working-hours', response_model=WorkingHoursSchema)
def set_working_hours(
    service_person_id: int,
    hours: WorkingHoursSchema,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    require_role(actor, *MANAGERS)
    _service_person_or_404(session, service_person_id)

    if not hours.working_days:
        raise HTTPException(status_code=422, detail="working_days must contain at least one day")
    for day in hours.working_days:
        if not (0 <= day <= 6):
            raise HTTPException(status_code=422, detail="working_days must be integers between 0 and 6")
    if len(hours.working_days) != len(set(hours.working_days)):
        raise HTTPException(status_code=422, detail="working_days cannot contain duplicates")
    if hours.day_start >= hours.day_end:
        raise HTTPException(status_code=422, detail="day_start must be before day_end")

    # DB upsert: one pattern per service person
    db_hours = session.get(WorkingHoursModel, service_person_id)
    if db_hours is None:
        db_hours = WorkingHoursModel(
            service_person_id=service_person_id,
            working_days=sorted(hours.working_days),
            day_start=hours.day_start,
            day_end=hours.day_end,
        )
        session.add(db_hours)
    else:
        db_hours.working_days = sorted(hours.working_days)
        db_hours.day_start = hours.day_start
        db_hours.day_end = hours.day_end

    session.commit()
    session.refresh(db_hours)

    return {
        "working_days": db_hours.working_days,
        "day_start": db_hours.day_start,
        "day_end": db_hours.day_end,
    }


@router.get('/{service_person_id}/working-hours', response_model=WorkingHoursSchema)
def get_working_hours(
    service_person_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    _require_self_or_manager(actor, service_person_id)
    _service_person_or_404(session, service_person_id)

    db_hours = session.get(WorkingHoursModel, service_person_id)
    if db_hours is None:
        # no personal pattern: the default week applies
        return {
            "working_days": settings.WORKING_DAYS,
            "day_start": settings.WORKDAY_START,
            "day_end": settings.WORKDAY_END,
        }
    return {
        "working_days": db_hours.working_days,
        "day_start": db_hours.day_start,
        "day_end": db_hours.day_end,
    }


@router.post('/{service_person_id}/blackouts', response_model=BlackoutPublic, status_code=201)
def add_blackout(
    service_person_id: int,
    blackout: BlackoutCreate,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
):
    _require_self_or_manager(actor, service_person_id)
    _service_person_or_404(session, service_person_id)

    start = to_utc(blackout.start, local_zone())
    end = to_utc(blackout.end, local_zone())
    if end <= start:
        raise HTTPException(status_code=422, detail="Blackout end must be after its start")
    if end - start > timedelta(days=366):
        raise HTTPException(status_code=422, detail="Blackout cannot span more than a year")

    existing = session.exec(
        select(Blackout)
        .where(Blackout.service_person_id == service_person_id)
        .where(Blackout.start < end)
        .where(Blackout.end > start)
    ).all()
    for b in existing:
        if overlaps(start, end, b.start, b.end):
            raise HTTPException(status_code=409, detail="Blackout overlaps an existing blackout")

    db_blackout = Blackout(
        service_person_id=service_person_id,
        start=start,
        end=end,
        kind=blackout.kind.value,
        note=blackout.note,
    )
    session.add(db_blackout)
    session.commit()
    session.refresh(db_blackout)
    return db_blackout
