# fieldops/routers/schedules_routes.py

from datetime import datetime
from typing import Optional, List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from fieldops.auth import get_current_actor
from fieldops.deps import get_schedule_service
from fieldops.schemas import (
    ActivityType,
    AvailabilityResponse,
    CancelRequest,
    FreeInterval,
    Priority,
    RejectRequest,
    ScheduleCreate,
    ScheduleFilters,
    SchedulePublic,
    ScheduleStats,
    ScheduleStatus,
    ScheduleUpdate,
    SuggestRequest,
    Suggestion,
    UserRole,
)
from fieldops.service import ScheduleService
from fieldops.state_machine import Actor, TransitionResult

logger = structlog.get_logger("fieldops.api")

router = APIRouter(
    prefix="/activity-schedule",
    tags=["activity-schedule"],
)


def list_filters(
    actor: Actor = Depends(get_current_actor),
    status: Optional[str] = None,
    priority: Optional[Priority] = None,
    activity_type: Optional[ActivityType] = None,
    zone_id: Optional[int] = None,
    service_person_id: Optional[int] = None,
    start_from: Optional[datetime] = None,
    start_to: Optional[datetime] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    sort_order: str = Query(default="asc", pattern="^(asc|desc)$"),
) -> ScheduleFilters:
    statuses = None
    if status:
        try:
            # "PENDING,ACCEPTED" style lists
            statuses = [ScheduleStatus(s.strip().upper()) for s in status.split(",") if s.strip()]
        except ValueError:
            raise HTTPException(status_code=422, detail=f"Unknown status in '{status}'")

    # service persons only ever see their own schedules
    if actor.role == UserRole.service_person.value:
        service_person_id = actor.id

    return ScheduleFilters(
        status=statuses,
        priority=priority,
        activity_type=activity_type,
        zone_id=zone_id,
        service_person_id=service_person_id,
        start_from=start_from,
        start_to=start_to,
        search=search,
        page=page,
        limit=limit,
        sort_order=sort_order,
    )


def _forward(result: TransitionResult):
    # delivery is someone else's job; we hand over who should hear about it
    logger.info(
        "schedule_notification",
        schedule_id=result.schedule.id,
        action=result.action.value,
        recipients=sorted(result.notify),
    )
    return result.schedule


@router.post("", response_model=SchedulePublic, status_code=201)
def create_schedule(
    data: ScheduleCreate,
    service: ScheduleService = Depends(get_schedule_service),
    actor: Actor = Depends(get_current_actor),
):
    return service.create_schedule(data, actor)


@router.get("", response_model=List[SchedulePublic])
def list_schedules(
    filters: ScheduleFilters = Depends(list_filters),
    service: ScheduleService = Depends(get_schedule_service),
):
    return service.list_schedules(filters)


@router.get("/stats", response_model=ScheduleStats)
def schedule_stats(
    filters: ScheduleFilters = Depends(list_filters),
    service: ScheduleService = Depends(get_schedule_service),
):
    return service.schedule_stats(filters)


@router.get("/availability/{service_person_id}", response_model=AvailabilityResponse)
def service_person_availability(
    service_person_id: int,
    start: datetime,
    end: datetime,
    service: ScheduleService = Depends(get_schedule_service),
    actor: Actor = Depends(get_current_actor),
):
    free = service.get_availability(service_person_id, start, end)
    return {
        "service_person_id": service_person_id,
        "start": free.start,
        "end": free.end,
        "free": [FreeInterval(start=iv.start, end=iv.end) for iv in free],
    }


@router.post("/suggest", response_model=List[Suggestion])
def suggest_schedule(
    request: SuggestRequest,
    service: ScheduleService = Depends(get_schedule_service),
    actor: Actor = Depends(get_current_actor),
):
    return service.suggest_schedule(request)


@router.get("/{schedule_id}", response_model=SchedulePublic)
def get_schedule(
    schedule_id: int,
    service: ScheduleService = Depends(get_schedule_service),
    actor: Actor = Depends(get_current_actor),
):
    schedule = service.get_schedule(schedule_id)
    if actor.role == UserRole.service_person.value and schedule.service_person_id != actor.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return schedule


@router.patch("/{schedule_id}", response_model=SchedulePublic)
def update_schedule(
    schedule_id: int,
    changes: ScheduleUpdate,
    service: ScheduleService = Depends(get_schedule_service),
    actor: Actor = Depends(get_current_actor),
):
    return service.update_schedule(schedule_id, changes, actor)


@router.patch("/{schedule_id}/accept", response_model=SchedulePublic)
def accept_schedule(
    schedule_id: int,
    service: ScheduleService = Depends(get_schedule_service),
    actor: Actor = Depends(get_current_actor),
):
    return _forward(service.accept_schedule(schedule_id, actor))


@router.patch("/{schedule_id}/reject", response_model=SchedulePublic)
def reject_schedule(
    schedule_id: int,
    body: Optional[RejectRequest] = None,
    service: ScheduleService = Depends(get_schedule_service),
    actor: Actor = Depends(get_current_actor),
):
    reason = body.rejection_reason if body else None
    return _forward(service.reject_schedule(schedule_id, actor, reason=reason))


@router.patch("/{schedule_id}/complete", response_model=SchedulePublic)
def complete_schedule(
    schedule_id: int,
    service: ScheduleService = Depends(get_schedule_service),
    actor: Actor = Depends(get_current_actor),
):
    return _forward(service.complete_schedule(schedule_id, actor))


@router.patch("/{schedule_id}/cancel", response_model=SchedulePublic)
def cancel_schedule(
    schedule_id: int,
    body: Optional[CancelRequest] = None,
    service: ScheduleService = Depends(get_schedule_service),
    actor: Actor = Depends(get_current_actor),
):
    reason = body.reason if body else None
    return _forward(service.cancel_schedule(schedule_id, actor, reason=reason))
