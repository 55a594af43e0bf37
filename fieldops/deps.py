# fieldops/deps.py

from fastapi import Depends, HTTPException
from sqlmodel import Session

from fieldops.db import get_session
from fieldops.service import ScheduleService
from fieldops.state_machine import Actor


def require_role(actor: Actor, *roles: str):
    if actor.role not in roles:
        raise HTTPException(status_code=403, detail="Forbidden")


def get_schedule_service(session: Session = Depends(get_session)) -> ScheduleService:
    return ScheduleService.for_session(session)
