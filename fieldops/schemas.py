# fieldops/schemas.py

from datetime import datetime, time, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ScheduleStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


BUSY_STATUSES = (ScheduleStatus.PENDING, ScheduleStatus.ACCEPTED)


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ActivityType(str, Enum):
    TICKET_WORK = "TICKET_WORK"
    BD_VISIT = "BD_VISIT"
    PO_DISCUSSION = "PO_DISCUSSION"
    SPARE_REPLACEMENT = "SPARE_REPLACEMENT"
    TRAVEL = "TRAVEL"
    TRAINING = "TRAINING"
    MEETING = "MEETING"
    MAINTENANCE = "MAINTENANCE"
    DOCUMENTATION = "DOCUMENTATION"
    OTHER = "OTHER"
    WORK_FROM_HOME = "WORK_FROM_HOME"
    INSTALLATION = "INSTALLATION"
    MAINTENANCE_PLANNED = "MAINTENANCE_PLANNED"
    REVIEW_MEETING = "REVIEW_MEETING"
    RELOCATION = "RELOCATION"


class UserRole(str, Enum):
    admin = "admin"
    zone_manager = "zone_manager"
    dispatcher = "dispatcher"
    service_person = "service_person"


class BlackoutKind(str, Enum):
    leave = "leave"
    holiday = "holiday"
    other = "other"


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserPublic(BaseModel):
    id: int
    email: str
    role: UserRole
    zone_id: Optional[int] = None
    is_active: bool = True
    skills: List[str] = []


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=8, max_length=72)
    role: UserRole
    zone_id: Optional[int] = None
    skills: List[str] = []


class ScheduleCreate(BaseModel):
    service_person_id: int
    zone_id: int
    activity_type: ActivityType
    scheduled_start: datetime
    scheduled_end: datetime
    priority: Priority = Priority.MEDIUM
    description: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    customer_id: Optional[int] = None
    ticket_id: Optional[int] = None
    asset_ids: List[str] = []


class ScheduleUpdate(BaseModel):
    service_person_id: Optional[int] = None
    zone_id: Optional[int] = None
    activity_type: Optional[ActivityType] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    priority: Optional[Priority] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    customer_id: Optional[int] = None
    ticket_id: Optional[int] = None
    asset_ids: Optional[List[str]] = None


class SchedulePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    service_person_id: int
    zone_id: int
    activity_type: ActivityType
    scheduled_start: datetime
    scheduled_end: datetime
    status: ScheduleStatus
    priority: Priority
    description: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    customer_id: Optional[int] = None
    ticket_id: Optional[int] = None
    asset_ids: List[str] = []
    created_by: int
    created_at: datetime
    updated_at: datetime
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


class RejectRequest(BaseModel):
    rejection_reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class ScheduleFilters(BaseModel):
    status: Optional[List[ScheduleStatus]] = None
    priority: Optional[Priority] = None
    activity_type: Optional[ActivityType] = None
    zone_id: Optional[int] = None
    service_person_id: Optional[int] = None
    start_from: Optional[datetime] = None
    start_to: Optional[datetime] = None
    search: Optional[str] = None
    page: int = Field(default=1, ge=1)
    limit: Optional[int] = Field(default=None, ge=1, le=500)
    sort_order: str = Field(default="asc", pattern="^(asc|desc)$")


class ScheduleStats(BaseModel):
    total: int
    pending: int
    accepted: int
    completed: int
    rejected: int
    cancelled: int
    completion_rate: int
    acceptance_rate: int


class FreeInterval(BaseModel):
    start: datetime
    end: datetime


class AvailabilityResponse(BaseModel):
    service_person_id: int
    start: datetime
    end: datetime
    free: List[FreeInterval]


class SuggestRequest(BaseModel):
    zone_id: int
    start: datetime
    end: datetime
    duration_minutes: int = Field(gt=0, le=24 * 60)
    service_person_ids: Optional[List[int]] = None
    skill: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1, le=50)

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)


class Suggestion(BaseModel):
    service_person_id: int
    slot_start: datetime
    slot_end: datetime
    active_load: int


class WorkingHoursSchema(BaseModel):
    working_days: List[int]     # 0=Mon, 1=Tues....
    day_start: time
    day_end: time


class BlackoutCreate(BaseModel):
    start: datetime
    end: datetime
    kind: BlackoutKind = BlackoutKind.leave
    note: Optional[str] = None


class BlackoutPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    service_person_id: int
    start: datetime
    end: datetime
    kind: BlackoutKind
    note: Optional[str] = None
