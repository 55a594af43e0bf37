# fieldops/models.py

from typing import Optional, List
from datetime import datetime, time, timezone

from sqlalchemy.types import JSON, DateTime, TypeDecorator
from sqlmodel import SQLModel, Field, Column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, hands back aware UTC (SQLite drops tzinfo)."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class ActivitySchedule(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    service_person_id: int = Field(index=True)
    zone_id: int = Field(index=True)
    activity_type: str
    scheduled_start: datetime = Field(sa_column=Column(UTCDateTime(), nullable=False, index=True))
    scheduled_end: datetime = Field(sa_column=Column(UTCDateTime(), nullable=False, index=True))
    status: str = Field(default="PENDING", index=True)
    priority: str = "MEDIUM"

    description: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    customer_id: Optional[int] = None
    ticket_id: Optional[int] = None
    asset_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    created_by: int
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime(), nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime(), nullable=False))

    # lifecycle stamps
    accepted_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    rejected_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    rejection_reason: Optional[str] = None
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    cancelled_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    cancellation_reason: Optional[str] = None


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str  # admin, zone_manager, dispatcher or service_person
    zone_id: Optional[int] = Field(default=None, index=True)
    is_active: bool = True
    skills: List[str] = Field(default_factory=list, sa_column=Column(JSON))


class WorkingHours(SQLModel, table=True):
    service_person_id: int = Field(primary_key=True)
    working_days: List[int] = Field(sa_column=Column(JSON))
    day_start: time
    day_end: time


class Blackout(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    service_person_id: int = Field(index=True)
    start: datetime = Field(sa_column=Column(UTCDateTime(), nullable=False))
    end: datetime = Field(sa_column=Column(UTCDateTime(), nullable=False))
    kind: str  # "leave", "holiday" or "other"
    note: Optional[str] = None
