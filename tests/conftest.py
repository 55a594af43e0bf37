"""Shared pytest fixtures and configuration."""

import os
from datetime import datetime, timedelta, timezone

import pytest

# Set test environment before fieldops.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["TIMEZONE"] = "UTC"
os.environ["WORKDAY_START"] = "08:00"
os.environ["WORKDAY_END"] = "18:00"
os.environ["WORKING_DAYS"] = "0,1,2,3,4"
os.environ["SECRET_KEY"] = "test-secret"

from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from fieldops.locks import KeyedLock  # noqa: E402
from fieldops.models import ActivitySchedule, User  # noqa: E402
from fieldops.service import ScheduleService  # noqa: E402
from fieldops.state_machine import Actor  # noqa: E402

# Monday 7 January 2030
MONDAY = datetime(2030, 1, 7, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, day: int = 0) -> datetime:
    """A UTC instant on the test Monday (``day`` shifts forward)."""
    return MONDAY + timedelta(days=day, hours=hour, minutes=minute)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test_fieldops.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(at(7))


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
def service(session, clock, locks):
    return ScheduleService.for_session(session, clock=clock, locks=locks)


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(role: str = "service_person", zone_id=1, skills=None, is_active=True) -> User:
        counter["n"] += 1
        user = User(
            email=f"{role}{counter['n']}@example.com",
            password_hash="not-a-real-hash",
            role=role,
            zone_id=zone_id,
            skills=skills or [],
            is_active=is_active,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def add_schedule(session):
    """Insert a schedule directly, bypassing the lifecycle rules."""

    def _add(person: User, start: datetime, end: datetime, status: str = "ACCEPTED", created_by: int = 0):
        schedule = ActivitySchedule(
            service_person_id=person.id,
            zone_id=person.zone_id or 1,
            activity_type="MAINTENANCE",
            scheduled_start=start,
            scheduled_end=end,
            status=status,
            created_by=created_by,
            created_at=MONDAY,
            updated_at=MONDAY,
        )
        session.add(schedule)
        session.commit()
        session.refresh(schedule)
        return schedule

    return _add


@pytest.fixture
def dispatcher(make_user) -> Actor:
    user = make_user("dispatcher")
    return Actor(id=user.id, role=user.role, zone_id=user.zone_id)


@pytest.fixture
def manager(make_user) -> Actor:
    user = make_user("zone_manager")
    return Actor(id=user.id, role=user.role, zone_id=user.zone_id)


def as_actor(user: User) -> Actor:
    return Actor(id=user.id, role=user.role, zone_id=user.zone_id)
