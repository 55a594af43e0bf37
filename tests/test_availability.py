from datetime import timezone

import pytest

from fieldops.availability import AvailabilityCalculator
from fieldops.calendar import SQLWorkingCalendar
from fieldops.core import Interval, overlaps
from fieldops.models import Blackout
from fieldops.repository import SQLScheduleRepository

from .conftest import at

pytestmark = pytest.mark.integration


@pytest.fixture
def calculator(session):
    return AvailabilityCalculator(SQLScheduleRepository(session), SQLWorkingCalendar(session, tz=timezone.utc))


def test_free_time_is_working_day_minus_busy(calculator, make_user, add_schedule):
    person = make_user()
    add_schedule(person, at(9), at(10), "ACCEPTED")
    add_schedule(person, at(13), at(14), "PENDING")

    free = list(calculator.free_intervals(person.id, at(0), at(23)))
    assert free == [
        Interval(at(8), at(9)),
        Interval(at(10), at(13)),
        Interval(at(14), at(18)),
    ]


@pytest.mark.parametrize("status", ["REJECTED", "CANCELLED", "COMPLETED"])
def test_closed_schedules_do_not_block(calculator, make_user, add_schedule, status):
    person = make_user()
    add_schedule(person, at(9), at(10), status)
    assert list(calculator.free_intervals(person.id, at(8), at(18))) == [Interval(at(8), at(18))]


def test_blackouts_block_free_time(session, calculator, make_user, add_schedule):
    person = make_user()
    session.add(Blackout(service_person_id=person.id, start=at(12), end=at(15), kind="leave"))
    session.commit()
    add_schedule(person, at(14), at(16))

    free = list(calculator.free_intervals(person.id, at(8), at(18)))
    assert free == [Interval(at(8), at(12)), Interval(at(16), at(18))]


def test_other_people_schedules_are_ignored(calculator, make_user, add_schedule):
    person = make_user()
    other = make_user()
    add_schedule(other, at(9), at(17))
    assert list(calculator.free_intervals(person.id, at(8), at(18))) == [Interval(at(8), at(18))]


def test_free_intervals_can_be_iterated_again(calculator, make_user, add_schedule):
    person = make_user()
    add_schedule(person, at(10), at(11))
    free = calculator.free_intervals(person.id, at(8), at(18))

    first = next(iter(free))
    assert first == Interval(at(8), at(10))
    assert list(free) == [Interval(at(8), at(10)), Interval(at(11), at(18))]
    assert list(free) == list(free)


def test_free_intervals_are_sorted_disjoint_and_inside_window(calculator, make_user, add_schedule):
    person = make_user()
    busy = [
        add_schedule(person, at(7), at(9)),
        add_schedule(person, at(11), at(12)),
        add_schedule(person, at(11, 30), at(12, 30), "PENDING"),
        add_schedule(person, at(17), at(9, day=1)),
        add_schedule(person, at(15, day=1), at(16, day=1)),
    ]
    start, end = at(6), at(20, day=1)
    free = list(calculator.free_intervals(person.id, start, end))

    assert free
    for a, b in zip(free, free[1:]):
        assert a.end <= b.start
    for interval in free:
        assert start <= interval.start < interval.end <= end
        for schedule in busy:
            assert not overlaps(interval.start, interval.end, schedule.scheduled_start, schedule.scheduled_end)


def test_empty_window_has_no_free_time(calculator, make_user):
    person = make_user()
    assert list(calculator.free_intervals(person.id, at(10), at(10))) == []


def test_within_calendar(session, calculator, make_user):
    person = make_user()
    session.add(Blackout(service_person_id=person.id, start=at(12), end=at(13), kind="other"))
    session.commit()

    assert calculator.within_calendar(person.id, at(8), at(12))
    assert not calculator.within_calendar(person.id, at(11), at(14))
    assert not calculator.within_calendar(person.id, at(7), at(9))
    # Saturday
    assert not calculator.within_calendar(person.id, at(9, day=5), at(10, day=5))
