from datetime import timedelta

import pytest
from sqlmodel import select

from fieldops.core import overlaps
from fieldops.errors import ValidationError
from fieldops.models import ActivitySchedule
from fieldops.schemas import SuggestRequest

from .conftest import at

pytestmark = pytest.mark.integration


def request(start, end, minutes=60, **extra):
    return SuggestRequest(zone_id=1, start=start, end=end, duration_minutes=minutes, **extra)


def test_soonest_free_service_person_comes_first(service, make_user, add_schedule):
    fully_booked = make_user()
    free_afternoon = make_user()
    free_after_nine = make_user()
    add_schedule(fully_booked, at(8), at(18))
    add_schedule(free_afternoon, at(8), at(14))
    add_schedule(free_after_nine, at(8), at(9))

    suggestions = service.suggest_schedule(request(at(8), at(18)))

    assert [(s.service_person_id, s.slot_start) for s in suggestions] == [
        (free_after_nine.id, at(9)),
        (free_afternoon.id, at(14)),
    ]
    assert suggestions[0].slot_end == at(10)


def test_lower_load_wins_a_tie_on_start(service, make_user, add_schedule):
    busy_later = make_user()
    idle = make_user()
    add_schedule(busy_later, at(15), at(16), "PENDING")
    add_schedule(busy_later, at(10, day=1), at(11, day=1), "ACCEPTED")

    suggestions = service.suggest_schedule(request(at(8), at(12)))
    assert [s.service_person_id for s in suggestions] == [idle.id, busy_later.id]
    assert [s.active_load for s in suggestions] == [0, 2]


def test_id_breaks_remaining_ties(service, make_user):
    people = [make_user() for _ in range(3)]
    suggestions = service.suggest_schedule(request(at(8), at(12)))
    assert [s.service_person_id for s in suggestions] == [p.id for p in people]


def test_limit_is_respected(service, make_user):
    people = [make_user() for _ in range(4)]
    suggestions = service.suggest_schedule(request(at(8), at(12), limit=2))
    assert [s.service_person_id for s in suggestions] == [people[0].id, people[1].id]


def test_zone_skill_and_candidate_filters(service, make_user):
    elsewhere = make_user(zone_id=2)
    plain = make_user()
    electrician = make_user(skills=["electrical"])
    welder = make_user(skills=["welding"])

    ids = [s.service_person_id for s in service.suggest_schedule(request(at(8), at(12)))]
    assert elsewhere.id not in ids
    assert set(ids) == {plain.id, electrician.id, welder.id}

    skilled = service.suggest_schedule(request(at(8), at(12), skill="electrical"))
    assert [s.service_person_id for s in skilled] == [electrician.id]

    chosen = service.suggest_schedule(request(at(8), at(12), service_person_ids=[welder.id, elsewhere.id]))
    assert [s.service_person_id for s in chosen] == [welder.id]


def test_inactive_service_persons_are_skipped(service, make_user):
    make_user(is_active=False)
    active = make_user()
    assert [s.service_person_id for s in service.suggest_schedule(request(at(8), at(12)))] == [active.id]


def test_no_one_free_returns_empty(service, make_user, add_schedule):
    person = make_user()
    add_schedule(person, at(8), at(18))
    assert service.suggest_schedule(request(at(8), at(18))) == []


def test_slot_must_fit_a_single_gap(service, make_user, add_schedule):
    person = make_user()
    add_schedule(person, at(9), at(10))
    add_schedule(person, at(11), at(12))
    # 8-9 and 10-11 are free but neither holds two hours
    suggestions = service.suggest_schedule(request(at(8), at(13), minutes=120))
    assert suggestions == []


def test_suggestions_stay_inside_window_and_calendar(service, make_user, add_schedule):
    people = [make_user() for _ in range(4)]
    add_schedule(people[0], at(8), at(9, 30))
    add_schedule(people[1], at(10), at(11), "PENDING")
    add_schedule(people[2], at(6), at(17))
    add_schedule(people[3], at(17, 30), at(18))

    start, end = at(6), at(20)
    suggestions = service.suggest_schedule(request(start, end, minutes=90, limit=10))

    assert suggestions
    for s in suggestions:
        assert start <= s.slot_start and s.slot_end <= end
        assert at(8) <= s.slot_start and s.slot_end <= at(18)
        assert s.slot_end - s.slot_start == timedelta(minutes=90)
        busy = service.repository.find_overlapping(s.service_person_id, s.slot_start, s.slot_end)
        assert busy == []


def test_suggestions_do_not_overlap_busy_schedules(session, service, make_user, add_schedule):
    person = make_user()
    add_schedule(person, at(8), at(8, 45))
    add_schedule(person, at(9), at(9, 30), "PENDING")

    [suggestion] = service.suggest_schedule(request(at(8), at(12), minutes=30))
    assert suggestion.slot_start == at(9, 30)
    for schedule in session.exec(select(ActivitySchedule)).all():
        assert not overlaps(suggestion.slot_start, suggestion.slot_end, schedule.scheduled_start, schedule.scheduled_end)


def test_past_part_of_the_window_is_skipped(service, make_user, clock):
    person = make_user()
    clock.now = at(10, 30)
    [suggestion] = service.suggest_schedule(request(at(8), at(18)))
    assert suggestion.service_person_id == person.id
    assert suggestion.slot_start == at(10, 30)


def test_window_already_over_returns_empty(service, make_user, clock):
    make_user()
    clock.now = at(17, 30)
    assert service.suggest_schedule(request(at(8), at(18))) == []


def test_duration_longer_than_window_is_invalid(service, make_user):
    make_user()
    with pytest.raises(ValidationError):
        service.suggest_schedule(request(at(8), at(9), minutes=90))


def test_candidate_cap_bounds_the_search(service, make_user, add_schedule):
    people = [make_user() for _ in range(3)]
    add_schedule(people[0], at(8), at(18))
    service.suggester.max_candidates = 2

    suggestions = service.suggest_schedule(request(at(8), at(18)))
    assert [s.service_person_id for s in suggestions] == [people[1].id]
