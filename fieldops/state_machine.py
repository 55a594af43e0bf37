# fieldops/state_machine.py

"""Activity schedule lifecycle.

Every legal move lives in ``TRANSITIONS``; anything not listed there is a
``StateError``. Who may make a legal move is decided separately by
``RolePolicy`` so the two kinds of refusal stay distinguishable.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from fieldops.errors import StateError
from fieldops.models import ActivitySchedule
from fieldops.schemas import ScheduleStatus, UserRole


class Action(str, Enum):
    CREATE = "create"
    ACCEPT = "accept"
    REJECT = "reject"
    EDIT = "edit"
    COMPLETE = "complete"
    CANCEL = "cancel"


TRANSITIONS: Dict[Tuple[ScheduleStatus, Action], ScheduleStatus] = {
    (ScheduleStatus.PENDING, Action.ACCEPT): ScheduleStatus.ACCEPTED,
    (ScheduleStatus.PENDING, Action.REJECT): ScheduleStatus.REJECTED,
    (ScheduleStatus.PENDING, Action.EDIT): ScheduleStatus.PENDING,
    (ScheduleStatus.PENDING, Action.CANCEL): ScheduleStatus.CANCELLED,
    (ScheduleStatus.ACCEPTED, Action.COMPLETE): ScheduleStatus.COMPLETED,
    (ScheduleStatus.ACCEPTED, Action.CANCEL): ScheduleStatus.CANCELLED,
}

MANAGER_ROLES = frozenset({UserRole.admin.value, UserRole.zone_manager.value})
DISPATCH_ROLES = MANAGER_ROLES | {UserRole.dispatcher.value}


@dataclass(frozen=True)
class Actor:
    id: int
    role: str
    zone_id: Optional[int] = None

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES

    @property
    def can_dispatch(self) -> bool:
        return self.role in DISPATCH_ROLES


@dataclass
class TransitionResult:
    """Outcome of a lifecycle move; ``notify`` lists user ids a notifier should reach."""

    schedule: ActivitySchedule
    action: Action
    previous_status: ScheduleStatus
    notify: FrozenSet[int] = field(default_factory=frozenset)


def next_status(current, action: Action) -> ScheduleStatus:
    current = ScheduleStatus(current)
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise StateError(
            f"Cannot {action.value} a schedule that is {current.value}",
            current_status=current.value,
            action=action.value,
        ) from None


def apply_transition(
    schedule: ActivitySchedule,
    action: Action,
    actor: Actor,
    now: datetime,
    reason: Optional[str] = None,
) -> TransitionResult:
    """Move ``schedule`` to its next status in place and stamp it.

    Conflict re-checks (accept) belong to the caller; only time-based
    preconditions are enforced here.
    """
    previous = ScheduleStatus(schedule.status)
    target = next_status(previous, action)

    if action == Action.COMPLETE and now < schedule.scheduled_start:
        raise StateError(
            "Cannot complete a schedule before its scheduled start",
            current_status=previous.value,
            action=action.value,
        )

    schedule.status = target.value
    schedule.updated_at = now
    if action == Action.ACCEPT:
        schedule.accepted_at = now
    elif action == Action.REJECT:
        schedule.rejected_at = now
        schedule.rejection_reason = reason
    elif action == Action.COMPLETE:
        schedule.completed_at = now
    elif action == Action.CANCEL:
        schedule.cancelled_at = now
        schedule.cancellation_reason = reason

    notify = frozenset({schedule.created_by, schedule.service_person_id} - {actor.id})
    return TransitionResult(schedule=schedule, action=action, previous_status=previous, notify=notify)


class RolePolicy:
    """Role checks for lifecycle actions. Decision only; callers enforce."""

    def _in_zone(self, actor: Actor, schedule: ActivitySchedule) -> bool:
        if actor.role == UserRole.admin.value or actor.zone_id is None:
            return True
        return actor.zone_id == schedule.zone_id

    def actor_can_perform(self, actor: Actor, action: Action, schedule: ActivitySchedule) -> bool:
        assigned = actor.id == schedule.service_person_id
        dispatcher = actor.can_dispatch and self._in_zone(actor, schedule)
        manager = actor.is_manager and self._in_zone(actor, schedule)

        if action in (Action.CREATE, Action.EDIT):
            return dispatcher
        if action in (Action.ACCEPT, Action.REJECT):
            return assigned
        if action == Action.COMPLETE:
            return assigned or manager
        if action == Action.CANCEL:
            if schedule.status == ScheduleStatus.ACCEPTED.value:
                return manager
            return dispatcher or actor.id == schedule.created_by
        return False
