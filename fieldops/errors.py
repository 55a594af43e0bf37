# fieldops/errors.py

"""Scheduling error taxonomy.

Each error carries enough context for the caller to build an actionable
message; ``to_detail()`` is what the HTTP layer puts in the response body.
"""

from typing import Optional, Sequence


class SchedulingError(Exception):
    """Base exception for the scheduling core."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"error": type(self).__name__, "message": self.message}


class ValidationError(SchedulingError):
    """Malformed or inverted time window, or a missing/invalid field."""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["field"] = self.field
        return detail


class ConflictError(SchedulingError):
    """Candidate window overlaps a busy interval or leaves the working calendar."""

    status_code = 409

    def __init__(self, message: str, conflicting_ids: Sequence[int] = ()):
        super().__init__(message)
        self.conflicting_ids = list(conflicting_ids)

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["conflicting_schedule_ids"] = self.conflicting_ids
        return detail


class StateError(SchedulingError):
    """Transition not permitted from the schedule's current status."""

    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None, action: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status
        self.action = action

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["current_status"] = self.current_status
        detail["action"] = self.action
        return detail


class NotFoundError(SchedulingError):
    """Unknown schedule, service person or zone id."""

    status_code = 404

    def __init__(self, kind: str, ident):
        super().__init__(f"{kind} {ident} not found")
        self.kind = kind
        self.ident = ident


class AuthorizationError(SchedulingError):
    """Actor lacks the role for the action."""

    status_code = 403

    def __init__(self, message: str, action: Optional[str] = None):
        super().__init__(message)
        self.action = action

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["action"] = self.action
        return detail
