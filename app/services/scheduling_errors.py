# app/services/scheduling_errors.py
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from app.services.conflict_finder import ConflictReport


class FailureKind(str, Enum):
    """
    Logical failure kinds raised by the scheduling engine.

    They are transport-agnostic; app/api/errors.py maps them to HTTP.
    """

    INVALID_TIME_RANGE = "InvalidTimeRange"
    PAST_SCHEDULE = "PastSchedule"
    DURATION_EXCEEDED = "DurationExceeded"
    INVALID_PARTICIPANT = "InvalidParticipant"
    SCHEDULING_CONFLICT = "SchedulingConflict"
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"
    IMMUTABLE_STATE = "ImmutableState"
    FORBIDDEN_REMOVAL = "ForbiddenRemoval"
    INVALID_STATE = "InvalidState"
    NO_OP = "NoOp"


class SchedulingError(Exception):
    """
    Base class for every rejection raised by the scheduling engine.

    Always raised before anything is written, so callers never observe
    a partially applied operation.
    """

    kind: FailureKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidTimeRange(SchedulingError):
    kind = FailureKind.INVALID_TIME_RANGE

    def __init__(self, message: str = "End time must be after start time") -> None:
        super().__init__(message)


class PastSchedule(SchedulingError):
    kind = FailureKind.PAST_SCHEDULE

    def __init__(self, message: str = "Cannot create meetings in the past") -> None:
        super().__init__(message)


class DurationExceeded(SchedulingError):
    kind = FailureKind.DURATION_EXCEEDED

    def __init__(self, max_hours: float) -> None:
        super().__init__(f"Meeting duration cannot exceed {max_hours:g} hours")
        self.max_hours = max_hours


class InvalidParticipant(SchedulingError):
    """
    One or more referenced users do not exist or are inactive.
    """

    kind = FailureKind.INVALID_PARTICIPANT

    def __init__(self, user_ids: Iterable[str]) -> None:
        self.user_ids = list(user_ids)
        super().__init__(
            "One or more participants not found or inactive: "
            + ", ".join(self.user_ids)
        )


class SchedulingConflict(SchedulingError):
    """
    At least one effective participant already has an overlapping,
    non-cancelled meeting. The report tells which users and meetings collide.
    """

    kind = FailureKind.SCHEDULING_CONFLICT

    def __init__(self, report: "ConflictReport", message: str | None = None) -> None:
        self.report = report
        super().__init__(message or f"Scheduling conflict detected. {report.describe()}")


class NotFound(SchedulingError):
    kind = FailureKind.NOT_FOUND

    def __init__(self, meeting_id: str) -> None:
        super().__init__(f"Meeting {meeting_id} not found")
        self.meeting_id = meeting_id


class Forbidden(SchedulingError):
    kind = FailureKind.FORBIDDEN


class ImmutableState(SchedulingError):
    kind = FailureKind.IMMUTABLE_STATE


class ForbiddenRemoval(SchedulingError):
    kind = FailureKind.FORBIDDEN_REMOVAL

    def __init__(self, message: str = "Cannot remove the organizer from the meeting") -> None:
        super().__init__(message)


class InvalidState(SchedulingError):
    kind = FailureKind.INVALID_STATE

    def __init__(self, message: str = "Meeting must have at least one participant") -> None:
        super().__init__(message)


class NoOp(SchedulingError):
    kind = FailureKind.NO_OP

    def __init__(
        self,
        message: str = "All specified participants are already assigned to this meeting",
    ) -> None:
        super().__init__(message)
