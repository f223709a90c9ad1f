# app/api/errors.py
from http import HTTPStatus

from fastapi import HTTPException

from app.schemas.meeting import ConflictReportRead, ConflictWindowRead
from app.services.conflict_finder import ConflictReport
from app.services.scheduling_errors import FailureKind, SchedulingConflict, SchedulingError

STATUS_BY_KIND: dict[FailureKind, HTTPStatus] = {
    FailureKind.INVALID_TIME_RANGE: HTTPStatus.BAD_REQUEST,
    FailureKind.PAST_SCHEDULE: HTTPStatus.BAD_REQUEST,
    FailureKind.DURATION_EXCEEDED: HTTPStatus.BAD_REQUEST,
    FailureKind.INVALID_PARTICIPANT: HTTPStatus.BAD_REQUEST,
    FailureKind.NO_OP: HTTPStatus.BAD_REQUEST,
    FailureKind.FORBIDDEN: HTTPStatus.FORBIDDEN,
    FailureKind.IMMUTABLE_STATE: HTTPStatus.FORBIDDEN,
    FailureKind.FORBIDDEN_REMOVAL: HTTPStatus.FORBIDDEN,
    FailureKind.INVALID_STATE: HTTPStatus.FORBIDDEN,
    FailureKind.NOT_FOUND: HTTPStatus.NOT_FOUND,
    FailureKind.SCHEDULING_CONFLICT: HTTPStatus.CONFLICT,
}


def conflict_report_read(report: ConflictReport) -> ConflictReportRead:
    """
    Serialize a ConflictReport for API responses.
    """
    return ConflictReportRead(
        has_conflict=report.has_conflict,
        conflicting_meetings=[
            ConflictWindowRead(**vars(window)) for window in report.windows
        ],
        conflicts_by_user={
            user_id: [ConflictWindowRead(**vars(window)) for window in windows]
            for user_id, windows in report.by_user.items()
        },
    )


def to_http_exception(exc: SchedulingError) -> HTTPException:
    """
    Translate a scheduling failure into an HTTPException.

    Conflicts carry the colliding meetings and per-user windows so clients
    can show who is busy and when.
    """
    status_code = STATUS_BY_KIND.get(exc.kind, HTTPStatus.BAD_REQUEST)

    if isinstance(exc, SchedulingConflict):
        detail = {
            "message": exc.message,
            "kind": exc.kind.value,
            "conflicts": conflict_report_read(exc.report).model_dump(mode="json"),
        }
        return HTTPException(status_code=status_code, detail=detail)

    return HTTPException(status_code=status_code, detail=exc.message)
