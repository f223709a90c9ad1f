# app/api/routes/meetings.py
from datetime import datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Query, Response

from app.api.dependencies.identity import (
    get_assignment_manager,
    get_current_user,
    get_lifecycle_manager,
    require_organizer,
)
from app.api.errors import conflict_report_read, to_http_exception
from app.models.user import User
from app.schemas.meeting import (
    AssignmentRead,
    AvailabilityQuery,
    ConflictReportRead,
    MeetingCreate,
    MeetingRead,
    MeetingStatus,
    MeetingUpdate,
    ParticipantIds,
)
from app.schemas.user import UserRole
from app.services.meeting_lifecycle import MeetingLifecycleManager
from app.services.participant_assignment import ParticipantAssignmentManager
from app.services.scheduling_errors import SchedulingError

router = APIRouter(prefix="/meetings", tags=["Meetings"])

_CONFLICT_RESPONSE = {
    "description": "One or more participants already have an overlapping meeting.",
    "content": {
        "application/json": {
            "example": {
                "detail": {
                    "message": "Scheduling conflict detected. ...",
                    "kind": "SchedulingConflict",
                    "conflicts": {
                        "has_conflict": True,
                        "conflicting_meetings": [
                            {
                                "meeting_id": "0b8f6c1e-4f7a-4a43-9d55-2f8e4c1b7a10",
                                "title": "Design review",
                                "start_time": "2026-11-02T09:00:00Z",
                                "end_time": "2026-11-02T10:00:00Z",
                            }
                        ],
                        "conflicts_by_user": {},
                    },
                }
            }
        }
    },
}


@router.post(
    "",
    response_model=MeetingRead,
    status_code=HTTPStatus.CREATED,
    summary="Create a meeting",
    description=(
        "Schedule a new meeting organized by the caller.\n\n"
        "The organizer is always added to the participants. The request is "
        "rejected if any participant (organizer included) already has a "
        "non-cancelled meeting overlapping the requested time range.\n\n"
        "Meetings that merely touch (one ends exactly when the other starts) "
        "do not conflict."
    ),
    responses={
        400: {"description": "Invalid time range, past start, too long, or unknown/inactive participant."},
        403: {"description": "Caller does not have the ORGANIZER role."},
        409: _CONFLICT_RESPONSE,
    },
)
async def create_meeting(
    payload: MeetingCreate,
    current_user: User = Depends(require_organizer),
    manager: MeetingLifecycleManager = Depends(get_lifecycle_manager),
) -> MeetingRead:
    try:
        meeting = await manager.create(
            organizer_id=current_user.id,
            title=payload.title,
            participant_ids=payload.participant_ids,
            start_time=payload.start_time,
            end_time=payload.end_time,
            description=payload.description,
            location=payload.location,
            meeting_link=payload.meeting_link,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return MeetingRead.model_validate(meeting)


@router.get(
    "",
    response_model=list[MeetingRead],
    summary="List the caller's meetings (role-based)",
    description=(
        "- ORGANIZER: meetings the caller created, most recent first.\n"
        "- PARTICIPANT: meetings the caller is invited to, earliest first."
    ),
)
async def list_meetings(
    status: MeetingStatus | None = Query(default=None, description="Filter by status."),
    start_date: datetime | None = Query(
        default=None,
        description="Only meetings starting at or after this instant.",
    ),
    end_date: datetime | None = Query(
        default=None,
        description="Only meetings starting at or before this instant.",
    ),
    current_user: User = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_lifecycle_manager),
) -> list[MeetingRead]:
    if UserRole(current_user.role) is UserRole.ORGANIZER:
        meetings = await manager.list_organized(
            current_user.id, status=status, start_date=start_date, end_date=end_date
        )
    else:
        meetings = await manager.list_participating(
            current_user.id, status=status, start_date=start_date, end_date=end_date
        )
    return [MeetingRead.model_validate(m) for m in meetings]


@router.get(
    "/my-meetings",
    response_model=list[MeetingRead],
    summary="List meetings the caller attends",
    description=(
        "Meetings where the caller is on the participant roster, regardless of "
        "role and status, earliest first."
    ),
)
async def list_my_meetings(
    status: MeetingStatus | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_lifecycle_manager),
) -> list[MeetingRead]:
    meetings = await manager.list_participating(
        current_user.id, status=status, start_date=start_date, end_date=end_date
    )
    return [MeetingRead.model_validate(m) for m in meetings]


@router.get(
    "/schedule",
    response_model=list[MeetingRead],
    summary="Get the caller's schedule for a date range",
    description="Non-cancelled meetings of the caller starting within the window.",
)
async def get_schedule(
    start_date: datetime = Query(..., description="Window start (ISO 8601)."),
    end_date: datetime = Query(..., description="Window end (ISO 8601)."),
    current_user: User = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_lifecycle_manager),
) -> list[MeetingRead]:
    try:
        meetings = await manager.schedule(current_user.id, start_date, end_date)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    return [MeetingRead.model_validate(m) for m in meetings]


@router.post(
    "/availability",
    response_model=ConflictReportRead,
    summary="Check whether users are free for a time range",
    description=(
        "Read-only conflict check. Returns the meetings that would collide "
        "with `[start_time, end_time)` for any of `user_ids`, grouped per user."
    ),
)
async def check_availability(
    payload: AvailabilityQuery,
    current_user: User = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_lifecycle_manager),
) -> ConflictReportRead:
    try:
        report = await manager.check_availability(
            payload.user_ids,
            payload.start_time,
            payload.end_time,
            exclude_meeting_id=payload.exclude_meeting_id,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    return conflict_report_read(report)


@router.get(
    "/{meeting_id}",
    response_model=MeetingRead,
    summary="Get meeting details",
    description="Only participants of the meeting may view it.",
    responses={
        403: {"description": "Caller is not a participant."},
        404: {"description": "No meeting exists with the given ID."},
    },
)
async def get_meeting(
    meeting_id: str = Path(..., description="Meeting ID."),
    current_user: User = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_lifecycle_manager),
) -> MeetingRead:
    try:
        meeting = await manager.get_for_viewer(meeting_id, current_user.id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    return MeetingRead.model_validate(meeting)


@router.patch(
    "/{meeting_id}",
    response_model=MeetingRead,
    summary="Partially update a meeting",
    description=(
        "Only fields provided in the request body are modified. Changing the "
        "time range or the participants triggers a conflict check that "
        "ignores the meeting itself."
    ),
    responses={
        400: {"description": "Invalid time range or unknown/inactive participant."},
        403: {"description": "Caller is not the organizer, or the meeting is completed."},
        404: {"description": "No meeting exists with the given ID."},
        409: _CONFLICT_RESPONSE,
    },
)
async def update_meeting(
    payload: MeetingUpdate,
    meeting_id: str = Path(..., description="Meeting ID."),
    current_user: User = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_lifecycle_manager),
) -> MeetingRead:
    try:
        meeting = await manager.update(
            meeting_id,
            current_user.id,
            payload.model_dump(exclude_unset=True),
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    return MeetingRead.model_validate(meeting)


@router.post(
    "/{meeting_id}/cancel",
    response_model=MeetingRead,
    summary="Cancel a meeting",
    description="Marks the meeting CANCELLED; it no longer blocks anyone's schedule.",
)
async def cancel_meeting(
    meeting_id: str = Path(..., description="Meeting ID."),
    current_user: User = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_lifecycle_manager),
) -> MeetingRead:
    try:
        meeting = await manager.cancel(meeting_id, current_user.id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    return MeetingRead.model_validate(meeting)


@router.delete(
    "/{meeting_id}",
    status_code=HTTPStatus.NO_CONTENT,
    summary="Delete a meeting permanently",
    responses={
        403: {"description": "Caller is not the organizer."},
        404: {"description": "No meeting exists with the given ID."},
    },
)
async def delete_meeting(
    meeting_id: str = Path(..., description="Meeting ID."),
    current_user: User = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_lifecycle_manager),
) -> Response:
    try:
        await manager.delete(meeting_id, current_user.id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=HTTPStatus.NO_CONTENT)


@router.post(
    "/{meeting_id}/assign",
    response_model=AssignmentRead,
    summary="Assign participants to a meeting",
    description=(
        "Adds the given users to the meeting. Only users not already on the "
        "roster are conflict-checked against the meeting's time range."
    ),
    responses={
        400: {"description": "Unknown/inactive participant, or everyone is already assigned."},
        403: {"description": "Caller is not the organizer, or the meeting is cancelled/completed."},
        404: {"description": "No meeting exists with the given ID."},
        409: _CONFLICT_RESPONSE,
    },
)
async def assign_participants(
    payload: ParticipantIds,
    meeting_id: str = Path(..., description="Meeting ID."),
    current_user: User = Depends(get_current_user),
    manager: ParticipantAssignmentManager = Depends(get_assignment_manager),
) -> AssignmentRead:
    try:
        result = await manager.assign(meeting_id, payload.participant_ids, current_user.id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return AssignmentRead(
        meeting=MeetingRead.model_validate(result.meeting),
        assigned_count=len(result.added_ids),
        assigned_ids=result.added_ids,
    )


@router.post(
    "/{meeting_id}/remove",
    response_model=MeetingRead,
    summary="Remove participants from a meeting",
    description=(
        "The organizer can never be removed and at least one participant "
        "must remain."
    ),
    responses={
        403: {"description": "Caller is not the organizer, or the removal is not allowed."},
        404: {"description": "No meeting exists with the given ID."},
    },
)
async def remove_participants(
    payload: ParticipantIds,
    meeting_id: str = Path(..., description="Meeting ID."),
    current_user: User = Depends(get_current_user),
    manager: ParticipantAssignmentManager = Depends(get_assignment_manager),
) -> MeetingRead:
    try:
        meeting = await manager.remove(meeting_id, payload.participant_ids, current_user.id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    return MeetingRead.model_validate(meeting)
