# app/api/dependencies/identity.py
from http import HTTPStatus

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.session import get_db
from app.models.user import User
from app.repositories.user_directory import UserDirectory
from app.services.authorization import can_organize_meetings
from app.services.meeting_lifecycle import MeetingLifecycleManager
from app.services.participant_assignment import ParticipantAssignmentManager
from app.services.scheduling_lock import SchedulingLock


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the caller from the identity header.

    Rules
    -----
    - The header (X-User-Id by default) is set by the upstream gateway
      once the caller's token has been verified.
    - Missing header, unknown user or inactive user -> 401.
    """
    settings = get_settings()
    user_id = request.headers.get(settings.IDENTITY_HEADER)

    if not user_id:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Authentication required.",
        )

    user = await UserDirectory(db).get_active(user_id)
    if user is None:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Invalid or inactive user.",
        )
    return user


async def require_organizer(current_user: User = Depends(get_current_user)) -> User:
    """
    Only users with the ORGANIZER role may create meetings.
    """
    if not can_organize_meetings(current_user.role):
        raise HTTPException(
            status_code=HTTPStatus.FORBIDDEN,
            detail="Access denied. Organizer role required.",
        )
    return current_user


def get_scheduling_lock(request: Request) -> SchedulingLock:
    """
    Process-wide lock registry, created once per application in create_app().
    """
    return request.app.state.scheduling_lock


def get_lifecycle_manager(
    db: AsyncSession = Depends(get_db),
    locks: SchedulingLock = Depends(get_scheduling_lock),
) -> MeetingLifecycleManager:
    return MeetingLifecycleManager(db, settings=get_settings(), locks=locks)


def get_assignment_manager(
    db: AsyncSession = Depends(get_db),
    locks: SchedulingLock = Depends(get_scheduling_lock),
) -> ParticipantAssignmentManager:
    return ParticipantAssignmentManager(db, locks=locks)
