# app/services/authorization.py
from __future__ import annotations

from app.models.meeting import Meeting
from app.schemas.meeting import MeetingStatus
from app.schemas.user import UserRole


def can_organize_meetings(role: UserRole | str) -> bool:
    """Only ORGANIZER users may create meetings."""
    return UserRole(role) is UserRole.ORGANIZER


def is_organizer_of(meeting: Meeting, user_id: str) -> bool:
    return meeting.organizer_id == user_id


def is_participant_of(meeting: Meeting, user_id: str) -> bool:
    return user_id in meeting.participant_ids


def is_read_only(status: MeetingStatus | str) -> bool:
    """COMPLETED meetings can be read but never changed."""
    return MeetingStatus(status) is MeetingStatus.COMPLETED


def accepts_participants(status: MeetingStatus | str) -> bool:
    """Participants can only join meetings that are neither cancelled nor completed."""
    return MeetingStatus(status) not in (MeetingStatus.CANCELLED, MeetingStatus.COMPLETED)
