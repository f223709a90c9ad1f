# app/schemas/meeting.py

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.user import UserSummary


class MeetingStatus(str, Enum):
    """
    Lifecycle status of a meeting.

    CANCELLED meetings never take part in conflict checks; COMPLETED
    meetings are read-only.
    """

    SCHEDULED = "SCHEDULED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


def _dedupe(ids: list[str]) -> list[str]:
    return list(dict.fromkeys(ids))


# --------------------------------------------------------------------------
# Create schema (POST /meetings)
# --------------------------------------------------------------------------

class MeetingCreate(BaseModel):
    """
    Schema for creating a new meeting.

    The organizer is taken from the caller identity and is always added
    to the participants, even when omitted here.
    """
    title: str = Field(..., min_length=3, max_length=200, examples=["Sprint planning"])
    description: str | None = Field(default=None, max_length=2000)
    participant_ids: list[str] = Field(
        ...,
        min_length=1,
        description="Ids of the users to invite.",
    )
    start_time: datetime = Field(..., examples=["2026-11-02T09:00:00Z"])
    end_time: datetime = Field(..., examples=["2026-11-02T10:00:00Z"])
    location: str | None = Field(default=None, max_length=200)
    meeting_link: str | None = Field(
        default=None,
        max_length=2048,
        pattern=r"^https?://",
        examples=["https://meet.example.com/abc-defg-hij"],
    )

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Title must not be blank")
        return stripped

    @field_validator("participant_ids")
    @classmethod
    def _dedupe_participants(cls, value: list[str]) -> list[str]:
        return _dedupe(value)


# --------------------------------------------------------------------------
# Update schema (PATCH /meetings/{id})
# --------------------------------------------------------------------------

class MeetingUpdate(BaseModel):
    """
    All fields are optional; only provided fields are updated.

    Changing start_time, end_time or participant_ids triggers a fresh
    conflict check.
    """
    title: str | None = Field(default=None, min_length=3, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    participant_ids: list[str] | None = Field(default=None, min_length=1)
    start_time: datetime | None = None
    end_time: datetime | None = None
    location: str | None = Field(default=None, max_length=200)
    meeting_link: str | None = Field(default=None, max_length=2048, pattern=r"^https?://")
    status: MeetingStatus | None = None

    @field_validator("participant_ids")
    @classmethod
    def _dedupe_participants(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return _dedupe(value)


class ParticipantIds(BaseModel):
    """
    Body of the assign/remove participant endpoints.
    """
    participant_ids: list[str] = Field(..., min_length=1)

    @field_validator("participant_ids")
    @classmethod
    def _dedupe_participants(cls, value: list[str]) -> list[str]:
        return _dedupe(value)


class AvailabilityQuery(BaseModel):
    """
    Body of the availability check.
    """
    user_ids: list[str] = Field(..., min_length=1)
    start_time: datetime
    end_time: datetime
    exclude_meeting_id: str | None = None

    @model_validator(mode="after")
    def _check_range(self) -> "AvailabilityQuery":
        if self.start_time >= self.end_time:
            raise ValueError("end_time must be after start_time")
        return self


# --------------------------------------------------------------------------
# Read schemas
# --------------------------------------------------------------------------

class MeetingRead(BaseModel):
    """
    Response schema for a meeting with organizer and participants resolved.
    """

    id: str
    title: str
    description: str | None = None
    location: str | None = None
    meeting_link: str | None = None
    organizer: UserSummary
    participants: list[UserSummary]
    start_time: datetime
    end_time: datetime
    status: MeetingStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class ConflictWindowRead(BaseModel):
    """
    One colliding meeting as seen by a single user.
    """

    meeting_id: str
    title: str
    start_time: datetime
    end_time: datetime


class ConflictReportRead(BaseModel):
    """
    Outcome of a conflict query.
    """

    has_conflict: bool
    conflicting_meetings: list[ConflictWindowRead] = Field(default_factory=list)
    conflicts_by_user: dict[str, list[ConflictWindowRead]] = Field(default_factory=dict)


class AssignmentRead(BaseModel):
    """
    Response of POST /meetings/{id}/assign.
    """

    meeting: MeetingRead
    assigned_count: int
    assigned_ids: list[str]
