# app/services/meeting_state.py
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Any, Mapping

from app.db.types import ensure_utc
from app.models.meeting import Meeting
from app.schemas.meeting import MeetingStatus


class _Unset:
    """Marker for fields absent from a change set."""

    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()

_REQUIRED_FIELDS = frozenset(
    {"title", "status", "start_time", "end_time", "participant_ids"}
)


@dataclass(frozen=True)
class MeetingState:
    """
    Immutable snapshot of the mutable part of a meeting.

    Updates are computed as `state.apply(changes)` and then written once,
    so a rejected change never touches the stored row.
    """

    title: str
    description: str | None
    location: str | None
    meeting_link: str | None
    organizer_id: str
    participant_ids: tuple[str, ...]
    start_time: datetime
    end_time: datetime
    status: MeetingStatus

    @classmethod
    def from_meeting(cls, meeting: Meeting) -> "MeetingState":
        return cls(
            title=meeting.title,
            description=meeting.description,
            location=meeting.location,
            meeting_link=meeting.meeting_link,
            organizer_id=meeting.organizer_id,
            participant_ids=tuple(meeting.participant_ids),
            start_time=meeting.start_time,
            end_time=meeting.end_time,
            status=MeetingStatus(meeting.status),
        )

    @property
    def is_cancelled(self) -> bool:
        return self.status is MeetingStatus.CANCELLED

    def apply(self, changes: "MeetingChanges") -> "MeetingState":
        return replace(self, **changes.as_dict())

    def with_participants(self, participant_ids: tuple[str, ...]) -> "MeetingState":
        return replace(self, participant_ids=participant_ids)


@dataclass(frozen=True)
class MeetingChanges:
    """
    Partial update to a meeting. Fields left as UNSET are not changed.

    `participant_ids` holds the requested roster before the organizer is
    folded in; the lifecycle manager normalizes it before applying.
    """

    title: str | _Unset = UNSET
    description: str | None | _Unset = UNSET
    location: str | None | _Unset = UNSET
    meeting_link: str | None | _Unset = UNSET
    status: MeetingStatus | _Unset = UNSET
    start_time: datetime | _Unset = UNSET
    end_time: datetime | _Unset = UNSET
    participant_ids: tuple[str, ...] | _Unset = UNSET

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MeetingChanges":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise TypeError(f"Unknown meeting fields: {sorted(unknown)}")
        # Required columns cannot be cleared; null there means "leave as is".
        values = {
            key: value
            for key, value in data.items()
            if value is not None or key not in _REQUIRED_FIELDS
        }
        if values.get("status") is not None:
            values["status"] = MeetingStatus(values["status"])
        for key in ("start_time", "end_time"):
            if values.get(key) is not None:
                values[key] = ensure_utc(values[key])
        if values.get("participant_ids") is not None:
            values["participant_ids"] = tuple(dict.fromkeys(values["participant_ids"]))
        return cls(**values)

    def as_dict(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }

    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not UNSET

    @property
    def touches_schedule(self) -> bool:
        """True when time range or roster changes, which needs a conflict check."""
        return (
            self.is_set("start_time")
            or self.is_set("end_time")
            or self.is_set("participant_ids")
        )

    def replace(self, **values: Any) -> "MeetingChanges":
        return replace(self, **values)
