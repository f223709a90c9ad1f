# app/services/conflict_finder.py
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from app.models.meeting import Meeting
from app.repositories.meeting_repository import MeetingRepository
from app.services.overlap import overlaps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictWindow:
    """
    A colliding meeting, reduced to what is needed to report it.
    """

    meeting_id: str
    title: str
    start_time: datetime
    end_time: datetime

    @classmethod
    def from_meeting(cls, meeting: Meeting) -> "ConflictWindow":
        return cls(
            meeting_id=meeting.id,
            title=meeting.title,
            start_time=meeting.start_time,
            end_time=meeting.end_time,
        )

    def describe(self) -> str:
        return (
            f'"{self.title}" ({self.start_time.isoformat()} - '
            f"{self.end_time.isoformat()})"
        )


@dataclass
class ConflictReport:
    """
    Result of a conflict query.

    `meetings` lists every colliding meeting once, ordered by start time.
    `by_user` maps each queried user id that collides to the windows it
    collides with. An empty report is falsy.
    """

    meetings: list[Meeting] = field(default_factory=list)
    by_user: dict[str, list[ConflictWindow]] = field(default_factory=dict)

    @property
    def has_conflict(self) -> bool:
        return bool(self.meetings)

    @property
    def conflicting_user_ids(self) -> list[str]:
        return list(self.by_user)

    @property
    def windows(self) -> list[ConflictWindow]:
        return [ConflictWindow.from_meeting(m) for m in self.meetings]

    def __bool__(self) -> bool:
        return self.has_conflict

    def describe(self) -> str:
        if not self.meetings:
            return "No conflicts."
        parts = [
            f"{user_id}: " + ", ".join(w.describe() for w in windows)
            for user_id, windows in self.by_user.items()
        ]
        return "Conflicting meetings: " + "; ".join(parts)


class ConflictFinder:
    """
    Finds non-cancelled meetings that would double-book any of a set of users.

    The heavy lifting happens in SQL (participant + time-range indexes);
    the overlap predicate is re-applied here so the half-open rule does not
    depend on how a backend compares timestamps.
    """

    def __init__(self, repository: MeetingRepository) -> None:
        self.repository = repository

    async def find_conflicts(
        self,
        user_ids: Iterable[str],
        start: datetime,
        end: datetime,
        exclude_meeting_id: str | None = None,
    ) -> ConflictReport:
        wanted = list(dict.fromkeys(user_ids))
        if not wanted:
            return ConflictReport()

        candidates = await self.repository.find_overlapping(
            user_ids=wanted,
            start=start,
            end=end,
            exclude_id=exclude_meeting_id,
        )

        wanted_set = set(wanted)
        report = ConflictReport()
        for meeting in candidates:
            if not overlaps(meeting.start_time, meeting.end_time, start, end):
                continue
            report.meetings.append(meeting)
            window = ConflictWindow.from_meeting(meeting)
            for participant_id in meeting.participant_ids:
                if participant_id in wanted_set:
                    report.by_user.setdefault(participant_id, []).append(window)

        if report:
            logger.debug(
                "Conflicts for users=%s in [%s, %s): meetings=%s",
                report.conflicting_user_ids,
                start.isoformat(),
                end.isoformat(),
                [m.id for m in report.meetings],
            )
        return report
