# app/services/participant_assignment.py
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.meeting import Meeting
from app.repositories.meeting_repository import MeetingRepository
from app.repositories.user_directory import UserDirectory
from app.services.authorization import accepts_participants, is_organizer_of, is_read_only
from app.services.conflict_finder import ConflictFinder
from app.services.meeting_state import MeetingState
from app.services.scheduling_errors import (
    Forbidden,
    ForbiddenRemoval,
    ImmutableState,
    InvalidParticipant,
    InvalidState,
    NoOp,
    NotFound,
    SchedulingConflict,
)
from app.services.scheduling_lock import SchedulingLock, meeting_key, user_key
from app.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


@dataclass
class AssignmentResult:
    meeting: Meeting
    added_ids: list[str]


class ParticipantAssignmentManager:
    """
    Adds participants to, and removes them from, existing meetings.

    Only the incoming participants are conflict-checked on assignment:
    everybody already on the roster was checked when they were added.
    Takes the same shared `locks` registry as MeetingLifecycleManager.
    """

    def __init__(self, session: AsyncSession, locks: SchedulingLock) -> None:
        self.session = session
        self.locks = locks
        self.meetings = MeetingRepository(session)
        self.users = UserDirectory(session)
        self.conflicts = ConflictFinder(self.meetings)

    async def assign(
        self,
        meeting_id: str,
        participant_ids: Iterable[str],
        requester_id: str,
    ) -> AssignmentResult:
        requested = list(dict.fromkeys(participant_ids))

        async with unit_of_work(self.session, "assign participants"):
            async with self.locks.hold(self.session, [meeting_key(meeting_id)]):
                meeting = await self._load_owned(meeting_id, requester_id, "assign participants")
                if not accepts_participants(meeting.status):
                    raise ImmutableState(
                        f"Cannot assign participants to {meeting.status.lower()} meetings"
                    )

                missing = await self.users.missing_or_inactive(requested)
                if missing:
                    raise InvalidParticipant(missing)

                current = MeetingState.from_meeting(meeting)
                on_roster = set(current.participant_ids)
                to_add = [user_id for user_id in requested if user_id not in on_roster]
                if not to_add:
                    raise NoOp()

                async with self.locks.hold(self.session, map(user_key, to_add)):
                    report = await self.conflicts.find_conflicts(
                        to_add,
                        current.start_time,
                        current.end_time,
                        exclude_meeting_id=meeting_id,
                    )
                    if report:
                        raise SchedulingConflict(
                            report,
                            "Cannot assign participants due to scheduling conflicts. "
                            + report.describe(),
                        )

                    updated = await self.meetings.update(
                        meeting,
                        current.with_participants(current.participant_ids + tuple(to_add)),
                    )
                    await self.session.commit()

        logger.info(
            "Assigned %d participant(s) to meeting %s: %s",
            len(to_add),
            meeting_id,
            to_add,
        )
        return AssignmentResult(meeting=updated, added_ids=to_add)

    async def remove(
        self,
        meeting_id: str,
        participant_ids: Iterable[str],
        requester_id: str,
    ) -> Meeting:
        to_remove = set(participant_ids)

        async with unit_of_work(self.session, "remove participants"):
            async with self.locks.hold(self.session, [meeting_key(meeting_id)]):
                meeting = await self._load_owned(meeting_id, requester_id, "remove participants")

                if requester_id in to_remove or meeting.organizer_id in to_remove:
                    raise ForbiddenRemoval()
                if is_read_only(meeting.status):
                    raise ImmutableState("Cannot remove participants from completed meetings")

                current = MeetingState.from_meeting(meeting)
                remaining = tuple(
                    user_id for user_id in current.participant_ids if user_id not in to_remove
                )
                if not remaining:
                    raise InvalidState()

                updated = await self.meetings.update(meeting, current.with_participants(remaining))
                await self.session.commit()

        logger.info(
            "Removed %d participant(s) from meeting %s",
            len(current.participant_ids) - len(remaining),
            meeting_id,
        )
        return updated

    async def _load_owned(self, meeting_id: str, requester_id: str, action: str) -> Meeting:
        meeting = await self.meetings.get(meeting_id, fresh=True)
        if meeting is None:
            raise NotFound(meeting_id)
        if not is_organizer_of(meeting, requester_id):
            raise Forbidden(f"Only the meeting organizer can {action}")
        return meeting
