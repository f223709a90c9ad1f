# app/services/meeting_lifecycle.py
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.db.types import ensure_utc
from app.models.meeting import Meeting
from app.repositories.meeting_repository import MeetingRepository
from app.repositories.user_directory import UserDirectory
from app.schemas.meeting import MeetingStatus
from app.services.authorization import is_organizer_of, is_participant_of, is_read_only
from app.services.conflict_finder import ConflictFinder, ConflictReport
from app.services.meeting_state import MeetingChanges, MeetingState
from app.services.scheduling_errors import (
    DurationExceeded,
    Forbidden,
    ImmutableState,
    InvalidParticipant,
    InvalidTimeRange,
    NotFound,
    PastSchedule,
    SchedulingConflict,
)
from app.services.scheduling_lock import SchedulingLock, meeting_key, user_key
from app.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def effective_participants(organizer_id: str, participant_ids: Iterable[str]) -> tuple[str, ...]:
    """
    Organizer first, then the requested participants, without duplicates.
    """
    return tuple(dict.fromkeys([organizer_id, *participant_ids]))


class MeetingLifecycleManager:
    """
    Creates, updates, cancels and deletes meetings without ever
    double-booking a participant.

    Rules
    -----
    1) end_time must be strictly after start_time.
    2) New meetings cannot start in the past (configurable).
    3) Meetings cannot run longer than MAX_MEETING_DURATION_HOURS.
    4) Every participant must be an existing, active user.
    5) The organizer is always a participant.
    6) No participant may have another non-cancelled meeting overlapping
       the meeting's time range.
    7) Only the organizer may mutate a meeting; COMPLETED meetings are read-only.

    The conflict check and the write happen under one SchedulingLock hold
    and are committed together. `locks` must be the registry shared by every
    manager in the process (see create_app), or writers stop excluding each other.
    """

    def __init__(
        self,
        session: AsyncSession,
        locks: SchedulingLock,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.session = session
        self.locks = locks
        self.settings = settings or get_settings()
        self.clock = clock or _utcnow
        self.meetings = MeetingRepository(session)
        self.users = UserDirectory(session)
        self.conflicts = ConflictFinder(self.meetings)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(
        self,
        organizer_id: str,
        title: str,
        participant_ids: Iterable[str],
        start_time: datetime,
        end_time: datetime,
        description: str | None = None,
        location: str | None = None,
        meeting_link: str | None = None,
    ) -> Meeting:
        start = ensure_utc(start_time)
        end = ensure_utc(end_time)
        participants = effective_participants(organizer_id, participant_ids)

        async with unit_of_work(self.session, "create meeting"):
            self._check_time_range(start, end)
            if not self.settings.ALLOW_PAST_SCHEDULING and start < self.clock():
                raise PastSchedule()
            self._check_duration(start, end)

            async with self.locks.hold(self.session, map(user_key, participants)):
                await self._require_active(participants)

                report = await self.conflicts.find_conflicts(participants, start, end)
                if report:
                    raise SchedulingConflict(report)

                meeting = await self.meetings.insert(
                    MeetingState(
                        title=title,
                        description=description,
                        location=location,
                        meeting_link=meeting_link,
                        organizer_id=organizer_id,
                        participant_ids=participants,
                        start_time=start,
                        end_time=end,
                        status=MeetingStatus.SCHEDULED,
                    )
                )
                await self.session.commit()

        logger.info(
            "Meeting %s created by %s for %d participant(s) [%s, %s)",
            meeting.id,
            organizer_id,
            len(participants),
            start.isoformat(),
            end.isoformat(),
        )
        return meeting

    async def update(
        self,
        meeting_id: str,
        requester_id: str,
        changes: MeetingChanges | Mapping[str, Any],
    ) -> Meeting:
        if not isinstance(changes, MeetingChanges):
            changes = MeetingChanges.from_mapping(changes)

        async with unit_of_work(self.session, "update meeting"):
            async with self.locks.hold(self.session, [meeting_key(meeting_id)]):
                meeting = await self._load_owned(meeting_id, requester_id, "update")
                if is_read_only(meeting.status):
                    raise ImmutableState("Cannot update completed meetings")

                current = MeetingState.from_meeting(meeting)
                changes = await self._normalize(changes, requester_id)
                new_state = current.apply(changes)

                if changes.touches_schedule and new_state.start_time >= new_state.end_time:
                    raise InvalidTimeRange()

                revived = current.is_cancelled and not new_state.is_cancelled
                needs_check = (changes.touches_schedule or revived) and not new_state.is_cancelled

                if not needs_check:
                    updated = await self.meetings.update(meeting, new_state)
                    await self.session.commit()
                else:
                    keys = map(user_key, new_state.participant_ids)
                    async with self.locks.hold(self.session, keys):
                        report = await self.conflicts.find_conflicts(
                            new_state.participant_ids,
                            new_state.start_time,
                            new_state.end_time,
                            exclude_meeting_id=meeting_id,
                        )
                        if report:
                            raise SchedulingConflict(report)
                        updated = await self.meetings.update(meeting, new_state)
                        await self.session.commit()

        logger.info(
            "Meeting %s updated by %s (fields=%s)",
            meeting_id,
            requester_id,
            sorted(changes.as_dict()),
        )
        return updated

    async def cancel(self, meeting_id: str, requester_id: str) -> Meeting:
        """
        Soft delete: mark the meeting CANCELLED so it stops blocking schedules.
        """
        meeting = await self.update(
            meeting_id,
            requester_id,
            MeetingChanges(status=MeetingStatus.CANCELLED),
        )
        logger.info("Meeting %s cancelled by %s", meeting_id, requester_id)
        return meeting

    async def delete(self, meeting_id: str, requester_id: str) -> None:
        async with unit_of_work(self.session, "delete meeting"):
            async with self.locks.hold(self.session, [meeting_key(meeting_id)]):
                await self._load_owned(meeting_id, requester_id, "delete")
                await self.meetings.delete(meeting_id)
                await self.session.commit()

        logger.info("Meeting %s deleted by %s", meeting_id, requester_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, meeting_id: str) -> Meeting:
        meeting = await self.meetings.get(meeting_id, fresh=True)
        if meeting is None:
            raise NotFound(meeting_id)
        return meeting

    async def get_for_viewer(self, meeting_id: str, viewer_id: str) -> Meeting:
        """
        Fetch a meeting on behalf of `viewer_id`, who must attend it.
        """
        meeting = await self.get(meeting_id)
        if not is_participant_of(meeting, viewer_id):
            raise Forbidden("Access denied. You are not a participant in this meeting.")
        return meeting

    async def list_organized(
        self,
        organizer_id: str,
        status: MeetingStatus | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Meeting]:
        return await self.meetings.list_by_organizer(
            organizer_id,
            status=status,
            start_date=ensure_utc(start_date) if start_date else None,
            end_date=ensure_utc(end_date) if end_date else None,
        )

    async def list_participating(
        self,
        user_id: str,
        status: MeetingStatus | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Meeting]:
        return await self.meetings.list_by_participant(
            user_id,
            status=status,
            start_date=ensure_utc(start_date) if start_date else None,
            end_date=ensure_utc(end_date) if end_date else None,
        )

    async def schedule(self, user_id: str, start: datetime, end: datetime) -> list[Meeting]:
        start, end = ensure_utc(start), ensure_utc(end)
        self._check_time_range(start, end)
        return await self.meetings.list_schedule(user_id, start, end)

    async def check_availability(
        self,
        user_ids: Iterable[str],
        start: datetime,
        end: datetime,
        exclude_meeting_id: str | None = None,
    ) -> ConflictReport:
        """
        Read-only check: which of `user_ids` are busy during [start, end)?
        """
        start, end = ensure_utc(start), ensure_utc(end)
        self._check_time_range(start, end)
        return await self.conflicts.find_conflicts(
            user_ids, start, end, exclude_meeting_id=exclude_meeting_id
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_time_range(start: datetime, end: datetime) -> None:
        if start >= end:
            raise InvalidTimeRange()

    def _check_duration(self, start: datetime, end: datetime) -> None:
        max_hours = self.settings.MAX_MEETING_DURATION_HOURS
        if end - start > timedelta(hours=max_hours):
            raise DurationExceeded(max_hours)

    async def _require_active(self, user_ids: Iterable[str]) -> None:
        missing = await self.users.missing_or_inactive(list(user_ids))
        if missing:
            raise InvalidParticipant(missing)

    async def _normalize(self, changes: MeetingChanges, requester_id: str) -> MeetingChanges:
        values: dict[str, Any] = {}
        for name in ("start_time", "end_time"):
            if changes.is_set(name):
                values[name] = ensure_utc(getattr(changes, name))
        if changes.is_set("status"):
            values["status"] = MeetingStatus(changes.status)
        if changes.is_set("participant_ids"):
            requested = list(dict.fromkeys(changes.participant_ids))
            await self._require_active(requested)
            values["participant_ids"] = effective_participants(requester_id, requested)
        return changes.replace(**values) if values else changes

    async def _load_owned(self, meeting_id: str, requester_id: str, action: str) -> Meeting:
        meeting = await self.meetings.get(meeting_id, fresh=True)
        if meeting is None:
            raise NotFound(meeting_id)
        if not is_organizer_of(meeting, requester_id):
            raise Forbidden(f"Only the meeting organizer can {action} this meeting")
        return meeting
