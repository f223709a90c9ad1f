# app/repositories/meeting_repository.py
from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import Select, delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.meeting import Meeting, meeting_participants
from app.models.user import User
from app.schemas.meeting import MeetingStatus
from app.services.meeting_state import MeetingState


def _with_people(stmt: Select) -> Select:
    return stmt.options(
        selectinload(Meeting.organizer),
        selectinload(Meeting.participants),
    )


def _attended_by(user_ids: Sequence[str]):
    return Meeting.id.in_(
        select(meeting_participants.c.meeting_id).where(
            meeting_participants.c.user_id.in_(list(user_ids))
        )
    )


class MeetingRepository:
    """
    Persistence collaborator for meetings.

    Every meeting it returns has organizer and participants loaded, since
    the ORM relationships refuse lazy loads under asyncio.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_overlapping(
        self,
        user_ids: Sequence[str],
        start: datetime,
        end: datetime,
        exclude_id: str | None = None,
    ) -> list[Meeting]:
        """
        Non-cancelled meetings attended by any of `user_ids` that overlap
        [start, end). Served by the (user_id, meeting_id) roster index and
        the (start_time, end_time) meeting index.
        """
        conditions = [
            _attended_by(user_ids),
            Meeting.start_time < end,
            Meeting.end_time > start,
            Meeting.status != MeetingStatus.CANCELLED.value,
        ]
        if exclude_id is not None:
            conditions.append(Meeting.id != exclude_id)

        stmt = _with_people(
            select(Meeting).where(*conditions).order_by(Meeting.start_time.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get(self, meeting_id: str, fresh: bool = False) -> Meeting | None:
        """
        Fetch a meeting by id. With `fresh=True` any copy already held in
        the session identity map is overwritten from the database.
        """
        stmt = _with_people(select(Meeting).where(Meeting.id == meeting_id))
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert(self, state: MeetingState) -> Meeting:
        meeting = Meeting(
            title=state.title,
            description=state.description,
            location=state.location,
            meeting_link=state.meeting_link,
            organizer_id=state.organizer_id,
            start_time=state.start_time,
            end_time=state.end_time,
            status=state.status.value,
            participants=await self._load_users(state.participant_ids),
        )
        self.session.add(meeting)
        await self.session.flush()
        return await self.get(meeting.id, fresh=True)

    async def update(self, meeting: Meeting, state: MeetingState) -> Meeting:
        """
        Write `state` over `meeting` in a single flush.
        """
        meeting.title = state.title
        meeting.description = state.description
        meeting.location = state.location
        meeting.meeting_link = state.meeting_link
        meeting.start_time = state.start_time
        meeting.end_time = state.end_time
        meeting.status = state.status.value
        if set(state.participant_ids) != set(meeting.participant_ids):
            meeting.participants = await self._load_users(state.participant_ids)
        await self.session.flush()
        return await self.get(meeting.id, fresh=True)

    async def delete(self, meeting_id: str) -> None:
        await self.session.execute(
            delete(meeting_participants).where(
                meeting_participants.c.meeting_id == meeting_id
            )
        )
        await self.session.execute(delete(Meeting).where(Meeting.id == meeting_id))

    async def list_by_organizer(
        self,
        organizer_id: str,
        status: MeetingStatus | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Meeting]:
        """
        Meetings created by `organizer_id`, most recent first.
        """
        conditions = [Meeting.organizer_id == organizer_id]
        conditions.extend(self._filters(status, start_date, end_date))
        stmt = _with_people(
            select(Meeting).where(*conditions).order_by(Meeting.start_time.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_participant(
        self,
        user_id: str,
        status: MeetingStatus | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Meeting]:
        """
        Meetings `user_id` attends (any status unless filtered), earliest first.
        """
        conditions = [_attended_by([user_id])]
        conditions.extend(self._filters(status, start_date, end_date))
        stmt = _with_people(
            select(Meeting).where(*conditions).order_by(Meeting.start_time.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_schedule(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Meeting]:
        """
        Non-cancelled meetings of `user_id` starting within [start, end].
        """
        stmt = _with_people(
            select(Meeting)
            .where(
                _attended_by([user_id]),
                Meeting.start_time >= start,
                Meeting.start_time <= end,
                Meeting.status != MeetingStatus.CANCELLED.value,
            )
            .order_by(Meeting.start_time.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    def _filters(
        status: MeetingStatus | None,
        start_date: datetime | None,
        end_date: datetime | None,
    ) -> list:
        conditions = []
        if status is not None:
            conditions.append(Meeting.status == MeetingStatus(status).value)
        if start_date is not None:
            conditions.append(Meeting.start_time >= start_date)
        if end_date is not None:
            conditions.append(Meeting.start_time <= end_date)
        return conditions

    async def _load_users(self, user_ids: Sequence[str]) -> list[User]:
        result = await self.session.execute(select(User).where(User.id.in_(list(user_ids))))
        by_id = {user.id: user for user in result.scalars().all()}
        return [by_id[user_id] for user_id in user_ids if user_id in by_id]
