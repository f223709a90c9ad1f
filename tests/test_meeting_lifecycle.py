# tests/test_meeting_lifecycle.py
from datetime import timedelta

import pytest

from app.core.config import Settings
from app.schemas.meeting import MeetingStatus
from app.schemas.user import UserRole
from app.services.meeting_lifecycle import MeetingLifecycleManager
from app.services.meeting_state import MeetingChanges
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
from tests.helpers import NOW, at


async def _create(lifecycle, organizer_id, participant_ids, start, end, title="Sync"):
    meeting = await lifecycle.create(
        organizer_id=organizer_id,
        title=title,
        participant_ids=participant_ids,
        start_time=start,
        end_time=end,
    )
    return meeting.id


# --------------------------------------------------------------------------
# create
# --------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_adds_organizer_to_participants(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    participant = await make_user("p")

    meeting = await lifecycle.create(
        organizer_id=organizer,
        title="Kickoff",
        participant_ids=[participant],
        start_time=at(9),
        end_time=at(10),
        location="Room 1",
    )

    assert meeting.organizer_id == organizer
    assert set(meeting.participant_ids) == {organizer, participant}
    assert meeting.status == MeetingStatus.SCHEDULED.value
    assert meeting.organizer.id == organizer
    assert meeting.location == "Room 1"
    assert meeting.start_time == at(9)


@pytest.mark.asyncio
async def test_create_does_not_duplicate_organizer_listed_as_participant(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)

    meeting = await lifecycle.create(
        organizer_id=organizer,
        title="Focus time",
        participant_ids=[organizer, organizer],
        start_time=at(9),
        end_time=at(10),
    )

    assert meeting.participant_ids == [organizer]


@pytest.mark.asyncio
async def test_create_rejects_end_before_or_equal_start(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)

    with pytest.raises(InvalidTimeRange):
        await _create(lifecycle, organizer, [organizer], at(10), at(10))
    with pytest.raises(InvalidTimeRange):
        await _create(lifecycle, organizer, [organizer], at(11), at(10))


@pytest.mark.asyncio
async def test_create_rejects_past_start(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)

    with pytest.raises(PastSchedule):
        await _create(
            lifecycle, organizer, [organizer], NOW - timedelta(minutes=1), NOW + timedelta(hours=1)
        )


@pytest.mark.asyncio
async def test_create_allows_past_start_when_configured(session, locks, make_user):
    manager = MeetingLifecycleManager(
        session,
        settings=Settings(ALLOW_PAST_SCHEDULING=True),
        clock=lambda: NOW,
        locks=locks,
    )
    organizer = await make_user("org", UserRole.ORGANIZER)

    meeting_id = await _create(
        manager, organizer, [organizer], NOW - timedelta(hours=2), NOW - timedelta(hours=1)
    )
    assert meeting_id


@pytest.mark.asyncio
async def test_create_rejects_meetings_longer_than_max_duration(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)

    # Exactly 8 hours is allowed
    assert await _create(lifecycle, organizer, [organizer], at(8), at(16))

    with pytest.raises(DurationExceeded):
        await _create(lifecycle, organizer, [organizer], at(8, day=7), at(16, 1, day=7))


@pytest.mark.asyncio
async def test_create_rejects_unknown_or_inactive_participants(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    inactive = await make_user("gone", is_active=False)

    with pytest.raises(InvalidParticipant) as exc_info:
        await _create(lifecycle, organizer, [inactive, "no-such-user"], at(9), at(10))

    assert exc_info.value.user_ids == [inactive, "no-such-user"]


@pytest.mark.asyncio
async def test_create_rejects_inactive_or_unknown_organizer(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER, is_active=False)
    participant = await make_user("p")

    with pytest.raises(InvalidParticipant) as exc_info:
        await _create(lifecycle, organizer, [participant], at(9), at(10))
    assert exc_info.value.user_ids == [organizer]

    with pytest.raises(InvalidParticipant) as exc_info:
        await _create(lifecycle, "ghost-organizer", [participant], at(9), at(10))
    assert exc_info.value.user_ids == ["ghost-organizer"]

    assert await lifecycle.list_participating(participant) == []


@pytest.mark.asyncio
async def test_second_overlapping_create_conflicts_and_adjacent_succeeds(lifecycle, make_user):
    """
    O creates M1 for P at [09:00, 10:00). M2 at [09:30, 10:30) is rejected
    citing M1; M3 at [10:00, 11:00) only touches M1 and succeeds.
    """
    organizer = await make_user("org", UserRole.ORGANIZER)
    participant = await make_user("p")

    m1 = await _create(lifecycle, organizer, [participant], at(9), at(10), title="M1")

    with pytest.raises(SchedulingConflict) as exc_info:
        await _create(lifecycle, organizer, [participant], at(9, 30), at(10, 30), title="M2")

    report = exc_info.value.report
    assert [m.id for m in report.meetings] == [m1]
    assert set(report.conflicting_user_ids) == {organizer, participant}
    assert report.by_user[participant][0].title == "M1"

    m3 = await _create(lifecycle, organizer, [participant], at(10), at(11), title="M3")
    assert m3 != m1


@pytest.mark.asyncio
async def test_conflict_applies_to_the_organizer_as_well(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    other_org = await make_user("org2", UserRole.ORGANIZER)
    p1 = await make_user("p1")
    p2 = await make_user("p2")

    await _create(lifecycle, other_org, [organizer], at(9), at(10))

    with pytest.raises(SchedulingConflict) as exc_info:
        await _create(lifecycle, organizer, [p1, p2], at(9, 15), at(9, 45))

    assert exc_info.value.report.conflicting_user_ids == [organizer]


@pytest.mark.asyncio
async def test_cancelled_meetings_do_not_block_new_ones(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    participant = await make_user("p")

    m1 = await _create(lifecycle, organizer, [participant], at(9), at(10))
    cancelled = await lifecycle.cancel(m1, organizer)
    assert cancelled.status == MeetingStatus.CANCELLED.value

    assert await _create(lifecycle, organizer, [participant], at(9), at(10))


# --------------------------------------------------------------------------
# update
# --------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_own_time_range_does_not_conflict_with_itself(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    participant = await make_user("p")
    meeting_id = await _create(lifecycle, organizer, [participant], at(9), at(10))

    updated = await lifecycle.update(
        meeting_id,
        organizer,
        {"start_time": at(9, 30), "end_time": at(10, 30)},
    )

    assert updated.start_time == at(9, 30)
    assert updated.end_time == at(10, 30)


@pytest.mark.asyncio
async def test_update_applies_simple_fields_without_conflict_check(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    meeting_id = await _create(lifecycle, organizer, [organizer], at(9), at(10))

    updated = await lifecycle.update(
        meeting_id,
        organizer,
        MeetingChanges(title="Renamed", meeting_link="https://meet.example.com/x"),
    )

    assert updated.title == "Renamed"
    assert updated.meeting_link == "https://meet.example.com/x"
    assert updated.start_time == at(9)


@pytest.mark.asyncio
async def test_update_rejected_when_moving_onto_another_meeting(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    participant = await make_user("p")
    await _create(lifecycle, organizer, [participant], at(9), at(10), title="Fixed")
    movable = await _create(lifecycle, organizer, [participant], at(11), at(12), title="Movable")

    with pytest.raises(SchedulingConflict):
        await lifecycle.update(movable, organizer, {"start_time": at(9, 30)})

    unchanged = await lifecycle.get(movable)
    assert unchanged.start_time == at(11)


@pytest.mark.asyncio
async def test_update_rejects_inverted_range_from_partial_change(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    meeting_id = await _create(lifecycle, organizer, [organizer], at(9), at(10))

    with pytest.raises(InvalidTimeRange):
        await lifecycle.update(meeting_id, organizer, {"end_time": at(8)})


@pytest.mark.asyncio
async def test_update_participants_keeps_organizer_and_checks_new_roster(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    p1 = await make_user("p1")
    busy = await make_user("busy")
    free = await make_user("free")
    meeting_id = await _create(lifecycle, organizer, [p1], at(9), at(10))
    await _create(lifecycle, busy, [busy], at(9, 30), at(9, 45))

    with pytest.raises(SchedulingConflict) as exc_info:
        await lifecycle.update(meeting_id, organizer, {"participant_ids": [busy]})
    assert exc_info.value.report.conflicting_user_ids == [busy]

    updated = await lifecycle.update(meeting_id, organizer, {"participant_ids": [free]})
    assert set(updated.participant_ids) == {organizer, free}


@pytest.mark.asyncio
async def test_update_rejects_inactive_participants(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    inactive = await make_user("gone", is_active=False)
    meeting_id = await _create(lifecycle, organizer, [organizer], at(9), at(10))

    with pytest.raises(InvalidParticipant):
        await lifecycle.update(meeting_id, organizer, {"participant_ids": [inactive]})


@pytest.mark.asyncio
async def test_update_by_non_organizer_is_forbidden(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    participant = await make_user("p")
    meeting_id = await _create(lifecycle, organizer, [participant], at(9), at(10))

    with pytest.raises(Forbidden):
        await lifecycle.update(meeting_id, participant, {"title": "Hijacked"})


@pytest.mark.asyncio
async def test_update_unknown_meeting_is_not_found(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)

    with pytest.raises(NotFound):
        await lifecycle.update("missing", organizer, {"title": "x"})


@pytest.mark.asyncio
async def test_completed_meetings_are_immutable(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    meeting_id = await _create(lifecycle, organizer, [organizer], at(9), at(10))
    await lifecycle.update(meeting_id, organizer, {"status": MeetingStatus.COMPLETED})

    with pytest.raises(ImmutableState):
        await lifecycle.update(meeting_id, organizer, {"title": "Too late"})
    with pytest.raises(ImmutableState):
        await lifecycle.cancel(meeting_id, organizer)


@pytest.mark.asyncio
async def test_reviving_cancelled_meeting_is_conflict_checked(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    participant = await make_user("p")

    first = await _create(lifecycle, organizer, [participant], at(9), at(10))
    await lifecycle.cancel(first, organizer)
    await _create(lifecycle, organizer, [participant], at(9), at(10))

    with pytest.raises(SchedulingConflict):
        await lifecycle.update(first, organizer, {"status": MeetingStatus.SCHEDULED})


# --------------------------------------------------------------------------
# delete & reads
# --------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_removes_meeting_and_frees_the_slot(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    participant = await make_user("p")
    meeting_id = await _create(lifecycle, organizer, [participant], at(9), at(10))

    with pytest.raises(Forbidden):
        await lifecycle.delete(meeting_id, participant)

    await lifecycle.delete(meeting_id, organizer)

    with pytest.raises(NotFound):
        await lifecycle.get(meeting_id)
    with pytest.raises(NotFound):
        await lifecycle.delete(meeting_id, organizer)

    assert await _create(lifecycle, organizer, [participant], at(9), at(10))


@pytest.mark.asyncio
async def test_get_for_viewer_requires_participation(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    participant = await make_user("p")
    outsider = await make_user("outsider")
    meeting_id = await _create(lifecycle, organizer, [participant], at(9), at(10))

    meeting = await lifecycle.get_for_viewer(meeting_id, participant)
    assert meeting.id == meeting_id

    with pytest.raises(Forbidden):
        await lifecycle.get_for_viewer(meeting_id, outsider)


@pytest.mark.asyncio
async def test_listing_and_schedule(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    participant = await make_user("p")
    early = await _create(lifecycle, organizer, [participant], at(9), at(10), title="Early")
    late = await _create(lifecycle, organizer, [participant], at(14), at(15), title="Late")
    cancelled = await _create(lifecycle, organizer, [participant], at(16), at(17))
    await lifecycle.cancel(cancelled, organizer)

    organized = await lifecycle.list_organized(organizer)
    assert [m.id for m in organized] == [cancelled, late, early]

    attending = await lifecycle.list_participating(participant, status=MeetingStatus.SCHEDULED)
    assert [m.id for m in attending] == [early, late]

    schedule = await lifecycle.schedule(participant, at(0), at(23, 59))
    assert [m.id for m in schedule] == [early, late]

    with pytest.raises(InvalidTimeRange):
        await lifecycle.schedule(participant, at(12), at(11))


@pytest.mark.asyncio
async def test_check_availability_reports_busy_users(lifecycle, make_user):
    organizer = await make_user("org", UserRole.ORGANIZER)
    busy = await make_user("busy")
    free = await make_user("free")
    meeting_id = await _create(lifecycle, organizer, [busy], at(9), at(10))

    report = await lifecycle.check_availability([busy, free], at(9, 30), at(11))
    assert report.conflicting_user_ids == [busy]

    report = await lifecycle.check_availability(
        [busy, free], at(9, 30), at(11), exclude_meeting_id=meeting_id
    )
    assert not report
