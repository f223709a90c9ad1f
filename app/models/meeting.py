# app/models/meeting.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.db.types import UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# Roster of a meeting. The composite primary key rules out duplicate
# participants; the (user_id, meeting_id) index serves conflict lookups.
meeting_participants = Table(
    "meeting_participants",
    Base.metadata,
    Column(
        "meeting_id",
        String(36),
        ForeignKey("meetings.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "user_id",
        String(36),
        ForeignKey("users.id"),
        primary_key=True,
    ),
    Index("ix_meeting_participants_user_meeting", "user_id", "meeting_id"),
)


class Meeting(Base):
    """
    A scheduled meeting owned by its organizer.

    The organizer is always part of the participant roster, and
    end_time is strictly after start_time.
    """

    __tablename__ = "meetings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(200), nullable=True)
    meeting_link = Column(String(2048), nullable=True)

    organizer_id = Column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)

    status = Column(
        String(16),
        nullable=False,
        default="SCHEDULED",
        index=True,
    )

    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    organizer = relationship("User", lazy="raise")
    participants = relationship(
        "User",
        secondary=meeting_participants,
        lazy="raise",
        order_by="User.email",
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_meetings_time_range"),
        Index("ix_meetings_start_end", "start_time", "end_time"),
        Index("ix_meetings_organizer_start", "organizer_id", "start_time"),
    )

    @property
    def participant_ids(self) -> list[str]:
        return [user.id for user in self.participants]

    def __repr__(self) -> str:
        return (
            f"<Meeting id={self.id} organizer_id={self.organizer_id} "
            f"start={self.start_time} end={self.end_time} status={self.status}>"
        )
