"""
Event Domain ORM Models.

============================================================
PURPOSE
============================================================
Point-bearing events logged against group members, and the
veto votes cast on them during the review window.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Event: created pending, resolved once, retained as history
- EventVote: append-only, one row per veto caster

============================================================
CONCURRENCY
============================================================
Event carries a version column used by the mapper for
optimistic locking. Every vote rewrites veto_count, so two
voters racing on the same event cannot both commit against
the same version.

============================================================
"""

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storage.models.base import Base


# =============================================================
# ENUMS
# =============================================================

class EventStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    VETOED = "vetoed"


# =============================================================
# EVENTS TABLE
# =============================================================

class Event(Base):
    """
    Event logged by a submitter against a target member.

    Identity fields and created_at/expires_at are immutable
    once created; only status, veto_count and resolved_at change.
    """

    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Whose score is affected
    target_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    # Who filed it
    submitter_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    rule_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("rules.id", ondelete="RESTRICT"),
        nullable=False,
    )

    note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EventStatus.PENDING.value,
    )

    veto_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    votes: Mapped[List["EventVote"]] = relationship(
        back_populates="event",
        order_by="EventVote.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_events_group_created", "group_id", "created_at"),
        Index("idx_events_status_expires", "status", "expires_at"),
    )

    @property
    def voter_ids(self) -> List[uuid.UUID]:
        """Veto casters in arrival order."""
        return [vote.voter_user_id for vote in self.votes]

    def __repr__(self) -> str:
        return f"<Event id={self.id} status={self.status} vetoes={self.veto_count}>"


# =============================================================
# EVENT VOTES TABLE
# =============================================================

class EventVote(Base):
    """
    A veto cast on an event.

    Every recorded vote is a veto; the autoincrement id gives
    arrival order.
    """

    __tablename__ = "event_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    voter_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    cast_at: Mapped[datetime] = mapped_column(nullable=False)

    event: Mapped["Event"] = relationship(back_populates="votes")

    __table_args__ = (
        UniqueConstraint("event_id", "voter_user_id", name="uq_event_votes_event_voter"),
    )
