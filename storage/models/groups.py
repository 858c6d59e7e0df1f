"""
Group Domain ORM Models.

============================================================
PURPOSE
============================================================
Groups own a member roster and a catalog of house rules.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Group, Rule: created by the surrounding CRUD layer, immutable here
- GroupMember.total_points: mutated only by event approval

============================================================
MODELS
============================================================
- Group: A private group
- GroupMember: Roster entry with cumulative points
- Rule: Point-bearing house rule with a veto threshold

============================================================
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import (
    MAX_RULE_POINTS,
    MAX_VETO_THRESHOLD,
    MIN_RULE_POINTS,
    MIN_VETO_THRESHOLD,
)
from storage.models.base import Base


class Group(Base):
    """A private group with its roster and rules."""

    __tablename__ = "groups"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    members: Mapped[List["GroupMember"]] = relationship(
        back_populates="group",
        order_by="GroupMember.id",
    )

    rules: Mapped[List["Rule"]] = relationship(back_populates="group")

    def __repr__(self) -> str:
        return f"<Group id={self.id} name={self.name!r}>"


class GroupMember(Base):
    """
    Roster entry.

    Name and email are a snapshot taken at join time.
    total_points changes only through GroupRepository.apply_points.
    """

    __tablename__ = "group_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    email: Mapped[str] = mapped_column(String(320), nullable=False)

    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    joined_at: Mapped[datetime] = mapped_column(nullable=False)

    group: Mapped["Group"] = relationship(back_populates="members")

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    def __repr__(self) -> str:
        return (
            f"<GroupMember group={self.group_id} user={self.user_id} "
            f"points={self.total_points}>"
        )


class Rule(Base):
    """House rule: points awarded on approval and the vetoes needed to kill an event."""

    __tablename__ = "rules"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    description: Mapped[str] = mapped_column(Text, nullable=False)

    points: Mapped[int] = mapped_column(Integer, nullable=False)

    veto_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    group: Mapped["Group"] = relationship(back_populates="rules")

    __table_args__ = (
        CheckConstraint(
            f"points >= {MIN_RULE_POINTS} AND points <= {MAX_RULE_POINTS}",
            name="ck_rules_points_range",
        ),
        CheckConstraint(
            f"veto_threshold >= {MIN_VETO_THRESHOLD} AND veto_threshold <= {MAX_VETO_THRESHOLD}",
            name="ck_rules_veto_threshold_range",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Rule id={self.id} points={self.points} "
            f"veto_threshold={self.veto_threshold}>"
        )
