"""
Pydantic Schemas for the Event Lifecycle.

Inputs accepted by the services and the detached records
they return (safe to use after the session is closed).
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from core.constants import (
    MAX_RULE_POINTS,
    MAX_VETO_THRESHOLD,
    MIN_RULE_POINTS,
    MIN_VETO_THRESHOLD,
    UNKNOWN_MEMBER_NAME,
    UNKNOWN_RULE_DESCRIPTION,
)
from storage.models.events import EventStatus


# =============================================================
# INPUT SCHEMAS
# =============================================================

class EventCreate(BaseModel):
    """Schema for logging a new event."""
    group_id: UUID
    target_user_id: UUID
    submitter_user_id: UUID
    rule_id: UUID
    note: Optional[str] = ""

    @field_validator("note")
    @classmethod
    def strip_note(cls, value: Optional[str]) -> str:
        return (value or "").strip()


class RuleDefinition(BaseModel):
    """Schema for adding a rule to a group's catalog."""
    description: str = Field(..., min_length=1)
    points: int = Field(..., ge=MIN_RULE_POINTS, le=MAX_RULE_POINTS)
    veto_threshold: int = Field(0, ge=MIN_VETO_THRESHOLD, le=MAX_VETO_THRESHOLD)

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("description must not be blank")
        return value


# =============================================================
# GROUP RECORDS
# =============================================================

class GroupRecord(BaseModel):
    """Schema for a group."""
    id: UUID
    name: str
    description: Optional[str] = None
    created_by: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class MemberRecord(BaseModel):
    """Schema for a roster entry."""
    group_id: UUID
    user_id: UUID
    display_name: str
    email: str
    total_points: int
    joined_at: datetime

    class Config:
        from_attributes = True


class RuleRecord(BaseModel):
    """Schema for a rule."""
    id: UUID
    group_id: UUID
    description: str
    points: int
    veto_threshold: int

    class Config:
        from_attributes = True


class LeaderboardEntry(BaseModel):
    """One row of a group's leaderboard."""
    rank: int
    user_id: UUID
    display_name: str
    email: str
    total_points: int


# =============================================================
# EVENT RECORDS
# =============================================================

class VoteRecord(BaseModel):
    """A veto cast on an event."""
    voter_user_id: UUID
    cast_at: datetime

    class Config:
        from_attributes = True


class EventRecord(BaseModel):
    """Schema for a persisted event."""
    id: UUID
    group_id: UUID
    target_user_id: UUID
    submitter_user_id: UUID
    rule_id: UUID
    note: str = ""
    status: EventStatus
    veto_count: int = 0
    votes: List[VoteRecord] = Field(default_factory=list)
    created_at: datetime
    expires_at: datetime
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RuleSummary(BaseModel):
    """Rule details embedded in an event view."""
    id: Optional[UUID] = None
    description: str = UNKNOWN_RULE_DESCRIPTION
    points: int = 0
    veto_threshold: int = 0


class EventView(EventRecord):
    """Event enriched with member names and rule details for display."""
    target_name: str = UNKNOWN_MEMBER_NAME
    target_email: str = ""
    submitter_name: str = UNKNOWN_MEMBER_NAME
    rule: RuleSummary = Field(default_factory=RuleSummary)


class VoteResult(BaseModel):
    """Outcome of a veto vote."""
    event_id: UUID
    status: EventStatus
    veto_count: int
