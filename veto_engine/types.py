"""
Veto Engine - Types.

Plain value objects passed between the store and the
resolution logic. None of them touch the database.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, List, Optional
from uuid import UUID

from storage.models.events import Event, EventStatus
from storage.models.groups import Rule


@dataclass(frozen=True)
class EventSnapshot:
    """State of an event as seen by the resolution logic."""

    event_id: UUID
    group_id: UUID
    target_user_id: UUID
    status: EventStatus
    expires_at: datetime
    voter_ids: FrozenSet[UUID] = frozenset()

    @property
    def veto_count(self) -> int:
        return len(self.voter_ids)

    @classmethod
    def from_event(cls, event: Event) -> "EventSnapshot":
        return cls(
            event_id=event.id,
            group_id=event.group_id,
            target_user_id=event.target_user_id,
            status=EventStatus(event.status),
            expires_at=event.expires_at,
            voter_ids=frozenset(event.voter_ids),
        )


@dataclass(frozen=True)
class RuleTerms:
    """The parts of a rule that drive resolution."""

    points: int
    veto_threshold: int

    @classmethod
    def from_rule(cls, rule: Rule) -> "RuleTerms":
        return cls(points=rule.points, veto_threshold=rule.veto_threshold)


@dataclass(frozen=True)
class VoteDecision:
    """Outcome of admitting one veto."""

    veto_count: int
    next_status: EventStatus

    @property
    def vetoed(self) -> bool:
        return self.next_status == EventStatus.VETOED


@dataclass(frozen=True)
class ExpiryDecision:
    """Whether a sweep at a given time must approve the event."""

    due: bool
    next_status: EventStatus
    points_delta: int = 0


@dataclass
class SweepOutcome:
    """Result of sweeping one group."""

    group_id: UUID
    swept_at: datetime
    resolved: List[UUID] = field(default_factory=list)
    failed: List[UUID] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)


@dataclass
class SweepReport:
    """Result of one scheduled sweeper pass over all groups."""

    started_at: datetime
    outcomes: List[SweepOutcome] = field(default_factory=list)
    finished_at: Optional[datetime] = None

    @property
    def resolved_count(self) -> int:
        return sum(len(o.resolved) for o in self.outcomes)

    @property
    def failed_count(self) -> int:
        return sum(len(o.failed) for o in self.outcomes)
