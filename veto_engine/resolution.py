"""
Veto/Resolution Engine.

============================================================
RESPONSIBILITY
============================================================
Pure decision logic for the event lifecycle. Given an event,
its rule, and either a proposed vote or the current time,
decides the next status and the point delta to apply.

No I/O, no session, no clock: the caller supplies `now`.

============================================================
STATE MACHINE
============================================================
    pending --[veto_count >= veto_threshold]--> vetoed
    pending --[now > expires_at, observed]----> approved

Terminal states have no outgoing transitions.

============================================================
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional
from uuid import UUID

from core.exceptions import (
    AccessDeniedError,
    DuplicateVoteError,
    EventExpiredError,
    EventNotPendingError,
    InvalidTransitionError,
    SelfVoteForbiddenError,
)
from storage.models.events import EventStatus
from veto_engine.types import EventSnapshot, ExpiryDecision, RuleTerms, VoteDecision


ALLOWED_TRANSITIONS: Dict[EventStatus, FrozenSet[EventStatus]] = {
    EventStatus.PENDING: frozenset({EventStatus.APPROVED, EventStatus.VETOED}),
    EventStatus.APPROVED: frozenset(),
    EventStatus.VETOED: frozenset(),
}


def is_terminal(status: EventStatus) -> bool:
    """Check if no transition leaves this status."""
    return not ALLOWED_TRANSITIONS[status]


def assert_transition(
    from_status: EventStatus,
    to_status: EventStatus,
    event_id: Optional[UUID] = None,
) -> None:
    """Raise InvalidTransitionError unless from_status -> to_status is allowed."""
    if to_status not in ALLOWED_TRANSITIONS[from_status]:
        raise InvalidTransitionError(from_status.value, to_status.value, event_id)


def threshold_reached(veto_count: int, veto_threshold: int) -> bool:
    """
    Check the veto threshold.

    A threshold of 0 is reached by the first vote, since a vote
    is only evaluated once it has been counted.
    """
    return veto_count >= veto_threshold


def check_vote_admissible(
    event: EventSnapshot,
    voter_id: UUID,
    voter_is_member: bool,
    now: datetime,
) -> None:
    """
    Run the ordered vote checks.

    Raises:
        EventNotPendingError: Event already resolved
        EventExpiredError: now is past the deadline
        AccessDeniedError: Voter is not on the roster
        SelfVoteForbiddenError: Voter is the target
        DuplicateVoteError: Voter already voted
    """
    if event.status != EventStatus.PENDING:
        raise EventNotPendingError(event.event_id, event.status.value)

    if now > event.expires_at:
        raise EventExpiredError(event.event_id, event.expires_at)

    if not voter_is_member:
        raise AccessDeniedError(voter_id, event.group_id)

    if voter_id == event.target_user_id:
        raise SelfVoteForbiddenError(event.event_id, voter_id)

    if voter_id in event.voter_ids:
        raise DuplicateVoteError(event.event_id, voter_id)


def evaluate_vote(
    event: EventSnapshot,
    rule: RuleTerms,
    voter_id: UUID,
    voter_is_member: bool,
    now: datetime,
) -> VoteDecision:
    """
    Decide the outcome of a veto.

    The vote is counted first, then compared to the threshold.
    """
    check_vote_admissible(event, voter_id, voter_is_member, now)

    veto_count = event.veto_count + 1
    if threshold_reached(veto_count, rule.veto_threshold):
        assert_transition(event.status, EventStatus.VETOED, event.event_id)
        return VoteDecision(veto_count=veto_count, next_status=EventStatus.VETOED)

    return VoteDecision(veto_count=veto_count, next_status=EventStatus.PENDING)


def evaluate_expiry(
    event: EventSnapshot,
    rule: RuleTerms,
    now: datetime,
) -> ExpiryDecision:
    """
    Decide whether a sweep at `now` approves the event.

    Only pending events strictly past their deadline are due.
    """
    if event.status != EventStatus.PENDING or not event.expires_at < now:
        return ExpiryDecision(due=False, next_status=event.status)

    assert_transition(event.status, EventStatus.APPROVED, event.event_id)
    return ExpiryDecision(
        due=True,
        next_status=EventStatus.APPROVED,
        points_delta=rule.points,
    )


__all__ = [
    "ALLOWED_TRANSITIONS",
    "is_terminal",
    "assert_transition",
    "threshold_reached",
    "check_vote_admissible",
    "evaluate_vote",
    "evaluate_expiry",
]
