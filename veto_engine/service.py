"""
Event Lifecycle Service.

This service handles:
- Creating events against group members
- Recording veto votes and threshold resolution
- Sweeping overdue events to approval and crediting points
- The enriched event list and the leaderboard

============================================================
TRANSACTIONS
============================================================
- create_event: one transaction
- cast_veto_vote: one transaction per attempt; a lost race on
  the event version (or on the vote unique key) rolls back and
  retries from a fresh read, up to max_conflict_retries
- sweep: one transaction per event, covering the status change
  AND the point credit, so an event is never approved without
  its points nor credited twice

============================================================
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Generator, List, Optional, Union
from uuid import UUID

from sqlalchemy.orm import sessionmaker

from core.clock import ClockProtocol, ensure_utc, get_clock
from core.config import HouseRulesConfig
from core.constants import REVIEW_WINDOW, UNKNOWN_MEMBER_NAME
from core.exceptions import (
    AccessDeniedError,
    ConcurrencyConflictError,
    EventNotFoundError,
    HouseRulesException,
    NotFoundError,
    ValidationError,
)
from storage.database import transaction_scope
from storage.models.events import Event, EventStatus
from storage.models.groups import GroupMember, Rule
from storage.repositories import (
    DuplicateRecordError,
    EventRepository,
    GroupRepository,
    RepositoryException,
    RuleRepository,
    StaleRecordError,
)
from veto_engine.resolution import (
    check_vote_admissible,
    evaluate_expiry,
    evaluate_vote,
)
from veto_engine.schemas import (
    EventCreate,
    EventRecord,
    EventView,
    LeaderboardEntry,
    RuleSummary,
    VoteResult,
)
from veto_engine.types import EventSnapshot, RuleTerms, SweepOutcome

logger = logging.getLogger(__name__)


class EventService:
    """Service for the event lifecycle and veto consensus."""

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Optional[ClockProtocol] = None,
        config: Optional[HouseRulesConfig] = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or get_clock()
        self._config = config or HouseRulesConfig()

        # group_id -> [lock, holders]; entries are dropped when the last holder leaves
        self._sweep_locks: Dict[UUID, List] = {}
        self._sweep_locks_guard = threading.Lock()

    def _now(self, now: Optional[datetime] = None) -> datetime:
        return ensure_utc(now) if now is not None else self._clock.now()

    # ---------------------------------------------------------
    # CREATE EVENTS
    # ---------------------------------------------------------

    def create_event(
        self,
        group_id: UUID,
        target_user_id: UUID,
        submitter_user_id: UUID,
        rule_id: UUID,
        note: Optional[str] = "",
    ) -> EventRecord:
        """
        Log a new pending event.

        Points are provisional until resolution; nothing on the
        roster changes here.

        Raises:
            ValidationError: group_not_found, not_a_member,
                target_not_a_member or rule_mismatch
        """
        now = self._clock.now()

        with transaction_scope(self._session_factory) as session:
            groups = GroupRepository(session)

            if groups.get_group(group_id) is None:
                raise ValidationError(
                    f"Group {group_id} not found",
                    reason=ValidationError.GROUP_NOT_FOUND,
                )

            if not groups.is_member(group_id, submitter_user_id):
                raise ValidationError(
                    f"Submitter {submitter_user_id} is not a member of group {group_id}",
                    reason=ValidationError.NOT_A_MEMBER,
                )

            if not groups.is_member(group_id, target_user_id):
                raise ValidationError(
                    f"Target user {target_user_id} is not a member of group {group_id}",
                    reason=ValidationError.TARGET_NOT_A_MEMBER,
                )

            if RuleRepository(session).get_rule_for_group(group_id, rule_id) is None:
                raise ValidationError(
                    f"Rule {rule_id} is not a rule of group {group_id}",
                    reason=ValidationError.RULE_MISMATCH,
                )

            event = EventRepository(session).create_event(
                group_id=group_id,
                target_user_id=target_user_id,
                submitter_user_id=submitter_user_id,
                rule_id=rule_id,
                note=(note or "").strip(),
                created_at=now,
                expires_at=now + REVIEW_WINDOW,
            )
            record = EventRecord.model_validate(event)

        logger.info(
            f"Created event: id={record.id} group={group_id} "
            f"target={target_user_id} rule={rule_id} expires_at={record.expires_at.isoformat()}"
        )
        return record

    def create_event_from_schema(self, data: EventCreate) -> EventRecord:
        """Log a new event from a validated schema."""
        return self.create_event(
            group_id=data.group_id,
            target_user_id=data.target_user_id,
            submitter_user_id=data.submitter_user_id,
            rule_id=data.rule_id,
            note=data.note,
        )

    # ---------------------------------------------------------
    # VETO VOTES
    # ---------------------------------------------------------

    def cast_veto_vote(
        self,
        event_id: UUID,
        voter_id: UUID,
        now: Optional[datetime] = None,
    ) -> VoteResult:
        """
        Record a veto on a pending event.

        Raises:
            EventNotFoundError: Event does not exist
            EventNotPendingError: Event already resolved
            EventExpiredError: Vote arrived after the deadline
            AccessDeniedError: Voter is not on the roster
            SelfVoteForbiddenError: Voter is the target
            DuplicateVoteError: Voter already voted
            ConcurrencyConflictError: Lost the race on every attempt
        """
        now = self._now(now)
        attempts = self._config.max_conflict_retries

        for attempt in range(1, attempts + 1):
            try:
                return self._record_veto(event_id, voter_id, now)
            except (StaleRecordError, DuplicateRecordError) as e:
                logger.warning(
                    f"Vote conflict on event={event_id} voter={voter_id} "
                    f"attempt={attempt}/{attempts}: {e.message}"
                )

        raise ConcurrencyConflictError(
            f"Could not record vote on event {event_id} after {attempts} attempts",
            attempts=attempts,
            context={"event_id": str(event_id), "voter_id": str(voter_id)},
        )

    def _record_veto(self, event_id: UUID, voter_id: UUID, now: datetime) -> VoteResult:
        """One read-check-write attempt, in its own transaction."""
        with transaction_scope(self._session_factory) as session:
            events = EventRepository(session)

            event = events.get_event(event_id)
            if event is None:
                raise EventNotFoundError(event_id)

            snapshot = EventSnapshot.from_event(event)
            voter_is_member = GroupRepository(session).is_member(event.group_id, voter_id)

            rule = RuleRepository(session).get_rule(event.rule_id)
            if rule is None:
                check_vote_admissible(snapshot, voter_id, voter_is_member, now)
                raise NotFoundError("rule", event.rule_id)

            decision = evaluate_vote(
                snapshot,
                RuleTerms.from_rule(rule),
                voter_id,
                voter_is_member,
                now,
            )

            events.record_veto(
                event,
                voter_user_id=voter_id,
                cast_at=now,
                new_status=decision.next_status,
                resolved_at=now if decision.vetoed else None,
            )

        logger.info(
            f"Veto recorded: event={event_id} voter={voter_id} "
            f"vetoes={decision.veto_count}/{rule.veto_threshold} status={decision.next_status.value}"
        )
        if decision.vetoed:
            logger.info(f"Event vetoed: id={event_id} vetoes={decision.veto_count}")

        return VoteResult(
            event_id=event_id,
            status=decision.next_status,
            veto_count=decision.veto_count,
        )

    # ---------------------------------------------------------
    # EXPIRY SWEEP
    # ---------------------------------------------------------

    @contextmanager
    def _group_sweep_lock(self, group_id: UUID) -> Generator[None, None, None]:
        with self._sweep_locks_guard:
            entry = self._sweep_locks.setdefault(group_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._sweep_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._sweep_locks[group_id]

    def sweep_expired(self, group_id: UUID, now: Optional[datetime] = None) -> List[UUID]:
        """
        Approve every overdue pending event of a group.

        Returns:
            IDs of the events this sweep approved
        """
        return self.sweep_group(group_id, now).resolved

    def sweep_group(self, group_id: UUID, now: Optional[datetime] = None) -> SweepOutcome:
        """
        Sweep one group, reporting approvals and per-event failures.

        A failed event keeps its pending status and is picked up
        again by the next sweep.
        """
        now = self._now(now)
        outcome = SweepOutcome(group_id=group_id, swept_at=now)

        with self._group_sweep_lock(group_id):
            with transaction_scope(self._session_factory) as session:
                overdue = EventRepository(session).list_overdue_event_ids(group_id, now)

            for event_id in overdue:
                try:
                    if self._approve_expired(event_id, now):
                        outcome.resolved.append(event_id)
                except (HouseRulesException, RepositoryException) as e:
                    outcome.failed.append(event_id)
                    logger.error(
                        f"Sweep failed for event={event_id} group={group_id}, "
                        f"left pending for the next sweep: {e}"
                    )

        if outcome.resolved or outcome.failed:
            logger.info(
                f"Swept group={group_id}: approved={len(outcome.resolved)} "
                f"failed={len(outcome.failed)}"
            )
        return outcome

    def _approve_expired(self, event_id: UUID, now: datetime) -> bool:
        """
        Approve one overdue event and credit its target.

        Returns:
            False if the event was not due or was resolved by
            someone else first
        """
        with transaction_scope(self._session_factory) as session:
            events = EventRepository(session)

            event = events.get_event(event_id)
            if event is None:
                raise EventNotFoundError(event_id)

            rule = RuleRepository(session).get_rule(event.rule_id)
            if rule is None:
                raise NotFoundError("rule", event.rule_id)

            decision = evaluate_expiry(
                EventSnapshot.from_event(event),
                RuleTerms.from_rule(rule),
                now,
            )
            if not decision.due:
                return False

            if not events.approve_if_pending(event_id, now):
                logger.debug(f"Event {event_id} already resolved, skipping")
                return False

            credited = GroupRepository(session).apply_points(
                event.group_id,
                event.target_user_id,
                decision.points_delta,
            )
            if not credited:
                raise NotFoundError("member", event.target_user_id)

        logger.info(
            f"Event approved: id={event_id} target={event.target_user_id} "
            f"points={decision.points_delta:+d}"
        )
        return True

    # ---------------------------------------------------------
    # QUERY METHODS
    # ---------------------------------------------------------

    def get_event(self, event_id: UUID) -> EventRecord:
        """
        Get a single event with its votes.

        Raises:
            EventNotFoundError: Event does not exist
        """
        with transaction_scope(self._session_factory) as session:
            event = EventRepository(session).get_event(event_id)
            if event is None:
                raise EventNotFoundError(event_id)
            return EventRecord.model_validate(event)

    def get_events(
        self,
        group_id: UUID,
        status_filter: Optional[Union[EventStatus, str]] = None,
        viewer_id: Optional[UUID] = None,
    ) -> List[EventView]:
        """
        List a group's events, newest first, after sweeping overdue ones.

        Args:
            group_id: The group
            status_filter: Optional status to keep
            viewer_id: If given, must be a member of the group

        Raises:
            NotFoundError: Group does not exist
            AccessDeniedError: Viewer is not a member
            ValidationError: Unknown status filter
        """
        status = self._parse_status_filter(status_filter)
        self._require_group(group_id, viewer_id)

        self.sweep_expired(group_id)

        with transaction_scope(self._session_factory) as session:
            groups = GroupRepository(session)
            members = {m.user_id: m for m in groups.list_members(group_id)}
            rules = {r.id: r for r in RuleRepository(session).list_rules(group_id)}
            events = EventRepository(session).list_events_by_group(group_id, status)

            return [self._to_view(event, members, rules) for event in events]

    def get_leaderboard(self, group_id: UUID) -> List[LeaderboardEntry]:
        """
        Members by total points, highest first, after sweeping overdue events.

        Raises:
            NotFoundError: Group does not exist
        """
        self._require_group(group_id)
        self.sweep_expired(group_id)

        with transaction_scope(self._session_factory) as session:
            members = GroupRepository(session).list_leaderboard(group_id)
            return [
                LeaderboardEntry(
                    rank=rank,
                    user_id=member.user_id,
                    display_name=member.display_name,
                    email=member.email,
                    total_points=member.total_points,
                )
                for rank, member in enumerate(members, start=1)
            ]

    # ---------------------------------------------------------
    # HELPERS
    # ---------------------------------------------------------

    def _require_group(self, group_id: UUID, viewer_id: Optional[UUID] = None) -> None:
        with transaction_scope(self._session_factory) as session:
            groups = GroupRepository(session)
            if groups.get_group(group_id) is None:
                raise NotFoundError("group", group_id)
            if viewer_id is not None and not groups.is_member(group_id, viewer_id):
                raise AccessDeniedError(viewer_id, group_id)

    @staticmethod
    def _parse_status_filter(
        status_filter: Optional[Union[EventStatus, str]],
    ) -> Optional[EventStatus]:
        if status_filter is None or isinstance(status_filter, EventStatus):
            return status_filter
        try:
            return EventStatus(status_filter)
        except ValueError:
            raise ValidationError(
                f"Invalid status: {status_filter}. Valid values: "
                + ", ".join(s.value for s in EventStatus),
                reason=ValidationError.INVALID_STATUS_FILTER,
            ) from None

    @staticmethod
    def _to_view(
        event: Event,
        members: Dict[UUID, GroupMember],
        rules: Dict[UUID, Rule],
    ) -> EventView:
        record = EventRecord.model_validate(event)
        target = members.get(event.target_user_id)
        submitter = members.get(event.submitter_user_id)
        rule = rules.get(event.rule_id)

        return EventView(
            **record.model_dump(),
            target_name=target.display_name if target else UNKNOWN_MEMBER_NAME,
            target_email=target.email if target else "",
            submitter_name=submitter.display_name if submitter else UNKNOWN_MEMBER_NAME,
            rule=(
                RuleSummary(
                    id=rule.id,
                    description=rule.description,
                    points=rule.points,
                    veto_threshold=rule.veto_threshold,
                )
                if rule
                else RuleSummary()
            ),
        )
