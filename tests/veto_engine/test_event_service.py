"""
Tests for the Event Lifecycle Service.

Tests cover:
- Event creation and its ordered validation
- Veto votes, threshold resolution and rejections
- Expiry sweeps, idempotence and point crediting
- The enriched event list and the leaderboard
"""

import pytest
from datetime import timedelta
from uuid import uuid4

from sqlalchemy import delete

from core.constants import REVIEW_WINDOW
from core.exceptions import (
    AccessDeniedError,
    DuplicateVoteError,
    EventExpiredError,
    EventNotFoundError,
    EventNotPendingError,
    NotFoundError,
    SelfVoteForbiddenError,
    StateConflictError,
    ValidationError,
)
from storage.models.events import EventStatus
from storage.models.groups import GroupMember, Rule
from veto_engine import EventCreate, RuleDefinition


def log_event(service, group, target, submitter, rule, note=""):
    return service.create_event(
        group_id=group.id,
        target_user_id=target,
        submitter_user_id=submitter,
        rule_id=rule.id,
        note=note,
    )


def points_of(roster, group, user_id):
    return roster.get_member(group.id, user_id).total_points


# =============================================================
# TEST: Event Creation
# =============================================================

class TestCreateEvent:
    """Test event creation."""

    def test_creates_pending_event_with_review_window(self, service, group, clock):
        u = group.users
        event = log_event(service, group, u.alice, u.bob, group.rules.commend, note="  spotless  ")

        assert event.status == EventStatus.PENDING
        assert event.veto_count == 0
        assert event.votes == []
        assert event.note == "spotless"
        assert event.created_at == clock.now()
        assert event.expires_at == clock.now() + REVIEW_WINDOW
        assert event.resolved_at is None

    def test_creation_does_not_touch_points(self, service, roster, group):
        u = group.users
        log_event(service, group, u.alice, u.bob, group.rules.commend)
        assert points_of(roster, group, u.alice) == 0

    def test_self_targeted_event_is_allowed(self, service, group):
        u = group.users
        event = log_event(service, group, u.alice, u.alice, group.rules.late)
        assert event.target_user_id == event.submitter_user_id

    def test_create_from_schema(self, service, group):
        u = group.users
        data = EventCreate(
            group_id=group.id,
            target_user_id=u.carol,
            submitter_user_id=u.dave,
            rule_id=group.rules.late.id,
            note=None,
        )
        event = service.create_event_from_schema(data)

        assert event.target_user_id == u.carol
        assert event.note == ""

    def test_unknown_group(self, service, group):
        u = group.users
        with pytest.raises(ValidationError) as exc_info:
            service.create_event(uuid4(), u.alice, u.bob, group.rules.commend.id)
        assert exc_info.value.reason == ValidationError.GROUP_NOT_FOUND

    def test_submitter_not_a_member(self, service, group):
        with pytest.raises(ValidationError) as exc_info:
            log_event(service, group, group.users.alice, uuid4(), group.rules.commend)
        assert exc_info.value.reason == ValidationError.NOT_A_MEMBER

    def test_submitter_checked_before_target(self, service, group):
        with pytest.raises(ValidationError) as exc_info:
            log_event(service, group, uuid4(), uuid4(), group.rules.commend)
        assert exc_info.value.reason == ValidationError.NOT_A_MEMBER

    def test_target_not_a_member(self, service, group):
        with pytest.raises(ValidationError) as exc_info:
            log_event(service, group, uuid4(), group.users.bob, group.rules.commend)
        assert exc_info.value.reason == ValidationError.TARGET_NOT_A_MEMBER

    def test_rule_from_another_group(self, service, roster, group):
        u = group.users
        other = roster.register_group("Other flat", u.owner, "Owner", "owner@example.com")
        foreign_rule = roster.add_rule(
            other.id,
            RuleDefinition(description="Borrowed the car", points=5, veto_threshold=1),
        )

        with pytest.raises(ValidationError) as exc_info:
            log_event(service, group, u.alice, u.bob, foreign_rule)
        assert exc_info.value.reason == ValidationError.RULE_MISMATCH

    def test_unknown_rule(self, service, group):
        u = group.users
        with pytest.raises(ValidationError) as exc_info:
            service.create_event(group.id, u.alice, u.bob, uuid4())
        assert exc_info.value.reason == ValidationError.RULE_MISMATCH


# =============================================================
# TEST: Veto Votes
# =============================================================

class TestCastVetoVote:
    """Test veto votes and threshold resolution."""

    def test_two_vetoes_kill_event_with_threshold_two(self, service, roster, group):
        u = group.users
        event = log_event(service, group, u.alice, u.owner, group.rules.commend)

        first = service.cast_veto_vote(event.id, u.bob)
        assert first.status == EventStatus.PENDING
        assert first.veto_count == 1

        second = service.cast_veto_vote(event.id, u.carol)
        assert second.status == EventStatus.VETOED
        assert second.veto_count == 2

        stored = service.get_event(event.id)
        assert stored.status == EventStatus.VETOED
        assert stored.resolved_at is not None
        assert [v.voter_user_id for v in stored.votes] == [u.bob, u.carol]
        assert points_of(roster, group, u.alice) == 0

    def test_single_veto_then_expiry_approves(self, service, roster, group, clock):
        u = group.users
        event = log_event(service, group, u.alice, u.owner, group.rules.commend)
        service.cast_veto_vote(event.id, u.bob)

        clock.advance(hours=24, seconds=1)
        approved = service.sweep_expired(group.id)

        assert approved == [event.id]
        assert service.get_event(event.id).status == EventStatus.APPROVED
        assert points_of(roster, group, u.alice) == 10

    def test_zero_threshold_vetoes_on_first_vote(self, service, group):
        u = group.users
        event = log_event(service, group, u.alice, u.owner, group.rules.instant)

        result = service.cast_veto_vote(event.id, u.bob)

        assert result.status == EventStatus.VETOED
        assert result.veto_count == 1

    def test_target_cannot_vote(self, service, group):
        u = group.users
        event = log_event(service, group, u.alice, u.owner, group.rules.commend)

        with pytest.raises(StateConflictError) as exc_info:
            service.cast_veto_vote(event.id, u.alice)

        assert isinstance(exc_info.value, SelfVoteForbiddenError)
        assert service.get_event(event.id).votes == []

    def test_second_vote_from_same_voter_rejected(self, service, group):
        u = group.users
        event = log_event(service, group, u.alice, u.owner, group.rules.commend)
        service.cast_veto_vote(event.id, u.bob)

        with pytest.raises(DuplicateVoteError):
            service.cast_veto_vote(event.id, u.bob)

        stored = service.get_event(event.id)
        assert stored.veto_count == 1
        assert [v.voter_user_id for v in stored.votes] == [u.bob]

    def test_unknown_event(self, service, group):
        with pytest.raises(EventNotFoundError):
            service.cast_veto_vote(uuid4(), group.users.bob)

    def test_vote_on_resolved_event(self, service, group):
        u = group.users
        event = log_event(service, group, u.alice, u.owner, group.rules.late)
        service.cast_veto_vote(event.id, u.bob)

        with pytest.raises(EventNotPendingError):
            service.cast_veto_vote(event.id, u.carol)

    def test_vote_after_deadline(self, service, group, clock):
        u = group.users
        event = log_event(service, group, u.alice, u.owner, group.rules.commend)

        clock.advance(hours=25)
        with pytest.raises(EventExpiredError):
            service.cast_veto_vote(event.id, u.bob)

    def test_vote_exactly_at_deadline_counts(self, service, group):
        u = group.users
        event = log_event(service, group, u.alice, u.owner, group.rules.commend)

        result = service.cast_veto_vote(event.id, u.bob, now=event.expires_at)
        assert result.veto_count == 1

    def test_non_member_cannot_vote(self, service, group):
        u = group.users
        event = log_event(service, group, u.alice, u.owner, group.rules.commend)

        with pytest.raises(AccessDeniedError):
            service.cast_veto_vote(event.id, uuid4())

    def test_voters_bounded_by_roster(self, service, roster, group):
        u = group.users
        rule = roster.add_rule(
            group.id,
            RuleDefinition(description="Hosted dinner", points=20, veto_threshold=100),
        )
        event = log_event(service, group, u.alice, u.owner, rule)

        for voter in (u.owner, u.bob, u.carol, u.dave):
            service.cast_veto_vote(event.id, voter)
        with pytest.raises(SelfVoteForbiddenError):
            service.cast_veto_vote(event.id, u.alice)

        stored = service.get_event(event.id)
        assert stored.status == EventStatus.PENDING
        assert stored.veto_count == len(roster.list_members(group.id)) - 1


# =============================================================
# TEST: Expiry Sweep
# =============================================================

class TestSweepExpired:
    """Test the expiry sweep."""

    def test_nothing_due_before_deadline(self, service, group, clock):
        u = group.users
        log_event(service, group, u.alice, u.owner, group.rules.commend)

        clock.advance(hours=24)
        assert service.sweep_expired(group.id) == []

    def test_vetoed_events_are_not_swept(self, service, roster, group, clock):
        u = group.users
        event = log_event(service, group, u.alice, u.owner, group.rules.late)
        service.cast_veto_vote(event.id, u.bob)

        clock.advance(days=2)
        assert service.sweep_expired(group.id) == []
        assert points_of(roster, group, u.alice) == 0

    def test_sweep_is_idempotent(self, service, roster, group, clock):
        u = group.users
        event = log_event(service, group, u.bob, u.owner, group.rules.late)

        clock.advance(days=1, seconds=1)
        now = clock.now()

        assert service.sweep_expired(group.id, now) == [event.id]
        assert service.sweep_expired(group.id, now) == []
        assert points_of(roster, group, u.bob) == -5

    def test_sweep_uses_given_time(self, service, group):
        u = group.users
        event = log_event(service, group, u.bob, u.owner, group.rules.late)

        assert service.sweep_expired(group.id, event.expires_at) == []
        assert service.sweep_expired(
            group.id, event.expires_at + timedelta(seconds=1)
        ) == [event.id]

    def test_totals_match_approved_events(self, service, roster, group, clock):
        u = group.users
        rules = group.rules
        plan = [
            (u.alice, rules.commend, []),
            (u.alice, rules.late, []),
            (u.alice, rules.commend, [u.bob, u.carol]),
            (u.bob, rules.commend, [u.alice]),
            (u.bob, rules.late, [u.carol]),
            (u.carol, rules.instant, []),
        ]
        events = []
        for target, rule, voters in plan:
            event = log_event(service, group, target, u.owner, rule)
            for voter in voters:
                service.cast_veto_vote(event.id, voter)
            events.append((event, rule))
            clock.advance(minutes=5)

        clock.advance(days=1)
        service.sweep_expired(group.id)
        service.sweep_expired(group.id)

        expected = {user_id: 0 for user_id in vars(u).values()}
        for event, rule in events:
            if service.get_event(event.id).status == EventStatus.APPROVED:
                expected[event.target_user_id] += rule.points

        assert expected[u.alice] == 5
        assert expected[u.bob] == 10
        for user_id, total in expected.items():
            assert points_of(roster, group, user_id) == total

    def test_failed_credit_leaves_event_pending(self, service, roster, group, clock, session_factory):
        u = group.users
        event = log_event(service, group, u.dave, u.owner, group.rules.commend)

        with session_factory() as session:
            session.execute(
                delete(GroupMember).where(
                    GroupMember.group_id == group.id,
                    GroupMember.user_id == u.dave,
                )
            )
            session.commit()

        clock.advance(days=1, seconds=1)
        outcome = service.sweep_group(group.id)

        assert outcome.resolved == []
        assert outcome.failed == [event.id]
        assert outcome.has_failures
        assert service.get_event(event.id).status == EventStatus.PENDING

        roster.add_member(group.id, u.dave, display_name="Dave", email="dave@example.com")
        assert service.sweep_expired(group.id) == [event.id]
        assert points_of(roster, group, u.dave) == 10

    def test_missing_rule_blocks_vote_and_approval(self, service, roster, group, clock, session_factory):
        u = group.users
        rule = group.rules.commend
        event = log_event(service, group, u.carol, u.owner, rule)

        with session_factory() as session:
            session.execute(delete(Rule).where(Rule.id == rule.id))
            session.commit()

        with pytest.raises(NotFoundError) as exc_info:
            service.cast_veto_vote(event.id, u.bob)
        assert exc_info.value.entity == "rule"

        clock.advance(days=1, seconds=1)
        outcome = service.sweep_group(group.id)

        assert outcome.resolved == []
        assert outcome.failed == [event.id]
        stored = service.get_event(event.id)
        assert stored.status == EventStatus.PENDING
        assert stored.votes == []
        assert points_of(roster, group, u.carol) == 0

    def test_sweep_locks_are_released(self, service, group, clock):
        u = group.users
        log_event(service, group, u.bob, u.owner, group.rules.late)

        clock.advance(days=1, seconds=1)
        service.sweep_expired(group.id)
        service.get_leaderboard(group.id)

        assert service._sweep_locks == {}


# =============================================================
# TEST: Event List
# =============================================================

class TestGetEvents:
    """Test the enriched event list."""

    def test_newest_first_with_names_and_rule(self, service, group, clock):
        u = group.users
        first = log_event(service, group, u.alice, u.bob, group.rules.commend)
        clock.advance(minutes=1)
        second = log_event(service, group, u.carol, u.dave, group.rules.late)

        views = service.get_events(group.id)

        assert [v.id for v in views] == [second.id, first.id]
        newest = views[0]
        assert newest.target_name == "Carol"
        assert newest.target_email == "carol@example.com"
        assert newest.submitter_name == "Dave"
        assert newest.rule.description == "Late with rent"
        assert newest.rule.points == -5
        assert newest.rule.veto_threshold == 1

    def test_status_filter(self, service, group, clock):
        u = group.users
        vetoed = log_event(service, group, u.alice, u.bob, group.rules.late)
        service.cast_veto_vote(vetoed.id, u.carol)
        clock.advance(minutes=1)
        pending = log_event(service, group, u.alice, u.bob, group.rules.commend)

        assert [v.id for v in service.get_events(group.id, "vetoed")] == [vetoed.id]
        assert [v.id for v in service.get_events(group.id, EventStatus.PENDING)] == [pending.id]
        assert service.get_events(group.id, "approved") == []

    def test_invalid_status_filter(self, service, group):
        with pytest.raises(ValidationError) as exc_info:
            service.get_events(group.id, "rejected")
        assert exc_info.value.reason == ValidationError.INVALID_STATUS_FILTER

    def test_unknown_group(self, service):
        with pytest.raises(NotFoundError):
            service.get_events(uuid4())

    def test_viewer_must_be_member(self, service, group):
        with pytest.raises(AccessDeniedError):
            service.get_events(group.id, viewer_id=uuid4())

        assert service.get_events(group.id, viewer_id=group.users.alice) == []

    def test_reading_sweeps_overdue_events(self, service, roster, group, clock):
        u = group.users
        event = log_event(service, group, u.alice, u.bob, group.rules.commend)

        clock.advance(days=1, seconds=1)
        views = service.get_events(group.id)

        assert views[0].id == event.id
        assert views[0].status == EventStatus.APPROVED
        assert points_of(roster, group, u.alice) == 10

    def test_departed_member_shown_as_unknown(self, service, group, session_factory):
        u = group.users
        log_event(service, group, u.dave, u.bob, group.rules.commend)

        with session_factory() as session:
            session.execute(delete(GroupMember).where(GroupMember.user_id == u.dave))
            session.commit()

        view = service.get_events(group.id)[0]
        assert view.target_name == "Unknown"
        assert view.target_email == ""
        assert view.submitter_name == "Bob"


# =============================================================
# TEST: Leaderboard
# =============================================================

class TestLeaderboard:
    """Test the leaderboard."""

    def test_ties_ordered_by_name(self, service, group):
        board = service.get_leaderboard(group.id)

        assert [e.display_name for e in board] == ["Alice", "Bob", "Carol", "Dave", "Owner"]
        assert [e.rank for e in board] == [1, 2, 3, 4, 5]

    def test_sorted_by_points_after_sweep(self, service, group, clock):
        u = group.users
        log_event(service, group, u.dave, u.owner, group.rules.commend)
        log_event(service, group, u.alice, u.owner, group.rules.late)

        clock.advance(days=2)
        board = service.get_leaderboard(group.id)

        assert board[0].user_id == u.dave
        assert board[0].total_points == 10
        assert board[-1].user_id == u.alice
        assert board[-1].total_points == -5

    def test_unknown_group(self, service):
        with pytest.raises(NotFoundError):
            service.get_leaderboard(uuid4())
