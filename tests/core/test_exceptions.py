"""
Tests for the exception hierarchy.
"""

from datetime import datetime, timezone
from uuid import uuid4

from core.exceptions import (
    ConcurrencyConflictError,
    DuplicateVoteError,
    ErrorClassification,
    EventExpiredError,
    EventNotFoundError,
    HouseRulesException,
    NotFoundError,
    PersistenceError,
    Severity,
    StateConflictError,
    ValidationError,
)


class TestHierarchy:
    """Callers can catch by family."""

    def test_vote_rejections_are_state_conflicts(self):
        assert issubclass(DuplicateVoteError, StateConflictError)
        assert issubclass(EventExpiredError, StateConflictError)

    def test_event_not_found_is_not_found(self):
        error = EventNotFoundError(uuid4())
        assert isinstance(error, NotFoundError)
        assert error.entity == "event"

    def test_everything_is_house_rules_exception(self):
        for cls in (ValidationError, NotFoundError, StateConflictError,
                    ConcurrencyConflictError, PersistenceError):
            assert issubclass(cls, HouseRulesException)


class TestContext:
    """Exceptions carry context for logging."""

    def test_validation_reason_in_context(self):
        error = ValidationError("bad", reason=ValidationError.RULE_MISMATCH)
        assert error.context["reason"] == "rule_mismatch"
        assert error.to_dict()["type"] == "ValidationError"

    def test_expired_carries_deadline(self):
        deadline = datetime(2025, 1, 2, tzinfo=timezone.utc)
        event_id = uuid4()
        error = EventExpiredError(event_id, deadline)

        assert error.context["event_id"] == str(event_id)
        assert error.context["expires_at"] == deadline.isoformat()
        assert error.severity == Severity.LOW
        assert not error.is_retryable

    def test_persistence_error_is_transient(self):
        error = PersistenceError("db down", cause=RuntimeError("timeout"))

        assert error.classification == ErrorClassification.TRANSIENT
        assert error.context["cause_type"] == "RuntimeError"
        assert error.to_log_format().startswith("[HIGH] PersistenceError: db down")
