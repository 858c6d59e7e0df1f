"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the house points engine.

- Provides clear exception hierarchy
- Enables specific error handling by callers
- Distinguishes retryable from final failures
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
HouseRulesException (base)
├── ValidationError
├── NotFoundError
│   └── EventNotFoundError
├── AccessDeniedError
├── StateConflictError
│   ├── EventNotPendingError
│   ├── EventExpiredError
│   ├── SelfVoteForbiddenError
│   ├── DuplicateVoteError
│   └── InvalidTransitionError
├── ConcurrencyConflictError
└── PersistenceError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging."""

    LOW = "low"
    """Expected rejection, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, data may be inconsistent until retried."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    FINAL = "final"
    """Retrying will not change the outcome."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class HouseRulesException(Exception):
    """
    Base exception for all engine errors.

    All exceptions carry:
    - severity: for logging
    - context: for debugging
    - classification: for retry decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.LOW
    default_classification: ErrorClassification = ErrorClassification.FINAL

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_retryable(self) -> bool:
        """Check if the failed operation may succeed on retry."""
        return self.classification == ErrorClassification.TRANSIENT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# VALIDATION ERRORS
# ============================================================

class ValidationError(HouseRulesException):
    """Malformed or inconsistent references supplied by the caller."""

    GROUP_NOT_FOUND = "group_not_found"
    NOT_A_MEMBER = "not_a_member"
    TARGET_NOT_A_MEMBER = "target_not_a_member"
    RULE_MISMATCH = "rule_mismatch"
    INVALID_STATUS_FILTER = "invalid_status_filter"
    ALREADY_A_MEMBER = "already_a_member"

    def __init__(
        self,
        message: str,
        reason: str,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        context["reason"] = reason

        super().__init__(message, context=context, **kwargs)
        self.reason = reason


# ============================================================
# LOOKUP ERRORS
# ============================================================

class NotFoundError(HouseRulesException):
    """A group, rule, member or event does not exist."""

    def __init__(
        self,
        entity: str,
        entity_id: Any,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        context["entity"] = entity
        context["entity_id"] = str(entity_id)

        super().__init__(f"{entity} {entity_id} not found", context=context, **kwargs)
        self.entity = entity
        self.entity_id = entity_id


class EventNotFoundError(NotFoundError):
    """Event does not exist."""

    def __init__(self, event_id: Any):
        super().__init__("event", event_id)


class AccessDeniedError(HouseRulesException):
    """User is not a member of the group they are acting in."""

    def __init__(self, user_id: Any, group_id: Any):
        super().__init__(
            f"User {user_id} is not a member of group {group_id}",
            context={"user_id": str(user_id), "group_id": str(group_id)},
        )
        self.user_id = user_id
        self.group_id = group_id


# ============================================================
# STATE CONFLICTS
# ============================================================

class StateConflictError(HouseRulesException):
    """Request conflicts with the current state of an event."""

    def __init__(
        self,
        message: str,
        event_id: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if event_id is not None:
            context["event_id"] = str(event_id)

        super().__init__(message, context=context, **kwargs)
        self.event_id = event_id


class EventNotPendingError(StateConflictError):
    """Event already reached a terminal status."""

    def __init__(self, event_id: Any, status: str):
        super().__init__(
            f"Event {event_id} is no longer pending (status={status})",
            event_id=event_id,
            context={"status": status},
        )
        self.status = status


class EventExpiredError(StateConflictError):
    """Vote arrived after the review deadline."""

    def __init__(self, event_id: Any, expires_at: datetime):
        super().__init__(
            f"Event {event_id} expired at {expires_at.isoformat()}",
            event_id=event_id,
            context={"expires_at": expires_at.isoformat()},
        )
        self.expires_at = expires_at


class SelfVoteForbiddenError(StateConflictError):
    """Target member attempted to vote on their own event."""

    def __init__(self, event_id: Any, user_id: Any):
        super().__init__(
            f"User {user_id} cannot vote on their own event",
            event_id=event_id,
            context={"user_id": str(user_id)},
        )


class DuplicateVoteError(StateConflictError):
    """Voter already cast a veto on this event."""

    def __init__(self, event_id: Any, user_id: Any):
        super().__init__(
            f"User {user_id} has already voted on event {event_id}",
            event_id=event_id,
            context={"user_id": str(user_id)},
        )


class InvalidTransitionError(StateConflictError):
    """Attempted status change is not part of the lifecycle."""

    default_severity = Severity.MEDIUM

    def __init__(self, from_status: str, to_status: str, event_id: Optional[Any] = None):
        super().__init__(
            f"Invalid event transition: {from_status} -> {to_status}",
            event_id=event_id,
            context={"from_status": from_status, "to_status": to_status},
        )
        self.from_status = from_status
        self.to_status = to_status


# ============================================================
# CONCURRENCY & PERSISTENCE
# ============================================================

class ConcurrencyConflictError(HouseRulesException):
    """Lost the race to serialize a mutation."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        attempts: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if attempts is not None:
            context["attempts"] = attempts

        super().__init__(message, context=context, **kwargs)
        self.attempts = attempts


class PersistenceError(HouseRulesException):
    """Database operation failed."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT


__all__ = [
    "Severity",
    "ErrorClassification",
    "HouseRulesException",
    "ValidationError",
    "NotFoundError",
    "EventNotFoundError",
    "AccessDeniedError",
    "StateConflictError",
    "EventNotPendingError",
    "EventExpiredError",
    "SelfVoteForbiddenError",
    "DuplicateVoteError",
    "InvalidTransitionError",
    "ConcurrencyConflictError",
    "PersistenceError",
]
