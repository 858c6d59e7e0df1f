"""
Event Repository.

============================================================
PURPOSE
============================================================
Durable record of every event and its veto votes. Supports
lookup by id and by group, and the filtered scans the expiry
sweeper needs.

============================================================
DATA LIFECYCLE
============================================================
- Events are never deleted; status changes exactly once
- Votes are append-only

============================================================
CONCURRENCY
============================================================
- record_veto() writes through the ORM; the version column
  makes a concurrent writer fail with StaleRecordError
- approve_if_pending() is a conditional UPDATE that only
  matches rows still pending and overdue, so a second sweep
  (or a concurrent one) is a no-op

============================================================
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, desc, select, update
from sqlalchemy.orm import Session

from storage.models.events import Event, EventStatus, EventVote
from storage.repositories.base import BaseRepository


class EventRepository(BaseRepository[Event]):
    """
    Repository for events and votes.

    ============================================================
    MODELS MANAGED
    ============================================================
    - Event: Event records
    - EventVote: Veto votes

    ============================================================
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, Event, "EventRepository")

    # =========================================================
    # EVENT OPERATIONS
    # =========================================================

    def create_event(
        self,
        group_id: UUID,
        target_user_id: UUID,
        submitter_user_id: UUID,
        rule_id: UUID,
        note: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> Event:
        """
        Create a pending event with no votes.

        Args:
            group_id: Owning group
            target_user_id: Member whose score is affected
            submitter_user_id: Member who filed the event
            rule_id: Rule being applied
            note: Free-text note
            created_at: Creation timestamp
            expires_at: End of the review window

        Returns:
            Created Event record
        """
        entity = Event(
            group_id=group_id,
            target_user_id=target_user_id,
            submitter_user_id=submitter_user_id,
            rule_id=rule_id,
            note=note,
            status=EventStatus.PENDING.value,
            veto_count=0,
            created_at=created_at,
            expires_at=expires_at,
            votes=[],
        )
        return self._add(entity)

    def get_event(self, event_id: UUID) -> Optional[Event]:
        """Get event by ID."""
        return self._get_by_id(event_id)

    def list_events_by_group(
        self,
        group_id: UUID,
        status: Optional[EventStatus] = None,
    ) -> List[Event]:
        """
        List a group's events, newest first.

        Args:
            group_id: The group
            status: Optional status filter
        """
        conditions = [Event.group_id == group_id]
        if status is not None:
            conditions.append(Event.status == status.value)

        stmt = (
            select(Event)
            .where(and_(*conditions))
            .order_by(desc(Event.created_at))
        )
        return self._execute_query(stmt)

    # =========================================================
    # EXPIRY SCANS
    # =========================================================

    def list_overdue_event_ids(self, group_id: UUID, now: datetime) -> List[UUID]:
        """IDs of the group's pending events whose deadline passed before now."""
        stmt = (
            select(Event.id)
            .where(and_(
                Event.group_id == group_id,
                Event.status == EventStatus.PENDING.value,
                Event.expires_at < now,
            ))
            .order_by(Event.expires_at)
        )
        return self._execute_query(stmt)

    def list_groups_with_overdue(self, now: datetime) -> List[UUID]:
        """Groups that have at least one overdue pending event."""
        stmt = (
            select(Event.group_id)
            .where(and_(
                Event.status == EventStatus.PENDING.value,
                Event.expires_at < now,
            ))
            .distinct()
        )
        return self._execute_query(stmt)

    # =========================================================
    # MUTATIONS
    # =========================================================

    def record_veto(
        self,
        event: Event,
        voter_user_id: UUID,
        cast_at: datetime,
        new_status: EventStatus,
        resolved_at: Optional[datetime] = None,
    ) -> Event:
        """
        Append a veto and write the resulting status.

        Raises:
            StaleRecordError: Event changed since it was loaded
            DuplicateRecordError: Voter already has a vote row
        """
        event.votes.append(EventVote(voter_user_id=voter_user_id, cast_at=cast_at))
        event.veto_count = len(event.votes)
        event.status = new_status.value
        if resolved_at is not None:
            event.resolved_at = resolved_at

        self._flush(
            "record_veto",
            {"field": "voter_user_id", "value": str(voter_user_id)},
        )
        return event

    def approve_if_pending(
        self,
        event_id: UUID,
        now: datetime,
    ) -> bool:
        """
        Conditionally move an overdue pending event to approved.

        Returns:
            True if this call performed the transition
        """
        stmt = (
            update(Event)
            .where(and_(
                Event.id == event_id,
                Event.status == EventStatus.PENDING.value,
                Event.expires_at < now,
            ))
            .values(
                status=EventStatus.APPROVED.value,
                resolved_at=now,
                version=Event.version + 1,
            )
        )
        return self._execute_update(stmt, "approve_if_pending") == 1
