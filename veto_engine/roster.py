"""
Roster Service.

Thin plumbing over the group aggregate: register groups, add
members and rules. Points are never written here; the only
entry point that moves total_points is event approval.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import sessionmaker

from core.clock import ClockProtocol, get_clock
from core.exceptions import NotFoundError, ValidationError
from storage.database import transaction_scope
from storage.repositories import DuplicateRecordError, GroupRepository, RuleRepository
from veto_engine.schemas import GroupRecord, MemberRecord, RuleDefinition, RuleRecord

logger = logging.getLogger(__name__)


class RosterService:
    """Service for group, roster and rule catalog setup."""

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Optional[ClockProtocol] = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or get_clock()

    def register_group(
        self,
        name: str,
        created_by: UUID,
        creator_name: str,
        creator_email: str,
        description: Optional[str] = None,
    ) -> GroupRecord:
        """
        Create a group with its creator as the first member.

        The creator starts with zero points like any other member.
        """
        now = self._clock.now()
        with transaction_scope(self._session_factory) as session:
            groups = GroupRepository(session)
            group = groups.create_group(
                name=name.strip(),
                created_by=created_by,
                created_at=now,
                description=(description or "").strip(),
            )
            groups.add_member(
                group_id=group.id,
                user_id=created_by,
                display_name=creator_name,
                email=creator_email,
                joined_at=now,
            )
            record = GroupRecord.model_validate(group)

        logger.info(
            f"Registered group: id={record.id} name={record.name!r} creator={created_by}"
        )
        return record

    def add_member(
        self,
        group_id: UUID,
        user_id: UUID,
        display_name: str,
        email: str,
    ) -> MemberRecord:
        """
        Add a user to a group's roster with zero points.

        Raises:
            NotFoundError: Group does not exist
            ValidationError: User is already a member
        """
        with transaction_scope(self._session_factory) as session:
            groups = GroupRepository(session)
            if groups.get_group(group_id) is None:
                raise NotFoundError("group", group_id)

            try:
                member = groups.add_member(
                    group_id=group_id,
                    user_id=user_id,
                    display_name=display_name,
                    email=email,
                    joined_at=self._clock.now(),
                )
            except DuplicateRecordError as e:
                raise ValidationError(
                    f"User {user_id} is already a member of group {group_id}",
                    reason=ValidationError.ALREADY_A_MEMBER,
                    cause=e,
                ) from e
            record = MemberRecord.model_validate(member)

        logger.info(f"Member joined: group={group_id} user={user_id}")
        return record

    def add_rule(self, group_id: UUID, definition: RuleDefinition) -> RuleRecord:
        """
        Add a rule to a group's catalog.

        Raises:
            NotFoundError: Group does not exist
        """
        with transaction_scope(self._session_factory) as session:
            if GroupRepository(session).get_group(group_id) is None:
                raise NotFoundError("group", group_id)

            rule = RuleRepository(session).create_rule(
                group_id=group_id,
                description=definition.description,
                points=definition.points,
                veto_threshold=definition.veto_threshold,
            )
            record = RuleRecord.model_validate(rule)

        logger.info(
            f"Rule added: group={group_id} rule={record.id} "
            f"points={record.points} veto_threshold={record.veto_threshold}"
        )
        return record

    def get_member(self, group_id: UUID, user_id: UUID) -> MemberRecord:
        """
        Get a roster entry.

        Raises:
            NotFoundError: User is not on the roster
        """
        with transaction_scope(self._session_factory) as session:
            member = GroupRepository(session).get_member(group_id, user_id)
            if member is None:
                raise NotFoundError("member", user_id)
            return MemberRecord.model_validate(member)

    def list_members(self, group_id: UUID) -> List[MemberRecord]:
        """List roster entries in join order."""
        with transaction_scope(self._session_factory) as session:
            return [
                MemberRecord.model_validate(m)
                for m in GroupRepository(session).list_members(group_id)
            ]
