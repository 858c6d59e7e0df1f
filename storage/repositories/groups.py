"""
Group & Rule Repositories.

============================================================
PURPOSE
============================================================
Data access for the group roster and the rule catalog.

============================================================
ROSTER AGGREGATE
============================================================
GroupRepository is the only writer of GroupMember.total_points.
apply_points() issues one atomic UPDATE scoped to a single
(group, member) row, so concurrent approvals for the same member
never lose an increment, and approvals for different members
never contend.

============================================================
REPOSITORIES
============================================================
- GroupRepository: Groups and their member roster
- RuleRepository: Rule catalog scoped by group

============================================================
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, desc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storage.models.groups import Group, GroupMember, Rule
from storage.repositories.base import BaseRepository


class GroupRepository(BaseRepository[Group]):
    """
    Repository for groups and their roster.

    ============================================================
    MODELS MANAGED
    ============================================================
    - Group: Group records
    - GroupMember: Roster entries with cumulative points

    ============================================================
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session, Group, "GroupRepository")

    # =========================================================
    # GROUP OPERATIONS
    # =========================================================

    def create_group(
        self,
        name: str,
        created_by: UUID,
        created_at: datetime,
        description: Optional[str] = None,
    ) -> Group:
        """Create a group."""
        entity = Group(
            name=name,
            description=description,
            created_by=created_by,
            created_at=created_at,
        )
        return self._add(entity)

    def get_group(self, group_id: UUID) -> Optional[Group]:
        """Get group by ID."""
        return self._get_by_id(group_id)

    # =========================================================
    # ROSTER OPERATIONS
    # =========================================================

    def add_member(
        self,
        group_id: UUID,
        user_id: UUID,
        display_name: str,
        email: str,
        joined_at: datetime,
    ) -> GroupMember:
        """
        Add a member to the roster with zero points.

        Raises:
            DuplicateRecordError: If the user is already a member
        """
        entity = GroupMember(
            group_id=group_id,
            user_id=user_id,
            display_name=display_name,
            email=email,
            total_points=0,
            joined_at=joined_at,
        )
        try:
            self._session.add(entity)
            self._session.flush()
        except SQLAlchemyError as e:
            self._handle_db_error(
                e, "add_member", {"field": "user_id", "value": str(user_id)}
            )
            raise
        return entity

    def get_member(self, group_id: UUID, user_id: UUID) -> Optional[GroupMember]:
        """Get a roster entry."""
        stmt = select(GroupMember).where(and_(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
        ))
        return self._execute_scalar(stmt)

    def is_member(self, group_id: UUID, user_id: UUID) -> bool:
        """Check roster membership."""
        return self.get_member(group_id, user_id) is not None

    def list_members(self, group_id: UUID) -> List[GroupMember]:
        """List roster entries in join order."""
        stmt = (
            select(GroupMember)
            .where(GroupMember.group_id == group_id)
            .order_by(GroupMember.id)
        )
        return self._execute_query(stmt)

    def list_leaderboard(self, group_id: UUID) -> List[GroupMember]:
        """List roster entries by total points, highest first."""
        stmt = (
            select(GroupMember)
            .where(GroupMember.group_id == group_id)
            .order_by(desc(GroupMember.total_points), GroupMember.display_name)
        )
        return self._execute_query(stmt)

    def apply_points(self, group_id: UUID, user_id: UUID, delta: int) -> bool:
        """
        Atomically add delta to a member's total points.

        Args:
            group_id: Group the member belongs to
            user_id: Member to credit
            delta: Signed point delta

        Returns:
            True if the member row was updated, False if the
            user is not on the roster
        """
        stmt = (
            update(GroupMember)
            .where(and_(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id,
            ))
            .values(total_points=GroupMember.total_points + delta)
        )
        updated = self._execute_update(stmt, "apply_points")

        self._logger.debug(
            f"apply_points group={group_id} user={user_id} delta={delta} rows={updated}"
        )
        return updated == 1


class RuleRepository(BaseRepository[Rule]):
    """Repository for the rule catalog."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Rule, "RuleRepository")

    def create_rule(
        self,
        group_id: UUID,
        description: str,
        points: int,
        veto_threshold: int = 0,
    ) -> Rule:
        """Create a rule in a group's catalog."""
        entity = Rule(
            group_id=group_id,
            description=description,
            points=points,
            veto_threshold=veto_threshold,
        )
        return self._add(entity)

    def get_rule(self, rule_id: UUID) -> Optional[Rule]:
        """Get rule by ID."""
        return self._get_by_id(rule_id)

    def get_rule_for_group(self, group_id: UUID, rule_id: UUID) -> Optional[Rule]:
        """Get a rule only if it belongs to the group."""
        stmt = select(Rule).where(and_(
            Rule.id == rule_id,
            Rule.group_id == group_id,
        ))
        return self._execute_scalar(stmt)

    def list_rules(self, group_id: UUID) -> List[Rule]:
        """List a group's rules."""
        stmt = select(Rule).where(Rule.group_id == group_id).order_by(Rule.description)
        return self._execute_query(stmt)
