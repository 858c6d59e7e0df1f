"""
Storage Models Package.

This package contains all ORM models of the house points store.

============================================================
MODEL ORGANIZATION
============================================================

Domain 1: Groups (groups.py)
- Group
- GroupMember
- Rule

Domain 2: Events (events.py)
- Event
- EventVote
- EventStatus
"""

from storage.models.base import Base, UTCDateTime
from storage.models.groups import Group, GroupMember, Rule
from storage.models.events import Event, EventStatus, EventVote

__all__ = [
    "Base",
    "UTCDateTime",
    "Group",
    "GroupMember",
    "Rule",
    "Event",
    "EventStatus",
    "EventVote",
]
