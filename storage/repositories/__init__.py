"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to persistent storage.
All database access MUST go through repository classes.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. DAO Pattern: One repository per aggregate
2. Session Injection: Sessions are injected, not created internally
3. Explicit Methods: No generic 'execute', clear method names
4. Exception Handling: All DB errors wrapped in repository exceptions

============================================================
REPOSITORIES
============================================================
- GroupRepository: Groups and the member roster (point ledger)
- RuleRepository: Rule catalog
- EventRepository: Events and veto votes

============================================================
"""

from storage.repositories.exceptions import (
    RepositoryException,
    DuplicateRecordError,
    StaleRecordError,
    IntegrityError,
    ConnectionError,
    QueryError,
)
from storage.repositories.base import BaseRepository
from storage.repositories.groups import GroupRepository, RuleRepository
from storage.repositories.events import EventRepository

__all__ = [
    "RepositoryException",
    "DuplicateRecordError",
    "StaleRecordError",
    "IntegrityError",
    "ConnectionError",
    "QueryError",
    "BaseRepository",
    "GroupRepository",
    "RuleRepository",
    "EventRepository",
]
