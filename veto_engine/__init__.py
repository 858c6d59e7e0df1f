"""
Veto Engine Package.

Event lifecycle and veto-consensus engine for house points.

Core Principles:
- Points are provisional until an event is approved
- A vote IS a veto; reaching the rule's threshold kills the event
- Unvetoed events are approved once their 24h window has passed
- Approval and the point credit commit together, exactly once

Modules:
- types: Value objects for the resolution logic
- resolution: Pure state-machine decisions
- schemas: Pydantic inputs and detached records
- service: Event lifecycle operations
- roster: Group, roster and rule setup
- sweeper: Scheduled expiry sweeps

Usage:
    from veto_engine import EventService, ExpirySweeper
"""

from veto_engine.schemas import (
    EventCreate,
    EventRecord,
    EventView,
    GroupRecord,
    LeaderboardEntry,
    MemberRecord,
    RuleDefinition,
    RuleRecord,
    RuleSummary,
    VoteRecord,
    VoteResult,
)

from veto_engine.types import (
    EventSnapshot,
    RuleTerms,
    SweepOutcome,
    SweepReport,
)

from veto_engine.service import EventService
from veto_engine.roster import RosterService
from veto_engine.sweeper import ExpirySweeper

__all__ = [
    # Schemas
    "EventCreate",
    "EventRecord",
    "EventView",
    "GroupRecord",
    "LeaderboardEntry",
    "MemberRecord",
    "RuleDefinition",
    "RuleRecord",
    "RuleSummary",
    "VoteRecord",
    "VoteResult",
    # Types
    "EventSnapshot",
    "RuleTerms",
    "SweepOutcome",
    "SweepReport",
    # Services
    "EventService",
    "RosterService",
    "ExpirySweeper",
]
