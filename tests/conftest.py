"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database, a mock
clock frozen at a fixed instant, and a seeded group:

    owner, alice, bob, carol, dave
    rules: commend (+10, threshold 2)
           late (-5, threshold 1)
           instant (+3, threshold 0)
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from core.clock import MockClock
from core.config import HouseRulesConfig
from storage.database import (
    create_all_tables,
    create_database_engine,
    create_session_factory,
)
from veto_engine import EventService, RosterService, RuleDefinition


START_TIME = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Mock clock frozen at START_TIME."""
    return MockClock(START_TIME)


@pytest.fixture
def config():
    return HouseRulesConfig(database_url="sqlite://", max_conflict_retries=3)


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_database_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def roster(session_factory, clock):
    return RosterService(session_factory, clock=clock)


@pytest.fixture
def service(session_factory, clock, config):
    return EventService(session_factory, clock=clock, config=config)


@pytest.fixture
def group(roster):
    """A group with five members and three rules."""
    users = SimpleNamespace(
        owner=uuid4(),
        alice=uuid4(),
        bob=uuid4(),
        carol=uuid4(),
        dave=uuid4(),
    )

    record = roster.register_group(
        "Flat 4B",
        created_by=users.owner,
        creator_name="Owner",
        creator_email="owner@example.com",
    )
    for name, user_id in vars(users).items():
        if user_id == users.owner:
            continue
        roster.add_member(
            record.id,
            user_id,
            display_name=name.capitalize(),
            email=f"{name}@example.com",
        )

    commend = roster.add_rule(
        record.id,
        RuleDefinition(description="Cleaned the kitchen", points=10, veto_threshold=2),
    )
    late = roster.add_rule(
        record.id,
        RuleDefinition(description="Late with rent", points=-5, veto_threshold=1),
    )
    instant = roster.add_rule(
        record.id,
        RuleDefinition(description="Took out the bins", points=3, veto_threshold=0),
    )

    return SimpleNamespace(
        id=record.id,
        users=users,
        rules=SimpleNamespace(commend=commend, late=late, instant=instant),
    )
