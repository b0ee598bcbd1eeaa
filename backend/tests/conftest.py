"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Centralized test configuration with markers and isolated storage
WHY: Every test starts from an empty database and fresh transports
HOW: Point settings at in-memory SQLite before import, recreate tables per test
"""

import os
import tempfile

# Settings are read at import time; configure before importing the package
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TRANSPORT_PROVIDER"] = "memory"
os.environ["GARDEN_AGENT_ADDRESS"] = "0xGarden"
os.environ["FARM_AGENT_ADDRESS"] = "0xFarm"
os.environ["RUN_AGENTS_WITH_API"] = "false"
os.environ["LOG_FILE"] = os.path.join(tempfile.gettempdir(), "yield_garden_tests", "app.log")

import pytest

from yield_garden.core.database import Base, engine, init_db
from yield_garden.core.kv_store import KeyValueStore
from yield_garden.services.conversation_store import ConversationStore
from yield_garden.services.message_buffer import MessageBuffer
from yield_garden.services.negotiation_policy import NegotiationPolicy, PolicyConfig
from yield_garden.services.payment_tracker import PaymentTracker
from yield_garden.transport.factory import reset_transports
from yield_garden.transport.memory import MemoryHub

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )


@pytest.fixture(autouse=True)
def reset_transport_singletons():
    """
    Reset transport cache before each test.
    
    WHAT: Clear per-address transports between tests
    WHY: Prevent test pollution through cached clients
    HOW: Call reset_transports() before and after each test
    """
    reset_transports()
    yield
    reset_transports()


@pytest.fixture(autouse=True)
def clean_database():
    """
    Fresh schema for each test.
    
    WHAT: Drop and recreate all tables on the in-memory engine
    WHY: Stores share the application engine; tests must not see each other's rows
    HOW: drop_all then init_db
    """
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield


@pytest.fixture
def kv():
    return KeyValueStore()


@pytest.fixture
def store(kv):
    return ConversationStore(kv)


@pytest.fixture
def tracker(kv):
    return PaymentTracker(kv)


@pytest.fixture
def buffer():
    return MessageBuffer()


@pytest.fixture
def policy():
    """Default tiers 5/25/100 with 20% flexibility."""
    return NegotiationPolicy(PolicyConfig())


@pytest.fixture
def hub():
    """Private memory network for one test."""
    return MemoryHub()
