"""
Pytest fixtures for the inventory kernel test suite.

Provides:
- A fresh file-backed SQLite database per test (real commits, real
  multi-connection threads)
- An actor directory with one actor per role used by the workflow
- An orchestrator wired with a deterministic clock and an in-memory
  event bus
- Structured log capture

Environment Variables:
- DATABASE_URL: run the suite against another database (e.g. PostgreSQL)
  instead of a per-test SQLite file.  The tables are dropped after each
  test.
"""

import json
import logging
import os
from io import StringIO
from uuid import uuid4

import pytest

from inventory_kernel.config import InventoryConfig, reset_config
from inventory_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from inventory_kernel.domain.authorization import RoleBasedAuthorization, StaticActorDirectory
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.events import InMemoryEventBus
from inventory_kernel.domain.roles import Role
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from inventory_kernel.services.inventory_orchestrator import InventoryOrchestrator
from inventory_kernel.services.item_locks import ItemLockRegistry


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for item locks"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture(autouse=True)
def _reset_active_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def captured_logs():
    """
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.transfer_stock(...)
            logs = captured_logs()
            assert any(r["message"] == "movement_recorded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def database_url(tmp_path) -> str:
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'inventory.db'}"


@pytest.fixture
def engine(database_url):
    engine = init_engine_from_url(database_url, pool_timeout=10)
    create_tables(engine)
    yield engine
    drop_tables(engine)
    reset_engine()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """A plain session for service-level tests. Rolled back at teardown."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Actors and collaborators
# =============================================================================


class Actors:
    """One actor per role the workflow touches, plus a second keeper."""

    def __init__(self, directory: StaticActorDirectory):
        self.product_manager = directory.add(uuid4(), Role.PRODUCT_MANAGER)
        self.keeper = directory.add(uuid4(), Role.STOCK_KEEPER)
        self.keeper_2 = directory.add(uuid4(), Role.STOCK_KEEPER)
        self.ceo = directory.add(uuid4(), Role.CEO)
        self.marketer = directory.add(uuid4(), Role.MARKETER)
        self.medical_rep = directory.add(uuid4(), Role.MEDICAL_REP)


@pytest.fixture
def directory() -> StaticActorDirectory:
    return StaticActorDirectory()


@pytest.fixture
def actors(directory) -> Actors:
    return Actors(directory)


@pytest.fixture
def authorization(directory) -> RoleBasedAuthorization:
    return RoleBasedAuthorization(directory)


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def inventory_config() -> InventoryConfig:
    return InventoryConfig(
        database_url="sqlite://",
        lock_timeout_seconds=2.0,
        max_attempts=3,
        backoff_base_seconds=0.01,
        backoff_max_seconds=0.05,
    )


@pytest.fixture
def lock_registry() -> ItemLockRegistry:
    return ItemLockRegistry()


@pytest.fixture
def orchestrator(
    session_factory, inventory_config, authorization, directory, event_bus, clock, lock_registry,
) -> InventoryOrchestrator:
    return InventoryOrchestrator(
        session_factory,
        inventory_config,
        authorization,
        directory,
        events=event_bus,
        clock=clock,
        locks=lock_registry,
    )


@pytest.fixture
def stocked_item(orchestrator, actors):
    """A catalog item with quantity 100, all in the central pool."""
    return orchestrator.register_stock_item(actors.keeper, "Amoxicillin 500mg", 100)
