"""
Pytest Configuration and Fixtures for RhymeRumble Tests
=======================================================

Purpose
-------
Centralized test fixtures for the RhymeRumble test suite: testcontainers
PostgreSQL for integration tests, and mocks of the event bus, runtime
configuration and database sessions for unit tests.

Architecture Notes
------------------
- Unit tests use mocks (fast, isolated)
- Integration tests use testcontainers (real PostgreSQL) and are deselected
  by default; run them with ``pytest -m integration``
- Database fixtures provide a clean slate per test
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Generator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[Any, None, None]:
    """
    Start PostgreSQL testcontainer for integration tests.

    Scope: session (container persists across all tests)
    """
    from testcontainers.postgres import PostgresContainer

    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    container.start()
    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def database_engine(postgres_container) -> AsyncGenerator[AsyncEngine, None]:
    """
    Async engine connected to the testcontainer, with the schema created.

    Scope: session (one engine for all tests)
    """
    from src.database.models import Base

    connection_url = postgres_container.get_connection_url().replace("psycopg2", "asyncpg")
    engine = create_async_engine(connection_url, echo=False, pool_pre_ping=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(loop_scope="session")
async def db_session(database_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """
    Session per test inside a transaction that is rolled back afterwards.
    """
    session_maker = async_sessionmaker(database_engine, class_=AsyncSession, expire_on_commit=False)

    async with session_maker() as session:
        transaction = await session.begin()
        yield session
        await transaction.rollback()


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def config_values() -> Dict[str, Any]:
    """
    Runtime settings seen by services under test. Tests mutate this dict to
    change behavior; unknown keys fall back to the caller's default.
    """
    return {}


@pytest.fixture
def mock_config_manager(mocker, config_values):
    """
    Stand-in for ConfigManager backed by ``config_values``.
    """
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(
        side_effect=lambda key, default=None: config_values.get(key, default)
    )
    mock_config.get_int = mocker.MagicMock(
        side_effect=lambda key, default: int(config_values.get(key, default))
    )
    mock_config.get_bool = mocker.MagicMock(
        side_effect=lambda key, default: bool(config_values.get(key, default))
    )
    return mock_config


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus; ``publish`` is awaitable and records every event.
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_session(mocker):
    """
    AsyncSession double handed out by the patched DatabaseService.
    """
    session = mocker.MagicMock()
    session.execute = mocker.AsyncMock()
    session.scalar = mocker.AsyncMock()
    session.get = mocker.AsyncMock()
    session.flush = mocker.AsyncMock()
    session.delete = mocker.AsyncMock()
    return session


@pytest.fixture
def mock_database(mocker, mock_session):
    """
    Patch ``DatabaseService.get_transaction`` and ``get_session`` to yield
    ``mock_session``.

    Returns the pair of patches so tests can assert which one was used.
    """

    @asynccontextmanager
    async def _scope():
        yield mock_session

    transaction = mocker.patch.object(
        DatabaseService, "get_transaction", side_effect=lambda: _scope()
    )
    session = mocker.patch.object(
        DatabaseService, "get_session", side_effect=lambda: _scope()
    )
    return transaction, session


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def published_events(mock_event_bus) -> list:
    """Names of events published on ``mock_event_bus``, in order."""
    return [call.args[0] for call in mock_event_bus.publish.await_args_list]


def published_payload(mock_event_bus, event_name: str) -> dict | None:
    for call in mock_event_bus.publish.await_args_list:
        if call.args[0] == event_name:
            return call.args[1]
    return None


def assert_domain_event_emitted(domain_model, event_name: str) -> bool:
    """
    Assert that a domain model emitted a specific event.

    Usage:
        machine.respond(edge, "accept", responder_id="bob")
        assert assert_domain_event_emitted(edge, "friendship.request_accepted")
    """
    events = list(domain_model._domain_events)
    return any(event.event_name == event_name for event in events)


def get_domain_event_payload(domain_model, event_name: str) -> dict | None:
    """
    Get the payload of a specific domain event.

    Usage:
        payload = get_domain_event_payload(edge, "friendship.request_sent")
        assert payload["target_id"] == "bob"
    """
    events = list(domain_model._domain_events)
    for event in events:
        if event.event_name == event_name:
            return event.payload
    return None
