"""Session-scoped fixtures for integration tests."""

from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from testcontainers.postgres import PostgresContainer

from kanban_board.db import SqlRecordStore

_SCHEMA = [
    "DROP TABLE IF EXISTS incident",
    "DROP TABLE IF EXISTS account",
    "DROP TABLE IF EXISTS oss_subscription",
    "CREATE TABLE account (accountid text PRIMARY KEY, name text)",
    (
        "CREATE TABLE incident (incidentid text PRIMARY KEY, title text, statuscode integer, "
        "statecode integer, ownerid text, customerid text, oss_escalated boolean)"
    ),
    (
        "CREATE TABLE oss_subscription (oss_subscriptionid text PRIMARY KEY, ownerid text, createdon text, "
        "_oss_incidentid_value text, oss_emailnotificationsenabled boolean, oss_emailnotificationssender text)"
    ),
    "INSERT INTO account VALUES ('acc-1', 'Contoso'), ('acc-2', 'Fabrikam')",
    (
        "INSERT INTO incident VALUES "
        "('a', 'Printer broken', 1, 0, 'u1', 'acc-1', false), "
        "('b', 'VPN down', 5, 1, 'u1', 'acc-2', true), "
        "('c', 'New laptop', NULL, 0, 'u1', NULL, false), "
        "('d', 'Email bounce', 2, 0, 'u2', 'acc-1', false)"
    ),
]


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """Start a PostgreSQL container for the session."""
    with PostgresContainer("postgres:16-alpine", driver="asyncpg") as container:
        yield container


@pytest.fixture(scope="session")
def test_db_url(postgres_container: PostgresContainer) -> str:
    """Async connection URL for the test database."""
    return postgres_container.get_connection_url()


@pytest_asyncio.fixture
async def database(test_db_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Per-test engine with freshly seeded tables."""
    engine = create_async_engine(test_db_url, future=True)
    async with engine.begin() as conn:
        for statement in _SCHEMA:
            await conn.execute(text(statement))
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def sql_store(database: AsyncEngine) -> SqlRecordStore:
    """Per-test SqlRecordStore with a small page size to exercise paging."""
    return SqlRecordStore(database, page_size=2)
