"""
Root Pytest Fixtures.

Shared fixtures available to all test types.

Test Database Configuration:
    Tests use an in-memory SQLite database (aiosqlite) by default.
    To test against another database, set TEST_DATABASE_URL:

        export TEST_DATABASE_URL="sqlite+aiosqlite:///./test.db"

    Each test gets fresh tables, dropped again when the test ends.
"""

import os
from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from userflow.core.database import Database
from userflow.models.base import Base
from userflow.models.company import Company
from userflow.models.user import User
from userflow.tracing.context import CausalContext


# =============================================================================
# Database Configuration
# =============================================================================


def get_test_database_url() -> str:
    """
    Get the test database URL.

    Returns TEST_DATABASE_URL if set, otherwise uses in-memory SQLite.
    """
    return os.environ.get(
        "TEST_DATABASE_URL",
        "sqlite+aiosqlite:///:memory:",
    )


def is_sqlite() -> bool:
    """Check if using SQLite database."""
    return "sqlite" in get_test_database_url()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def database() -> AsyncGenerator[Database, None]:
    """
    Provide a Database with the users and companies tables created.

    SQLite in-memory uses a StaticPool so every session shares the same
    connection (and therefore the same data).
    """
    url = get_test_database_url()
    if is_sqlite():
        engine = create_async_engine(
            url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(url, echo=False)

    db = Database(engine)
    await db.create_tables(User, Company)

    yield db

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await db.dispose()


@pytest.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a database session for a single test.

    Changes are rolled back after the test.

    Usage:
        async def test_create_user(db_session: AsyncSession):
            repo = UserRepository(db_session)
            user = await repo.create(name="Alice")
            assert user.id
    """
    async with database.session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Tracing Fixtures
# =============================================================================


@pytest.fixture
def producer_ctx() -> CausalContext:
    """A sampled producer context with fixed identifiers."""
    return CausalContext(
        trace_id=0x4BF92F3577B34DA6A3CE929D0E0E4736,
        span_id=0x00F067AA0BA902B7,
        sampled=True,
    )


# =============================================================================
# Utility Fixtures
# =============================================================================


@pytest.fixture
def anyio_backend() -> str:
    """Specify the async backend for anyio."""
    return "asyncio"
