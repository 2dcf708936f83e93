"""
Pytest configuration for crudrepo.

Provides fixtures for:
- An in-memory SQLite store (aiosqlite) with the test schema
- A session (unit of work) and ready-made repositories
- Seeded authors for reconciliation tests
- PostgreSQL settings and availability for integration tests
"""

from __future__ import annotations

import os
from typing import AsyncIterator, List

import psycopg
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from crudrepo.config import Settings
from crudrepo.infrastructure.db_factory import build_engine, create_session_factory, session_scope
from crudrepo.repositories.sqlalchemy_repository import SqlAlchemyCrudRepository
from tests.models import Author, Base, User

SQLITE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """
    Fresh in-memory database per test; StaticPool keeps the single connection alive.
    """
    engine = build_engine(SQLITE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_scope(session_factory) as session:
        yield session


@pytest.fixture
def authors(session: AsyncSession) -> SqlAlchemyCrudRepository[Author]:
    return SqlAlchemyCrudRepository(session, Author)


@pytest.fixture
def users(session: AsyncSession) -> SqlAlchemyCrudRepository[User]:
    return SqlAlchemyCrudRepository(session, User)


@pytest_asyncio.fixture
async def seeded_authors(authors: SqlAlchemyCrudRepository[Author]) -> List[Author]:
    """
    Three authors with ids 1, 2 and 3.
    """
    return await authors.create_many(
        [Author(name="A1", age=31), Author(name="A2", age=32), Author(name="A3", age=33)]
    )


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture for integration tests.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "crudrepo"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    libpq connection string for the integration database.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if the integration database is reachable.

    Used to conditionally skip integration tests when PostgreSQL is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False
