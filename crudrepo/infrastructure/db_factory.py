"""
Store handle factory utilities for crudrepo.

Provides centralized management of the SQLAlchemy async engine and session
factory, the unit-of-work session scope, and the explicit transaction scope
repositories cooperate with. The EngineManager singleton owns the engine for
the process; sessions are short-lived and belong to one unit of work.

Includes retry logic for transient connection failures using tenacity. Only
connection verification is retried; repository operations never are.
"""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from crudrepo.config import get_settings
from crudrepo.utils.logging import get_logger

log = get_logger(__name__)

TRANSACTION_DEPTH_KEY = "crudrepo.transaction_depth"


def build_engine(url: Optional[str] = None, **overrides: Any) -> AsyncEngine:
    """
    Create an async engine for ``url`` (defaults to the configured store).

    Pool sizing from settings is applied to server databases only; SQLite
    drivers manage their own pools and get explicit transaction control so
    that savepoints work.
    """
    settings = get_settings()
    url = url or settings.database_url()
    options: Dict[str, Any] = {"echo": settings.db_echo}
    sqlite = make_url(url).get_backend_name() == "sqlite"
    if not sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
    options.update(overrides)
    engine = create_async_engine(url, **options)
    if sqlite:
        _use_explicit_sqlite_transactions(engine)
    return engine


def _use_explicit_sqlite_transactions(engine: AsyncEngine) -> None:
    # The sqlite3 driver defers BEGIN on its own, which breaks SAVEPOINT.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to ``engine``.

    Instances are not expired on commit: repositories hand records back to
    the caller after committing, and expired attributes cannot be lazily
    reloaded outside an awaited call.
    """
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)


class EngineManager:
    """
    Thread-safe singleton owning the process-wide engine and session factory.
    """

    _instance: Optional["EngineManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "EngineManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._engine: Optional[AsyncEngine] = None
                cls._instance._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
            return cls._instance

    def get_engine(self) -> AsyncEngine:
        """Get or create the engine for the configured store."""
        with self._lock:
            if self._engine is None:
                self._engine = build_engine()
                log.info("Engine created", extra={"backend": self._engine.url.get_backend_name()})
            return self._engine

    def get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get or create the session factory bound to the managed engine."""
        engine = self.get_engine()
        with self._lock:
            if self._session_factory is None:
                self._session_factory = create_session_factory(engine)
            return self._session_factory

    async def dispose(self) -> None:
        """
        Dispose the managed engine and forget the session factory.

        Safe to call repeatedly; the next ``get_engine`` builds a fresh engine.
        """
        with self._lock:
            engine, self._engine = self._engine, None
            self._session_factory = None
        if engine is not None:
            await engine.dispose()
            log.info("Engine disposed")


def get_engine() -> AsyncEngine:
    """Get or create the engine via EngineManager."""
    return EngineManager().get_engine()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory via EngineManager."""
    return EngineManager().get_session_factory()


@asynccontextmanager
async def session_scope(
    factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncIterator[AsyncSession]:
    """
    Open one unit of work.

    The session is closed on every exit path; uncommitted work is discarded.

    Example
    -------
        async with session_scope() as session:
            authors = crud_repository(session, Author)
            await authors.create(Author(name="A1"))
    """
    factory = factory or get_session_factory()
    async with factory() as session:
        yield session


def in_transaction_scope(session: AsyncSession) -> bool:
    """True while an explicit ``transaction`` scope is open on ``session``."""
    return session.info.get(TRANSACTION_DEPTH_KEY, 0) > 0


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Group repository calls on ``session`` into one atomic commit.

    While the scope is open each repository call runs in its own savepoint
    and only flushes; a failed call is undone without ending the scope. The
    outermost scope commits on success and rolls back on any exception;
    nested scopes reuse the open transaction and leave commit/rollback to the
    outermost one.

    Example
    -------
        async with transaction(session):
            await authors.create(author)
            await books.create_many(author_books)
    """
    depth = session.info.get(TRANSACTION_DEPTH_KEY, 0)
    session.info[TRANSACTION_DEPTH_KEY] = depth + 1
    try:
        if depth:
            yield session
            return
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            log.debug("Transaction rolled back")
            raise
    finally:
        session.info[TRANSACTION_DEPTH_KEY] = depth


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((OperationalError, InterfaceError, OSError)),
    reraise=True,
)
async def verify_connection(engine: Optional[AsyncEngine] = None) -> None:
    """
    Ping the store with ``SELECT 1``, retrying transient connection errors.

    Retries up to 3 times with exponential backoff. Use at start-up to fail
    fast when the store is unreachable.

    Raises
    ------
    sqlalchemy.exc.OperationalError
        If the store is still unreachable after all retry attempts.
    """
    engine = engine or get_engine()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


__all__ = [
    "EngineManager",
    "build_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "in_transaction_scope",
    "session_scope",
    "transaction",
    "verify_connection",
]
