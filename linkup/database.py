"""
Linkup Backend - Database Handle
==================================

What:  An explicitly owned persistence handle around the async SQLAlchemy
       engine, plus the declarative Base every model inherits from.
How:   `Database.acquire()` lazily creates the engine and verifies it with
       `SELECT 1` under a tenacity retry (exponential backoff + jitter).
       Concurrent callers share one in-flight connect attempt, so a burst of
       first requests never opens duplicate pools.
Who:   Owned by the app (`app.state.database`), used by the API pipeline,
       the health route, the seeder and the tests.
When:  Acquired on startup (and again on demand); shut down in the lifespan.

Connection Pooling:
    pool_size / max_overflow come from settings and only apply to server
    databases. SQLite (tests) uses SQLAlchemy's default pool for the dialect.
    pool_recycle=3600 recycles connections every hour.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from linkup.config import settings
from linkup.exceptions import DatabaseError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata is what Alembic migrates."""


class Database:
    """
    Persistence handle with an idempotent `acquire()` and explicit `shutdown()`.

    Usage:
        db = Database(settings.database_url)
        await db.acquire()
        async with db.session() as session:
            ...
        await db.shutdown()
    """

    def __init__(
        self,
        url: Optional[str] = None,
        connect_attempts: Optional[int] = None,
        min_wait: Optional[float] = None,
        max_wait: Optional[float] = None,
    ):
        self.url = url or settings.database_url
        self.connect_attempts = connect_attempts or settings.db_connect_attempts
        self.min_wait = settings.db_connect_min_wait if min_wait is None else min_wait
        self.max_wait = settings.db_connect_max_wait if max_wait is None else max_wait

        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._connecting: Optional[asyncio.Future] = None

    # ── State ─────────────────────────────────────────────────────────────
    @property
    def is_connected(self) -> bool:
        return self._engine is not None and self._session_factory is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseError(context={"reason": "database not acquired"})
        return self._engine

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    # ── Lifecycle ─────────────────────────────────────────────────────────
    async def acquire(self) -> "Database":
        """
        Ensure the engine exists and answers queries.

        Idempotent: once connected it returns immediately. While a connect is
        in flight every caller awaits the same attempt. A failed attempt is
        forgotten so the next call starts over.

        Raises:
            DatabaseError: All connection attempts failed
        """
        if self.is_connected:
            return self

        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._connect())

        connecting = self._connecting
        try:
            # shield: one cancelled waiter must not cancel the shared attempt
            await asyncio.shield(connecting)
        except Exception:
            if self._connecting is connecting:
                self._connecting = None
            raise
        return self

    async def _connect(self) -> None:
        engine = self._create_engine()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.connect_attempts),
                # Exponential backoff capped at max_wait, plus up to min_wait of jitter
                wait=wait_exponential(multiplier=self.min_wait, max=self.max_wait)
                + wait_random(0, self.min_wait),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    async with engine.connect() as conn:
                        await conn.execute(text("SELECT 1"))
        except Exception as e:
            await engine.dispose()
            logger.error(
                "Database connection failed after %d attempts: %s",
                self.connect_attempts,
                e,
            )
            raise DatabaseError(
                context={"error": str(e), "attempts": self.connect_attempts}
            ) from e

        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Database connected (%s)", engine.url.render_as_string(hide_password=True))

    def _create_engine(self) -> AsyncEngine:
        kwargs = {
            "pool_pre_ping": settings.db_pool_pre_ping,
            "echo": settings.log_level == "DEBUG",
        }
        if not self.is_sqlite:
            kwargs.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_recycle=3600,
            )
        return create_async_engine(self.url, **kwargs)

    async def shutdown(self) -> None:
        """Dispose the pool. Safe to call when never acquired."""
        if self._connecting is not None and not self._connecting.done():
            self._connecting.cancel()
        self._connecting = None
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database connections closed")
        self._engine = None
        self._session_factory = None

    # ── Sessions ──────────────────────────────────────────────────────────
    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Unit of work: commits on success, rolls back on any exception.

        The exception is re-raised so the caller decides how to report it.
        """
        if self._session_factory is None:
            await self.acquire()
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    # ── Utilities ─────────────────────────────────────────────────────────
    async def health_check(self) -> bool:
        """True when `SELECT 1` succeeds. Never raises."""
        try:
            await self.acquire()
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database health check failed: %s", e)
            return False

    async def create_all(self) -> None:
        """Create any missing tables from the ORM metadata."""
        # Imported for their side effect of registering tables on Base.metadata
        from linkup import models  # noqa: F401

        await self.acquire()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        from linkup import models  # noqa: F401

        await self.acquire()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
