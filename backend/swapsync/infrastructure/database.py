"""Database Session Manager — async connection pool with automatic rollback and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Connection pool uses pool_pre_ping for stale connection detection
    - All SQLAlchemy exceptions mapped to DatabaseError (core/errors.py)
    - Domain errors raised inside a session (e.g. StaleVersionError) pass through
      unchanged after rollback
    - Deadlock and serialization failures surface as StaleVersionError
      (retried by the services), never as DatabaseError
    - A single shared connection (StaticPool) is held by one session at a time

Design Decisions:
    - Manager instance owned by the FastAPI lifespan and stored on app.state
      (no module-level singleton)
    - expire_on_commit=False: prevents lazy-load issues in async context
    - SQLite URLs skip pool sizing; in-memory SQLite shares one connection
      (StaticPool) so every session sees the same database
"""

import asyncio
import logging
from contextlib import asynccontextmanager, nullcontext
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy.pool import StaticPool
from sqlalchemy import text

from swapsync.core.errors import DatabaseError, StaleVersionError
from swapsync.db.base import Base

logger = logging.getLogger(__name__)

# SQLSTATE 40P01 deadlock_detected, 40001 serialization_failure
CONTENTION_SQLSTATES = frozenset({"40P01", "40001"})


def contention_sqlstate(error: DBAPIError) -> str | None:
    """SQLSTATE of a lost lock or serialization race, else None."""
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is None and orig is not None:
        # asyncpg keeps the server error as the adapted exception's cause
        code = getattr(orig.__cause__, "sqlstate", None)
    return code if code in CONTENTION_SQLSTATES else None


def engine_options(
    database_url: str, pool_size: int = 20, max_overflow: int = 10,
) -> dict:
    """Pool options per backend; SQLite rejects pool sizing arguments."""
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url:
            return {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        return {}
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        self.engine = create_async_engine(
            database_url,
            **engine_options(database_url, pool_size, max_overflow),
        )
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        # StaticPool hands every session the same connection, hence one transaction
        self._connection_lock = (
            asyncio.Lock() if isinstance(self.engine.pool, StaticPool) else None
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        async with self._connection_lock or nullcontext():
            session = self._session_factory()
            try:
                yield session
            except IntegrityError as e:
                await session.rollback()
                logger.error(f"DB integrity error: {e}")
                raise DatabaseError("Integrity constraint violated", "commit")
            except OperationalError as e:
                await session.rollback()
                _raise_if_contention(e)
                logger.error(f"DB operational error: {e}")
                raise DatabaseError("Connection or operational error", "execute")
            except DBAPIError as e:
                await session.rollback()
                _raise_if_contention(e)
                logger.error(f"DB driver error: {e}")
                raise DatabaseError("Database driver error", "query")
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"SQLAlchemy error: {e}")
                raise DatabaseError("Database operation failed", "unknown")
            finally:
                await session.close()

    async def create_schema(self) -> None:
        """Create all tables for tests and local SQLite runs (alembic elsewhere)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


def _raise_if_contention(error: DBAPIError) -> None:
    code = contention_sqlstate(error)
    if code is not None:
        logger.warning(
            "Transaction lost a lock race",
            extra={"error_code": code, "operation": "transaction"},
        )
        raise StaleVersionError("Transaction", code) from error
