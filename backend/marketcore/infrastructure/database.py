"""Database Session Manager — async connection pool, transaction boundary, row locks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - transaction() commits on success, rolls back on ANY exception (cancellation included)
    - SQLAlchemy failures leave this module as TransientError (retryable), never raw,
      except constraint violations: ConstraintViolationError, never retryable
    - run_bounded() caps every operation at a timeout; expiry -> TransientError
    - acquire_row_lock() is the first write of its transaction: PostgreSQL holds a
      row lock, SQLite a reserved database lock, until commit/rollback

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
    - expire_on_commit=False: prevents lazy-load issues in async context
    - Lock by bumping lock_version rather than SELECT ... FOR UPDATE: the UPDATE
      serializes on both PostgreSQL and SQLite (FOR UPDATE is a no-op on SQLite),
      so the concurrency tests exercise the same code path as production
    - Driver lock timeouts come from settings.lock_timeout_seconds: asyncpg via the
      lock_timeout server setting, sqlite via its busy timeout
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text, update

from marketcore.core.errors import ConstraintViolationError, TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def engine_options(
    database_url: str,
    pool_size: int = 20,
    max_overflow: int = 10,
    lock_timeout_seconds: float = 5.0,
) -> dict[str, Any]:
    """Engine kwargs per backend. SQLite takes no pool sizing."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"timeout": lock_timeout_seconds}}
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {
                "lock_timeout": str(int(lock_timeout_seconds * 1000)),
            },
        },
    }


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
        lock_timeout_seconds: float = 5.0,
    ):
        self.engine = create_async_engine(
            database_url,
            **engine_options(
                database_url, pool_size, max_overflow, lock_timeout_seconds,
            ),
        )
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise ConstraintViolationError("commit") from e
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise TransientError("Connection or operational error", "execute") from e
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise TransientError("Database driver error", "query") from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise TransientError("Database operation failed", "unknown") from e
        finally:
            await session.close()

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


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


def get_session_factory():
    """Session factory for work that must not share the request session."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    return db_manager.session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session


# ─── Transaction boundary ───────────────────────────────────────

@asynccontextmanager
async def transaction(
    db: AsyncSession, operation: str,
) -> AsyncGenerator[AsyncSession, None]:
    """Commit on success; roll back and map driver errors on failure.

    Domain errors raised inside the block propagate unchanged after rollback.
    """
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(
            "Transaction failed: %s", e, extra={"operation": operation},
        )
        if isinstance(e, IntegrityError):
            raise ConstraintViolationError(operation) from e
        if isinstance(e, OperationalError):
            raise TransientError(
                "Lock contention or connection failure", operation,
            ) from e
        raise TransientError("Database operation failed", operation) from e
    except BaseException:
        await db.rollback()
        raise


async def run_bounded(
    awaitable: Awaitable[T], timeout_seconds: float, operation: str,
) -> T:
    """Await with a hard deadline. Expiry is retryable, never a business error."""
    try:
        return await asyncio.wait_for(awaitable, timeout_seconds)
    except asyncio.TimeoutError as e:
        logger.warning(
            "Operation timed out after %ss", timeout_seconds,
            extra={"operation": operation},
        )
        raise TransientError(
            f"timed out after {timeout_seconds}s", operation,
            retry_after_ms=int(timeout_seconds * 1000),
        ) from e


async def acquire_row_lock(db: AsyncSession, model, row_id: UUID) -> bool:
    """Take a write lock on one row by bumping its lock_version.

    Returns False when no such row exists. Must be the first write of the
    transaction so concurrent callers queue here instead of after their reads.
    """
    result = await db.execute(
        update(model)
        .where(model.id == row_id)
        .values(lock_version=model.lock_version + 1)
        .execution_options(synchronize_session=False),
    )
    return result.rowcount > 0
