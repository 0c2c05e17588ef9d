"""Database Session Manager: async connection pool, automatic rollback and transaction scopes.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Connection pool uses pool_pre_ping for stale connection detection
    - SQLAlchemy exceptions mapped to DatabaseError (core/errors.py); serialization
      failures and deadlocks map to ConcurrencyError, which retry_on_concurrency re-runs
    - write_transaction commits everything or nothing; read_snapshot never commits
    - Isolation level is set before the first statement of a transaction

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
      (no global import side effects)
    - expire_on_commit=False: prevents lazy-load issues in async context
    - Transaction scopes take the AsyncSession rather than the manager so services and
      tests can hand in any session (request-scoped or fixture)
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text

from dctwin.core.errors import ConcurrencyError, DatabaseError, TwinError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL serialization_failure and deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


def _sqlstate(e: DBAPIError) -> str | None:
    orig = e.orig
    for source in (orig, getattr(orig, "__cause__", None)):
        code = getattr(source, "sqlstate", None) or getattr(source, "pgcode", None)
        if code:
            return code
    return None


def _map_sqlalchemy_error(e: SQLAlchemyError) -> TwinError:
    if isinstance(e, DBAPIError) and _sqlstate(e) in _RETRYABLE_SQLSTATES:
        logger.warning(f"DB concurrent write detected: {e}")
        return ConcurrencyError("Concurrent write detected; retry the request")
    if isinstance(e, IntegrityError):
        logger.error(f"DB integrity error: {e}")
        return DatabaseError("Integrity constraint violated", "commit")
    if isinstance(e, OperationalError):
        logger.error(f"DB operational error: {e}")
        return DatabaseError("Connection or operational error", "execute")
    if isinstance(e, DBAPIError):
        logger.error(f"DB driver error: {e}")
        return DatabaseError("Database driver error", "query")
    logger.error(f"SQLAlchemy error: {e}")
    return DatabaseError("Database operation failed", "unknown")


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        self.engine = create_async_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
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
        except SQLAlchemyError as e:
            await session.rollback()
            raise _map_sqlalchemy_error(e)
        except Exception:
            await session.rollback()
            raise
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


async def _begin(db: AsyncSession, isolation_level: str | None) -> None:
    # Only effective when no transaction is open yet on this session
    if isolation_level and not db.in_transaction():
        await db.connection(execution_options={"isolation_level": isolation_level})


@asynccontextmanager
async def write_transaction(
    db: AsyncSession, isolation_level: str | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """Run a read-check-write sequence atomically: commit on success, rollback otherwise."""
    try:
        await _begin(db, isolation_level)
        yield db
        await db.commit()
    except TwinError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        raise _map_sqlalchemy_error(e)


@asynccontextmanager
async def read_snapshot(
    db: AsyncSession, isolation_level: str | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """Consistent read-only view across several queries; always rolled back."""
    try:
        await _begin(db, isolation_level)
        yield db
    except SQLAlchemyError as e:
        raise _map_sqlalchemy_error(e)
    finally:
        await db.rollback()


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session


async def retry_on_concurrency(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base_delay_ms: int = 20,
) -> T:
    """Run `operation` (one whole transaction) again after a ConcurrencyError.

    Each attempt opens a fresh transaction, so the retried read-check-write sees
    the rows the competing writer committed.
    """
    for attempt in range(attempts):
        try:
            return await operation()
        except ConcurrencyError as e:
            if attempt + 1 >= attempts:
                raise
            delay = base_delay_ms * (2 ** attempt) + random.uniform(0, base_delay_ms)
            logger.warning(
                f"Concurrent write, retry after {delay:.0f}ms (attempt {attempt + 1})",
                extra={"error_code": e.code, "attempt": attempt + 1},
            )
            await asyncio.sleep(delay / 1000)
    raise ConcurrencyError("Concurrent write detected; retry the request")
