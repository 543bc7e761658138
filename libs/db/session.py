from typing import AsyncGenerator

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from libs.db.config import AsyncSessionLocal

# SQLSTATE codes for serialization failures and deadlocks
RETRYABLE_SQLSTATES = {"40001", "40P01"}


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an async database session.
    Anything left uncommitted when the request ends is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def set_isolation_level(session: AsyncSession, level: str) -> None:
    """
    Pin the isolation level for the session's next transaction.
    Must run before the transaction's first statement; a session that is
    already mid-transaction keeps its current level.
    """
    if session.in_transaction():
        return
    await session.connection(execution_options={"isolation_level": level})


def is_retryable(exc: DBAPIError) -> bool:
    """True for serialization failures and deadlocks."""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate in RETRYABLE_SQLSTATES
