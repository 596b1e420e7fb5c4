from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.errors import InternalError, ServiceError
from libs.common.logging import get_logger
from libs.db.config import AsyncSessionLocal

logger = get_logger(__name__)


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an async database session.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def transaction(db: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """
    Run one business operation as a single atomic unit.

    Commits when the block exits cleanly. Any error rolls back first; typed
    service errors propagate unchanged, anything else is logged and wrapped
    in ``InternalError``.
    """
    try:
        yield db
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except Exception as exc:
        await db.rollback()
        logger.exception("Unexpected failure during %s, rolled back", operation)
        raise InternalError(f"Error during {operation}: {exc}") from exc
