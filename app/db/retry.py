from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceUnavailableError
from app.core.logger import logger

T = TypeVar("T")

def is_transient(exc: DBAPIError) -> bool:
    # Lock timeouts, deadlocks and dropped connections surface as these
    return isinstance(exc, OperationalError) or exc.connection_invalidated

async def run_with_retries(
    session: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    attempts: int,
    description: str,
) -> T:
    """
    Run ``operation`` (which commits its own transaction) and retry it after a
    rollback when the storage layer fails transiently. Domain errors and
    non-transient database errors propagate unchanged.
    """
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except DBAPIError as exc:
            if not is_transient(exc):
                raise
            await session.rollback()
            logger.warning(f"Transient storage error during {description} (attempt {attempt}/{attempts}): {exc}")

    logger.error(f"Giving up on {description} after {attempts} attempts")
    raise ServiceUnavailableError(f"Could not complete {description}, please try again")
