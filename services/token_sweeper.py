import asyncio
from datetime import timedelta
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from core.config import settings
from core.database import SessionLocal
from services.token_store import TokenStore
from utils.logger import get_logger

logger = get_logger(__name__)


def sweep_refresh_tokens(session_factory=SessionLocal, retention: timedelta | None = None) -> int:
    """
    Deletes refresh-token rows that expired or were revoked longer ago
    than the retention window. Returns the number of rows removed.
    """
    if retention is None:
        retention = timedelta(days=settings.REFRESH_TOKEN_RETENTION_DAYS)

    db = session_factory()
    try:
        removed = TokenStore.purge_stale(db, retention)
    finally:
        db.close()

    if removed:
        logger.info("Purged stale refresh tokens", extra={"count": removed})
    return removed


async def run_token_sweeper(interval_minutes: int, session_factory=SessionLocal):
    """Periodic sweep loop, started from the application lifespan."""
    logger.info("Refresh token sweeper started", extra={"interval_minutes": interval_minutes})
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            await run_in_threadpool(sweep_refresh_tokens, session_factory)
        except SQLAlchemyError:
            # The next tick retries; the table only grows in the meantime
            logger.error("Refresh token sweep failed", exc_info=True)
