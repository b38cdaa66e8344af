import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from croniter import croniter
from fastapi import FastAPI
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.services import user_service

logger = logging.getLogger(__name__)


def run_cleanup_tick(
    *,
    session_factory: Callable[[], Session] = SessionLocal,
    close_session: bool = True,
    now: datetime | None = None,
) -> int:
    """
    Run a single trainee sweep synchronously.

    Returns the number of deleted accounts.
    """
    session = session_factory()
    try:
        return user_service.remove_expired_trainee_accounts(
            session, now or datetime.now(UTC)
        )
    finally:
        if close_session:
            session.close()


def seconds_until_next_run(expression: str, now: datetime | None = None) -> float:
    now = now or datetime.now(UTC)
    next_run = croniter(expression, now).get_next(datetime)
    return max((next_run - now).total_seconds(), 0.0)


async def cleanup_loop(app: FastAPI) -> None:
    settings = get_settings()
    expression = settings.trainee_cleanup_cron

    while True:
        await asyncio.sleep(seconds_until_next_run(expression))
        try:
            logger.info("Trainee cleanup started")
            removed = await asyncio.to_thread(run_cleanup_tick)
            logger.info("Trainee cleanup finished: %s accounts removed", removed)
            app.state.last_trainee_cleanup = datetime.now(UTC)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Trainee cleanup tick failed")
