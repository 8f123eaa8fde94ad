"""Nightly maintenance jobs run inside the API process."""

import logging
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def run_maintenance_job(
    session_factory: Any,
    name: str,
    job: Callable[[AsyncSession], Awaitable[int]],
) -> int:
    """Run one job on a fresh session; failures are logged, never raised."""
    try:
        async with session_factory() as db:
            count = await job(db)
    except Exception:
        logger.exception("Scheduled job %s failed", name)
        return 0
    if count:
        logger.info("Scheduled job %s touched %d row(s)", name, count)
    return count


async def _expire_estimates(session_factory: Any) -> None:
    from fieldsmart.estimates.service import check_expired_estimates

    await run_maintenance_job(session_factory, "expire_estimates", check_expired_estimates)


async def _purge_refresh_tokens(session_factory: Any) -> None:
    from fieldsmart.auth.service import purge_refresh_tokens

    await run_maintenance_job(session_factory, "purge_refresh_tokens", purge_refresh_tokens)


def setup_scheduler(session_factory: Any) -> None:
    """Register all periodic jobs and start the scheduler."""
    scheduler.add_job(
        _expire_estimates,
        CronTrigger(hour=2, minute=0),
        args=[session_factory],
        id="expire_estimates",
        replace_existing=True,
    )
    scheduler.add_job(
        _purge_refresh_tokens,
        CronTrigger(hour=3, minute=0),
        args=[session_factory],
        id="purge_refresh_tokens",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Background scheduler started with %d jobs", len(scheduler.get_jobs()))


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
