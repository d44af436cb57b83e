"""APScheduler-based in-process trigger for the cycle reset job.

One recurring job: check for due arenas every RESET_CHECK_INTERVAL_MINUTES.
Started from the app lifespan only when SCHEDULER_ENABLED; deployments that
use an external cron call POST /api/v1/cron/arena-reset instead.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config.settings import settings

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def _job_arena_reset() -> None:
    """Scheduled job: reset every arena whose cycle has ended."""
    try:
        from src.pa_reset.application.service import CycleResetJob

        results = await CycleResetJob().run_due()
        if results:
            logger.info("Scheduled arena reset complete: %d arena(s) processed", len(results))
    except Exception as exc:
        logger.error("Scheduled arena reset failed: %s", exc)


def start_scheduler() -> None:
    """Initialize and start the scheduler."""
    global _scheduler  # noqa: PLW0603

    if _scheduler is not None:
        logger.warning("Scheduler already running")
        return

    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        _job_arena_reset,
        "interval",
        minutes=settings.RESET_CHECK_INTERVAL_MINUTES,
        id="arena_reset",
        name="Arena Cycle Reset",
        max_instances=1,
        coalesce=True,
    )
    _scheduler.start()
    logger.info(
        "Scheduler started: arena reset check every %dm",
        settings.RESET_CHECK_INTERVAL_MINUTES,
    )


def stop_scheduler() -> None:
    """Shut down the scheduler gracefully."""
    global _scheduler  # noqa: PLW0603

    if _scheduler is None:
        return

    _scheduler.shutdown(wait=False)
    _scheduler = None
    logger.info("Scheduler stopped")
