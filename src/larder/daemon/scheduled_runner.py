"""Scheduled refresh — called by APScheduler once per calendar month."""

import logging

from larder.daemon.runner import run_refresh
from larder.daemon.scheduler import add_cron_job
from larder.refresh import ConcurrentRefreshSkipped, MonthlySalesRefresher, RefreshFailure

logger = logging.getLogger("larder.scheduler")


async def scheduled_refresh():
    """Fire-and-forget refresh. No retry: the next cycle is the retry."""
    logger.info("Scheduled refresh triggered")
    try:
        run = await run_refresh(trigger="scheduled")
    except ConcurrentRefreshSkipped:
        logger.info("Scheduled refresh skipped: a refresh is already running")
        return
    except RefreshFailure as e:
        logger.error(f"Scheduled refresh failed: {type(e).__name__}: {e}")
        return

    logger.info(f"Scheduled refresh succeeded: {run.months} months ({run.duration_ms}ms)")


def schedule_monthly_refresh(cron_expression: str, timezone: str = "UTC"):
    add_cron_job(
        MonthlySalesRefresher.job_name,
        scheduled_refresh,
        cron_expression,
        timezone=timezone,
    )
