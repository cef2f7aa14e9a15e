"""Built-in scheduler — fires the monthly summary refresh on a cron trigger."""

from __future__ import annotations
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger("larder.scheduler")

_scheduler: AsyncIOScheduler | None = None


def get_scheduler() -> AsyncIOScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler()
    return _scheduler


def start_scheduler():
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def stop_scheduler():
    scheduler = get_scheduler()
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def build_cron_trigger(cron_expression: str, timezone: str = "UTC") -> CronTrigger:
    """Parse a 5-field cron expression (min hour day month dow)."""
    parts = cron_expression.strip().split()
    if len(parts) != 5:
        raise ValueError(f"Invalid cron expression: {cron_expression} (need 5 fields)")

    return CronTrigger(
        minute=parts[0],
        hour=parts[1],
        day=parts[2],
        month=parts[3],
        day_of_week=parts[4],
        timezone=timezone,
    )


def add_cron_job(
    job_id: str,
    func,
    cron_expression: str,
    kwargs: dict | None = None,
    timezone: str = "UTC",
):
    """Add a cron-based scheduled job.

    A job never overlaps itself: a fire that comes due while the previous
    one is still running is dropped, and missed fires collapse into one.
    """
    scheduler = get_scheduler()
    trigger = build_cron_trigger(cron_expression, timezone)

    scheduler.add_job(
        func,
        trigger=trigger,
        id=job_id,
        kwargs=kwargs or {},
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=3600,
    )
    logger.info(f"Scheduled job '{job_id}' with cron: {cron_expression} ({timezone})")



def list_jobs() -> list[dict]:
    scheduler = get_scheduler()
    jobs = []
    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)
        jobs.append({
            "id": job.id,
            "next_run": next_run.isoformat() if next_run else None,
            "trigger": str(job.trigger),
        })
    return jobs
