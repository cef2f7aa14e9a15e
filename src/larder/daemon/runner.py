"""Refresh runner — records each refresh attempt in refresh_runs."""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import DBAPIError

from larder.core import database
from larder.models.run import RefreshRun, RunStatus
from larder.refresh import (
    ConcurrentRefreshSkipped,
    MonthlySalesRefresher,
    RefreshFailure,
    SourceUnavailable,
    get_refresher,
)
from larder.repositories.run_repo import RunRepository

logger = logging.getLogger("larder.refresh")

# Triggers discarded while a refresh held the writer slot; the running
# refresh writes them when it records its own outcome
_skipped: list[dict] = []


async def run_refresh(trigger: str = "manual") -> RefreshRun:
    """Run refresh_monthly_summary() and record the outcome.

    A trigger that arrives mid-refresh raises ConcurrentRefreshSkipped
    straight away, without touching the database. Failures are recorded,
    then re-raised so the caller decides what they mean for it.

    Raises:
        ConcurrentRefreshSkipped: a refresh is already running
        SourceUnavailable: orders or the run history could not be written
        AggregationOverflow: a monthly total exceeds DECIMAL(18, 2)
    """
    refresher = get_refresher()
    try:
        async with refresher.exclusive():
            return await _run_claimed(refresher, trigger)
    except ConcurrentRefreshSkipped as e:
        _skipped.append({"trigger": trigger, "at": datetime.now(tz=timezone.utc), "reason": str(e)})
        logger.info(f"Refresh trigger '{trigger}' skipped: {e}")
        raise


async def _run_claimed(refresher: MonthlySalesRefresher, trigger: str) -> RefreshRun:
    started_at = datetime.now(tz=timezone.utc)
    try:
        async with database.async_session_factory() as session:
            run = await RunRepository(session).start(refresher.job_name, trigger, started_at)
    except (DBAPIError, OSError) as e:
        raise SourceUnavailable(f"Cannot record refresh run: {e}") from e

    outcome: dict = {}
    try:
        result = await refresher.rebuild()
        outcome = {
            "status": RunStatus.SUCCESS,
            "months": result.months,
            "finished_at": result.finished_at,
            "duration_ms": result.duration_ms,
        }
    except RefreshFailure as e:
        outcome = {"status": RunStatus.FAILED, "error": f"{type(e).__name__}: {e}"}
        raise
    finally:
        outcome.setdefault("status", RunStatus.FAILED)
        outcome.setdefault("finished_at", datetime.now(tz=timezone.utc))
        outcome.setdefault("duration_ms", _elapsed_ms(started_at, outcome["finished_at"]))
        run = await _record_outcome(run, outcome)

    return run


async def _record_outcome(run: RefreshRun, outcome: dict) -> RefreshRun:
    """Write the final status. A storage fault here is logged, never raised,
    so it cannot replace the refresh's own result."""
    skipped = list(_skipped)
    _skipped.clear()
    try:
        async with database.async_session_factory() as session:
            return await RunRepository(session).record_outcome(run.id, skipped=skipped, **outcome)
    except (DBAPIError, OSError) as e:
        logger.error(
            f"Could not record outcome of refresh run {run.id} "
            f"({outcome['status'].value}, {len(skipped)} skipped triggers): {e}"
        )

    # Unsaved copy so callers still see what happened
    run.status = outcome["status"].value
    run.finished_at = outcome["finished_at"]
    run.duration_ms = outcome["duration_ms"]
    run.months = outcome.get("months")
    run.error = outcome.get("error")
    return run


def _elapsed_ms(started_at: datetime, finished_at: datetime) -> int:
    return int((finished_at - started_at).total_seconds() * 1000)
