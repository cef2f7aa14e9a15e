"""Refresh run history.

A run is written once as ``running`` when a refresh claims the writer slot
and moved to its final status when the refresh returns. Triggers that were
discarded meanwhile are written as ``skipped`` rows alongside that outcome.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from larder.models.run import RefreshRun, RunStatus

FINAL_STATUSES = (RunStatus.SUCCESS, RunStatus.FAILED)


class RunRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def start(self, job: str, trigger: str, started_at: datetime) -> RefreshRun:
        run = RefreshRun(
            job=job,
            trigger=trigger,
            status=RunStatus.RUNNING.value,
            started_at=started_at,
        )
        self.session.add(run)
        await self.session.commit()
        await self.session.refresh(run)
        return run

    async def record_outcome(
        self,
        run_id: str,
        status: RunStatus,
        finished_at: datetime,
        duration_ms: int,
        months: int | None = None,
        error: str | None = None,
        skipped: list[dict] | None = None,
    ) -> RefreshRun:
        """Close a running run, and write any triggers skipped while it ran."""
        if status not in FINAL_STATUSES:
            raise ValueError(f"A run cannot finish as '{status.value}'")

        run = await self.session.get(RefreshRun, run_id)
        if run is None:
            raise LookupError(f"Refresh run '{run_id}' not found")
        if run.status != RunStatus.RUNNING.value:
            raise ValueError(f"Refresh run '{run_id}' already finished as '{run.status}'")

        run.status = status.value
        run.finished_at = finished_at
        run.duration_ms = duration_ms
        run.months = months
        run.error = error

        for skip in skipped or []:
            self.session.add(RefreshRun(
                job=run.job,
                status=RunStatus.SKIPPED.value,
                trigger=skip["trigger"],
                started_at=skip["at"],
                finished_at=skip["at"],
                duration_ms=0,
                error=skip["reason"],
                created_at=skip["at"],
            ))

        await self.session.commit()
        await self.session.refresh(run)
        return run

    async def get_last_run(self, job: str) -> RefreshRun | None:
        result = await self.session.execute(
            select(RefreshRun)
            .where(RefreshRun.job == job)
            .order_by(RefreshRun.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_by_job(
        self,
        job: str,
        limit: int = 10,
        status: RunStatus | None = None,
    ) -> list[RefreshRun]:
        query = select(RefreshRun).where(RefreshRun.job == job)
        if status is not None:
            query = query.where(RefreshRun.status == status.value)
        result = await self.session.execute(
            query.order_by(RefreshRun.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())
