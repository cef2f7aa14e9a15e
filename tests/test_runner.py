"""Tests for the refresh runner and its run history."""

import asyncio
import logging
from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from larder.core import database
from larder.daemon.main import initial_load
from larder.daemon.runner import run_refresh
from larder.models import Order, RefreshRun, RunStatus
from larder.refresh import ConcurrentRefreshSkipped, SourceUnavailable, get_refresher
from larder.repositories.run_repo import RunRepository
from tests.conftest import seed_scenario


async def all_runs() -> list[RefreshRun]:
    async with database.async_session_factory() as session:
        result = await session.execute(select(RefreshRun).order_by(RefreshRun.created_at))
        return list(result.scalars().all())


def locked_database(*args, **kwargs):
    raise OperationalError("INSERT INTO refresh_runs", {}, Exception("database is locked"))


def slow_down(refresher, seconds: float):
    """Stretch the refresh transaction by delaying its bounds check."""
    check_bounds = refresher._check_bounds

    async def slow_check(conn, table):
        await asyncio.sleep(seconds)
        await check_bounds(conn, table)

    refresher._check_bounds = slow_check


async def wait_until_running(refresher):
    for _ in range(200):
        if refresher.running:
            return
        await asyncio.sleep(0.01)
    raise AssertionError("refresh never started")


class TestRunRefresh:
    @pytest.mark.asyncio
    async def test_success_recorded(self, db):
        await seed_scenario()
        run = await run_refresh(trigger="manual")

        assert run.status == "success"
        assert run.trigger == "manual"
        assert run.job == "refresh_monthly_sales"
        assert run.months == 2
        assert run.duration_ms is not None
        assert run.finished_at is not None
        assert run.error is None

    @pytest.mark.asyncio
    async def test_failure_recorded_and_raised(self, db):
        async with database.engine.begin() as conn:
            await conn.run_sync(Order.__table__.drop)

        with pytest.raises(SourceUnavailable):
            await run_refresh(trigger="scheduled")

        runs = await all_runs()
        assert len(runs) == 1
        assert runs[0].status == "failed"
        assert runs[0].trigger == "scheduled"
        assert runs[0].error.startswith("SourceUnavailable")
        assert runs[0].duration_ms is not None


class TestOverlappingTriggers:
    @pytest.mark.asyncio
    async def test_trigger_during_refresh_is_skipped_immediately(self, db):
        await seed_scenario()
        refresher = get_refresher()
        slow_down(refresher, 0.5)

        first = asyncio.create_task(run_refresh(trigger="scheduled"))
        await wait_until_running(refresher)

        with pytest.raises(ConcurrentRefreshSkipped):
            await run_refresh(trigger="manual")

        # Discarded without waiting for the running refresh
        assert not first.done()

        run = await first
        assert run.status == "success"

        runs = await all_runs()
        assert [(r.trigger, r.status) for r in runs] == [
            ("scheduled", "success"),
            ("manual", "skipped"),
        ]
        assert "already running" in runs[1].error

    @pytest.mark.asyncio
    async def test_only_one_refresh_runs(self, db):
        await seed_scenario()
        refresher = get_refresher()
        slow_down(refresher, 0.3)
        rebuilds = []
        rebuild = refresher.rebuild

        async def counting_rebuild():
            rebuilds.append(1)
            return await rebuild()

        refresher.rebuild = counting_rebuild

        results = await asyncio.gather(
            run_refresh(trigger="scheduled"),
            run_refresh(trigger="manual"),
            run_refresh(trigger="manual"),
            return_exceptions=True,
        )

        assert len(rebuilds) == 1
        assert isinstance(results[0], RefreshRun)
        assert all(isinstance(r, ConcurrentRefreshSkipped) for r in results[1:])
        assert sorted(r.status for r in await all_runs()) == ["skipped", "skipped", "success"]

    @pytest.mark.asyncio
    async def test_next_trigger_after_refresh_runs(self, db):
        await seed_scenario()
        await run_refresh(trigger="scheduled")
        run = await run_refresh(trigger="manual")
        assert run.status == "success"


class TestRunHistoryFaults:
    @pytest.mark.asyncio
    async def test_unwritable_history_is_source_unavailable(self, db, monkeypatch):
        await seed_scenario()
        monkeypatch.setattr(RunRepository, "start", locked_database)

        with pytest.raises(SourceUnavailable, match="Cannot record refresh run"):
            await run_refresh()

        assert not get_refresher().running

    @pytest.mark.asyncio
    async def test_outcome_write_failure_keeps_refresh_result(self, db, monkeypatch, caplog):
        await seed_scenario()
        monkeypatch.setattr(RunRepository, "record_outcome", locked_database)

        with caplog.at_level(logging.ERROR, logger="larder.refresh"):
            run = await run_refresh()

        assert run.status == "success"
        assert run.months == 2
        assert "Could not record outcome" in caplog.text

    @pytest.mark.asyncio
    async def test_outcome_write_failure_keeps_refresh_error(self, db, monkeypatch):
        async with database.engine.begin() as conn:
            await conn.run_sync(Order.__table__.drop)
        monkeypatch.setattr(RunRepository, "record_outcome", locked_database)

        with pytest.raises(SourceUnavailable, match="Cannot rebuild"):
            await run_refresh()


class TestRunRepository:
    @pytest.mark.asyncio
    async def test_finished_run_cannot_be_reopened(self, db_session):
        repo = RunRepository(db_session)
        now = datetime.now(tz=timezone.utc)
        run = await repo.start("refresh_monthly_sales", "manual", now)
        await repo.record_outcome(run.id, RunStatus.SUCCESS, now, 5, months=1)

        with pytest.raises(ValueError, match="already finished"):
            await repo.record_outcome(run.id, RunStatus.FAILED, now, 5)

    @pytest.mark.asyncio
    async def test_outcome_must_be_final(self, db_session):
        repo = RunRepository(db_session)
        now = datetime.now(tz=timezone.utc)
        run = await repo.start("refresh_monthly_sales", "manual", now)

        with pytest.raises(ValueError):
            await repo.record_outcome(run.id, RunStatus.SKIPPED, now, 0)

    @pytest.mark.asyncio
    async def test_status_filter(self, db_session):
        repo = RunRepository(db_session)
        now = datetime.now(tz=timezone.utc)
        ok = await repo.start("refresh_monthly_sales", "manual", now)
        await repo.record_outcome(ok.id, RunStatus.SUCCESS, now, 5, months=1)
        bad = await repo.start("refresh_monthly_sales", "scheduled", now)
        await repo.record_outcome(bad.id, RunStatus.FAILED, now, 5, error="SourceUnavailable: gone")

        failed = await repo.list_by_job("refresh_monthly_sales", status=RunStatus.FAILED)
        assert [r.id for r in failed] == [bad.id]


class TestInitialLoad:
    @pytest.mark.asyncio
    async def test_fills_empty_summary(self, db):
        await seed_scenario()
        await initial_load()

        runs = await all_runs()
        assert [(r.trigger, r.status, r.months) for r in runs] == [("startup", "success", 2)]

    @pytest.mark.asyncio
    async def test_skips_when_summary_exists(self, db):
        await seed_scenario()
        await run_refresh()
        await initial_load()

        runs = await all_runs()
        assert [r.trigger for r in runs] == ["manual"]

    @pytest.mark.asyncio
    async def test_failure_does_not_raise(self, db):
        async with database.engine.begin() as conn:
            await conn.run_sync(Order.__table__.drop)

        await initial_load()

        runs = await all_runs()
        assert [r.status for r in runs] == ["failed"]

    @pytest.mark.asyncio
    async def test_unwritable_history_does_not_abort_startup(self, db, monkeypatch):
        await seed_scenario()
        monkeypatch.setattr(RunRepository, "start", locked_database)
        await initial_load()
        assert await all_runs() == []
