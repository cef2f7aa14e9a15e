"""Larder daemon — FastAPI app with the monthly refresh scheduler."""

import logging
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI

from larder import __version__
from larder.core import database
from larder.core.config import get_settings
from larder.api.router import api_router
from larder.daemon.runner import run_refresh
from larder.daemon.scheduled_runner import schedule_monthly_refresh
from larder.daemon.scheduler import start_scheduler, stop_scheduler, list_jobs
from larder.refresh import RefreshError, get_refresher
from larder.repositories.summary_repo import SummaryRepository

logger = logging.getLogger("larder")


async def initial_load():
    """Populate the summary once if it has never been filled."""
    async with database.async_session_factory() as session:
        months = await SummaryRepository(session).count()
    if months:
        logger.info(f"Monthly summary already holds {months} months, skipping initial load")
        return

    try:
        run = await run_refresh(trigger="startup")
    except RefreshError as e:
        logger.error(f"Initial load failed: {type(e).__name__}: {e}")
        return
    logger.info(f"Initial load wrote {run.months} months")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown."""
    settings = get_settings()

    # Init database
    database.init_engine(settings.database_url)
    await database.create_tables()
    logger.info(f"Database initialized: {settings.database_url}")

    if settings.refresh_on_startup:
        await initial_load()

    # Start scheduler
    schedule_monthly_refresh(settings.refresh_cron, timezone=settings.timezone)
    start_scheduler()

    yield

    # Shutdown
    stop_scheduler()
    await database.dispose_engine()
    logger.info("Larder daemon stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Larder",
        description="Grocery sales analytics daemon",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(api_router)

    @app.get("/health")
    async def health():
        refresher = get_refresher() if database.engine is not None else None
        return {
            "status": "ok",
            "version": __version__,
            "refresh_running": refresher.running if refresher else False,
            "scheduler_jobs": list_jobs(),
        }

    return app


def main():
    """Entry point for `larderd` command."""
    import sys

    settings = get_settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    host = settings.host
    port = settings.port

    # Parse CLI args (simple, no dep on typer for daemon)
    args = sys.argv[1:]
    for i, arg in enumerate(args):
        if arg == "--port" and i + 1 < len(args):
            port = int(args[i + 1])
        if arg == "--host" and i + 1 < len(args):
            host = args[i + 1]

    logger.info(f"Starting Larder daemon v{__version__} on {host}:{port}")

    app = create_app()
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
