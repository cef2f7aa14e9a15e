"""Async engine and sessions for the shop database.

One database holds the source tables, the monthly summary and the refresh
run history.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    pass


def _engine_options(database_url: str) -> dict:
    if make_url(database_url).get_backend_name() == "sqlite":
        # Wait on a locked file instead of failing while a refresh commits
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    # Months pass between refreshes; pooled connections go stale
    return {"pool_pre_ping": True, "pool_recycle": 3600}


def init_engine(database_url: str) -> AsyncEngine:
    global engine, async_session_factory
    engine = create_async_engine(database_url, echo=False, **_engine_options(database_url))
    async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine


async def get_session() -> AsyncSession:
    async with async_session_factory() as session:
        yield session


async def create_tables():
    # Register every mapped table before create_all
    import larder.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine():
    global engine, async_session_factory
    if engine is not None:
        await engine.dispose()
    engine = None
    async_session_factory = None
