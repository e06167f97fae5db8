# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# DESIGN DECISION: Async SQLAlchemy engine, created lazily.
# The SQL stores are optional (`STORE_BACKEND=sql`). Building the engine
# on first use means the in-memory deployment and the test suite never
# load a database driver.
#
# SESSION LIFECYCLE:
# The SQL stores open a short-lived session per operation via
# `get_session_factory()` and commit explicitly. Nothing holds a session
# across an LLM call.
#
# TEARDOWN:
# `dispose_engine()` closes the pool. The FastAPI lifespan calls it on
# shutdown.
# =============================================================================

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from command_center.config import Settings, get_settings
from command_center.db.models import Base

_async_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine(settings: Settings | None = None) -> AsyncEngine:
    """Lazily create and cache the async SQLAlchemy engine."""
    global _async_engine
    if _async_engine is None:
        cfg = settings or get_settings()
        kwargs: dict = {"echo": cfg.debug}
        # SQLite uses a static pool; sizing arguments are rejected
        if not cfg.database_url.startswith("sqlite"):
            kwargs["pool_size"] = cfg.database_pool_size
            kwargs["max_overflow"] = cfg.database_max_overflow
        _async_engine = create_async_engine(cfg.database_url, **kwargs)
    return _async_engine


def get_session_factory(
    settings: Settings | None = None,
) -> async_sessionmaker[AsyncSession]:
    """
    Lazily create and cache the session factory.

    - expire_on_commit=False: loaded objects stay readable after commit,
      which matters in async code where lazy refreshes cannot run.
    """
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            bind=get_engine(settings),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def init_models(settings: Settings | None = None) -> None:
    """Create all tables that do not exist yet."""
    engine = get_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close the connection pool and forget the cached engine."""
    global _async_engine, _async_session_factory
    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _async_session_factory = None
