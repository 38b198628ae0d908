"""Async SQLAlchemy engine and session factory.

SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.

The engine belongs to the app: create_app() builds it from the Settings it
was given and hangs it (and its session factory) on app.state. get_db reads
the factory from there, so two apps built from different settings never
share a database.

Every storage call is bounded: the configured timeout is handed to the
driver (asyncpg connect/command timeouts, sqlite busy timeout), so a stuck
database surfaces as an error instead of a hung request.
"""

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tasktrack.config import Settings


def driver_timeouts(database_url: str, timeout: float) -> dict:
    """Translate one timeout setting into the driver's connect_args."""
    backend = make_url(database_url).get_backend_name()
    if backend == "postgresql":
        return {"timeout": timeout, "command_timeout": timeout}
    if backend == "sqlite":
        return {"timeout": timeout}
    return {}


def build_engine(database_url: str, timeout: float, echo: bool = False) -> AsyncEngine:
    """Create an async engine with bounded driver timeouts."""
    kwargs = {"echo": echo, "connect_args": driver_timeouts(database_url, timeout)}
    if make_url(database_url).get_backend_name() == "postgresql":
        # Connection pool: min 5, max 20 connections.
        kwargs.update(pool_size=5, max_overflow=15, pool_pre_ping=True)
    return create_async_engine(database_url, **kwargs)


def engine_from_settings(cfg: Settings) -> AsyncEngine:
    return build_engine(cfg.database_url, cfg.db_timeout_seconds, echo=cfg.debug)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory: each request gets its own session."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with request.app.state.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
