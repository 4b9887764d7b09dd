"""Async engine and session factory for the job store and course tables."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from coursegen.config import DatabaseSettings, get_database_settings

logger = logging.getLogger(__name__)

_ASYNC_DRIVERS = {"postgres": "postgresql+asyncpg", "postgresql": "postgresql+asyncpg", "sqlite": "sqlite+aiosqlite"}


class Base(DeclarativeBase):
  pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def async_database_url(dsn: str | None) -> str | None:
  """Point plain postgres/sqlite DSNs at their async drivers; explicit drivers pass through."""
  if not dsn:
    return None
  scheme, separator, rest = dsn.partition("://")
  if not separator:
    return dsn
  return f"{_ASYNC_DRIVERS.get(scheme, scheme)}://{rest}"


def engine_options(url: str, settings: DatabaseSettings) -> dict[str, Any]:
  """Pool and connect options for the configured backend."""
  options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
  if url.startswith("sqlite"):
    # SQLite serializes writers; wait for the lock instead of failing claims.
    options["connect_args"] = {"timeout": settings.pg_connect_timeout}
    return options
  options.update(pool_size=settings.pg_pool_size, max_overflow=settings.pg_max_overflow)
  if url.startswith("postgresql+asyncpg"):
    options["connect_args"] = {"timeout": settings.pg_connect_timeout}
  return options


DATABASE_URL = async_database_url(get_database_settings().pg_dsn)


def get_db_engine() -> AsyncEngine | None:
  global _engine
  if _engine is None:
    settings = get_database_settings()
    url = async_database_url(settings.pg_dsn)
    if url:
      _engine = create_async_engine(url, **engine_options(url, settings))
  return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
  global _session_factory
  if _session_factory is None:
    db_engine = get_db_engine()
    if db_engine is not None:
      _session_factory = async_sessionmaker(bind=db_engine, expire_on_commit=False, class_=AsyncSession)
  return _session_factory


def require_session_factory() -> async_sessionmaker[AsyncSession]:
  session_factory = get_session_factory()
  if session_factory is None:
    raise RuntimeError("Database connection is not configured (COURSEGEN_PG_DSN is missing).")
  return session_factory


async def dispose_engine() -> None:
  """Close pooled connections and forget the engine so a later call rebuilds it."""
  global _engine, _session_factory
  if _engine is None:
    return
  await _engine.dispose()
  logger.info("Database engine disposed.")
  _engine = None
  _session_factory = None


async def get_db() -> AsyncGenerator[AsyncSession]:
  """Request-scoped session; uncommitted work is rolled back when the handler raises."""
  session_factory = require_session_factory()
  async with session_factory() as session:
    try:
      yield session
    except Exception:
      await session.rollback()
      raise
