from __future__ import annotations

import pytest

from coursegen.config import DatabaseSettings
from coursegen.core.database import async_database_url, engine_options

SETTINGS = DatabaseSettings(debug=False, pg_dsn=None, pg_connect_timeout=7, pg_pool_size=4, pg_max_overflow=2)


@pytest.mark.parametrize(
  ("dsn", "expected"),
  [
    ("postgresql://app:secret@db:5432/courses", "postgresql+asyncpg://app:secret@db:5432/courses"),
    ("postgres://db/courses", "postgresql+asyncpg://db/courses"),
    ("postgresql+asyncpg://db/courses", "postgresql+asyncpg://db/courses"),
    ("sqlite:///./jobs.db", "sqlite+aiosqlite:///./jobs.db"),
    ("", None),
    (None, None),
  ],
)
def test_dsn_is_pointed_at_an_async_driver(dsn: str | None, expected: str | None) -> None:
  assert async_database_url(dsn) == expected


def test_postgres_engine_uses_configured_pool_and_connect_timeout() -> None:
  options = engine_options("postgresql+asyncpg://db/courses", SETTINGS)

  assert options["pool_size"] == 4
  assert options["max_overflow"] == 2
  assert options["pool_pre_ping"] is True
  assert options["connect_args"] == {"timeout": 7}


def test_sqlite_engine_skips_pool_sizing() -> None:
  options = engine_options("sqlite+aiosqlite:///./jobs.db", SETTINGS)

  assert "pool_size" not in options
  assert options["connect_args"] == {"timeout": 7}
