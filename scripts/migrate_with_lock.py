"""Run Alembic migrations behind a Postgres advisory lock.

Concurrent deploys wait on the lock instead of racing `upgrade head`, and a database
that has tables but no Alembic history is refused rather than re-created over.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine

from alembic import command
from alembic.config import Config

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from coursegen.config import get_database_settings  # noqa: E402
from coursegen.core.lifespan import _redact_dsn  # noqa: E402
from coursegen.utils.env import default_env_path, load_env_file  # noqa: E402

logger = logging.getLogger("scripts.migrate_with_lock")

# Arbitrary but stable key shared by every migrator process.
MIGRATION_LOCK_KEY = 74_212_001


def _normalize_async_dsn(raw_dsn: str) -> str:
  dsn = raw_dsn.strip()
  if dsn.startswith("postgresql://"):
    return dsn.replace("postgresql://", "postgresql+asyncpg://", 1)
  if dsn.startswith("postgres://"):
    return dsn.replace("postgres://", "postgresql+asyncpg://", 1)
  return dsn


async def _guard_schema_history_state(connection: AsyncConnection) -> None:
  """Refuse to migrate when tables exist but Alembic does not know what was applied."""
  public_tables = await connection.scalar(
    text(
      """
      SELECT COUNT(*)
      FROM information_schema.tables
      WHERE table_schema = 'public'
        AND table_type = 'BASE TABLE'
        AND table_name <> 'alembic_version'
      """
    )
  )
  has_version_table = await connection.scalar(text("SELECT to_regclass('public.alembic_version') IS NOT NULL"))
  if not public_tables:
    return
  if not has_version_table:
    raise RuntimeError("Database contains tables but Alembic history is missing (no `alembic_version` table). Run `alembic stamp head` if the schema is already at head.")
  version_rows = await connection.scalar(text("SELECT COUNT(*) FROM alembic_version"))
  if not version_rows:
    raise RuntimeError("Database contains tables but `alembic_version` is empty. Drop and recreate the database, or run `alembic stamp head` if the schema is already at head.")


def _run_upgrade_sync(connection: Connection, alembic_ini_path: Path) -> None:
  config = Config(str(alembic_ini_path))
  config.attributes["connection"] = connection
  command.upgrade(config, "head")


async def _run_migrations() -> None:
  raw_dsn = get_database_settings().pg_dsn
  if not raw_dsn:
    raise RuntimeError("COURSEGEN_PG_DSN must be set to run migrations.")

  dsn = _normalize_async_dsn(raw_dsn)
  logger.info("Migrator using %s", _redact_dsn(dsn))
  alembic_ini_path = Path(__file__).resolve().parents[1] / "alembic.ini"
  if not alembic_ini_path.exists():
    raise RuntimeError(f"Missing Alembic config at {alembic_ini_path}.")

  engine = create_async_engine(dsn, pool_pre_ping=True)
  try:
    async with engine.connect() as connection:
      logger.info("Waiting for migration lock %s", MIGRATION_LOCK_KEY)
      await connection.execute(text("SELECT pg_advisory_lock(:key)"), {"key": MIGRATION_LOCK_KEY})
      await connection.commit()
      try:
        async with connection.begin():
          await _guard_schema_history_state(connection)
          logger.info("Running alembic upgrade head")
          await connection.run_sync(_run_upgrade_sync, alembic_ini_path)
      finally:
        await connection.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": MIGRATION_LOCK_KEY})
        await connection.commit()
  finally:
    await engine.dispose()


def main() -> None:
  load_env_file(default_env_path(), override=False)
  logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
  asyncio.run(_run_migrations())


if __name__ == "__main__":
  main()
