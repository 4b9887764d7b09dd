"""Monthly generation quota: snapshot checks, usage recording and audit logging."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursegen.schema.users import UsageBucket, UsageLog
from coursegen.services.users import get_user_subscription_tier
from coursegen.utils.time import utc_now

logger = logging.getLogger(__name__)

# None means unlimited.
MONTHLY_LIMITS: dict[str, int | None] = {"free": 1, "pro": None, "lifetime": None}


@dataclass(frozen=True)
class UsageSnapshot:
  """Quota state for one owner in the active month."""

  tier: str
  limit: int | None
  used: int
  remaining: int | None
  period_start: datetime.date
  resets_at: datetime.datetime

  @property
  def can_generate(self) -> bool:
    return self.limit is None or self.used < self.limit


def period_start_date(now: datetime.datetime) -> datetime.date:
  """Return the first day of the UTC month containing `now`."""
  if now.tzinfo is None:
    raise ValueError("now must be timezone-aware (UTC).")
  return now.astimezone(datetime.UTC).date().replace(day=1)


def next_period_start(start: datetime.date) -> datetime.datetime:
  if start.month == 12:
    return datetime.datetime(start.year + 1, 1, 1, tzinfo=datetime.UTC)
  return datetime.datetime(start.year, start.month + 1, 1, tzinfo=datetime.UTC)


async def get_usage_snapshot(session: AsyncSession, *, owner_id: str, now: datetime.datetime | None = None) -> UsageSnapshot:
  """Return used/remaining generations for the owner's active month."""
  current = now or utc_now()
  start = period_start_date(current)
  tier = await get_user_subscription_tier(session, owner_id)
  limit = MONTHLY_LIMITS.get(tier, MONTHLY_LIMITS["free"])
  stmt = select(UsageBucket.used).where(UsageBucket.owner_id == owner_id, UsageBucket.period_start == start)
  used = int((await session.execute(stmt)).scalar_one_or_none() or 0)
  remaining = None if limit is None else max(limit - used, 0)
  return UsageSnapshot(tier=tier, limit=limit, used=used, remaining=remaining, period_start=start, resets_at=next_period_start(start))


async def _increment_bucket(session: AsyncSession, *, owner_id: str, start: datetime.date, now: datetime.datetime) -> None:
  stmt = update(UsageBucket).where(UsageBucket.owner_id == owner_id, UsageBucket.period_start == start).values(used=UsageBucket.used + 1, updated_at=now).execution_options(synchronize_session=False)
  result = await session.execute(stmt)
  if result.rowcount == 1:
    return
  session.add(UsageBucket(owner_id=owner_id, period_start=start, used=1, updated_at=now))
  await session.flush()


async def record_generation(session: AsyncSession, *, owner_id: str, job_id: str, course_id: str, content_type: str, now: datetime.datetime | None = None) -> int:
  """Count one generation against the active month and append a usage log row."""
  current = now or utc_now()
  start = period_start_date(current)
  try:
    await _increment_bucket(session, owner_id=owner_id, start=start, now=current)
    session.add(UsageLog(owner_id=owner_id, action="generate", metadata_json={"content_type": content_type, "course_id": course_id, "job_id": job_id}, created_at=current))
    await session.commit()
  except IntegrityError:
    # Lost the race to create this month's bucket; the row exists now.
    await session.rollback()
    await _increment_bucket(session, owner_id=owner_id, start=start, now=current)
    session.add(UsageLog(owner_id=owner_id, action="generate", metadata_json={"content_type": content_type, "course_id": course_id, "job_id": job_id}, created_at=current))
    await session.commit()

  used = await session.scalar(select(UsageBucket.used).where(UsageBucket.owner_id == owner_id, UsageBucket.period_start == start))
  return int(used or 0)


class UsageService(Protocol):
  """Quota collaborator used by the submitter and the processor."""

  async def check(self, owner_id: str) -> UsageSnapshot:
    """Return the owner's quota snapshot."""

  async def record_generation(self, owner_id: str, *, job_id: str, course_id: str, content_type: str) -> int:
    """Count a successful generation; return the new monthly total."""


class SqlUsageService(UsageService):
  """Usage service backed by the shared database."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
    self._session_factory = session_factory

  async def check(self, owner_id: str) -> UsageSnapshot:
    async with self._session_factory() as session:
      return await get_usage_snapshot(session, owner_id=owner_id)

  async def record_generation(self, owner_id: str, *, job_id: str, course_id: str, content_type: str) -> int:
    async with self._session_factory() as session:
      total = await record_generation(session, owner_id=owner_id, job_id=job_id, course_id=course_id, content_type=content_type)
      logger.info("Recorded generation for user %s job %s (monthly total %s)", owner_id, job_id, total)
      return total
