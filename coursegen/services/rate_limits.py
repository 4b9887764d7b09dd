"""Per-owner submission rate limiting shared across instances via the database."""

from __future__ import annotations

import datetime
import logging
import math
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursegen.schema.users import RateLimitWindow
from coursegen.utils.time import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
  allowed: bool
  count: int
  limit: int
  window_start: datetime.datetime
  retry_after_seconds: int


def window_start_for(now: datetime.datetime, window_seconds: int) -> datetime.datetime:
  """Align `now` to the start of its fixed window."""
  epoch = int(now.timestamp())
  return datetime.datetime.fromtimestamp(epoch - (epoch % window_seconds), tz=datetime.UTC)


async def _bump(session: AsyncSession, *, owner_id: str, window_start: datetime.datetime) -> bool:
  stmt = update(RateLimitWindow).where(RateLimitWindow.owner_id == owner_id, RateLimitWindow.window_start == window_start).values(request_count=RateLimitWindow.request_count + 1).execution_options(synchronize_session=False)
  result = await session.execute(stmt)
  return result.rowcount == 1


async def hit_rate_limit(session: AsyncSession, *, owner_id: str, max_requests: int, window_seconds: int, now: datetime.datetime | None = None) -> RateLimitDecision:
  """Count one submission in the owner's current window and decide whether it may proceed."""
  current = now or utc_now()
  window_start = window_start_for(current, window_seconds)

  if not await _bump(session, owner_id=owner_id, window_start=window_start):
    session.add(RateLimitWindow(owner_id=owner_id, window_start=window_start, request_count=1))
    try:
      await session.commit()
    except IntegrityError:
      # Another instance opened the window first; count against its row.
      await session.rollback()
      if not await _bump(session, owner_id=owner_id, window_start=window_start):
        raise
      await session.commit()
  else:
    await session.commit()

  stmt = select(RateLimitWindow.request_count).where(RateLimitWindow.owner_id == owner_id, RateLimitWindow.window_start == window_start)
  count = int((await session.execute(stmt)).scalar_one())
  elapsed = (current - window_start).total_seconds()
  retry_after = max(1, math.ceil(window_seconds - elapsed))
  allowed = count <= max_requests
  if not allowed:
    logger.warning("Rate limit exceeded for user %s (%s requests in window starting %s)", owner_id, count, window_start.isoformat())
  return RateLimitDecision(allowed=allowed, count=count, limit=max_requests, window_start=window_start, retry_after_seconds=retry_after)
