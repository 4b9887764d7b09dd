"""Owner principal lookup and provisioning."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursegen.schema.users import User

logger = logging.getLogger(__name__)

SUBSCRIPTION_TIERS = ("free", "pro", "lifetime")


async def get_user_by_id(session: AsyncSession, user_id: str) -> User | None:
  stmt = select(User).where(User.user_id == user_id)
  return (await session.execute(stmt)).scalar_one_or_none()


async def ensure_user(session: AsyncSession, *, user_id: str, email: str | None = None) -> User:
  """Return the owner row, creating a free-tier record on first use."""
  user = await get_user_by_id(session, user_id)
  if user is not None:
    return user

  session.add(User(user_id=user_id, email=email, subscription_tier="free"))
  try:
    await session.commit()
  except IntegrityError:
    # A concurrent request provisioned the same owner first.
    await session.rollback()
    user = await get_user_by_id(session, user_id)
    if user is None:
      raise
    return user

  logger.info("Provisioned user %s", user_id)
  user = await get_user_by_id(session, user_id)
  if user is None:
    raise RuntimeError(f"User {user_id} missing after provisioning.")
  return user


async def get_user_subscription_tier(session: AsyncSession, user_id: str) -> str:
  user = await get_user_by_id(session, user_id)
  if user is None or user.subscription_tier not in SUBSCRIPTION_TIERS:
    return "free"
  return user.subscription_tier
