from __future__ import annotations

import datetime

from sqlalchemy import CheckConstraint, Date, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from coursegen.core.database import Base
from coursegen.schema.types import JSONDocument


class User(Base):
  __tablename__ = "users"
  __table_args__ = (CheckConstraint("subscription_tier IN ('free', 'pro', 'lifetime')", name="ck_users_subscription_tier"),)

  user_id: Mapped[str] = mapped_column(String, primary_key=True)
  email: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  subscription_tier: Mapped[str] = mapped_column(String, nullable=False, default="free")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class UsageBucket(Base):
  __tablename__ = "usage_buckets"
  __table_args__ = (UniqueConstraint("owner_id", "period_start", name="ux_usage_buckets_owner_period"),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  period_start: Mapped[datetime.date] = mapped_column(Date, nullable=False)
  used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class UsageLog(Base):
  __tablename__ = "usage_logs"

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  action: Mapped[str] = mapped_column(String, nullable=False)
  metadata_json: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RateLimitWindow(Base):
  __tablename__ = "rate_limit_windows"
  __table_args__ = (UniqueConstraint("owner_id", "window_start", name="ux_rate_limit_windows_owner_window"),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  window_start: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
