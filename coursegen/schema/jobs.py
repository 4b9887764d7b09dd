from __future__ import annotations

import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from coursegen.core.database import Base
from coursegen.schema.types import JSONDocument


class Job(Base):
  __tablename__ = "jobs"
  __table_args__ = (
    CheckConstraint("status IN ('pending', 'processing', 'completed', 'failed')", name="ck_jobs_status"),
    CheckConstraint("content_type IN ('text', 'url')", name="ck_jobs_content_type"),
    Index("ix_jobs_status_created_at", "status", "created_at"),
  )

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  input_content: Mapped[str] = mapped_column(Text, nullable=False)
  content_type: Mapped[str] = mapped_column(String, nullable=False, default="text")
  regenerate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
  attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  result_json: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  retryable: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  started_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  completed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class JobDispatch(Base):
  """Outbox row asking the task service to run the processor for one job."""

  __tablename__ = "job_dispatches"

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  job_id: Mapped[str] = mapped_column(ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, index=True)
  attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  dispatched_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
