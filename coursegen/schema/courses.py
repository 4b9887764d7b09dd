from __future__ import annotations

import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from coursegen.core.database import Base
from coursegen.schema.types import JSONDocument


class Course(Base):
  __tablename__ = "courses"

  course_id: Mapped[str] = mapped_column(String, primary_key=True)
  owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  # No foreign key to jobs: course and job rows are deleted independently.
  job_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  original_content: Mapped[str] = mapped_column(Text, nullable=False)
  modules_json: Mapped[list] = mapped_column(JSONDocument, nullable=False)
  metadata_json: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
