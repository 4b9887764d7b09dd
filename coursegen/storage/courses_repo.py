"""Storage interfaces for generated courses."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class CourseModuleRecord:
  """One module inside a generated course."""

  id: str
  title: str
  summary: str
  takeaways: list[str]
  order: int
  estimated_read_time: int | None = None


@dataclass(frozen=True)
class CourseRecord:
  """Persisted course artifact produced by a completed job."""

  course_id: str
  owner_id: str
  title: str
  original_content: str
  modules: list[CourseModuleRecord]
  created_at: datetime.datetime
  job_id: str | None = None
  metadata: dict[str, Any] = field(default_factory=dict)


class CoursesRepository(Protocol):
  """Repository contract for course persistence."""

  async def create_course(self, record: CourseRecord) -> None:
    """Persist a generated course."""

  async def get_course(self, course_id: str, *, owner_id: str) -> CourseRecord | None:
    """Fetch a course owned by the caller."""

  async def delete_course(self, course_id: str, *, owner_id: str) -> bool:
    """Delete a course owned by the caller; report whether a row was removed."""
