"""Domain models for asynchronous course generation jobs."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Literal

JobStatus = Literal["pending", "processing", "completed", "failed"]
ContentType = Literal["text", "url"]

ACTIVE_STATUSES: tuple[JobStatus, ...] = ("pending", "processing")
TERMINAL_STATUSES: tuple[JobStatus, ...] = ("completed", "failed")


@dataclass(frozen=True)
class CourseSummary:
  """Compact reference to the course a completed job produced."""

  course_id: str
  title: str
  module_count: int

  def to_json(self) -> dict[str, object]:
    return {"course_id": self.course_id, "title": self.title, "module_count": self.module_count}

  @classmethod
  def from_json(cls, payload: dict) -> CourseSummary:
    return cls(course_id=str(payload["course_id"]), title=str(payload["title"]), module_count=int(payload["module_count"]))


@dataclass(frozen=True)
class Pending:
  status: Literal["pending"] = field(default="pending", init=False)


@dataclass(frozen=True)
class Processing:
  started_at: datetime.datetime
  attempt: int
  status: Literal["processing"] = field(default="processing", init=False)


@dataclass(frozen=True)
class Completed:
  started_at: datetime.datetime
  completed_at: datetime.datetime
  result: CourseSummary
  status: Literal["completed"] = field(default="completed", init=False)


@dataclass(frozen=True)
class Failed:
  completed_at: datetime.datetime
  error_message: str
  retryable: bool
  # A job can fail before it was ever claimed (sweeper on an orphaned row).
  started_at: datetime.datetime | None = None
  status: Literal["failed"] = field(default="failed", init=False)


JobState = Pending | Processing | Completed | Failed


@dataclass
class JobRecord:
  """Represents a background course generation job."""

  job_id: str
  owner_id: str
  input_content: str
  content_type: ContentType
  created_at: datetime.datetime
  state: JobState = field(default_factory=Pending)
  regenerate: bool = False
  attempts: int = 0
  updated_at: datetime.datetime | None = None

  @property
  def status(self) -> JobStatus:
    return self.state.status

  @property
  def started_at(self) -> datetime.datetime | None:
    return getattr(self.state, "started_at", None)

  @property
  def completed_at(self) -> datetime.datetime | None:
    return getattr(self.state, "completed_at", None)

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES


def state_from_columns(*, status: str, attempts: int, started_at: datetime.datetime | None, completed_at: datetime.datetime | None, result_json: dict | None, error_message: str | None, retryable: bool | None) -> JobState:
  """Rebuild the tagged job state from flat storage columns."""

  if status == "pending":
    return Pending()
  if status == "processing":
    if started_at is None:
      raise ValueError("processing job is missing started_at")
    return Processing(started_at=started_at, attempt=attempts)
  if status == "completed":
    if started_at is None or completed_at is None or result_json is None:
      raise ValueError("completed job is missing started_at, completed_at or result")
    return Completed(started_at=started_at, completed_at=completed_at, result=CourseSummary.from_json(result_json))
  if status == "failed":
    if completed_at is None:
      raise ValueError("failed job is missing completed_at")
    return Failed(started_at=started_at, completed_at=completed_at, error_message=error_message or "", retryable=bool(retryable))
  raise ValueError(f"Unknown job status: {status}")
