"""Storage interfaces for course generation jobs."""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from coursegen.jobs.models import CourseSummary, JobRecord, JobStatus

StatusUpdate = Literal["ok", "not_found", "conflict"]


@dataclass(frozen=True)
class DispatchRecord:
  """Outbox row describing one undelivered processor trigger."""

  id: int
  job_id: str
  attempts: int
  created_at: datetime.datetime
  last_error: str | None = None


class JobsRepository(Protocol):
  """Repository contract for job persistence."""

  async def create_job(self, record: JobRecord) -> None:
    """Persist a pending job together with its outbox row."""

  async def get_job(self, job_id: str, *, owner_id: str | None = None) -> JobRecord | None:
    """Fetch a job by identifier, optionally scoped to an owner."""

  async def update_status(self, job_id: str, *, expected_status: JobStatus | tuple[JobStatus, ...], expected_attempt: int | None = None, values: dict[str, Any]) -> StatusUpdate:
    """Apply a conditional single-row update guarded by status and attempt."""

  async def find_by_status(self, statuses: Iterable[JobStatus], *, older_than: datetime.datetime | None = None, limit: int | None = None) -> list[JobRecord]:
    """List jobs in the given statuses, oldest first."""

  async def claim_next(self, *, preferred_job_id: str | None = None, only_preferred: bool = False, now: datetime.datetime | None = None) -> JobRecord | None:
    """Atomically move one pending job to processing."""

  async def complete_job(self, job_id: str, *, attempt: int, result: CourseSummary, started_at: datetime.datetime | None = None, now: datetime.datetime | None = None) -> bool:
    """Record success unless the job already reached a terminal state."""

  async def fail_job(self, job_id: str, *, attempt: int, error_message: str, retryable: bool, now: datetime.datetime | None = None) -> bool:
    """Record failure while the job is active and still on the given attempt."""

  async def requeue_job(self, job_id: str, *, attempt: int, now: datetime.datetime | None = None) -> bool:
    """Return a stale processing job to pending and queue a fresh dispatch."""

  async def count_by_status(self, *, since: datetime.datetime) -> dict[str, int]:
    """Count jobs created since a timestamp, grouped by status."""

  async def enqueue_dispatch(self, job_id: str) -> bool:
    """Queue a processor trigger unless one is already waiting."""

  async def list_undelivered_dispatches(self, *, limit: int = 20, job_id: str | None = None) -> list[DispatchRecord]:
    """Return outbox rows that still need delivery, oldest first."""

  async def mark_dispatched(self, dispatch_id: int, *, now: datetime.datetime | None = None) -> bool:
    """Mark one outbox row delivered."""

  async def record_dispatch_failure(self, dispatch_id: int, *, error: str) -> None:
    """Count a failed delivery attempt on an outbox row."""
