"""Outbox relay that turns committed dispatch rows into processor invocations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from coursegen.services.tasks.interface import TaskEnqueuer
from coursegen.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)


@dataclass
class DrainReport:
  delivered: list[str] = field(default_factory=list)
  failed: list[str] = field(default_factory=list)


async def drain_dispatch_outbox(jobs_repo: JobsRepository, enqueuer: TaskEnqueuer, *, limit: int = 20, job_id: str | None = None) -> DrainReport:
  """Deliver waiting outbox rows; failures stay queued for the next drain or sweep.

  With `job_id` only that job's rows are delivered, which is what the submit path uses.
  """
  report = DrainReport()
  pending = await jobs_repo.list_undelivered_dispatches(limit=limit, job_id=job_id)
  for dispatch in pending:
    try:
      await enqueuer.enqueue(dispatch.job_id)
    except Exception as exc:  # noqa: BLE001
      logger.error("Dispatch %s for job %s failed (attempt %s): %s", dispatch.id, dispatch.job_id, dispatch.attempts + 1, exc)
      await jobs_repo.record_dispatch_failure(dispatch.id, error=f"{type(exc).__name__}: {exc}")
      report.failed.append(dispatch.job_id)
      continue
    await jobs_repo.mark_dispatched(dispatch.id)
    report.delivered.append(dispatch.job_id)
  return report
