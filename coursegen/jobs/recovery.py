"""Stuck-job recovery and operator-triggered reprocessing."""

from __future__ import annotations

import asyncio
import datetime
import logging
from dataclasses import dataclass, field

from coursegen.jobs.models import Processing
from coursegen.jobs.worker import JobProcessor, ProcessOutcome
from coursegen.storage.jobs_repo import JobsRepository
from coursegen.utils.time import utc_now

logger = logging.getLogger(__name__)

STUCK_JOB_MESSAGE = "Job timed out - stuck in processing for too long"


@dataclass
class SweepReport:
  requeued: list[str] = field(default_factory=list)
  failed: list[str] = field(default_factory=list)
  skipped: list[str] = field(default_factory=list)
  redispatched: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReprocessResult:
  job_id: str
  status: str
  error: str | None = None


@dataclass
class ReprocessReport:
  total_jobs: int = 0
  processed_successfully: int = 0
  results: list[ReprocessResult] = field(default_factory=list)


async def sweep_stuck_jobs(jobs_repo: JobsRepository, *, stale_after: datetime.timedelta, max_attempts: int, now: datetime.datetime | None = None) -> SweepReport:
  """Requeue or fail processing jobs whose claim is older than `stale_after`.

  Jobs that already used `max_attempts` claims are failed (retryable) instead of
  requeued. Each write is conditional on the status and attempt read here, so a
  job that finished in the meantime is skipped.
  """
  current = now or utc_now()
  cutoff = current - stale_after
  report = SweepReport()
  stale = await jobs_repo.find_by_status(["processing"], older_than=cutoff)
  for job in stale:
    state = job.state
    if not isinstance(state, Processing):
      report.skipped.append(job.job_id)
      continue
    if state.attempt >= max_attempts:
      applied = await jobs_repo.fail_job(job.job_id, attempt=state.attempt, error_message=STUCK_JOB_MESSAGE, retryable=True, now=current)
      action, bucket = "failed", report.failed
    else:
      applied = await jobs_repo.requeue_job(job.job_id, attempt=state.attempt, now=current)
      action, bucket = "requeued", report.requeued
    if applied:
      bucket.append(job.job_id)
      logger.warning("Stuck job %s %s (attempt %s/%s, claimed %s)", job.job_id, action, state.attempt, max_attempts, state.started_at.isoformat())
    else:
      report.skipped.append(job.job_id)
  return report


async def redispatch_orphaned_jobs(jobs_repo: JobsRepository, *, stale_after: datetime.timedelta, now: datetime.datetime | None = None) -> list[str]:
  """Queue a fresh trigger for pending jobs that have waited longer than `stale_after`."""
  current = now or utc_now()
  orphaned = await jobs_repo.find_by_status(["pending"], older_than=current - stale_after)
  queued: list[str] = []
  for job in orphaned:
    if await jobs_repo.enqueue_dispatch(job.job_id):
      queued.append(job.job_id)
  if queued:
    logger.info("Queued dispatch for %d orphaned pending jobs", len(queued))
  return queued


async def reprocess_jobs(jobs_repo: JobsRepository, processor: JobProcessor, *, stale_after: datetime.timedelta, max_attempts: int, delay_seconds: float, limit: int | None = None) -> ReprocessReport:
  """Sequentially run the processor against every active job, oldest first."""
  active = await jobs_repo.find_by_status(["pending", "processing"], limit=limit)
  report = ReprocessReport(total_jobs=len(active))
  if not active:
    return report

  # Reset stale claims first so they become claimable below.
  await sweep_stuck_jobs(jobs_repo, stale_after=stale_after, max_attempts=max_attempts)

  for index, job in enumerate(active):
    outcome: ProcessOutcome = await processor.process_one(preferred_job_id=job.job_id, only_preferred=True)
    if outcome.status == "completed":
      report.processed_successfully += 1
    # Nothing claimable means the job is still in flight or already finished.
    result_status = "skipped" if outcome.status == "idle" else outcome.status
    report.results.append(ReprocessResult(job_id=job.job_id, status=result_status, error=outcome.error))
    if delay_seconds > 0 and index < len(active) - 1:
      await asyncio.sleep(delay_seconds)

  logger.info("Manual reprocess finished: %d/%d completed", report.processed_successfully, report.total_jobs)
  return report
