"""Service layer behind the job routes and the operator sweep and reprocess tasks."""

import datetime
import logging

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coursegen.ai.engine import CourseGenerationEngine, get_generation_engine
from coursegen.api.models import CourseResult, JobCreateRequest, JobCreateResponse, JobStatsResponse, JobStatusResponse, ReprocessJobResult, ReprocessResponse, SweepResponse
from coursegen.config import Settings
from coursegen.core.database import require_session_factory
from coursegen.jobs.dispatch import DrainReport, drain_dispatch_outbox
from coursegen.jobs.errors import JobNotFoundError, QuotaExceededError, RateLimitedError, StoreError
from coursegen.jobs.models import Completed, Failed, JobRecord
from coursegen.jobs.progress import estimate_progress
from coursegen.jobs.recovery import redispatch_orphaned_jobs, reprocess_jobs, sweep_stuck_jobs
from coursegen.jobs.worker import JobProcessor, ProcessOutcome
from coursegen.services.content import normalize_submission
from coursegen.services.quotas import SqlUsageService, UsageService
from coursegen.services.rate_limits import hit_rate_limit
from coursegen.services.tasks.factory import get_task_enqueuer
from coursegen.services.users import ensure_user
from coursegen.storage.factory import _get_courses_repo, _get_jobs_repo
from coursegen.utils.ids import generate_job_id
from coursegen.utils.time import utc_now

logger = logging.getLogger(__name__)

_STORE_UNAVAILABLE_MSG = "Job store unavailable. Please try again."


def _get_usage_service(settings: Settings) -> UsageService:
  return SqlUsageService(require_session_factory())


def _get_generation_engine(settings: Settings) -> CourseGenerationEngine:
  return get_generation_engine(settings)


def build_job_processor(settings: Settings) -> JobProcessor:
  """Wire a processor from the configured collaborators."""
  return JobProcessor(jobs_repo=_get_jobs_repo(settings), courses_repo=_get_courses_repo(settings), engine=_get_generation_engine(settings), usage=_get_usage_service(settings), settings=settings)


def _poll_url(job_id: str) -> str:
  return f"/v1/jobs/{job_id}"


async def submit_job(request: JobCreateRequest, settings: Settings, background_tasks: BackgroundTasks, db_session: AsyncSession, *, owner_id: str, email: str | None = None) -> JobCreateResponse:
  """Validate, gate and persist a new pending job, then schedule its dispatch."""
  # Validation happens before any write so rejected input leaves no trace.
  normalized = normalize_submission(request.content, request.content_type)

  try:
    await ensure_user(db_session, user_id=owner_id, email=email)

    decision = await hit_rate_limit(db_session, owner_id=owner_id, max_requests=settings.rate_limit_max_requests, window_seconds=settings.rate_limit_window_seconds)
    if not decision.allowed:
      raise RateLimitedError(retry_after_seconds=decision.retry_after_seconds)

    # Regenerations of an existing course are not counted against the monthly quota.
    if not request.regenerate:
      snapshot = await _get_usage_service(settings).check(owner_id)
      if not snapshot.can_generate:
        logger.info("Quota exhausted for user %s (tier=%s used=%s limit=%s)", owner_id, snapshot.tier, snapshot.used, snapshot.limit)
        raise QuotaExceededError(f"Monthly limit of {snapshot.limit} course generation(s) reached for the {snapshot.tier} plan.")

    record = JobRecord(job_id=generate_job_id(), owner_id=owner_id, input_content=normalized.content, content_type=normalized.content_type, regenerate=request.regenerate, created_at=utc_now())
    repo = _get_jobs_repo(settings)
    await repo.create_job(record)
  except SQLAlchemyError as exc:
    logger.error("Job submission failed for user %s: %s", owner_id, exc, exc_info=True)
    raise StoreError(_STORE_UNAVAILABLE_MSG) from exc

  logger.info("Created job %s for user %s (type=%s regenerate=%s)", record.job_id, owner_id, record.content_type, record.regenerate)
  schedule_dispatch(background_tasks, settings, job_id=record.job_id)
  return JobCreateResponse(job_id=record.job_id, status="pending", poll_url=_poll_url(record.job_id))


def _job_status_from_record(record: JobRecord, settings: Settings, *, now: datetime.datetime) -> JobStatusResponse:
  state = record.state
  response = JobStatusResponse(job_id=record.job_id, status=record.status, created_at=record.created_at, started_at=record.started_at, completed_at=record.completed_at)
  estimate = estimate_progress(record, now=now, pending_total_ms=settings.estimate_pending_ms, processing_total_ms=settings.estimate_processing_ms)
  if estimate is not None:
    response.estimated_remaining_ms = estimate.remaining_ms
    response.estimated_completion_at = estimate.completion_at
  if isinstance(state, Completed):
    response.result = CourseResult(course_id=state.result.course_id, title=state.result.title, module_count=state.result.module_count)
  elif isinstance(state, Failed):
    response.error = state.error_message
    response.retryable = state.retryable
  return response


async def get_job_status(job_id: str, settings: Settings, *, owner_id: str, now: datetime.datetime | None = None) -> JobStatusResponse:
  """Fetch the status of a job owned by the caller; other owners' jobs look missing."""
  repo = _get_jobs_repo(settings)
  try:
    record = await repo.get_job(job_id, owner_id=owner_id)
  except SQLAlchemyError as exc:
    logger.error("Status lookup failed for job %s: %s", job_id, exc, exc_info=True)
    raise StoreError(_STORE_UNAVAILABLE_MSG) from exc

  if record is None:
    raise JobNotFoundError()

  return _job_status_from_record(record, settings, now=now or utc_now())


async def process_job_sync(job_id: str, settings: Settings) -> ProcessOutcome:
  """Run the processor for a dispatched job, falling back to the oldest pending one."""
  processor = build_job_processor(settings)
  outcome = await processor.process_one(preferred_job_id=job_id)
  logger.info("Processor invocation for %s finished: %s (job %s)", job_id, outcome.status, outcome.job_id)
  return outcome


async def dispatch_pending(settings: Settings, *, job_id: str | None = None) -> DrainReport:
  """Drain the dispatch outbox through the configured task enqueuer."""
  repo = _get_jobs_repo(settings)
  return await drain_dispatch_outbox(repo, get_task_enqueuer(settings), job_id=job_id)


def schedule_dispatch(background_tasks: BackgroundTasks, settings: Settings, *, job_id: str) -> None:
  """Drain the outbox after the response is sent; undelivered rows are retried by the sweeper."""

  if not settings.jobs_auto_process:
    return

  async def _dispatch() -> None:
    try:
      report = await dispatch_pending(settings, job_id=job_id)
    except Exception as exc:  # noqa: BLE001
      logger.error("Dispatch drain failed for job %s: %s", job_id, exc, exc_info=True)
      return
    if report.failed:
      logger.warning("Job %s left queued for redelivery after dispatch failure", job_id)

  background_tasks.add_task(_dispatch)


async def run_sweep(settings: Settings, *, now: datetime.datetime | None = None) -> SweepResponse:
  """Recover stuck jobs, re-trigger orphaned pending ones and redeliver the outbox."""
  repo = _get_jobs_repo(settings)
  stale_after = datetime.timedelta(seconds=settings.job_stale_after_seconds)
  report = await sweep_stuck_jobs(repo, stale_after=stale_after, max_attempts=settings.job_max_attempts, now=now)
  report.redispatched = await redispatch_orphaned_jobs(repo, stale_after=stale_after, now=now)
  delivered: list[str] = []
  if settings.jobs_auto_process:
    drain = await drain_dispatch_outbox(repo, get_task_enqueuer(settings), limit=100)
    delivered = drain.delivered
  logger.info("Sweep finished: requeued=%d failed=%d skipped=%d redispatched=%d delivered=%d", len(report.requeued), len(report.failed), len(report.skipped), len(report.redispatched), len(delivered))
  return SweepResponse(requeued=report.requeued, failed=report.failed, skipped=report.skipped, redispatched=report.redispatched, delivered=delivered)


async def run_reprocess(settings: Settings, *, limit: int | None = None) -> ReprocessResponse:
  """Operator-triggered sequential processing of every pending or processing job."""
  repo = _get_jobs_repo(settings)
  report = await reprocess_jobs(
    repo,
    build_job_processor(settings),
    stale_after=datetime.timedelta(seconds=settings.job_stale_after_seconds),
    max_attempts=settings.job_max_attempts,
    delay_seconds=settings.reprocess_delay_seconds,
    limit=limit,
  )
  results = [ReprocessJobResult(job_id=item.job_id, status=item.status, error=item.error) for item in report.results]
  return ReprocessResponse(total_jobs=report.total_jobs, processed_successfully=report.processed_successfully, results=results)


async def get_job_stats(settings: Settings, *, now: datetime.datetime | None = None) -> JobStatsResponse:
  """Status counts over the last day plus active jobs older than the stale threshold."""
  repo = _get_jobs_repo(settings)
  current = now or utc_now()
  since = current - datetime.timedelta(hours=24)
  counts = await repo.count_by_status(since=since)
  stuck = await repo.find_by_status(["pending", "processing"], older_than=current - datetime.timedelta(seconds=settings.job_stale_after_seconds))
  return JobStatsResponse(since=since, counts=counts, stuck_jobs=len(stuck))
