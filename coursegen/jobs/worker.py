"""Processor that claims one pending course job and drives it to a terminal state."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal

from sqlalchemy.exc import SQLAlchemyError

from coursegen.ai.engine import CourseGenerationEngine, GeneratedCourse
from coursegen.config import Settings
from coursegen.jobs.errors import CourseGenError, GenerationTimeoutError, PersistenceError
from coursegen.jobs.models import CourseSummary, JobRecord
from coursegen.services.content import prepare_content_for_ai
from coursegen.services.quotas import UsageService
from coursegen.storage.courses_repo import CourseModuleRecord, CourseRecord, CoursesRepository
from coursegen.storage.jobs_repo import JobsRepository
from coursegen.utils.ids import generate_course_id, generate_module_id
from coursegen.utils.time import utc_now

OutcomeStatus = Literal["idle", "completed", "failed", "superseded", "error"]

_UNEXPECTED_FAILURE_MSG = "Unexpected error during course generation."


@dataclass(frozen=True)
class ProcessOutcome:
  """What one processor invocation did."""

  status: OutcomeStatus
  job_id: str | None = None
  course_id: str | None = None
  error: str | None = None
  retryable: bool | None = None


def _discard_abandoned(task: asyncio.Task) -> None:
  # Retrieve the exception of an abandoned engine call so asyncio does not report it as unhandled.
  if not task.cancelled():
    task.exception()


class JobProcessor:
  """Coordinates execution of a single pending job per invocation."""

  def __init__(self, *, jobs_repo: JobsRepository, courses_repo: CoursesRepository, engine: CourseGenerationEngine, usage: UsageService, settings: Settings) -> None:
    self._jobs_repo = jobs_repo
    self._courses_repo = courses_repo
    self._engine = engine
    self._usage = usage
    self._settings = settings
    self._logger = logging.getLogger(__name__)

  async def process_one(self, *, preferred_job_id: str | None = None, only_preferred: bool = False) -> ProcessOutcome:
    """Claim a job and run it; never raises."""
    try:
      job = await self._jobs_repo.claim_next(preferred_job_id=preferred_job_id, only_preferred=only_preferred)
    except Exception as exc:  # noqa: BLE001
      self._logger.error("Failed to claim a pending job (preferred=%s): %s", preferred_job_id, exc, exc_info=True)
      return ProcessOutcome(status="error", job_id=preferred_job_id, error="Job store unavailable.", retryable=True)

    if job is None:
      self._logger.info("No pending job to claim (preferred=%s)", preferred_job_id)
      return ProcessOutcome(status="idle", job_id=preferred_job_id)

    attempt = job.attempts
    self._logger.info("Claimed job %s attempt %s", job.job_id, attempt)

    try:
      course = await self._generate(job)
      summary = await self._persist_course(job, course)
    except CourseGenError as exc:
      self._logger.warning("Job %s attempt %s failed: %s (retryable=%s)", job.job_id, attempt, exc.code, exc.retryable)
      return await self._finish_failed(job, attempt, exc.message, exc.retryable)
    except Exception:  # noqa: BLE001
      self._logger.error("Job %s attempt %s crashed", job.job_id, attempt, exc_info=True)
      return await self._finish_failed(job, attempt, _UNEXPECTED_FAILURE_MSG, True)

    return await self._finish_completed(job, attempt, summary)

  async def _generate(self, job: JobRecord) -> GeneratedCourse:
    """Race the engine against the hard deadline; on expiry the call is abandoned, not awaited."""
    content = prepare_content_for_ai(job.input_content) if job.content_type == "text" else job.input_content
    timeout = self._settings.job_timeout_seconds
    task = asyncio.ensure_future(self._engine.generate(content, content_type=job.content_type))
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if not done:
      task.add_done_callback(_discard_abandoned)
      task.cancel()
      self._logger.warning("Job %s exceeded the %.0fs generation deadline", job.job_id, timeout)
      raise GenerationTimeoutError(timeout)
    return task.result()

  async def _persist_course(self, job: JobRecord, course: GeneratedCourse) -> CourseSummary:
    course_id = generate_course_id()
    modules = [
      CourseModuleRecord(id=generate_module_id(course_id, index), title=module.title, summary=module.summary, takeaways=list(module.takeaways), order=index, estimated_read_time=module.estimated_read_time)
      for index, module in enumerate(course.modules, start=1)
    ]
    metadata = dict(course.metadata)
    metadata.update({"sourceType": "tweet" if job.content_type == "url" else "manual", "version": 1})
    if course.description:
      metadata["description"] = course.description
    if job.content_type == "url":
      metadata["sourceUrl"] = job.input_content
    record = CourseRecord(course_id=course_id, owner_id=job.owner_id, job_id=job.job_id, title=course.title, original_content=job.input_content, modules=modules, metadata=metadata, created_at=utc_now())
    try:
      await asyncio.wait_for(self._courses_repo.create_course(record), timeout=self._settings.store_timeout_seconds)
    except TimeoutError as exc:
      raise PersistenceError("Timed out saving the generated course.") from exc
    except SQLAlchemyError as exc:
      raise PersistenceError("Failed to save the generated course.") from exc
    return CourseSummary(course_id=course_id, title=course.title, module_count=len(modules))

  async def _record_usage(self, job: JobRecord, summary: CourseSummary) -> None:
    try:
      await self._usage.record_generation(job.owner_id, job_id=job.job_id, course_id=summary.course_id, content_type=job.content_type)
    except Exception as exc:  # noqa: BLE001
      # Usage accounting never fails a generated course.
      self._logger.error("Failed to record usage for job %s: %s", job.job_id, exc, exc_info=True)

  async def _finish_completed(self, job: JobRecord, attempt: int, summary: CourseSummary) -> ProcessOutcome:
    try:
      applied = await self._jobs_repo.complete_job(job.job_id, attempt=attempt, result=summary, started_at=job.started_at)
    except Exception as exc:  # noqa: BLE001
      self._logger.error("Failed to mark job %s completed: %s", job.job_id, exc, exc_info=True)
      return ProcessOutcome(status="error", job_id=job.job_id, course_id=summary.course_id, error="Job store unavailable.", retryable=True)
    if not applied:
      self._logger.info("Job %s attempt %s finished after the job was already terminal; completion dropped (course %s kept)", job.job_id, attempt, summary.course_id)
      return ProcessOutcome(status="superseded", job_id=job.job_id, course_id=summary.course_id)
    # Only the attempt that owns the completion is counted against the quota.
    await self._record_usage(job, summary)
    self._logger.info("Job %s completed with course %s (%s modules)", job.job_id, summary.course_id, summary.module_count)
    return ProcessOutcome(status="completed", job_id=job.job_id, course_id=summary.course_id)

  async def _finish_failed(self, job: JobRecord, attempt: int, message: str, retryable: bool) -> ProcessOutcome:
    try:
      applied = await self._jobs_repo.fail_job(job.job_id, attempt=attempt, error_message=message, retryable=retryable)
    except Exception as exc:  # noqa: BLE001
      self._logger.error("Failed to mark job %s failed: %s", job.job_id, exc, exc_info=True)
      return ProcessOutcome(status="error", job_id=job.job_id, error=message, retryable=retryable)
    if not applied:
      self._logger.info("Job %s attempt %s no longer owns the row; failure dropped", job.job_id, attempt)
      return ProcessOutcome(status="superseded", job_id=job.job_id, error=message, retryable=retryable)
    return ProcessOutcome(status="failed", job_id=job.job_id, error=message, retryable=retryable)
