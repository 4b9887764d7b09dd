"""Postgres-backed repository for course generation jobs using SQLAlchemy."""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from typing import Any

from sqlalchemy import and_, func, literal, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursegen.core.database import require_session_factory
from coursegen.jobs.models import ACTIVE_STATUSES, CourseSummary, JobRecord, JobStatus, state_from_columns
from coursegen.schema.jobs import Job, JobDispatch
from coursegen.storage.jobs_repo import DispatchRecord, JobsRepository, StatusUpdate
from coursegen.utils.time import as_utc, utc_now


class PostgresJobsRepository(JobsRepository):
  """Persist jobs and their dispatch outbox to Postgres using SQLAlchemy."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or require_session_factory()

  async def create_job(self, record: JobRecord) -> None:
    async with self._session_factory() as session:
      job = Job(
        job_id=record.job_id,
        owner_id=record.owner_id,
        input_content=record.input_content,
        content_type=record.content_type,
        regenerate=record.regenerate,
        status="pending",
        attempts=0,
        created_at=record.created_at,
        updated_at=record.created_at,
      )
      session.add(job)
      await session.flush()
      # Same transaction as the job row: a committed job always has a trigger waiting.
      session.add(JobDispatch(job_id=record.job_id, attempts=0, created_at=record.created_at))
      await session.commit()

  async def get_job(self, job_id: str, *, owner_id: str | None = None) -> JobRecord | None:
    async with self._session_factory() as session:
      stmt = select(Job).where(Job.job_id == job_id)
      if owner_id is not None:
        stmt = stmt.where(Job.owner_id == owner_id)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      return self._model_to_record(row)

  async def update_status(self, job_id: str, *, expected_status: JobStatus | tuple[JobStatus, ...], expected_attempt: int | None = None, values: dict[str, Any]) -> StatusUpdate:
    async with self._session_factory() as session:
      updated = await self._conditional_update(session, job_id, expected_status=expected_status, expected_attempt=expected_attempt, values=values)
      if updated:
        await session.commit()
        return "ok"
      await session.rollback()
      exists = await session.scalar(select(func.count()).select_from(Job).where(Job.job_id == job_id))
      return "conflict" if exists else "not_found"

  async def find_by_status(self, statuses: Iterable[JobStatus], *, older_than: datetime.datetime | None = None, limit: int | None = None) -> list[JobRecord]:
    wanted = list(statuses)
    async with self._session_factory() as session:
      stmt = select(Job).where(Job.status.in_(wanted)).order_by(Job.created_at.asc())
      if older_than is not None:
        # Processing jobs age from their claim; everything else from creation.
        clauses = []
        for job_status in wanted:
          if job_status == "processing":
            clauses.append(and_(Job.status == "processing", Job.started_at < older_than))
          else:
            clauses.append(and_(Job.status == job_status, Job.created_at < older_than))
        stmt = stmt.where(or_(*clauses))
      if limit is not None:
        stmt = stmt.limit(limit)
      rows = (await session.execute(stmt)).scalars().all()
      return [self._model_to_record(row) for row in rows]

  async def claim_next(self, *, preferred_job_id: str | None = None, only_preferred: bool = False, now: datetime.datetime | None = None) -> JobRecord | None:
    claimed_at = now or utc_now()
    async with self._session_factory() as session:
      candidate_id: str | None = None
      if preferred_job_id is not None:
        stmt = select(Job.job_id).where(Job.job_id == preferred_job_id, Job.status == "pending").with_for_update(skip_locked=True)
        candidate_id = (await session.execute(stmt)).scalar_one_or_none()
      if candidate_id is None and not only_preferred:
        stmt = select(Job.job_id).where(Job.status == "pending").order_by(Job.created_at.asc()).limit(1).with_for_update(skip_locked=True)
        candidate_id = (await session.execute(stmt)).scalar_one_or_none()
      if candidate_id is None:
        await session.rollback()
        return None

      values = {"status": "processing", "started_at": claimed_at, "attempts": Job.attempts + 1, "completed_at": None, "result_json": None, "error_message": None, "retryable": None}
      if not await self._conditional_update(session, candidate_id, expected_status="pending", values=values, now=claimed_at):
        # Another invocation won the row between select and update.
        await session.rollback()
        return None
      await session.commit()
      row = await session.get(Job, candidate_id, populate_existing=True)
      if row is None:
        return None
      return self._model_to_record(row)

  async def complete_job(self, job_id: str, *, attempt: int, result: CourseSummary, started_at: datetime.datetime | None = None, now: datetime.datetime | None = None) -> bool:
    completed_at = now or utc_now()
    # A requeued row has no started_at; keep the finishing attempt's claim time.
    values = {"status": "completed", "started_at": func.coalesce(Job.started_at, literal(started_at or completed_at, Job.started_at.type)), "completed_at": completed_at, "result_json": result.to_json(), "error_message": None, "retryable": None}
    # First finished course wins, even from an attempt the sweeper already requeued.
    outcome = await self.update_status(job_id, expected_status=ACTIVE_STATUSES, values={**values, "updated_at": completed_at})
    return outcome == "ok"

  async def fail_job(self, job_id: str, *, attempt: int, error_message: str, retryable: bool, now: datetime.datetime | None = None) -> bool:
    completed_at = now or utc_now()
    values = {"status": "failed", "completed_at": completed_at, "result_json": None, "error_message": error_message, "retryable": retryable}
    # Failures stay fenced by attempt so a stale attempt cannot fail a live retry.
    outcome = await self.update_status(job_id, expected_status=ACTIVE_STATUSES, expected_attempt=attempt, values={**values, "updated_at": completed_at})
    return outcome == "ok"

  async def requeue_job(self, job_id: str, *, attempt: int, now: datetime.datetime | None = None) -> bool:
    requeued_at = now or utc_now()
    async with self._session_factory() as session:
      values = {"status": "pending", "started_at": None}
      if not await self._conditional_update(session, job_id, expected_status="processing", expected_attempt=attempt, values=values, now=requeued_at):
        await session.rollback()
        return False
      session.add(JobDispatch(job_id=job_id, attempts=0, created_at=requeued_at))
      await session.commit()
      return True

  async def count_by_status(self, *, since: datetime.datetime) -> dict[str, int]:
    async with self._session_factory() as session:
      stmt = select(Job.status, func.count()).where(Job.created_at >= since).group_by(Job.status)
      rows = (await session.execute(stmt)).all()
      counts = {"pending": 0, "processing": 0, "completed": 0, "failed": 0}
      for job_status, total in rows:
        counts[str(job_status)] = int(total)
      return counts

  async def enqueue_dispatch(self, job_id: str) -> bool:
    async with self._session_factory() as session:
      waiting = await session.scalar(select(func.count()).select_from(JobDispatch).where(JobDispatch.job_id == job_id, JobDispatch.dispatched_at.is_(None)))
      if waiting:
        return False
      session.add(JobDispatch(job_id=job_id, attempts=0, created_at=utc_now()))
      await session.commit()
      return True

  async def list_undelivered_dispatches(self, *, limit: int = 20, job_id: str | None = None) -> list[DispatchRecord]:
    async with self._session_factory() as session:
      stmt = select(JobDispatch).where(JobDispatch.dispatched_at.is_(None))
      if job_id is not None:
        stmt = stmt.where(JobDispatch.job_id == job_id)
      stmt = stmt.order_by(JobDispatch.created_at.asc(), JobDispatch.id.asc()).limit(limit)
      rows = (await session.execute(stmt)).scalars().all()
      return [DispatchRecord(id=int(row.id), job_id=row.job_id, attempts=int(row.attempts), created_at=as_utc(row.created_at), last_error=row.last_error) for row in rows]

  async def mark_dispatched(self, dispatch_id: int, *, now: datetime.datetime | None = None) -> bool:
    async with self._session_factory() as session:
      stmt = update(JobDispatch).where(JobDispatch.id == dispatch_id, JobDispatch.dispatched_at.is_(None)).values(dispatched_at=now or utc_now()).execution_options(synchronize_session=False)
      result = await session.execute(stmt)
      await session.commit()
      return result.rowcount == 1

  async def record_dispatch_failure(self, dispatch_id: int, *, error: str) -> None:
    async with self._session_factory() as session:
      stmt = update(JobDispatch).where(JobDispatch.id == dispatch_id).values(attempts=JobDispatch.attempts + 1, last_error=error[:2000]).execution_options(synchronize_session=False)
      await session.execute(stmt)
      await session.commit()

  async def _conditional_update(self, session: AsyncSession, job_id: str, *, expected_status: JobStatus | tuple[JobStatus, ...], expected_attempt: int | None = None, values: dict[str, Any], now: datetime.datetime | None = None) -> bool:
    """Run `UPDATE jobs ... WHERE job_id AND status [AND attempts]` and report whether exactly one row moved."""
    status_filter = Job.status == expected_status if isinstance(expected_status, str) else Job.status.in_(expected_status)
    filters = [Job.job_id == job_id, status_filter]
    if expected_attempt is not None:
      filters.append(Job.attempts == expected_attempt)
    payload = dict(values)
    payload.setdefault("updated_at", now or utc_now())
    stmt = update(Job).where(*filters).values(**payload).execution_options(synchronize_session=False)
    result = await session.execute(stmt)
    return result.rowcount == 1

  def _model_to_record(self, row: Job) -> JobRecord:
    state = state_from_columns(
      status=row.status,
      attempts=int(row.attempts),
      started_at=as_utc(row.started_at),
      completed_at=as_utc(row.completed_at),
      result_json=row.result_json,
      error_message=row.error_message,
      retryable=row.retryable,
    )
    return JobRecord(
      job_id=row.job_id,
      owner_id=row.owner_id,
      input_content=row.input_content,
      content_type=row.content_type,
      created_at=as_utc(row.created_at),
      state=state,
      regenerate=bool(row.regenerate),
      attempts=int(row.attempts),
      updated_at=as_utc(row.updated_at),
    )
