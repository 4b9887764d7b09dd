from __future__ import annotations

import pytest

from coursegen.jobs.dispatch import drain_dispatch_outbox
from coursegen.jobs.models import JobRecord
from coursegen.utils.time import utc_now


async def _seed(jobs_repo, job_id: str) -> None:  # noqa: ANN001
  await jobs_repo.create_job(JobRecord(job_id=job_id, owner_id="user-1", input_content="Compounding habits build skill.", content_type="text", created_at=utc_now()))


@pytest.mark.anyio
async def test_drain_delivers_and_marks_rows(jobs_repo, enqueuer) -> None:  # noqa: ANN001
  await _seed(jobs_repo, "job-1")
  await _seed(jobs_repo, "job-2")

  report = await drain_dispatch_outbox(jobs_repo, enqueuer)

  assert sorted(report.delivered) == ["job-1", "job-2"]
  assert sorted(enqueuer.enqueued) == ["job-1", "job-2"]
  assert await jobs_repo.list_undelivered_dispatches() == []


@pytest.mark.anyio
async def test_failed_delivery_stays_queued_for_the_next_drain(jobs_repo, enqueuer) -> None:  # noqa: ANN001
  await _seed(jobs_repo, "job-1")
  enqueuer.failing.add("job-1")

  report = await drain_dispatch_outbox(jobs_repo, enqueuer)

  assert report.failed == ["job-1"]
  waiting = await jobs_repo.list_undelivered_dispatches()
  assert len(waiting) == 1
  assert waiting[0].attempts == 1
  assert "task service unavailable" in (waiting[0].last_error or "")

  enqueuer.failing.clear()
  retry = await drain_dispatch_outbox(jobs_repo, enqueuer)
  assert retry.delivered == ["job-1"]


@pytest.mark.anyio
async def test_drain_for_one_job_leaves_others_waiting(jobs_repo, enqueuer) -> None:  # noqa: ANN001
  await _seed(jobs_repo, "job-1")
  await _seed(jobs_repo, "job-2")

  report = await drain_dispatch_outbox(jobs_repo, enqueuer, job_id="job-2")

  assert report.delivered == ["job-2"]
  assert [dispatch.job_id for dispatch in await jobs_repo.list_undelivered_dispatches()] == ["job-1"]
