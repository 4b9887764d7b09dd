from __future__ import annotations

import datetime
from dataclasses import replace

import pytest

from coursegen.config import get_settings
from coursegen.jobs.models import JobRecord
from coursegen.main import app
from coursegen.utils.time import utc_now

ADMIN_HEADERS = {"x-coursegen-admin-secret": "test-admin-secret"}
LESSON_TEXT = "Small habits compound into remarkable results when repeated daily."


async def _seed(jobs_repo, job_id: str, *, created_at: datetime.datetime | None = None) -> None:  # noqa: ANN001
  await jobs_repo.create_job(JobRecord(job_id=job_id, owner_id="user-1", input_content=LESSON_TEXT, content_type="text", created_at=created_at or utc_now()))


@pytest.mark.anyio
@pytest.mark.parametrize(("method", "path"), [("post", "/admin/jobs/sweep"), ("post", "/admin/jobs/reprocess"), ("get", "/admin/jobs/stats")])
async def test_admin_routes_require_the_admin_secret(async_client, method: str, path: str) -> None:  # noqa: ANN001
  missing = await async_client.request(method.upper(), path)
  wrong = await async_client.request(method.upper(), path, headers={"x-coursegen-admin-secret": "guess"})

  assert missing.status_code == 403
  assert wrong.status_code == 403


@pytest.mark.anyio
async def test_sweep_requeues_stale_claims_and_queues_orphans(async_client, jobs_repo) -> None:  # noqa: ANN001
  hour_ago = utc_now() - datetime.timedelta(hours=1)
  await _seed(jobs_repo, "job-stuck", created_at=hour_ago)
  await jobs_repo.claim_next(preferred_job_id="job-stuck", only_preferred=True, now=hour_ago)
  await _seed(jobs_repo, "job-orphan", created_at=hour_ago)
  # The orphan's first trigger was delivered but never reached a processor.
  for dispatch in await jobs_repo.list_undelivered_dispatches(job_id="job-orphan"):
    await jobs_repo.mark_dispatched(dispatch.id)
  await _seed(jobs_repo, "job-fresh")

  response = await async_client.post("/admin/jobs/sweep", headers=ADMIN_HEADERS)

  assert response.status_code == 200
  body = response.json()
  assert body["requeued"] == ["job-stuck"]
  assert body["failed"] == []
  assert "job-orphan" in body["redispatched"]
  assert "job-fresh" not in body["redispatched"]
  assert body["delivered"] == []

  stuck = await jobs_repo.get_job("job-stuck")
  assert stuck is not None and stuck.status == "pending"
  assert stuck.attempts == 1


@pytest.mark.anyio
async def test_reprocess_runs_every_active_job(async_client, jobs_repo, processor, settings, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
  patched = replace(settings, reprocess_delay_seconds=0.0)
  app.dependency_overrides[get_settings] = lambda: patched
  monkeypatch.setattr("coursegen.services.jobs.build_job_processor", lambda _settings: processor)
  await _seed(jobs_repo, "job-1", created_at=utc_now() - datetime.timedelta(minutes=2))
  await _seed(jobs_repo, "job-2", created_at=utc_now() - datetime.timedelta(minutes=1))

  response = await async_client.post("/admin/jobs/reprocess", headers=ADMIN_HEADERS, json={"limit": 10})

  assert response.status_code == 200
  body = response.json()
  assert body["totalJobs"] == 2
  assert body["processedSuccessfully"] == 2
  assert [(item["jobId"], item["status"]) for item in body["results"]] == [("job-1", "completed"), ("job-2", "completed")]


@pytest.mark.anyio
async def test_reprocess_with_nothing_active_is_a_no_op(async_client, processor, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
  monkeypatch.setattr("coursegen.services.jobs.build_job_processor", lambda _settings: processor)

  response = await async_client.post("/admin/jobs/reprocess", headers=ADMIN_HEADERS)

  assert response.status_code == 200
  assert response.json() == {"totalJobs": 0, "processedSuccessfully": 0, "results": []}


@pytest.mark.anyio
async def test_stats_count_recent_jobs_and_stuck_ones(async_client, jobs_repo) -> None:  # noqa: ANN001
  hour_ago = utc_now() - datetime.timedelta(hours=1)
  await _seed(jobs_repo, "job-old-pending", created_at=hour_ago)
  await _seed(jobs_repo, "job-new")

  response = await async_client.get("/admin/jobs/stats", headers=ADMIN_HEADERS)

  assert response.status_code == 200
  body = response.json()
  assert body["counts"].get("pending") == 2
  assert body["stuckJobs"] == 1
