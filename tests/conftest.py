"""Shared fixtures: a throwaway SQLite store, fake collaborators and an API client."""

from __future__ import annotations

import asyncio
import os
import sys
from dataclasses import replace
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

# Required settings must exist before the app is imported.
os.environ.setdefault("COURSEGEN_ALLOWED_ORIGINS", "http://localhost")
os.environ["COURSEGEN_JOBS_AUTO_PROCESS"] = "0"
os.environ["COURSEGEN_TASK_SECRET"] = "test-task-secret"
os.environ["COURSEGEN_ADMIN_SECRET"] = "test-admin-secret"
os.environ.pop("COURSEGEN_PG_DSN", None)
os.environ.pop("DATABASE_URL", None)

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import coursegen.schema  # noqa: E402, F401
from coursegen.ai.engine import GeneratedCourse, GeneratedModule  # noqa: E402
from coursegen.config import Settings, get_settings  # noqa: E402
from coursegen.core.database import Base, get_db  # noqa: E402
from coursegen.core.security import Owner, get_current_owner  # noqa: E402
from coursegen.jobs.worker import JobProcessor  # noqa: E402
from coursegen.main import app  # noqa: E402
from coursegen.services.quotas import SqlUsageService, UsageSnapshot, next_period_start, period_start_date  # noqa: E402
from coursegen.storage.postgres_courses_repo import PostgresCoursesRepository  # noqa: E402
from coursegen.storage.postgres_jobs_repo import PostgresJobsRepository  # noqa: E402
from coursegen.utils.time import utc_now  # noqa: E402

OWNER_ID = "user-1"


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def settings() -> Settings:
  get_settings.cache_clear()
  base = get_settings()
  return replace(base, job_timeout_seconds=5.0, reprocess_delay_seconds=0.0, store_timeout_seconds=5.0)


@pytest.fixture
async def session_factory():
  engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
  async with engine.begin() as connection:
    await connection.run_sync(Base.metadata.create_all)
  yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
  await engine.dispose()


@pytest.fixture
def jobs_repo(session_factory) -> PostgresJobsRepository:
  return PostgresJobsRepository(session_factory)


@pytest.fixture
def courses_repo(session_factory) -> PostgresCoursesRepository:
  return PostgresCoursesRepository(session_factory)


def build_course(title: str = "Habits That Stick", modules: int = 3) -> GeneratedCourse:
  return GeneratedCourse(
    title=title,
    description="A short course.",
    modules=[GeneratedModule(title=f"Module {index}", summary=f"Summary {index}", takeaways=[f"Takeaway {index}"], estimated_read_time=3) for index in range(1, modules + 1)],
  )


class FakeEngine:
  """Generation engine double that returns a canned course, raises, or hangs."""

  def __init__(self, *, course: GeneratedCourse | None = None, error: Exception | None = None, delay: float = 0.0) -> None:
    self.course = course or build_course()
    self.error = error
    self.delay = delay
    self.calls: list[tuple[str, str]] = []

  async def generate(self, content: str, *, content_type: str) -> GeneratedCourse:
    self.calls.append((content, content_type))
    if self.delay:
      await asyncio.sleep(self.delay)
    if self.error is not None:
      raise self.error
    return self.course


class RecordingUsage:
  """Usage service double that counts generations in memory."""

  def __init__(self, *, fail: bool = False, limit: int | None = None) -> None:
    self.fail = fail
    self.limit = limit
    self.recorded: list[dict[str, str]] = []
    self.checked: list[str] = []

  async def check(self, owner_id: str) -> UsageSnapshot:
    self.checked.append(owner_id)
    start = period_start_date(utc_now())
    used = sum(1 for entry in self.recorded if entry["owner_id"] == owner_id)
    remaining = None if self.limit is None else max(self.limit - used, 0)
    return UsageSnapshot(tier="free" if self.limit is not None else "pro", limit=self.limit, used=used, remaining=remaining, period_start=start, resets_at=next_period_start(start))

  async def record_generation(self, owner_id: str, *, job_id: str, course_id: str, content_type: str) -> int:
    if self.fail:
      raise RuntimeError("usage store down")
    self.recorded.append({"owner_id": owner_id, "job_id": job_id, "course_id": course_id, "content_type": content_type})
    return len(self.recorded)


class RecordingEnqueuer:
  """Task enqueuer double; job ids in `failing` raise on delivery."""

  def __init__(self, failing: set[str] | None = None) -> None:
    self.failing = failing or set()
    self.enqueued: list[str] = []

  async def enqueue(self, job_id: str) -> None:
    if job_id in self.failing:
      raise RuntimeError("task service unavailable")
    self.enqueued.append(job_id)


@pytest.fixture
def fake_engine() -> FakeEngine:
  return FakeEngine()


@pytest.fixture
def usage() -> RecordingUsage:
  return RecordingUsage()


@pytest.fixture
def enqueuer() -> RecordingEnqueuer:
  return RecordingEnqueuer()


@pytest.fixture
def processor(jobs_repo, courses_repo, fake_engine, usage, settings) -> JobProcessor:
  return JobProcessor(jobs_repo=jobs_repo, courses_repo=courses_repo, engine=fake_engine, usage=usage, settings=settings)


@pytest.fixture
def sql_usage(session_factory) -> SqlUsageService:
  return SqlUsageService(session_factory)


@pytest.fixture
async def async_client(session_factory, jobs_repo, courses_repo, monkeypatch: pytest.MonkeyPatch):
  """API client wired to the SQLite store with an authenticated owner."""

  async def _get_db():
    async with session_factory() as session:
      yield session

  async def _owner() -> Owner:
    return Owner(owner_id=OWNER_ID, email="owner@example.com")

  monkeypatch.setattr("coursegen.services.jobs._get_jobs_repo", lambda _settings: jobs_repo)
  monkeypatch.setattr("coursegen.services.courses._get_courses_repo", lambda _settings: courses_repo)
  monkeypatch.setattr("coursegen.services.jobs._get_usage_service", lambda _settings: SqlUsageService(session_factory))
  get_settings.cache_clear()
  app.dependency_overrides[get_db] = _get_db
  app.dependency_overrides[get_current_owner] = _owner
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
  get_settings.cache_clear()
