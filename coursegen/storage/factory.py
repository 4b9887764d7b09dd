from coursegen.config import Settings
from coursegen.storage.courses_repo import CoursesRepository
from coursegen.storage.jobs_repo import JobsRepository
from coursegen.storage.postgres_courses_repo import PostgresCoursesRepository
from coursegen.storage.postgres_jobs_repo import PostgresJobsRepository


def _get_jobs_repo(settings: Settings) -> JobsRepository:
  """Return the active jobs repository."""

  if not settings.pg_dsn:
    raise ValueError("COURSEGEN_PG_DSN must be set to enable Postgres persistence.")

  return PostgresJobsRepository()


def _get_courses_repo(settings: Settings) -> CoursesRepository:
  """Return the active courses repository."""

  if not settings.pg_dsn:
    raise ValueError("COURSEGEN_PG_DSN must be set to enable Postgres persistence.")

  return PostgresCoursesRepository()
