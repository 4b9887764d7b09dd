"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from coursegen.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the course generation service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  task_service_provider: str
  cloud_tasks_queue_path: str | None
  base_url: str | None
  task_secret: str | None
  admin_secret: str | None
  engine_url: str | None
  engine_api_key: str | None
  jobs_auto_process: bool
  job_timeout_seconds: float
  job_stale_after_seconds: int
  job_max_attempts: int
  store_timeout_seconds: float
  reprocess_delay_seconds: float
  estimate_pending_ms: int
  estimate_processing_ms: int
  rate_limit_max_requests: int
  rate_limit_window_seconds: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  pg_pool_size: int
  pg_max_overflow: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("COURSEGEN_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("COURSEGEN_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("COURSEGEN_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("COURSEGEN_ENV", "development").lower()

  # Toggle verbose SQL echo and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("COURSEGEN_DEBUG"))

  log_max_bytes = _positive_int("COURSEGEN_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("COURSEGEN_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("COURSEGEN_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("COURSEGEN_LOG_HTTP_4XX"))

  task_service_provider = os.getenv("COURSEGEN_TASK_SERVICE_PROVIDER", "local-http").strip().lower()
  if task_service_provider not in {"local-http", "gcp"}:
    raise ValueError("COURSEGEN_TASK_SERVICE_PROVIDER must be 'local-http' or 'gcp'.")

  cloud_tasks_queue_path = _optional_str(os.getenv("COURSEGEN_CLOUD_TASKS_QUEUE_PATH"))
  if task_service_provider == "gcp" and not cloud_tasks_queue_path:
    raise ValueError("COURSEGEN_CLOUD_TASKS_QUEUE_PATH must be set when the gcp task provider is selected.")

  job_timeout_seconds = _positive_float("COURSEGEN_JOB_TIMEOUT_SECONDS", "600")
  job_stale_after_seconds = _positive_int("COURSEGEN_JOB_STALE_AFTER_SECONDS", "300")
  job_max_attempts = _positive_int("COURSEGEN_JOB_MAX_ATTEMPTS", "3")
  store_timeout_seconds = _positive_float("COURSEGEN_STORE_TIMEOUT_SECONDS", "30")
  reprocess_delay_seconds = float(os.getenv("COURSEGEN_REPROCESS_DELAY_SECONDS", "1.0"))
  if reprocess_delay_seconds < 0:
    raise ValueError("COURSEGEN_REPROCESS_DELAY_SECONDS must be zero or a positive number.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("COURSEGEN_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    pg_dsn=os.getenv("COURSEGEN_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_positive_int("COURSEGEN_PG_CONNECT_TIMEOUT", "5"),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    task_service_provider=task_service_provider,
    cloud_tasks_queue_path=cloud_tasks_queue_path,
    base_url=_optional_str(os.getenv("COURSEGEN_BASE_URL")),
    task_secret=_optional_str(os.getenv("COURSEGEN_TASK_SECRET")),
    admin_secret=_optional_str(os.getenv("COURSEGEN_ADMIN_SECRET")),
    engine_url=_optional_str(os.getenv("COURSEGEN_ENGINE_URL")),
    engine_api_key=_optional_str(os.getenv("COURSEGEN_ENGINE_API_KEY")),
    jobs_auto_process=_parse_bool(os.getenv("COURSEGEN_JOBS_AUTO_PROCESS"), default=True),
    job_timeout_seconds=job_timeout_seconds,
    job_stale_after_seconds=job_stale_after_seconds,
    job_max_attempts=job_max_attempts,
    store_timeout_seconds=store_timeout_seconds,
    reprocess_delay_seconds=reprocess_delay_seconds,
    estimate_pending_ms=_positive_int("COURSEGEN_ESTIMATE_PENDING_MS", "90000"),
    estimate_processing_ms=_positive_int("COURSEGEN_ESTIMATE_PROCESSING_MS", "60000"),
    rate_limit_max_requests=_positive_int("COURSEGEN_RATE_LIMIT_MAX_REQUESTS", "10"),
    rate_limit_window_seconds=_positive_int("COURSEGEN_RATE_LIMIT_WINDOW_SECONDS", "120"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Keep database configuration isolated so migrations and offline scripts don't require unrelated env vars.
  debug = _parse_bool(os.getenv("COURSEGEN_DEBUG"))
  pg_connect_timeout = _positive_int("COURSEGEN_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = os.getenv("COURSEGEN_PG_DSN") or os.getenv("DATABASE_URL")
  pg_pool_size = _positive_int("COURSEGEN_PG_POOL_SIZE", "5")
  pg_max_overflow = _positive_int("COURSEGEN_PG_MAX_OVERFLOW", "10")
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout, pg_pool_size=pg_pool_size, pg_max_overflow=pg_max_overflow)
