import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from coursegen.config import Settings
from coursegen.jobs.errors import CourseGenError, CourseNotFoundError, InvalidInputError, JobNotFoundError, QuotaExceededError, RateLimitedError, StoreError

_STATUS_BY_ERROR: tuple[tuple[type[CourseGenError], int], ...] = (
  (InvalidInputError, status.HTTP_400_BAD_REQUEST),
  (QuotaExceededError, status.HTTP_403_FORBIDDEN),
  (JobNotFoundError, status.HTTP_404_NOT_FOUND),
  (CourseNotFoundError, status.HTTP_404_NOT_FOUND),
  (RateLimitedError, status.HTTP_429_TOO_MANY_REQUESTS),
  (StoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)


def _error_payload(detail: Any, settings: Settings, *, request_id: str | None = None, code: str | None = None, retryable: bool | None = None) -> dict[str, Any]:
  """Build a client-facing error payload without internal diagnostics."""
  payload: dict[str, Any] = {"detail": detail}
  if code is not None:
    payload["code"] = code
  if retryable is not None:
    payload["retryable"] = retryable
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx
    sanitized.append(_coerce_json_safe(scrubbed))
  return sanitized


def status_for_error(exc: CourseGenError) -> int:
  for error_type, status_code in _STATUS_BY_ERROR:
    if isinstance(exc, error_type):
      return status_code
  return status.HTTP_500_INTERNAL_SERVER_ERROR


async def course_gen_exception_handler(request: Request, exc: CourseGenError) -> JSONResponse:
  """Map domain errors onto HTTP statuses with a machine-readable code."""
  from coursegen.config import get_settings

  settings = get_settings()
  request_id = getattr(request.state, "request_id", None)
  status_code = status_for_error(exc)
  logger = logging.getLogger("uvicorn.error")
  if status_code >= 500:
    logger.error("Request failed request_id=%s path=%s code=%s", request_id, request.url.path, exc.code, exc_info=exc)
    # Do not echo internal messages for unmapped errors.
    detail = exc.message if status_code == status.HTTP_503_SERVICE_UNAVAILABLE else "Internal Server Error"
  else:
    if settings.log_http_4xx:
      logger.warning("Request rejected request_id=%s path=%s status_code=%s code=%s", request_id, request.url.path, status_code, exc.code)
    detail = exc.message

  headers: dict[str, str] | None = None
  if isinstance(exc, RateLimitedError) and exc.retry_after_seconds is not None:
    headers = {"Retry-After": str(exc.retry_after_seconds)}
  content = _error_payload(detail, settings, request_id=request_id, code=exc.code, retryable=exc.retryable)
  return JSONResponse(status_code=status_code, content=content, headers=headers)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Global exception handler to catch unhandled errors."""
  from coursegen.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("uvicorn.error")
  request_id = getattr(request.state, "request_id", None)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", settings, request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors without leaking payloads."""
  from coursegen.config import get_settings

  settings = get_settings()
  request_id = getattr(request.state, "request_id", None)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger = logging.getLogger("uvicorn.error")
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors, settings, request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle HTTPExceptions; 5xx details stay in the logs."""
  from coursegen.config import get_settings

  settings = get_settings()
  request_id = getattr(request.state, "request_id", None)
  if exc.status_code >= 500:
    logger = logging.getLogger("uvicorn.error")
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", settings, request_id=request_id))

  if settings.log_http_4xx:
    logger = logging.getLogger("uvicorn.error")
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)

  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, settings, request_id=request_id), headers=getattr(exc, "headers", None))
