"""Error taxonomy shared by the submission, processing and reporting paths."""

from __future__ import annotations


class CourseGenError(Exception):
  """Base class for expected failures; carries the retry hint surfaced to clients."""

  retryable: bool = False
  code: str = "ERROR"

  def __init__(self, message: str, *, retryable: bool | None = None, code: str | None = None) -> None:
    super().__init__(message)
    self.message = message
    if retryable is not None:
      self.retryable = retryable
    if code is not None:
      self.code = code


class InvalidInputError(CourseGenError):
  code = "INVALID_INPUT"


class QuotaExceededError(CourseGenError):
  code = "QUOTA_EXCEEDED"

  def __init__(self, message: str = "Monthly generation limit reached.", *, metric: str = "course.generate") -> None:
    super().__init__(message)
    self.metric = metric


class RateLimitedError(CourseGenError):
  code = "RATE_LIMITED"

  def __init__(self, message: str = "Too many requests. Please wait before submitting again.", *, retry_after_seconds: int | None = None) -> None:
    super().__init__(message)
    self.retry_after_seconds = retry_after_seconds


class JobNotFoundError(CourseGenError):
  code = "JOB_NOT_FOUND"

  def __init__(self, message: str = "Job not found.") -> None:
    super().__init__(message)


class CourseNotFoundError(CourseGenError):
  code = "COURSE_NOT_FOUND"

  def __init__(self, message: str = "Course not found.") -> None:
    super().__init__(message)


class StoreError(CourseGenError):
  """The job store or one of its collaborators could not be reached."""

  retryable = True
  code = "STORE_UNAVAILABLE"


class GenerationTimeoutError(CourseGenError):
  retryable = True
  code = "GENERATION_TIMEOUT"

  def __init__(self, timeout_seconds: float) -> None:
    super().__init__(f"Course generation timed out after {timeout_seconds:g} seconds.")
    self.timeout_seconds = timeout_seconds


class GenerationEngineError(CourseGenError):
  """Failure reported by the content generation engine."""

  retryable = True
  code = "ENGINE_ERROR"


class EngineRateLimitError(GenerationEngineError):
  retryable = True
  code = "ENGINE_RATE_LIMITED"


class MalformedOutputError(GenerationEngineError):
  retryable = True
  code = "MALFORMED_OUTPUT"


class ContentPolicyError(GenerationEngineError):
  retryable = False
  code = "CONTENT_POLICY"


class PersistenceError(CourseGenError):
  """The generated course could not be saved."""

  retryable = True
  code = "PERSISTENCE_FAILED"
