"""Unit tests for API error mapping and sanitization."""

from __future__ import annotations

import pytest

from coursegen.core.exceptions import _sanitize_validation_errors, status_for_error
from coursegen.jobs.errors import CourseNotFoundError, GenerationTimeoutError, InvalidInputError, JobNotFoundError, QuotaExceededError, RateLimitedError, StoreError


@pytest.mark.parametrize(
  ("error", "status_code"),
  [
    (InvalidInputError("bad"), 400),
    (QuotaExceededError(), 403),
    (JobNotFoundError(), 404),
    (CourseNotFoundError(), 404),
    (RateLimitedError(retry_after_seconds=30), 429),
    (StoreError("down"), 503),
    (GenerationTimeoutError(600), 500),
  ],
)
def test_domain_errors_map_to_http_statuses(error, status_code: int) -> None:  # noqa: ANN001
  assert status_for_error(error) == status_code


def test_retry_hints_follow_error_type() -> None:
  assert StoreError("down").retryable is True
  assert InvalidInputError("bad").retryable is False
  assert InvalidInputError("bad", retryable=True).retryable is True
  assert QuotaExceededError().code == "QUOTA_EXCEEDED"


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Validation errors stay JSON-serializable and never echo the submitted content."""
  errors = [{"type": "value_error", "loc": ("body", "content"), "msg": "Value error, bad content", "input": {"content": "secret text"}, "ctx": {"error": ValueError("bad content"), "input": "secret text"}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["ctx"]["error"] == "ValueError: bad content"
  assert "input" not in sanitized[0]["ctx"]
  assert sanitized[0]["loc"] == ["body", "content"]
