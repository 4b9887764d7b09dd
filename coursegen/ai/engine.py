"""Content generation engine contract and its HTTP client."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from coursegen.config import Settings
from coursegen.jobs.errors import ContentPolicyError, EngineRateLimitError, GenerationEngineError, MalformedOutputError

logger = logging.getLogger(__name__)


class GeneratedModule(BaseModel):
  """One module as returned by the engine."""

  title: str = Field(min_length=1)
  summary: str = ""
  takeaways: list[str] = Field(default_factory=list)
  estimated_read_time: int | None = Field(default=None, alias="estimatedReadTime", ge=0)
  model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GeneratedCourse(BaseModel):
  """Structured course produced from one piece of content."""

  title: str = Field(min_length=1)
  description: str | None = None
  modules: list[GeneratedModule] = Field(min_length=1)
  metadata: dict[str, Any] = Field(default_factory=dict)
  model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CourseGenerationEngine(Protocol):
  """Turns normalized content into a structured course."""

  async def generate(self, content: str, *, content_type: str) -> GeneratedCourse:
    """Generate a course or raise a classified GenerationEngineError."""


def _error_text(response: httpx.Response) -> str:
  try:
    payload = response.json()
  except ValueError:
    return response.text[:500]
  if isinstance(payload, dict):
    error = payload.get("error")
    if isinstance(error, dict):
      return str(error.get("message") or error.get("type") or "")
    return str(error or payload.get("detail") or payload.get("message") or "")
  return ""


def classify_engine_response(response: httpx.Response) -> GenerationEngineError:
  """Map a non-2xx engine response onto the retry taxonomy."""
  status_code = response.status_code
  detail = _error_text(response)
  lowered = detail.lower()
  if status_code == 429:
    return EngineRateLimitError("Generation engine rate limit exceeded. Please try again later.")
  if status_code >= 500:
    return GenerationEngineError("Generation engine temporarily unavailable.", retryable=True, code="ENGINE_SERVER_ERROR")
  if status_code in {401, 403}:
    return GenerationEngineError("Generation engine authentication failed.", retryable=False, code="ENGINE_AUTH_ERROR")
  if "credit balance" in lowered or status_code == 402:
    return GenerationEngineError("Generation engine credits exhausted.", retryable=False, code="ENGINE_CREDITS_EXHAUSTED")
  if "policy" in lowered or "safety" in lowered:
    return ContentPolicyError("Content was rejected by the generation engine's content policy.")
  if status_code == 400:
    return GenerationEngineError("Invalid request to the generation engine. Please check your input.", retryable=False, code="ENGINE_INVALID_REQUEST")
  return GenerationEngineError(f"Generation engine error (HTTP {status_code}).", retryable=False, code="ENGINE_API_ERROR")


def parse_generated_course(raw: str) -> GeneratedCourse:
  """Validate an engine payload; anything unusable is a retryable malformed-output error."""
  try:
    payload = json.loads(raw)
  except json.JSONDecodeError as exc:
    raise MalformedOutputError("Failed to parse generation engine response.") from exc
  if isinstance(payload, dict) and isinstance(payload.get("course"), dict):
    payload = payload["course"]
  try:
    return GeneratedCourse.model_validate(payload)
  except ValidationError as exc:
    raise MalformedOutputError("Generation engine returned an invalid course structure.") from exc


class HttpGenerationEngine(CourseGenerationEngine):
  """Calls a remote generation service over HTTP."""

  def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._settings = settings
    self._transport = transport

  def _headers(self) -> dict[str, str]:
    headers = {"content-type": "application/json"}
    if self._settings.engine_api_key:
      headers["authorization"] = f"Bearer {self._settings.engine_api_key}"
    return headers

  async def generate(self, content: str, *, content_type: str) -> GeneratedCourse:
    if not self._settings.engine_url:
      raise GenerationEngineError("Generation engine is not configured.", retryable=False, code="ENGINE_NOT_CONFIGURED")

    # The processor enforces the hard deadline; this bound only stops a dead socket outliving it.
    timeout = httpx.Timeout(self._settings.job_timeout_seconds + 5.0, connect=10.0)
    try:
      async with httpx.AsyncClient(transport=self._transport, timeout=timeout, trust_env=False) as client:
        response = await client.post(self._settings.engine_url, json={"content": content, "contentType": content_type}, headers=self._headers())
    except httpx.TimeoutException as exc:
      raise GenerationEngineError("Generation engine request timed out.", retryable=True, code="ENGINE_TIMEOUT") from exc
    except httpx.RequestError as exc:
      logger.warning("Generation engine request failed: %s", type(exc).__name__)
      raise GenerationEngineError("Network error connecting to the generation engine.", retryable=True, code="ENGINE_NETWORK_ERROR") from exc

    if response.status_code >= 400:
      error = classify_engine_response(response)
      logger.warning("Generation engine returned %s (%s)", response.status_code, error.code)
      raise error

    return parse_generated_course(response.text)


def get_generation_engine(settings: Settings) -> CourseGenerationEngine:
  """Factory for the configured generation engine."""
  return HttpGenerationEngine(settings)
