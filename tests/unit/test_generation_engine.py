from __future__ import annotations

import json
from dataclasses import replace

import httpx
import pytest

from coursegen.ai.engine import HttpGenerationEngine, classify_engine_response, parse_generated_course
from coursegen.jobs.errors import ContentPolicyError, EngineRateLimitError, GenerationEngineError, MalformedOutputError

COURSE_PAYLOAD = {"title": "Deep Work", "modules": [{"title": "Focus", "summary": "Why focus matters", "takeaways": ["Block time"], "estimatedReadTime": 4}]}


def _response(status_code: int, payload: dict | None = None) -> httpx.Response:
  return httpx.Response(status_code, json=payload or {}, request=httpx.Request("POST", "http://engine.test/generate"))


@pytest.mark.parametrize(
  ("status_code", "payload", "code", "retryable"),
  [
    (429, {"error": {"message": "slow down"}}, "ENGINE_RATE_LIMITED", True),
    (500, {}, "ENGINE_SERVER_ERROR", True),
    (503, {}, "ENGINE_SERVER_ERROR", True),
    (401, {"error": "bad key"}, "ENGINE_AUTH_ERROR", False),
    (400, {"error": {"message": "Your credit balance is too low"}}, "ENGINE_CREDITS_EXHAUSTED", False),
    (400, {"error": {"message": "malformed prompt"}}, "ENGINE_INVALID_REQUEST", False),
    (418, {}, "ENGINE_API_ERROR", False),
  ],
)
def test_engine_errors_are_classified(status_code: int, payload: dict, code: str, retryable: bool) -> None:
  error = classify_engine_response(_response(status_code, payload))
  assert error.code == code
  assert error.retryable is retryable


def test_rate_limit_uses_dedicated_error_type() -> None:
  assert isinstance(classify_engine_response(_response(429)), EngineRateLimitError)


def test_policy_rejections_are_not_retryable() -> None:
  error = classify_engine_response(_response(400, {"error": {"message": "Request violates usage policy"}}))
  assert isinstance(error, ContentPolicyError)
  assert error.retryable is False


def test_parse_generated_course_accepts_wrapped_payload() -> None:
  course = parse_generated_course(json.dumps({"course": COURSE_PAYLOAD}))
  assert course.title == "Deep Work"
  assert course.modules[0].estimated_read_time == 4


@pytest.mark.parametrize("raw", ["not json", json.dumps({"title": "No modules", "modules": []}), json.dumps(["a", "b"])])
def test_unusable_output_is_retryable(raw: str) -> None:
  with pytest.raises(MalformedOutputError) as excinfo:
    parse_generated_course(raw)
  assert excinfo.value.retryable is True


@pytest.mark.anyio
async def test_http_engine_posts_content_and_parses_course(settings) -> None:  # noqa: ANN001
  seen: dict[str, object] = {}

  def handler(request: httpx.Request) -> httpx.Response:
    seen["body"] = json.loads(request.content)
    seen["auth"] = request.headers.get("authorization")
    return httpx.Response(200, json=COURSE_PAYLOAD)

  engine = HttpGenerationEngine(replace(settings, engine_url="http://engine.test/generate", engine_api_key="k-123"), transport=httpx.MockTransport(handler))
  course = await engine.generate("Focus is a skill.", content_type="text")

  assert course.title == "Deep Work"
  assert seen["body"] == {"content": "Focus is a skill.", "contentType": "text"}
  assert seen["auth"] == "Bearer k-123"


@pytest.mark.anyio
async def test_http_engine_raises_classified_error(settings) -> None:  # noqa: ANN001
  engine = HttpGenerationEngine(replace(settings, engine_url="http://engine.test/generate"), transport=httpx.MockTransport(lambda request: httpx.Response(502, json={})))
  with pytest.raises(GenerationEngineError) as excinfo:
    await engine.generate("Focus is a skill.", content_type="text")
  assert excinfo.value.code == "ENGINE_SERVER_ERROR"
  assert excinfo.value.retryable is True


@pytest.mark.anyio
async def test_http_engine_network_failure_is_retryable(settings) -> None:  # noqa: ANN001
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)

  engine = HttpGenerationEngine(replace(settings, engine_url="http://engine.test/generate"), transport=httpx.MockTransport(handler))
  with pytest.raises(GenerationEngineError) as excinfo:
    await engine.generate("Focus is a skill.", content_type="text")
  assert excinfo.value.code == "ENGINE_NETWORK_ERROR"
  assert excinfo.value.retryable is True


@pytest.mark.anyio
async def test_unconfigured_engine_fails_permanently(settings) -> None:  # noqa: ANN001
  engine = HttpGenerationEngine(replace(settings, engine_url=None))
  with pytest.raises(GenerationEngineError) as excinfo:
    await engine.generate("Focus is a skill.", content_type="text")
  assert excinfo.value.retryable is False
