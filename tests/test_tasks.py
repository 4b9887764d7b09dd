from dataclasses import replace
from unittest.mock import AsyncMock, Mock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from coursegen.config import get_settings
from coursegen.main import app
from coursegen.services.tasks.factory import get_task_enqueuer
from coursegen.services.tasks.gcp import CloudTasksEnqueuer


@pytest.mark.anyio
async def test_local_task_dispatch() -> None:
  """The local enqueuer posts the job id to the internal endpoint with the task secret."""

  settings = replace(get_settings(), base_url="http://tasks.internal:8080", task_secret="test-task-secret")

  with patch("coursegen.services.tasks.local.httpx.AsyncClient") as mock_client_cls:
    mock_client = AsyncMock()
    mock_client_cls.return_value.__aenter__.return_value = mock_client
    mock_response = Mock()
    mock_response.raise_for_status = Mock()
    mock_client.post.return_value = mock_response

    enqueuer = get_task_enqueuer(settings)
    await enqueuer.enqueue("test-job-123")

    mock_client.post.assert_called_once()
    args, kwargs = mock_client.post.call_args
    assert args[0] == "http://tasks.internal:8080/internal/tasks/process-job"
    assert kwargs["json"] == {"jobId": "test-job-123"}
    assert kwargs["headers"] == {"x-coursegen-task-secret": "test-task-secret"}


@pytest.mark.anyio
async def test_local_task_dispatch_requires_base_url() -> None:
  enqueuer = get_task_enqueuer(replace(get_settings(), base_url=None))
  with pytest.raises(RuntimeError, match="Base URL"):
    await enqueuer.enqueue("test-job-123")


@pytest.mark.anyio
async def test_cloud_tasks_dispatch_builds_authenticated_http_task() -> None:
  settings = replace(get_settings(), task_service_provider="gcp", cloud_tasks_queue_path="projects/p/locations/l/queues/q", base_url="https://coursegen.example.com/", task_secret="test-task-secret")
  client = Mock()
  client.create_task.return_value = Mock(name="task")

  await CloudTasksEnqueuer(settings, client=client).enqueue("job-9")

  request = client.create_task.call_args.kwargs["request"]
  assert request["parent"] == "projects/p/locations/l/queues/q"
  http_request = request["task"]["http_request"]
  assert http_request["url"] == "https://coursegen.example.com/internal/tasks/process-job"
  assert http_request["headers"]["x-coursegen-task-secret"] == "test-task-secret"
  assert http_request["body"] == b'{"jobId": "job-9"}'


@pytest.mark.anyio
async def test_task_handler_endpoint() -> None:
  """The handler acknowledges the task and hands the job to the processor."""

  get_settings.cache_clear()
  with patch("coursegen.api.routes.tasks.process_job_sync", new_callable=AsyncMock) as mock_process:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
      response = await ac.post("/internal/tasks/process-job", json={"jobId": "job-abc"}, headers={"x-coursegen-task-secret": "test-task-secret"})

    assert response.status_code == 200
    assert response.json() == {"status": "accepted"}
    mock_process.assert_called_once()
    args, _ = mock_process.call_args
    assert args[0] == "job-abc"


@pytest.mark.anyio
async def test_task_handler_accepts_bearer_secret() -> None:
  get_settings.cache_clear()
  with patch("coursegen.api.routes.tasks.process_job_sync", new_callable=AsyncMock) as mock_process:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
      response = await ac.post("/internal/tasks/process-job", json={"job_id": "job-abc"}, headers={"authorization": "Bearer test-task-secret"})

    assert response.status_code == 200
    mock_process.assert_called_once()


@pytest.mark.anyio
async def test_task_handler_rejects_wrong_secret() -> None:
  get_settings.cache_clear()
  with patch("coursegen.api.routes.tasks.process_job_sync", new_callable=AsyncMock) as mock_process:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
      response = await ac.post("/internal/tasks/process-job", json={"jobId": "job-abc"}, headers={"x-coursegen-task-secret": "nope"})

    assert response.status_code == 403
    mock_process.assert_not_called()
