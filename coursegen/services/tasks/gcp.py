from __future__ import annotations

import json
import logging

from google.cloud import tasks_v2
from starlette.concurrency import run_in_threadpool

from coursegen.config import Settings
from coursegen.services.tasks.interface import TaskEnqueuer
from coursegen.services.tasks.local import PROCESS_JOB_PATH, TASK_SECRET_HEADER

logger = logging.getLogger(__name__)


class CloudTasksEnqueuer(TaskEnqueuer):
  """Enqueues processor triggers to Google Cloud Tasks."""

  def __init__(self, settings: Settings, client: tasks_v2.CloudTasksClient | None = None) -> None:
    self.settings = settings
    self.client = client or tasks_v2.CloudTasksClient()

  def _build_task(self, job_id: str) -> dict:
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured.")
    if not self.settings.task_secret:
      raise RuntimeError("Task secret not configured.")

    url = f"{self.settings.base_url.rstrip('/')}{PROCESS_JOB_PATH}"
    return {
      "http_request": {
        "http_method": tasks_v2.HttpMethod.POST,
        "url": url,
        "headers": {"Content-Type": "application/json", TASK_SECRET_HEADER: self.settings.task_secret},
        "body": json.dumps({"jobId": job_id}).encode(),
      }
    }

  async def enqueue(self, job_id: str) -> None:
    """Create one Cloud Task for the job; errors propagate so the outbox row stays queued."""
    if not self.settings.cloud_tasks_queue_path:
      raise RuntimeError("Cloud Tasks queue path not configured.")

    request = {"parent": self.settings.cloud_tasks_queue_path, "task": self._build_task(job_id)}
    # The client is synchronous; keep it off the event loop.
    response = await run_in_threadpool(self.client.create_task, request=request)
    logger.info("Enqueued task %s for job %s", response.name, job_id)
