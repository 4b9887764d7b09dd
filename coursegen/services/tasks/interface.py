from __future__ import annotations

from typing import Protocol


class TaskEnqueuer(Protocol):
  """Interface for handing a job to the processor endpoint."""

  async def enqueue(self, job_id: str) -> None:
    """Deliver one processor trigger; raise when delivery fails."""
    ...
