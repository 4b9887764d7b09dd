"""Remaining-time estimates for in-flight jobs."""

from __future__ import annotations

import datetime
from dataclasses import dataclass

from coursegen.jobs.models import JobRecord, Pending, Processing


@dataclass(frozen=True)
class ProgressEstimate:
  remaining_ms: int
  completion_at: datetime.datetime


def estimate_progress(record: JobRecord, *, now: datetime.datetime, pending_total_ms: int, processing_total_ms: int) -> ProgressEstimate | None:
  """Estimate time left from a fixed nominal duration; None once the job is terminal.

  Pending jobs count from creation, processing jobs from their latest claim, so a
  requeued job restarts its processing estimate.
  """
  state = record.state
  if isinstance(state, Pending):
    anchor = record.created_at
    total_ms = pending_total_ms
  elif isinstance(state, Processing):
    anchor = state.started_at
    total_ms = processing_total_ms
  else:
    return None

  elapsed_ms = int((now - anchor).total_seconds() * 1000)
  remaining_ms = max(0, total_ms - elapsed_ms)
  return ProgressEstimate(remaining_ms=remaining_ms, completion_at=now + datetime.timedelta(milliseconds=remaining_ms))
