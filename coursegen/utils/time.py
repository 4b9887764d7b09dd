"""UTC timestamp helpers."""

from __future__ import annotations

import datetime


def utc_now() -> datetime.datetime:
  """Return timezone-aware current UTC time."""
  return datetime.datetime.now(datetime.UTC)


def as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
  """Attach UTC to naive timestamps returned by drivers without timezone support."""
  if value is None:
    return None
  if value.tzinfo is None:
    return value.replace(tzinfo=datetime.UTC)
  return value.astimezone(datetime.UTC)
