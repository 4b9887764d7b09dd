"""Identifier utilities."""

from __future__ import annotations

import uuid


def generate_job_id() -> str:
  """Return a new job identifier."""
  return str(uuid.uuid4())


def generate_course_id() -> str:
  """Return a new course identifier."""
  return str(uuid.uuid4())


def generate_module_id(course_id: str, order: int) -> str:
  """Return a stable module identifier scoped to its course."""
  return f"{course_id}-m{order}"
