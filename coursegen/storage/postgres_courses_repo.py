"""Postgres-backed repository for generated courses."""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursegen.core.database import require_session_factory
from coursegen.schema.courses import Course
from coursegen.storage.courses_repo import CourseModuleRecord, CourseRecord, CoursesRepository
from coursegen.utils.time import as_utc


def _module_to_json(module: CourseModuleRecord) -> dict:
  payload = {"id": module.id, "title": module.title, "summary": module.summary, "takeaways": list(module.takeaways), "order": module.order}
  if module.estimated_read_time is not None:
    payload["estimatedReadTime"] = module.estimated_read_time
  return payload


def _module_from_json(payload: dict) -> CourseModuleRecord:
  read_time = payload.get("estimatedReadTime")
  return CourseModuleRecord(
    id=str(payload["id"]),
    title=str(payload["title"]),
    summary=str(payload.get("summary", "")),
    takeaways=[str(item) for item in payload.get("takeaways", [])],
    order=int(payload.get("order", 0)),
    estimated_read_time=int(read_time) if read_time is not None else None,
  )


class PostgresCoursesRepository(CoursesRepository):
  """Persist courses to Postgres using SQLAlchemy."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or require_session_factory()

  async def create_course(self, record: CourseRecord) -> None:
    async with self._session_factory() as session:
      session.add(
        Course(
          course_id=record.course_id,
          owner_id=record.owner_id,
          job_id=record.job_id,
          title=record.title,
          original_content=record.original_content,
          modules_json=[_module_to_json(module) for module in record.modules],
          metadata_json=record.metadata or None,
          created_at=record.created_at,
        )
      )
      await session.commit()

  async def get_course(self, course_id: str, *, owner_id: str) -> CourseRecord | None:
    async with self._session_factory() as session:
      stmt = select(Course).where(Course.course_id == course_id, Course.owner_id == owner_id)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      return CourseRecord(
        course_id=row.course_id,
        owner_id=row.owner_id,
        job_id=row.job_id,
        title=row.title,
        original_content=row.original_content,
        modules=[_module_from_json(item) for item in row.modules_json or []],
        metadata=dict(row.metadata_json or {}),
        created_at=as_utc(row.created_at),
      )

  async def delete_course(self, course_id: str, *, owner_id: str) -> bool:
    async with self._session_factory() as session:
      stmt = delete(Course).where(Course.course_id == course_id, Course.owner_id == owner_id).execution_options(synchronize_session=False)
      result = await session.execute(stmt)
      await session.commit()
      return result.rowcount == 1
