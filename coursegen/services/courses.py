"""Course lookups for the owner who generated them."""

import logging

from sqlalchemy.exc import SQLAlchemyError

from coursegen.api.models import CourseModuleResponse, CourseResponse
from coursegen.config import Settings
from coursegen.jobs.errors import CourseNotFoundError, StoreError
from coursegen.storage.courses_repo import CourseRecord
from coursegen.storage.factory import _get_courses_repo

logger = logging.getLogger(__name__)


def _course_to_response(record: CourseRecord) -> CourseResponse:
  modules = [
    CourseModuleResponse(id=module.id, title=module.title, summary=module.summary, takeaways=list(module.takeaways), order=module.order, estimated_read_time=module.estimated_read_time)
    for module in sorted(record.modules, key=lambda item: item.order)
  ]
  return CourseResponse(course_id=record.course_id, job_id=record.job_id, title=record.title, original_content=record.original_content, modules=modules, metadata=dict(record.metadata), created_at=record.created_at)


async def get_course(course_id: str, settings: Settings, *, owner_id: str) -> CourseResponse:
  repo = _get_courses_repo(settings)
  try:
    record = await repo.get_course(course_id, owner_id=owner_id)
  except SQLAlchemyError as exc:
    logger.error("Course lookup failed for %s: %s", course_id, exc, exc_info=True)
    raise StoreError("Course store unavailable. Please try again.") from exc
  if record is None:
    raise CourseNotFoundError()
  return _course_to_response(record)


async def delete_course(course_id: str, settings: Settings, *, owner_id: str) -> None:
  """Delete a course owned by the caller. The job that produced it is left untouched."""
  repo = _get_courses_repo(settings)
  try:
    deleted = await repo.delete_course(course_id, owner_id=owner_id)
  except SQLAlchemyError as exc:
    logger.error("Course delete failed for %s: %s", course_id, exc, exc_info=True)
    raise StoreError("Course store unavailable. Please try again.") from exc
  if not deleted:
    raise CourseNotFoundError()
  logger.info("Deleted course %s for user %s", course_id, owner_id)
