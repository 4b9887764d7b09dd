from fastapi import APIRouter, Depends, Response, status

from coursegen.api.models import CourseResponse
from coursegen.config import Settings, get_settings
from coursegen.core.security import Owner, get_current_owner
from coursegen.services import courses as course_service

router = APIRouter()


@router.get("/{course_id}", response_model=CourseResponse)
async def get_course(  # noqa: B008
  course_id: str,
  settings: Settings = Depends(get_settings),  # noqa: B008
  owner: Owner = Depends(get_current_owner),  # noqa: B008
) -> CourseResponse:
  """Return a generated course owned by the caller."""
  return await course_service.get_course(course_id, settings, owner_id=owner.owner_id)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(  # noqa: B008
  course_id: str,
  settings: Settings = Depends(get_settings),  # noqa: B008
  owner: Owner = Depends(get_current_owner),  # noqa: B008
) -> Response:
  await course_service.delete_course(course_id, settings, owner_id=owner.owner_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)
