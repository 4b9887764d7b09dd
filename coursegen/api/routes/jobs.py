"""HTTP routes for submitting course jobs and polling their status."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursegen.api.models import JobCreateRequest, JobCreateResponse, JobStatusResponse
from coursegen.config import Settings, get_settings
from coursegen.core.database import get_db
from coursegen.core.security import Owner, get_current_owner
from coursegen.services import jobs as job_service

router = APIRouter()
logger = logging.getLogger("coursegen.api.routes.jobs")


@router.post("", response_model=JobCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_job(  # noqa: B008
  request: JobCreateRequest,
  background_tasks: BackgroundTasks,
  settings: Settings = Depends(get_settings),  # noqa: B008
  owner: Owner = Depends(get_current_owner),  # noqa: B008
  db_session: AsyncSession = Depends(get_db),  # noqa: B008
) -> JobCreateResponse:
  """Submit content for course generation; poll the returned URL for progress."""
  return await job_service.submit_job(request, settings, background_tasks, db_session, owner_id=owner.owner_id, email=owner.email)


@router.get("", response_model=JobStatusResponse)
async def get_job_status_by_query(  # noqa: B008
  job_id: str = Query(alias="jobId", min_length=1),
  settings: Settings = Depends(get_settings),  # noqa: B008
  owner: Owner = Depends(get_current_owner),  # noqa: B008
) -> JobStatusResponse:
  """Poll a job by `?jobId=`."""
  return await job_service.get_job_status(job_id, settings, owner_id=owner.owner_id)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(  # noqa: B008
  job_id: str,
  settings: Settings = Depends(get_settings),  # noqa: B008
  owner: Owner = Depends(get_current_owner),  # noqa: B008
) -> JobStatusResponse:
  """Fetch the status, progress estimate and result of a job."""
  return await job_service.get_job_status(job_id, settings, owner_id=owner.owner_id)
