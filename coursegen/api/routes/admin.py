import logging

from fastapi import APIRouter, Body, Depends

from coursegen.api.models import JobStatsResponse, ReprocessRequest, ReprocessResponse, SweepResponse
from coursegen.config import Settings, get_settings
from coursegen.core.security import require_admin_secret
from coursegen.services import jobs as job_service

router = APIRouter(dependencies=[Depends(require_admin_secret)])
logger = logging.getLogger("coursegen.api.routes.admin")


@router.post("/jobs/sweep", response_model=SweepResponse)
async def sweep_jobs(settings: Settings = Depends(get_settings)) -> SweepResponse:  # noqa: B008
  """Recover stuck processing jobs and redeliver undelivered triggers."""
  return await job_service.run_sweep(settings)


@router.post("/jobs/reprocess", response_model=ReprocessResponse)
async def reprocess_jobs(
  payload: ReprocessRequest | None = Body(default=None),  # noqa: B008
  settings: Settings = Depends(get_settings),  # noqa: B008
) -> ReprocessResponse:
  """Process every pending or processing job in this request, one at a time."""
  limit = payload.limit if payload is not None else None
  logger.info("Manual reprocess requested (limit=%s)", limit)
  return await job_service.run_reprocess(settings, limit=limit)


@router.get("/jobs/stats", response_model=JobStatsResponse)
async def job_stats(settings: Settings = Depends(get_settings)) -> JobStatsResponse:  # noqa: B008
  """Counts by status for the last 24 hours and the number of stuck jobs."""
  return await job_service.get_job_stats(settings)
