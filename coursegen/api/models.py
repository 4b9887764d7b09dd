"""Request and response models for the public, internal and admin APIs."""

from __future__ import annotations

import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr

from coursegen.jobs.models import JobStatus


class _CamelModel(BaseModel):
  model_config = ConfigDict(populate_by_name=True)


class JobCreateRequest(BaseModel):
  """Request payload for submitting content for course generation."""

  # Missing content is reported as invalid input, not as a schema error.
  content: StrictStr | None = Field(default=None, description="Tweet URL or free text to turn into a course.")
  content_type: Literal["text", "url"] | None = Field(default=None, validation_alias=AliasChoices("contentType", "type", "content_type"), description="Defaults to 'url' for tweet URLs, otherwise 'text'.")
  regenerate: StrictBool = Field(default=False, description="Regenerations skip the monthly quota check.")
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class JobCreateResponse(_CamelModel):
  """Response payload for job creation."""

  job_id: StrictStr = Field(alias="jobId")
  status: JobStatus = "pending"
  poll_url: StrictStr = Field(alias="pollUrl")


class CourseResult(_CamelModel):
  course_id: StrictStr = Field(alias="courseId")
  title: StrictStr
  module_count: StrictInt = Field(alias="moduleCount", ge=0)


class JobStatusResponse(_CamelModel):
  """Status payload for a background job."""

  job_id: StrictStr = Field(alias="jobId")
  status: JobStatus
  created_at: datetime.datetime = Field(alias="createdAt")
  started_at: datetime.datetime | None = Field(default=None, alias="startedAt")
  completed_at: datetime.datetime | None = Field(default=None, alias="completedAt")
  estimated_remaining_ms: StrictInt | None = Field(default=None, alias="estimatedRemainingMs", ge=0)
  estimated_completion_at: datetime.datetime | None = Field(default=None, alias="estimatedCompletionAt")
  result: CourseResult | None = None
  error: StrictStr | None = None
  retryable: StrictBool | None = None


class CourseModuleResponse(_CamelModel):
  id: StrictStr
  title: StrictStr
  summary: StrictStr
  takeaways: list[StrictStr]
  order: StrictInt
  estimated_read_time: StrictInt | None = Field(default=None, alias="estimatedReadTime")


class CourseResponse(_CamelModel):
  course_id: StrictStr = Field(alias="courseId")
  job_id: StrictStr | None = Field(default=None, alias="jobId")
  title: StrictStr
  original_content: StrictStr = Field(alias="originalContent")
  modules: list[CourseModuleResponse]
  metadata: dict
  created_at: datetime.datetime = Field(alias="createdAt")


class TaskPayload(BaseModel):
  job_id: StrictStr = Field(validation_alias=AliasChoices("jobId", "job_id"))


class SweepResponse(BaseModel):
  requeued: list[StrictStr]
  failed: list[StrictStr]
  skipped: list[StrictStr]
  redispatched: list[StrictStr]
  delivered: list[StrictStr]


class ReprocessRequest(_CamelModel):
  limit: StrictInt | None = Field(default=None, ge=1, le=500)


class ReprocessJobResult(_CamelModel):
  job_id: StrictStr = Field(alias="jobId")
  status: StrictStr
  error: StrictStr | None = None


class ReprocessResponse(_CamelModel):
  total_jobs: StrictInt = Field(alias="totalJobs")
  processed_successfully: StrictInt = Field(alias="processedSuccessfully")
  results: list[ReprocessJobResult]


class JobStatsResponse(_CamelModel):
  since: datetime.datetime
  counts: dict[str, int]
  stuck_jobs: StrictInt = Field(alias="stuckJobs")
