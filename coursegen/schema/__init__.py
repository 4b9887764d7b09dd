"""Schema package exports."""

from .courses import Course
from .jobs import Job, JobDispatch
from .users import RateLimitWindow, UsageBucket, UsageLog, User

__all__ = ["Course", "Job", "JobDispatch", "RateLimitWindow", "UsageBucket", "UsageLog", "User"]
