from . import admin, courses, jobs, tasks

__all__ = ["admin", "courses", "jobs", "tasks"]
