"""
Jobs log module - Execution audit trail for background jobs.
"""

from app.modules.jobs_log.models import JobLog, JobStatus

__all__ = ["JobLog", "JobStatus"]
