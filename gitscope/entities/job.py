"""
Job Entity - Unit of work consumed by the worker pool.

Jobs form a DAG through ``depends_on``. A job becomes claimable once its
dependency is terminal; a failed upstream releases its dependents just like
a completed one.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from .base import BaseEntity, PyObjectId


class JobType(str, Enum):
    CLONE = "clone"
    COMMIT = "commit"
    PULL_REQUEST = "pull_request"
    STATS = "stats"


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (JobStatus.COMPLETED.value, JobStatus.FAILED.value)
ACTIVE_STATUSES = (JobStatus.PENDING.value, JobStatus.IN_PROGRESS.value)

# Order in which a full chain is materialized
CHAIN_ORDER = (JobType.CLONE, JobType.COMMIT, JobType.PULL_REQUEST, JobType.STATS)


class Job(BaseEntity):
    project_id: PyObjectId
    project_repository_id: Optional[PyObjectId] = Field(
        None,
        description="Target repository link; absent means every tracked repo of the project",
    )
    job_type: str
    status: str = JobStatus.PENDING.value
    depends_on: Optional[PyObjectId] = Field(
        None,
        description="Job that must be completed or failed before this one is claimable",
    )

    worker_id: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
