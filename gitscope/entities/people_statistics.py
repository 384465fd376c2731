from pydantic import Field

from .base import BaseEntity, PyObjectId


class PeopleStatistics(BaseEntity):
    """Daily activity of one GitHub person in one repository."""

    project_id: PyObjectId
    github_repository_id: PyObjectId
    github_person_id: PyObjectId
    stat_date: str = Field(..., description="Activity day as YYYY-MM-DD (UTC)")

    commits: int = Field(0, ge=0)
    additions: int = Field(0, ge=0)
    deletions: int = Field(0, ge=0)
    comments: int = Field(0, ge=0)
    pull_requests: int = Field(0, ge=0)
    score: int = Field(0, ge=0)
