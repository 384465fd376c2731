from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import BaseEntity, PyObjectId


class PullRequest(BaseEntity):
    github_repository_id: PyObjectId
    github_pr_id: int
    number: int
    title: str = ""
    body: Optional[str] = None
    state: str = "open"
    draft: bool = False
    merged_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    merge_commit_sha: Optional[str] = None

    # Stored opaquely as returned by the API
    user: Optional[Dict[str, Any]] = None
    requested_reviewers: List[Dict[str, Any]] = Field(default_factory=list)
    requested_teams: List[Dict[str, Any]] = Field(default_factory=list)

    github_created_at: Optional[datetime] = None
    github_updated_at: Optional[datetime] = None

    @property
    def author_login(self) -> Optional[str]:
        if not self.user:
            return None
        return self.user.get("login")


class PullRequestReview(BaseEntity):
    github_repository_id: PyObjectId
    pull_request_id: PyObjectId
    github_review_id: int
    reviewer_id: Optional[int] = None
    reviewer_login: str = ""
    body: Optional[str] = None
    state: str = ""
    author_association: Optional[str] = None
    commit_id: Optional[str] = None
    html_url: Optional[str] = None
    submitted_at: Optional[datetime] = None

    # Reviews carry no created_at upstream; both mirror submitted_at
    github_created_at: Optional[datetime] = None
    github_updated_at: Optional[datetime] = None
