"""
Project, owner and repository entities.

A project belongs to one user whose GitHub token is used for every remote
call made on the project's behalf.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import BaseEntity, PyObjectId


class User(BaseEntity):
    github_login: str
    name: Optional[str] = None
    email: Optional[str] = None
    github_access_token: Optional[str] = Field(
        None,
        description="OAuth token used for git clone and GitHub API calls",
        repr=False,
    )


class Project(BaseEntity):
    name: str
    description: Optional[str] = None
    owner_id: PyObjectId


class GitHubRepository(BaseEntity):
    """Mirror of the remote repository metadata. The clone worker owns the clone fields."""

    github_repo_id: Optional[int] = None
    name: Optional[str] = None
    full_name: str = Field(..., description="owner/repo")
    clone_url: Optional[str] = None
    html_url: Optional[str] = None
    default_branch: Optional[str] = None
    is_private: bool = False

    is_cloned: bool = False
    local_path: Optional[str] = None
    last_cloned: Optional[datetime] = None


class ProjectRepository(BaseEntity):
    """Project -> GitHub repository link."""

    project_id: PyObjectId
    github_repository_id: PyObjectId
    is_tracked: bool = True
    is_analyzed: bool = False
    last_analyzed: Optional[datetime] = None
    last_fetched: Optional[datetime] = None
    is_deleted: bool = False
