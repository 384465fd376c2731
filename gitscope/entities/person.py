"""
Identity entities.

``Person`` is the commit-author identity keyed by email. ``GithubPerson`` is
the remote GitHub identity. ``GitHubPersonEmail`` ties the two together per
project, and ``EmailMerge`` collapses alias emails onto a canonical one.
"""

from enum import Enum
from typing import Optional

from pydantic import Field

from .base import BaseEntity, PyObjectId


class PersonSource(str, Enum):
    PULL_REQUEST = "pull_request"
    CONTRIBUTOR = "contributor"
    COMMIT_AUTHOR = "commit_author"


class Person(BaseEntity):
    name: str = ""
    primary_email: str


class GithubPerson(BaseEntity):
    github_user_id: int
    login: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None
    type: Optional[str] = None


class ProjectGithubPerson(BaseEntity):
    project_id: PyObjectId
    github_person_id: PyObjectId
    source_type: str = PersonSource.CONTRIBUTOR.value
    is_deleted: bool = False


class GitHubPersonEmail(BaseEntity):
    """At most one person per (project, github person) and vice versa."""

    project_id: PyObjectId
    github_person_id: PyObjectId
    person_id: PyObjectId


class EmailMerge(BaseEntity):
    project_id: PyObjectId
    source_email: str = Field(..., description="Alias email being collapsed")
    target_email: str = Field(..., description="Canonical email; only one hop is applied")
