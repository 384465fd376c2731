"""Database entity models."""

from .base import BaseEntity, PyObjectId
from .commit import Commit, CommitFile, FileStatus
from .job import Job, JobStatus, JobType
from .people_statistics import PeopleStatistics
from .person import (
    EmailMerge,
    GithubPerson,
    GitHubPersonEmail,
    Person,
    PersonSource,
    ProjectGithubPerson,
)
from .project import GitHubRepository, Project, ProjectRepository, User
from .pull_request import PullRequest, PullRequestReview
from .settings import (
    ExcludedExtension,
    ExcludedFolder,
    ProjectUpdateSettings,
    ScoreSettings,
    WorkingHoursSettings,
)

__all__ = [
    "BaseEntity",
    "PyObjectId",
    "Commit",
    "CommitFile",
    "FileStatus",
    "Job",
    "JobStatus",
    "JobType",
    "PeopleStatistics",
    "EmailMerge",
    "GithubPerson",
    "GitHubPersonEmail",
    "Person",
    "PersonSource",
    "ProjectGithubPerson",
    "GitHubRepository",
    "Project",
    "ProjectRepository",
    "User",
    "PullRequest",
    "PullRequestReview",
    "ExcludedExtension",
    "ExcludedFolder",
    "ProjectUpdateSettings",
    "ScoreSettings",
    "WorkingHoursSettings",
]
