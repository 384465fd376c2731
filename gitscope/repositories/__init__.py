"""MongoDB collection wrappers."""

from .base import BaseRepository
from .commit import CommitFileRepository, CommitRepository
from .job import JobRepository
from .people_statistics import PeopleStatisticsRepository
from .person import (
    EmailMergeRepository,
    GithubPersonRepository,
    GitHubPersonEmailRepository,
    PersonRepository,
    ProjectGithubPersonRepository,
)
from .project import (
    GitHubRepositoryRepository,
    ProjectRepo,
    ProjectRepositoryRepository,
    UserRepository,
)
from .pull_request import PullRequestRepository, PullRequestReviewRepository
from .settings import (
    ExcludedExtensionRepository,
    ExcludedFolderRepository,
    ProjectUpdateSettingsRepository,
    ScoreSettingsRepository,
    WorkingHoursSettingsRepository,
)

__all__ = [
    "BaseRepository",
    "CommitFileRepository",
    "CommitRepository",
    "JobRepository",
    "PeopleStatisticsRepository",
    "EmailMergeRepository",
    "GithubPersonRepository",
    "GitHubPersonEmailRepository",
    "PersonRepository",
    "ProjectGithubPersonRepository",
    "GitHubRepositoryRepository",
    "ProjectRepo",
    "ProjectRepositoryRepository",
    "UserRepository",
    "PullRequestRepository",
    "PullRequestReviewRepository",
    "ExcludedExtensionRepository",
    "ExcludedFolderRepository",
    "ProjectUpdateSettingsRepository",
    "ScoreSettingsRepository",
    "WorkingHoursSettingsRepository",
]
