from .exceptions import (
    GithubConfigurationError,
    GithubError,
    GithubRateLimitError,
    GithubRetryableError,
)
from .github_client import GitHubClient, parse_repo_full_name

__all__ = [
    "GitHubClient",
    "GithubConfigurationError",
    "GithubError",
    "GithubRateLimitError",
    "GithubRetryableError",
    "parse_repo_full_name",
]
