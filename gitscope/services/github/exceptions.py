"""Exceptions raised by the GitHub REST client."""

from __future__ import annotations


class GithubError(Exception):
    """Base exception for GitHub API failures."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GithubConfigurationError(GithubError):
    """Raised when required configuration (token, repository name) is missing or invalid."""


class GithubRateLimitError(GithubError):
    """Raised when the API reports an exhausted quota with a reset instant."""

    def __init__(self, message: str, retry_after: float, reset_at: float | None = None):
        super().__init__(message, status_code=403)
        self.retry_after = retry_after
        self.reset_at = reset_at


class GithubRetryableError(GithubError):
    """Raised for transient issues where retrying later may succeed."""
