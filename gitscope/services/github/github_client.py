from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_chain,
    wait_fixed,
)

from gitscope.config import settings
from gitscope.services.github.exceptions import (
    GithubConfigurationError,
    GithubError,
    GithubRateLimitError,
    GithubRetryableError,
)

API_PREVIEW_HEADERS = {
    "Accept": "application/vnd.github+json",
}

PER_PAGE = 100

# 4xx responses other than these cannot heal by waiting
_RETRYABLE_CLIENT_STATUSES = {403, 408, 429}

logger = logging.getLogger(__name__)


def parse_repo_full_name(full_name: str) -> Tuple[str, str]:
    """Split ``owner/name`` on the last slash; both halves must be non-empty."""
    owner, sep, name = (full_name or "").rpartition("/")
    if not sep or not owner or not name:
        raise GithubConfigurationError(f"Invalid repository full name: {full_name!r}")
    return owner, name


def _decode(response: httpx.Response, default: Any) -> Any:
    # 204 No Content, e.g. /contributors of an empty repository
    if response.status_code == 204 or not response.content:
        return default
    return response.json()


class GitHubClient:
    """
    REST v3 client bound to a single user token.

    Every request goes through one retry wrapper:
    - 403 carrying ``X-RateLimit-Reset`` in the future sleeps until that
      instant and retries without consuming an attempt;
    - any other transient failure backs off on ``backoff_schedule`` and
      re-raises once the schedule is exhausted.

    Pagination follows the ``Link: rel="next"`` URL, so a retried page
    resumes at the same cursor.
    """

    def __init__(
        self,
        token: str,
        api_url: str | None = None,
        backoff_schedule: Sequence[float] | None = None,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        if not token:
            raise GithubConfigurationError("GitHub token is required to call the API")

        self._token = token
        self._api_url = (api_url or settings.GITHUB_API_URL).rstrip("/")
        self._backoff_schedule = list(
            settings.GITHUB_BACKOFF_SCHEDULE_SECONDS if backoff_schedule is None else backoff_schedule
        )
        self._sleep = sleep or time.sleep
        self._clock = clock or time.time
        self._rest = httpx.Client(
            base_url=self._api_url,
            timeout=timeout or settings.GITHUB_REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        headers.update(API_PREVIEW_HEADERS)
        return headers

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        if response.status_code == 403:
            self._check_rate_limit(response)

        if response.is_success:
            return response

        message = f"GitHub {response.request.method} {response.request.url.path} returned {response.status_code}"
        status = response.status_code
        if status >= 500 or status in _RETRYABLE_CLIENT_STATUSES:
            raise GithubRetryableError(message, status_code=status)
        raise GithubError(message, status_code=status)

    def _check_rate_limit(self, response: httpx.Response) -> None:
        reset_header = response.headers.get("X-RateLimit-Reset")
        if not reset_header:
            return
        try:
            reset_epoch = float(reset_header)
        except ValueError:
            return

        wait_seconds = reset_epoch - self._clock()
        if wait_seconds <= 0:
            # Already past the reset instant; treat as an ordinary failure
            return
        raise GithubRateLimitError(
            "GitHub rate limit reached", retry_after=wait_seconds, reset_at=reset_epoch
        )

    def _send_once(self, method: str, url: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        """Single attempt. Rate-limit waits loop here so they never count as attempts."""
        while True:
            try:
                response = self._rest.request(method, url, headers=self._headers(), params=params)
            except httpx.TransportError as exc:
                raise GithubRetryableError(f"GitHub request failed: {exc}") from exc
            try:
                return self._handle_response(response)
            except GithubRateLimitError as exc:
                logger.warning(
                    f"GitHub rate limit reached, sleeping {exc.retry_after:.0f}s until reset"
                )
                self._sleep(exc.retry_after)

    def _log_backoff(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"GitHub request failed (attempt {retry_state.attempt_number}/"
            f"{len(self._backoff_schedule) + 1}): {exc}; retrying in {wait:.0f}s"
        )

    def _request(self, method: str, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        if not self._backoff_schedule:
            return self._send_once(method, url, params)

        retryer = Retrying(
            stop=stop_after_attempt(len(self._backoff_schedule) + 1),
            wait=wait_chain(*[wait_fixed(seconds) for seconds in self._backoff_schedule]),
            retry=retry_if_exception_type(GithubRetryableError),
            sleep=self._sleep,
            before_sleep=self._log_backoff,
            reraise=True,
        )
        return retryer(self._send_once, method, url, params)

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return _decode(self._request("GET", path, params), default={})

    def _paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[List[Dict[str, Any]]]:
        """Yield one list of items per page."""
        url: Optional[str] = path
        query = {"per_page": PER_PAGE, **(params or {})}
        while url:
            response = self._request("GET", url, query)
            items = _decode(response, default=[])
            yield items if isinstance(items, list) else [items]

            url = None
            next_link = response.links.get("next")
            if next_link:
                url = next_link.get("url")
                query = None  # GitHub link already contains query params

    def paginate_pull_requests(self, full_name: str, state: str = "all") -> Iterator[List[Dict[str, Any]]]:
        owner, name = parse_repo_full_name(full_name)
        params = {"state": state, "sort": "created", "direction": "desc"}
        return self._paginate(f"/repos/{owner}/{name}/pulls", params)

    def get_pull_request(self, full_name: str, pr_number: int) -> Dict[str, Any]:
        owner, name = parse_repo_full_name(full_name)
        return self._get_json(f"/repos/{owner}/{name}/pulls/{pr_number}")

    def list_reviews(self, full_name: str, pr_number: int) -> List[Dict[str, Any]]:
        owner, name = parse_repo_full_name(full_name)
        reviews: List[Dict[str, Any]] = []
        for page in self._paginate(f"/repos/{owner}/{name}/pulls/{pr_number}/reviews"):
            reviews.extend(page)
        return reviews

    def list_contributors(self, full_name: str) -> List[Dict[str, Any]]:
        owner, name = parse_repo_full_name(full_name)
        contributors: List[Dict[str, Any]] = []
        for page in self._paginate(f"/repos/{owner}/{name}/contributors"):
            contributors.extend(page)
        return contributors

    def get_user(self, login: str) -> Dict[str, Any]:
        return self._get_json(f"/users/{login}")

    def close(self) -> None:
        self._rest.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
