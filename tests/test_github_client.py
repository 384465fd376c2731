"""Tests for the GitHub REST client retry, rate-limit and pagination behaviour."""

import httpx
import pytest

from gitscope.services.github import (
    GitHubClient,
    GithubConfigurationError,
    GithubError,
    GithubRetryableError,
    parse_repo_full_name,
)

API = "https://api.github.test"
NOW = 1_700_000_000.0
BACKOFF = [60, 180, 360, 600, 900]


class Recorder:
    def __init__(self):
        self.sleeps = []

    def __call__(self, seconds):
        self.sleeps.append(seconds)


def _client(handler, sleep=None, backoff=BACKOFF):
    return GitHubClient(
        token="tok",
        api_url=API,
        backoff_schedule=backoff,
        sleep=sleep or Recorder(),
        clock=lambda: NOW,
        transport=httpx.MockTransport(handler),
    )


def _page_link(page):
    return f'<{API}/repos/o/r/pulls?state=all&page={page}>; rel="next"'


def test_paginates_through_next_links():
    requests = []

    def handler(request):
        requests.append(request)
        page = int(request.url.params.get("page", "1"))
        headers = {"Link": _page_link(page + 1)} if page < 3 else {}
        return httpx.Response(200, json=[{"number": page}], headers=headers)

    pages = list(_client(handler).paginate_pull_requests("o/r"))

    assert pages == [[{"number": 1}], [{"number": 2}], [{"number": 3}]]
    first = requests[0]
    assert first.url.params["per_page"] == "100"
    assert first.url.params["sort"] == "created"
    assert first.url.params["direction"] == "desc"
    assert first.headers["Authorization"] == "Bearer tok"


def test_rate_limit_sleeps_until_reset_without_using_retries():
    sleep = Recorder()
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(
                403,
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(int(NOW + 90))},
            )
        return httpx.Response(200, json=[{"number": 1}])

    pages = list(_client(handler, sleep=sleep).paginate_pull_requests("o/r"))

    assert pages == [[{"number": 1}]]
    assert sleep.sleeps == [90]
    assert calls["n"] == 2


def test_rate_limit_wait_does_not_use_up_backoff_schedule():
    sleep = Recorder()
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(403, headers={"X-RateLimit-Reset": str(int(NOW + 30))})
        return httpx.Response(502)

    with pytest.raises(GithubRetryableError):
        _client(handler, sleep=sleep).get_user("ada")

    assert sleep.sleeps == [30] + BACKOFF
    assert calls["n"] == 7


def test_transient_failures_follow_backoff_schedule_then_raise():
    sleep = Recorder()
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(500)

    with pytest.raises(GithubRetryableError) as excinfo:
        _client(handler, sleep=sleep).get_pull_request("o/r", 5)

    assert calls["n"] == len(BACKOFF) + 1
    assert sleep.sleeps == BACKOFF
    assert excinfo.value.status_code == 500


def test_recovers_after_transient_failures():
    sleep = Recorder()
    responses = iter([httpx.Response(503), httpx.Response(429), httpx.Response(200, json={"number": 5})])

    pr = _client(lambda request: next(responses), sleep=sleep).get_pull_request("o/r", 5)

    assert pr == {"number": 5}
    assert sleep.sleeps == [60, 180]


def test_transport_errors_are_retried():
    sleep = Recorder()
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, json={"login": "ada"})

    assert _client(handler, sleep=sleep).get_user("ada") == {"login": "ada"}
    assert sleep.sleeps == [60]


def test_past_reset_is_an_ordinary_failure():
    sleep = Recorder()
    responses = iter(
        [
            httpx.Response(403, headers={"X-RateLimit-Reset": str(int(NOW - 5))}),
            httpx.Response(200, json={"login": "ada"}),
        ]
    )

    _client(lambda request: next(responses), sleep=sleep).get_user("ada")

    assert sleep.sleeps == [60]


def test_not_found_is_not_retried():
    sleep = Recorder()
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        return httpx.Response(404, json={"message": "Not Found"})

    with pytest.raises(GithubError) as excinfo:
        _client(handler, sleep=sleep).get_pull_request("o/r", 1)

    assert not isinstance(excinfo.value, GithubRetryableError)
    assert excinfo.value.status_code == 404
    assert calls["n"] == 1
    assert sleep.sleeps == []


def test_failed_page_resumes_at_same_cursor():
    sleep = Recorder()
    seen_pages = []
    failed = {"done": False}

    def handler(request):
        page = int(request.url.params.get("page", "1"))
        if page == 2 and not failed["done"]:
            failed["done"] = True
            return httpx.Response(502)
        seen_pages.append(page)
        headers = {"Link": _page_link(page + 1)} if page < 2 else {}
        return httpx.Response(200, json=[{"number": page}], headers=headers)

    pages = list(_client(handler, sleep=sleep).paginate_pull_requests("o/r"))

    assert pages == [[{"number": 1}], [{"number": 2}]]
    assert seen_pages == [1, 2]
    assert sleep.sleeps == [60]


def test_collects_reviews_and_contributors_across_pages():
    def handler(request):
        page = int(request.url.params.get("page", "1"))
        if page == 1:
            next_url = f"{API}{request.url.path}?page=2"
            return httpx.Response(200, json=[{"id": 1}], headers={"Link": f'<{next_url}>; rel="next"'})
        return httpx.Response(200, json=[{"id": 2}])

    client = _client(handler)

    assert client.list_reviews("o/r", 3) == [{"id": 1}, {"id": 2}]
    assert client.list_contributors("o/r") == [{"id": 1}, {"id": 2}]


def test_no_content_response_is_empty():
    # GitHub answers /contributors of an empty repository with 204
    client = _client(lambda request: httpx.Response(204))

    assert client.list_contributors("o/r") == []
    assert client.get_user("ghost") == {}


def test_parse_repo_full_name():
    assert parse_repo_full_name("octo/repo") == ("octo", "repo")
    assert parse_repo_full_name("group/sub/repo") == ("group/sub", "repo")
    for bad in ("repo", "/repo", "octo/", ""):
        with pytest.raises(GithubConfigurationError):
            parse_repo_full_name(bad)


def test_token_is_required():
    with pytest.raises(GithubConfigurationError):
        GitHubClient(token="", api_url=API)
