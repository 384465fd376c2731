"""
Pull-request, review and contributor sync from the GitHub REST API.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from bson import ObjectId
from pymongo.database import Database

from gitscope.core.exceptions import PreconditionError
from gitscope.entities.base import ensure_utc
from gitscope.entities.job import Job
from gitscope.entities.person import GithubPerson, PersonSource
from gitscope.entities.project import GitHubRepository
from gitscope.entities.pull_request import PullRequest
from gitscope.repositories.person import GithubPersonRepository, ProjectGithubPersonRepository
from gitscope.repositories.project import ProjectRepositoryRepository
from gitscope.repositories.pull_request import PullRequestRepository, PullRequestReviewRepository
from gitscope.services.github.exceptions import GithubError
from gitscope.services.github.github_client import GitHubClient
from gitscope.services.job_context import JobContextResolver

logger = logging.getLogger(__name__)

PARENT_LOOKUP_ATTEMPTS = 3
PARENT_LOOKUP_DELAY_SECONDS = 0.1


def parse_github_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


@dataclass
class SyncResult:
    pull_requests: int = 0
    reviews: int = 0
    people: int = 0
    skipped_reviews: int = 0

    def add(self, other: "SyncResult") -> None:
        self.pull_requests += other.pull_requests
        self.reviews += other.reviews
        self.people += other.people
        self.skipped_reviews += other.skipped_reviews


class PullRequestSyncService:
    def __init__(
        self,
        db: Database,
        client_factory: Callable[[str], GitHubClient] | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self.pr_repo = PullRequestRepository(db)
        self.review_repo = PullRequestReviewRepository(db)
        self.github_person_repo = GithubPersonRepository(db)
        self.project_person_repo = ProjectGithubPersonRepository(db)
        self.project_repository_repo = ProjectRepositoryRepository(db)
        self.resolver = JobContextResolver(db)
        self.client_factory = client_factory or (lambda token: GitHubClient(token=token))
        self._sleep = sleep or time.sleep

    def process(self, job: Job) -> SyncResult:
        token = self.resolver.require_token(job)
        total = SyncResult()

        with self.client_factory(token) as client:
            if job.project_repository_id is not None:
                link, github_repo = self.resolver.require_repository(job)
                if not link.is_tracked:
                    raise PreconditionError(f"Repository {github_repo.full_name} is not tracked")
                total.add(self.sync_repository(client, job.project_id, github_repo))
                self.project_repository_repo.mark_fetched(link.id)
            else:
                # Legacy project-wide job
                for link, github_repo in self.resolver.tracked_repositories(job):
                    try:
                        total.add(self.sync_repository(client, job.project_id, github_repo))
                    except Exception as e:
                        logger.error(f"Pull request sync failed for {github_repo.full_name}: {e}")

        logger.info(
            f"Pull request job {job.id} done: {total.pull_requests} PRs, "
            f"{total.reviews} reviews, {total.people} people"
        )
        return total

    def sync_repository(
        self, client: GitHubClient, project_id: ObjectId, github_repo: GitHubRepository
    ) -> SyncResult:
        result = SyncResult()
        full_name = github_repo.full_name
        people: Dict[int, GithubPerson] = {}

        retained = self._collect_new(client, github_repo)
        try:
            retained.update(self._collect_open(client, github_repo, exclude=retained))
        except GithubError as e:
            logger.warning(f"Failed to refresh open pull requests of {full_name}: {e}")
        logger.info(f"Syncing {len(retained)} pull requests of {full_name}")

        synced: list[tuple[Dict[str, Any], PullRequest]] = []
        for payload in retained.values():
            try:
                pr = self._upsert_pull_request(github_repo, payload)
                author = payload.get("user")
                if author and author.get("id"):
                    self._upsert_person(client, project_id, author, PersonSource.PULL_REQUEST, people)
            except (GithubError, KeyError, ValueError) as e:
                logger.warning(f"Failed to store PR #{payload.get('number')} of {full_name}: {e}")
                continue
            synced.append((payload, pr))
            result.pull_requests += 1

        for payload, _ in synced:
            try:
                reviews = client.list_reviews(full_name, payload["number"])
            except GithubError as e:
                logger.warning(f"Failed to fetch reviews for PR #{payload['number']} of {full_name}: {e}")
                continue
            for review in reviews:
                if self._store_review(client, project_id, github_repo, payload["number"], review, people):
                    result.reviews += 1
                else:
                    result.skipped_reviews += 1

        try:
            contributors = client.list_contributors(full_name)
        except GithubError as e:
            logger.warning(f"Failed to fetch contributors for {full_name}: {e}")
            contributors = []
        for contributor in contributors:
            if not contributor.get("id"):
                # Anonymous contributors have no GitHub account
                continue
            self._upsert_person(client, project_id, contributor, PersonSource.CONTRIBUTOR, people)
        result.people = len(people)
        return result

    def _collect_new(self, client: GitHubClient, github_repo: GitHubRepository) -> Dict[int, Dict[str, Any]]:
        """PRs created strictly after the newest stored one; everything on first run."""
        since = self.pr_repo.latest_github_created_at(github_repo.id)
        retained: Dict[int, Dict[str, Any]] = {}
        for page in client.paginate_pull_requests(github_repo.full_name, state="all"):
            reached_known = False
            for payload in page:
                created = parse_github_datetime(payload.get("created_at"))
                if since is None or (created is not None and created > since):
                    retained[payload["id"]] = payload
                else:
                    reached_known = True
            # Pages come newest first; older pages hold nothing new
            if reached_known:
                break
        return retained

    def _collect_open(
        self,
        client: GitHubClient,
        github_repo: GitHubRepository,
        exclude: Dict[int, Dict[str, Any]],
    ) -> Dict[int, Dict[str, Any]]:
        """Refresh PRs stored as open, including ones that have since closed."""
        stored_open = self.pr_repo.open_numbers(github_repo.id)
        if not stored_open:
            return {}

        refreshed: Dict[int, Dict[str, Any]] = {}
        seen_numbers = set()
        for page in client.paginate_pull_requests(github_repo.full_name, state="open"):
            for payload in page:
                if payload["number"] in stored_open and payload["id"] not in exclude:
                    refreshed[payload["id"]] = payload
                seen_numbers.add(payload["number"])

        for number in sorted(stored_open - seen_numbers):
            try:
                payload = client.get_pull_request(github_repo.full_name, number)
            except GithubError as e:
                logger.warning(f"Failed to refresh PR #{number} of {github_repo.full_name}: {e}")
                continue
            if payload["id"] not in exclude:
                refreshed[payload["id"]] = payload
        return refreshed

    def _upsert_pull_request(self, github_repo: GitHubRepository, payload: Dict[str, Any]) -> PullRequest:
        return self.pr_repo.upsert_by_github_pr_id(
            payload["id"],
            {
                "github_repository_id": github_repo.id,
                "number": payload["number"],
                "title": payload.get("title") or "",
                "body": payload.get("body"),
                "state": payload.get("state") or "open",
                "draft": bool(payload.get("draft")),
                "merged_at": parse_github_datetime(payload.get("merged_at")),
                "closed_at": parse_github_datetime(payload.get("closed_at")),
                "merge_commit_sha": payload.get("merge_commit_sha"),
                "user": payload.get("user"),
                "requested_reviewers": payload.get("requested_reviewers") or [],
                "requested_teams": payload.get("requested_teams") or [],
                "github_created_at": parse_github_datetime(payload.get("created_at")),
                "github_updated_at": parse_github_datetime(payload.get("updated_at")),
            },
        )

    def _find_parent(self, github_repo: GitHubRepository, number: int) -> Optional[PullRequest]:
        # The PR row may have only just been written
        for attempt in range(PARENT_LOOKUP_ATTEMPTS):
            pr = self.pr_repo.find_by_number(github_repo.id, number)
            if pr is not None:
                return pr
            if attempt < PARENT_LOOKUP_ATTEMPTS - 1:
                self._sleep(PARENT_LOOKUP_DELAY_SECONDS)
        return None

    def _store_review(
        self,
        client: GitHubClient,
        project_id: ObjectId,
        github_repo: GitHubRepository,
        number: int,
        review: Dict[str, Any],
        people: Dict[int, GithubPerson],
    ) -> bool:
        parent = self._find_parent(github_repo, number)
        if parent is None:
            logger.warning(
                f"PR #{number} of {github_repo.full_name} not stored yet, skipping review {review.get('id')}"
            )
            return False

        reviewer = review.get("user") or {}
        submitted_at = parse_github_datetime(review.get("submitted_at"))
        self.review_repo.upsert_by_github_review_id(
            review["id"],
            {
                "github_repository_id": github_repo.id,
                "pull_request_id": parent.id,
                "reviewer_id": reviewer.get("id"),
                "reviewer_login": reviewer.get("login") or "",
                "body": review.get("body"),
                "state": review.get("state") or "",
                "author_association": review.get("author_association"),
                "commit_id": review.get("commit_id"),
                "html_url": review.get("html_url"),
                "submitted_at": submitted_at,
                "github_created_at": submitted_at,
                "github_updated_at": submitted_at,
            },
        )
        if reviewer.get("id"):
            self._upsert_person(client, project_id, reviewer, PersonSource.PULL_REQUEST, people)
        return True

    def _upsert_person(
        self,
        client: GitHubClient,
        project_id: ObjectId,
        user: Dict[str, Any],
        source: PersonSource,
        seen: Dict[int, GithubPerson],
    ) -> GithubPerson:
        github_user_id = user["id"]
        person = seen.get(github_user_id)
        if person is None:
            name = user.get("name") or self._display_name(client, user)
            person = self.github_person_repo.upsert_by_github_user_id(
                github_user_id,
                {
                    "login": user.get("login") or "",
                    "name": name,
                    "avatar_url": user.get("avatar_url"),
                    "html_url": user.get("html_url"),
                    "type": user.get("type"),
                },
            )
            seen[github_user_id] = person
        self.project_person_repo.attach(project_id, person.id, source.value)
        return person

    def _display_name(self, client: GitHubClient, user: Dict[str, Any]) -> Optional[str]:
        existing = self.github_person_repo.find_by_github_user_id(user["id"])
        if existing and existing.name:
            return existing.name
        login = user.get("login")
        if not login:
            return None
        try:
            return client.get_user(login).get("name")
        except GithubError as e:
            logger.info(f"Could not fetch profile of {login}: {e}")
            return None
