"""
Daily per-person statistics.

Recomputation is per repository and from scratch: existing rows for the
repository are deleted, every input is pre-loaded once, and only days with at
least one commit, pull request or review are visited.
"""

from __future__ import annotations

import calendar
import logging
import re
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from bson import ObjectId
from pymongo.database import Database

from gitscope.config import settings
from gitscope.entities.base import ensure_utc
from gitscope.entities.commit import Commit, CommitFile
from gitscope.entities.job import Job
from gitscope.entities.people_statistics import PeopleStatistics
from gitscope.entities.person import GithubPerson
from gitscope.entities.project import GitHubRepository, ProjectRepository
from gitscope.entities.settings import ScoreSettings
from gitscope.repositories.commit import CommitFileRepository, CommitRepository
from gitscope.repositories.people_statistics import PeopleStatisticsRepository
from gitscope.repositories.person import GithubPersonRepository, ProjectGithubPersonRepository
from gitscope.repositories.project import ProjectRepositoryRepository
from gitscope.repositories.pull_request import PullRequestRepository, PullRequestReviewRepository
from gitscope.repositories.settings import ExcludedExtensionRepository, ExcludedFolderRepository
from gitscope.services.identity_service import IdentityMap, IdentityService
from gitscope.services.job_context import JobContextResolver
from gitscope.services.score_service import ActivityCounts, ScoreSettingsService, calculate_score

logger = logging.getLogger(__name__)

RECENT_DAYS = 30
TOP_ITEMS = 3
AVERAGED_FIELDS = ("commits", "additions", "deletions", "comments", "pull_requests")


@dataclass(frozen=True)
class CommitNoiseFilter:
    """Drops vendored dumps and mass deletions from scoring."""

    max_changes: int = 20000
    max_deletion_only: int = 5000

    @classmethod
    def from_settings(cls) -> "CommitNoiseFilter":
        return cls(
            max_changes=settings.STATS_MAX_COMMIT_CHANGES,
            max_deletion_only=settings.STATS_MAX_DELETION_ONLY,
        )

    def is_noise(self, additions: int, deletions: int) -> bool:
        if additions + deletions > self.max_changes:
            return True
        return additions == 0 and deletions > self.max_deletion_only


def file_extension(filename: str) -> str:
    basename = filename.rsplit("/", 1)[-1]
    if "." not in basename:
        return ""
    return basename.rsplit(".", 1)[1].lower()


def is_file_excluded(filename: str, extensions: Set[str], folders: Sequence[str]) -> bool:
    if extensions and file_extension(filename) in extensions:
        return True
    for folder in folders:
        if filename == folder or filename.startswith(folder + "/"):
            return True
    return False


def day_of(ts: datetime) -> date:
    return ensure_utc(ts).astimezone(timezone.utc).date()


def iso_week(day: date) -> str:
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def period_bounds(period: str) -> Tuple[date, date]:
    """First and last day of ``YYYY``, ``YYYY-MM``, ``YYYY-Www`` or ``YYYY-MM-DD``."""
    if re.fullmatch(r"\d{4}", period):
        year = int(period)
        return date(year, 1, 1), date(year, 12, 31)
    match = re.fullmatch(r"(\d{4})-W(\d{2})", period)
    if match:
        monday = date.fromisocalendar(int(match.group(1)), int(match.group(2)), 1)
        return monday, monday + timedelta(days=6)
    match = re.fullmatch(r"(\d{4})-(\d{2})", period)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month in period {period!r}")
        return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", period):
        day = date.fromisoformat(period)
        return day, day
    raise ValueError(f"Unrecognised period {period!r}")


def _today(today: date | None) -> date:
    return today or datetime.now(timezone.utc).date()


@dataclass
class _CountedCommit:
    author_email: str
    additions: int
    deletions: int


@dataclass
class RepositoryInputs:
    """Everything the per-day loop reads, loaded once per repository."""

    commits_by_day: Dict[date, List[_CountedCommit]]
    pull_requests: Counter
    reviews: Counter
    first_commit_day: Optional[date]

    def activity_dates(self, today: date) -> List[date]:
        if self.first_commit_day is None:
            return []
        days = set(self.commits_by_day)
        days.update(day for day, _ in self.pull_requests)
        days.update(day for day, _ in self.reviews)
        return sorted(day for day in days if self.first_commit_day <= day <= today)


class PeopleStatisticsService:
    def __init__(self, db: Database, noise_filter: CommitNoiseFilter | None = None):
        self.stats_repo = PeopleStatisticsRepository(db)
        self.commit_repo = CommitRepository(db)
        self.file_repo = CommitFileRepository(db)
        self.pr_repo = PullRequestRepository(db)
        self.review_repo = PullRequestReviewRepository(db)
        self.extension_repo = ExcludedExtensionRepository(db)
        self.folder_repo = ExcludedFolderRepository(db)
        self.github_person_repo = GithubPersonRepository(db)
        self.project_person_repo = ProjectGithubPersonRepository(db)
        self.project_repository_repo = ProjectRepositoryRepository(db)
        self.identity_service = IdentityService(db)
        self.score_service = ScoreSettingsService(db)
        self.resolver = JobContextResolver(db)
        self.noise_filter = noise_filter or CommitNoiseFilter.from_settings()

    # ------------------------------------------------------------------
    # Job entry point
    # ------------------------------------------------------------------

    def process(self, job: Job) -> int:
        if job.project_repository_id is not None:
            link, github_repo = self.resolver.require_repository(job)
            if not link.is_tracked:
                logger.info(f"Repository {github_repo.full_name} is not tracked, skipping stats")
                return 0
            return self.recompute_repository(job.project_id, link, github_repo)

        # Legacy project-wide job
        written = 0
        for link, github_repo in self.resolver.tracked_repositories(job):
            try:
                written += self.recompute_repository(job.project_id, link, github_repo)
            except Exception as e:
                logger.error(f"Statistics failed for {github_repo.full_name}: {e}")
        return written

    # ------------------------------------------------------------------
    # Recomputation
    # ------------------------------------------------------------------

    def recompute_repository(
        self,
        project_id: ObjectId,
        link: ProjectRepository,
        github_repo: GitHubRepository,
        today: date | None = None,
    ) -> int:
        today = today or datetime.now(timezone.utc).date()
        deleted = self.stats_repo.delete_by_repository(github_repo.id)
        logger.info(f"Recomputing statistics for {github_repo.full_name} (cleared {deleted} rows)")

        weights = self.score_service.get_or_default(project_id)
        identity = self.identity_service.load(project_id)
        people = self.github_person_repo.find_by_ids(
            self.project_person_repo.find_person_ids_by_project(project_id)
        )
        inputs = self._load_inputs(project_id, github_repo)

        written = 0
        for day in inputs.activity_dates(today):
            for person in people:
                row = self._daily_row(project_id, github_repo, person, day, inputs, identity, weights)
                if row is not None:
                    self.stats_repo.upsert_daily(row)
                    written += 1

        self.project_repository_repo.mark_analyzed(link.id)
        logger.info(f"Wrote {written} statistics rows for {github_repo.full_name}")
        return written

    def _load_inputs(self, project_id: ObjectId, github_repo: GitHubRepository) -> RepositoryInputs:
        commits = self.commit_repo.find_by_repository(github_repo.id)
        files = self.file_repo.group_by_commit([commit.id for commit in commits])
        extensions = self.extension_repo.extension_set(project_id)
        folders = self.folder_repo.folder_list(project_id)

        commits_by_day: Dict[date, List[_CountedCommit]] = defaultdict(list)
        first_commit_day: Optional[date] = None
        for commit in commits:
            day = day_of(commit.commit_date)
            if first_commit_day is None or day < first_commit_day:
                first_commit_day = day
            counted = self._count_commit(commit, files.get(commit.id, []), extensions, folders)
            if counted is not None:
                commits_by_day[day].append(counted)

        pull_requests: Counter = Counter()
        for pr in self.pr_repo.find_by_repository(github_repo.id):
            if pr.github_created_at and pr.author_login:
                pull_requests[(day_of(pr.github_created_at), pr.author_login)] += 1

        reviews: Counter = Counter()
        for review in self.review_repo.find_by_repository(github_repo.id):
            if review.github_created_at and review.reviewer_login:
                reviews[(day_of(review.github_created_at), review.reviewer_login)] += 1

        return RepositoryInputs(
            commits_by_day=commits_by_day,
            pull_requests=pull_requests,
            reviews=reviews,
            first_commit_day=first_commit_day,
        )

    def _count_commit(
        self,
        commit: Commit,
        files: Iterable[CommitFile],
        extensions: Set[str],
        folders: Sequence[str],
    ) -> Optional[_CountedCommit]:
        if not commit.author_email:
            return None
        counted = [f for f in files if not is_file_excluded(f.filename, extensions, folders)]
        if not counted:
            return None
        additions = sum(f.additions for f in counted)
        deletions = sum(f.deletions for f in counted)
        if self.noise_filter.is_noise(additions, deletions):
            logger.debug(f"Ignoring oversized commit {commit.sha} (+{additions} -{deletions})")
            return None
        return _CountedCommit(commit.author_email, additions, deletions)

    def _daily_row(
        self,
        project_id: ObjectId,
        github_repo: GitHubRepository,
        person: GithubPerson,
        day: date,
        inputs: RepositoryInputs,
        identity: IdentityMap,
        weights: ScoreSettings,
    ) -> Optional[PeopleStatistics]:
        counts = ActivityCounts()

        emails = identity.emails_for(person.id)
        if emails:
            for commit in inputs.commits_by_day.get(day, ()):
                if commit.author_email in emails:
                    counts.commits += 1
                    counts.additions += commit.additions
                    counts.deletions += commit.deletions

        counts.pull_requests = inputs.pull_requests.get((day, person.login), 0)
        counts.comments = inputs.reviews.get((day, person.login), 0)

        score = calculate_score(counts, weights)
        if counts.is_empty() and score <= 0:
            return None
        return PeopleStatistics(
            project_id=project_id,
            github_repository_id=github_repo.id,
            github_person_id=person.id,
            stat_date=day.isoformat(),
            commits=counts.commits,
            additions=counts.additions,
            deletions=counts.deletions,
            pull_requests=counts.pull_requests,
            comments=counts.comments,
            score=score,
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def all_time_leaderboard(self, project_id: ObjectId) -> List[Dict[str, Any]]:
        return self._leaderboard(project_id)

    def leaderboard_for_range(self, project_id: ObjectId, start: date, end: date) -> List[Dict[str, Any]]:
        if start > end:
            raise ValueError("start must not be after end")
        return self._leaderboard(project_id, start.isoformat(), end.isoformat())

    def leaderboard_for_period(self, project_id: ObjectId, period: str) -> List[Dict[str, Any]]:
        start, end = period_bounds(period)
        return self.leaderboard_for_range(project_id, start, end)

    def available_years(self, project_id: ObjectId) -> List[int]:
        return sorted({int(day[:4]) for day in self.stats_repo.stat_dates(project_id)}, reverse=True)

    def available_months(self, project_id: ObjectId, today: date | None = None) -> List[str]:
        months = sorted({day[:7] for day in self.stats_repo.stat_dates(project_id)}, reverse=True)
        return months or [_today(today).strftime("%Y-%m")]

    def available_weeks(self, project_id: ObjectId, today: date | None = None) -> List[str]:
        days = self.stats_repo.stat_dates(project_id)
        weeks = sorted({iso_week(date.fromisoformat(day)) for day in days}, reverse=True)
        return weeks or [iso_week(_today(today))]

    def available_days(self, project_id: ObjectId, today: date | None = None) -> List[str]:
        """The window of RECENT_DAYS ending at the newest stat day, newest first."""
        days = self.stats_repo.stat_dates(project_id)
        if not days:
            return [_today(today).isoformat()]
        latest = date.fromisoformat(days[-1])
        return [(latest - timedelta(days=offset)).isoformat() for offset in range(RECENT_DAYS + 1)]

    # ------------------------------------------------------------------
    # Per-person reporting
    # ------------------------------------------------------------------

    def person_score_history(
        self, project_id: ObjectId, github_person_id: ObjectId, today: date | None = None
    ) -> List[Dict[str, Any]]:
        """Monthly score from the person's first active month to the current month, gaps as 0."""
        rows = self.stats_repo.find_by_person(project_id, github_person_id)
        if not rows:
            return []
        monthly: Counter = Counter()
        for row in rows:
            monthly[row.stat_date[:7]] += row.score

        first = date.fromisoformat(rows[0].stat_date).replace(day=1)
        last = max(_today(today).replace(day=1), date.fromisoformat(rows[-1].stat_date).replace(day=1))
        history = []
        month = first
        while month <= last:
            key = month.strftime("%Y-%m")
            history.append({"month": key, "score": monthly.get(key, 0)})
            month = (month + timedelta(days=32)).replace(day=1)
        return history

    def person_weekly_averages(self, project_id: ObjectId, github_person_id: ObjectId) -> Dict[str, float]:
        rows = self.stats_repo.find_by_person(project_id, github_person_id)
        if not rows:
            return {field: 0.0 for field in AVERAGED_FIELDS}
        span = date.fromisoformat(rows[-1].stat_date) - date.fromisoformat(rows[0].stat_date)
        weeks = span.days // 7 + 1
        return {field: sum(getattr(row, field) for row in rows) / weeks for field in AVERAGED_FIELDS}

    def person_top_contributions(
        self, project_id: ObjectId, github_person_id: ObjectId, limit: int = TOP_ITEMS
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Largest commits by lines changed and most-reviewed pull requests of one person."""
        repository_ids = [
            link.github_repository_id
            for link in self.project_repository_repo.find_tracked_by_project(project_id)
        ]
        emails = sorted(self.identity_service.load(project_id).emails_for(github_person_id))
        commits = self.commit_repo.largest_by_authors(repository_ids, emails, limit)

        person = self.github_person_repo.find_by_id(github_person_id)
        pull_requests = self.pr_repo.find_by_author(repository_ids, person.login) if person else []
        review_counts = self.review_repo.count_by_pull_request([pr.id for pr in pull_requests])
        # Stable sort keeps newest first among equal review counts
        pull_requests = sorted(pull_requests, key=lambda pr: review_counts.get(pr.id, 0), reverse=True)

        return {
            "commits": [
                {
                    "sha": commit.sha,
                    "message": commit.message,
                    "additions": commit.additions,
                    "deletions": commit.deletions,
                    "lines_changed": commit.additions + commit.deletions,
                    "date": day_of(commit.commit_date).isoformat(),
                }
                for commit in commits
            ],
            "pull_requests": [
                {
                    "number": pr.number,
                    "title": pr.title,
                    "state": pr.state,
                    "reviews": review_counts.get(pr.id, 0),
                    "date": day_of(pr.github_created_at).isoformat() if pr.github_created_at else None,
                }
                for pr in pull_requests[:limit]
            ],
        }

    def _leaderboard(
        self, project_id: ObjectId, start: str | None = None, end: str | None = None
    ) -> List[Dict[str, Any]]:
        rows = self.stats_repo.totals_by_person(project_id, start, end)
        people = {p.id: p for p in self.github_person_repo.find_by_ids([row["_id"] for row in rows])}
        board = []
        for row in rows:
            person = people.get(row["_id"])
            board.append(
                {
                    "github_person_id": row["_id"],
                    "login": person.login if person else None,
                    "name": person.name if person else None,
                    "avatar_url": person.avatar_url if person else None,
                    **{field: row[field] for field in ("commits", "additions", "deletions", "pull_requests", "comments", "score")},
                }
            )
        return board
