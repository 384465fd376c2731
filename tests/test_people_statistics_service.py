"""Tests for daily people statistics and leaderboards."""

from datetime import date

import pytest
from bson import ObjectId

from gitscope.entities.commit import Commit, CommitFile
from gitscope.entities.job import Job, JobType
from gitscope.entities.person import GithubPerson, PersonSource
from gitscope.entities.settings import ExcludedExtension, ExcludedFolder, ScoreSettings
from gitscope.repositories.commit import CommitFileRepository, CommitRepository
from gitscope.repositories.people_statistics import PeopleStatisticsRepository
from gitscope.repositories.person import (
    EmailMergeRepository,
    GithubPersonRepository,
    GitHubPersonEmailRepository,
    PersonRepository,
    ProjectGithubPersonRepository,
)
from gitscope.repositories.project import ProjectRepositoryRepository
from gitscope.repositories.pull_request import PullRequestRepository, PullRequestReviewRepository
from gitscope.repositories.settings import (
    ExcludedExtensionRepository,
    ExcludedFolderRepository,
    ScoreSettingsRepository,
)
from gitscope.services.people_statistics_service import (
    CommitNoiseFilter,
    PeopleStatisticsService,
    file_extension,
    is_file_excluded,
    period_bounds,
)

from .conftest import utc

TODAY = date(2024, 12, 31)


class Fixture:
    """Writes commits, pull requests and identities straight into the store."""

    def __init__(self, db, seed):
        self.db = db
        self.seed = seed
        self._sha = 0
        self._github_id = 0

    def person(self, login, email):
        self._github_id += 1
        person = PersonRepository(self.db).get_or_create_by_email(email, login.title())
        github_person = GithubPersonRepository(self.db).insert_one(
            GithubPerson(github_user_id=self._github_id, login=login)
        )
        ProjectGithubPersonRepository(self.db).attach(
            self.seed.project.id, github_person.id, PersonSource.CONTRIBUTOR.value
        )
        GitHubPersonEmailRepository(self.db).link(self.seed.project.id, github_person.id, person.id)
        return github_person

    def commit(self, email, when, files):
        self._sha += 1
        commit = CommitRepository(self.db).insert_one(
            Commit(
                github_repository_id=self.seed.github_repo.id,
                sha=f"{self._sha:040x}",
                author_name=email.split("@")[0],
                author_email=email,
                commit_date=when,
                additions=sum(f[1] for f in files),
                deletions=sum(f[2] for f in files),
            )
        )
        for filename, additions, deletions in files:
            CommitFileRepository(self.db).insert_one(
                CommitFile(
                    commit_id=commit.id,
                    filename=filename,
                    additions=additions,
                    deletions=deletions,
                    changes=additions + deletions,
                )
            )
        return commit

    def pull_request(self, number, login, when):
        return PullRequestRepository(self.db).upsert_by_github_pr_id(
            1000 + number,
            {
                "github_repository_id": self.seed.github_repo.id,
                "number": number,
                "user": {"login": login},
                "github_created_at": when,
            },
        )

    def review(self, review_id, pr, login, when):
        PullRequestReviewRepository(self.db).upsert_by_github_review_id(
            review_id,
            {
                "github_repository_id": self.seed.github_repo.id,
                "pull_request_id": pr.id,
                "reviewer_login": login,
                "submitted_at": when,
                "github_created_at": when,
            },
        )


@pytest.fixture
def data(db, seed):
    return Fixture(db, seed)


@pytest.fixture
def service(db):
    return PeopleStatisticsService(db, noise_filter=CommitNoiseFilter(max_changes=20000, max_deletion_only=5000))


def _recompute(service, seed):
    return service.recompute_repository(seed.project.id, seed.link, seed.github_repo, today=TODAY)


def _rows(db, seed):
    return PeopleStatisticsRepository(db).find_by_repository(seed.github_repo.id)


def test_daily_row_for_commit_author(db, seed, data, service):
    ada = data.person("ada", "ada@example.com")
    data.commit("ada@example.com", utc(2024, 5, 1, 9), [("a.py", 20, 5)])
    data.commit("ada@example.com", utc(2024, 5, 1, 11), [("b.py", 20, 3)])
    data.commit("ada@example.com", utc(2024, 5, 1, 15), [("c.py", 10, 2)])

    written = _recompute(service, seed)

    rows = _rows(db, seed)
    assert written == len(rows) == 1
    row = rows[0]
    assert row.github_person_id == ada.id
    assert row.stat_date == "2024-05-01"
    assert (row.commits, row.additions, row.deletions) == (3, 50, 10)
    assert (row.pull_requests, row.comments) == (0, 0)
    assert row.score == 3 * 10 + 50 * 1 + 10 * 3
    assert ProjectRepositoryRepository(db).find_by_id(seed.link.id).is_analyzed


def test_rows_only_on_activity_days_and_for_active_people(db, seed, data, service):
    data.person("ada", "ada@example.com")
    bob = data.person("bob", "bob@example.com")
    data.commit("ada@example.com", utc(2024, 5, 1, 9), [("a.py", 1, 0)])
    data.commit("ada@example.com", utc(2024, 5, 10, 9), [("a.py", 1, 0)])
    pr = data.pull_request(1, "bob", utc(2024, 5, 4, 9))
    data.review(1, pr, "bob", utc(2024, 5, 4, 10))

    _recompute(service, seed)

    rows = _rows(db, seed)
    assert [row.stat_date for row in rows] == ["2024-05-01", "2024-05-04", "2024-05-10"]
    bob_row = next(row for row in rows if row.github_person_id == bob.id)
    assert (bob_row.pull_requests, bob_row.comments, bob_row.commits) == (1, 1, 0)
    assert bob_row.score == 20 + 100


def test_activity_before_first_commit_is_ignored(db, seed, data, service):
    data.person("ada", "ada@example.com")
    pr = data.pull_request(1, "ada", utc(2024, 4, 1, 9))
    data.review(1, pr, "ada", utc(2024, 4, 1, 10))
    data.commit("ada@example.com", utc(2024, 5, 1, 9), [("a.py", 1, 0)])

    _recompute(service, seed)

    assert [row.stat_date for row in _rows(db, seed)] == ["2024-05-01"]


def test_alias_merge_moves_commits_to_canonical_person(db, seed, data, service):
    canonical = data.person("ada", "canonical@x")
    alias_owner = data.person("ghost", "alias@x")
    data.commit("alias@x", utc(2024, 5, 1, 9), [("a.py", 4, 0)])
    data.commit("canonical@x", utc(2024, 5, 1, 10), [("b.py", 6, 0)])
    EmailMergeRepository(db).add_merge(seed.project.id, "alias@x", "canonical@x")

    _recompute(service, seed)

    rows = _rows(db, seed)
    assert [row.github_person_id for row in rows] == [canonical.id]
    assert (rows[0].commits, rows[0].additions) == (2, 10)
    assert all(row.github_person_id != alias_owner.id for row in rows)


def test_merge_is_one_hop(db, seed, data, service):
    middle = data.person("mid", "middle@x")
    data.person("ada", "canonical@x")
    data.commit("alias@x", utc(2024, 5, 1, 9), [("a.py", 4, 0)])
    merges = EmailMergeRepository(db)
    merges.add_merge(seed.project.id, "alias@x", "middle@x")
    merges.add_merge(seed.project.id, "middle@x", "canonical@x")

    _recompute(service, seed)

    rows = _rows(db, seed)
    assert [row.github_person_id for row in rows] == [middle.id]


def test_excluded_extensions_and_folders(db, seed, data, service):
    data.person("ada", "ada@example.com")
    ExcludedExtensionRepository(db).insert_one(ExcludedExtension(project_id=seed.project.id, extension=".LOCK"))
    ExcludedFolderRepository(db).insert_one(ExcludedFolder(project_id=seed.project.id, folder_path="/vendor/"))
    data.commit("ada@example.com", utc(2024, 5, 1, 9), [("package-lock.lock", 300, 0)])
    data.commit("ada@example.com", utc(2024, 5, 1, 10), [("foo.go", 7, 1), ("bar.lock", 50, 50)])
    data.commit("ada@example.com", utc(2024, 5, 1, 11), [("vendor/lib/x.go", 90, 0)])

    _recompute(service, seed)

    row = _rows(db, seed)[0]
    assert (row.commits, row.additions, row.deletions) == (1, 7, 1)


def test_giant_diffs_are_ignored(db, seed, data, service):
    data.person("ada", "ada@example.com")
    data.commit("ada@example.com", utc(2024, 5, 1, 9), [("dump.sql", 15000, 5001)])
    data.commit("ada@example.com", utc(2024, 5, 1, 10), [("old.txt", 0, 5001)])
    data.commit("ada@example.com", utc(2024, 5, 1, 11), [("old.txt", 0, 5000)])

    _recompute(service, seed)

    row = _rows(db, seed)[0]
    assert (row.commits, row.deletions) == (1, 5000)


def test_custom_weights_are_applied(db, seed, data, service):
    data.person("ada", "ada@example.com")
    ScoreSettingsRepository(db).save(
        ScoreSettings(project_id=seed.project.id, additions=2, deletions=1, commits=5, pull_requests=10, comments=50)
    )
    data.commit("ada@example.com", utc(2024, 5, 1, 9), [("a.py", 150, 75)])

    _recompute(service, seed)

    assert _rows(db, seed)[0].score == 5 + 300 + 75


def test_recompute_is_idempotent(db, seed, data, service):
    data.person("ada", "ada@example.com")
    data.commit("ada@example.com", utc(2024, 5, 1, 9), [("a.py", 3, 1)])
    data.commit("ada@example.com", utc(2024, 5, 2, 9), [("a.py", 3, 1)])

    _recompute(service, seed)
    first = [(r.stat_date, r.github_person_id, r.commits, r.score) for r in _rows(db, seed)]
    _recompute(service, seed)
    second = [(r.stat_date, r.github_person_id, r.commits, r.score) for r in _rows(db, seed)]

    assert first == second
    assert len(second) == 2


def test_stats_job_without_commits_writes_nothing(db, seed, data, service):
    data.person("ada", "ada@example.com")
    data.pull_request(1, "ada", utc(2024, 5, 1, 9))
    job = Job(project_id=seed.project.id, project_repository_id=seed.link.id, job_type=JobType.STATS.value)

    assert service.process(job) == 0
    assert _rows(db, seed) == []


def test_untracked_repository_is_a_no_op(db, seed, data, service):
    data.person("ada", "ada@example.com")
    data.commit("ada@example.com", utc(2024, 5, 1, 9), [("a.py", 3, 1)])
    ProjectRepositoryRepository(db).update_one(seed.link.id, {"is_tracked": False})
    job = Job(project_id=seed.project.id, project_repository_id=seed.link.id, job_type=JobType.STATS.value)

    assert service.process(job) == 0
    assert _rows(db, seed) == []


def test_leaderboards_and_years(db, seed, data, service):
    ada = data.person("ada", "ada@example.com")
    bob = data.person("bob", "bob@example.com")
    data.commit("ada@example.com", utc(2023, 12, 30, 9), [("a.py", 100, 0)])
    data.commit("bob@example.com", utc(2024, 1, 2, 9), [("a.py", 10, 0)])
    data.commit("ada@example.com", utc(2024, 1, 3, 9), [("a.py", 1, 0)])

    _recompute(service, seed)

    board = service.all_time_leaderboard(seed.project.id)
    assert [entry["login"] for entry in board] == ["ada", "bob"]
    assert board[0]["commits"] == 2
    assert board[0]["score"] == 2 * 10 + 101

    january = service.leaderboard_for_range(seed.project.id, date(2024, 1, 1), date(2024, 1, 31))
    assert [entry["github_person_id"] for entry in january] == [bob.id, ada.id]
    assert service.available_years(seed.project.id) == [2024, 2023]
    with pytest.raises(ValueError):
        service.leaderboard_for_range(seed.project.id, date(2024, 2, 1), date(2024, 1, 1))


def test_file_helpers():
    assert file_extension("src/app.test.JS") == "js"
    assert file_extension(".github/Makefile") == ""
    assert is_file_excluded("yarn.lock", {"lock"}, [])
    assert is_file_excluded("vendor/a/b.go", set(), ["vendor"])
    assert not is_file_excluded("vendored/a.go", set(), ["vendor"])
    assert not is_file_excluded("main.go", {"lock"}, ["vendor"])


class TestPeriods:
    def test_period_bounds(self):
        assert period_bounds("2024") == (date(2024, 1, 1), date(2024, 12, 31))
        assert period_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
        assert period_bounds("2024-W01") == (date(2024, 1, 1), date(2024, 1, 7))
        assert period_bounds("2024-05-06") == (date(2024, 5, 6), date(2024, 5, 6))
        for bad in ("2024-13", "2024-W54", "last week", ""):
            with pytest.raises(ValueError):
                period_bounds(bad)

    def test_available_months_weeks_and_days(self, db, seed, data, service):
        data.person("ada", "ada@example.com")
        data.commit("ada@example.com", utc(2023, 12, 30, 9), [("a.py", 1, 0)])
        data.commit("ada@example.com", utc(2024, 1, 2, 9), [("a.py", 1, 0)])
        data.commit("ada@example.com", utc(2024, 2, 15, 9), [("a.py", 1, 0)])

        _recompute(service, seed)

        project_id = seed.project.id
        assert service.available_months(project_id) == ["2024-02", "2024-01", "2023-12"]
        assert service.available_weeks(project_id) == ["2024-W07", "2024-W01", "2023-W52"]
        days = service.available_days(project_id)
        assert len(days) == 31
        assert (days[0], days[-1]) == ("2024-02-15", "2024-01-16")

    def test_empty_project_offers_the_current_period(self, service):
        project_id = ObjectId()

        assert service.available_months(project_id, today=TODAY) == ["2024-12"]
        assert service.available_weeks(project_id, today=TODAY) == ["2025-W01"]
        assert service.available_days(project_id, today=TODAY) == ["2024-12-31"]

    def test_leaderboard_for_period(self, db, seed, data, service):
        data.person("ada", "ada@example.com")
        data.person("bob", "bob@example.com")
        data.commit("ada@example.com", utc(2023, 12, 30, 9), [("a.py", 100, 0)])
        data.commit("bob@example.com", utc(2024, 1, 2, 9), [("a.py", 10, 0)])

        _recompute(service, seed)

        assert [e["login"] for e in service.leaderboard_for_period(seed.project.id, "2023")] == ["ada"]
        assert [e["login"] for e in service.leaderboard_for_period(seed.project.id, "2024-W01")] == ["bob"]


class TestPersonReports:
    def test_score_history_fills_quiet_months(self, db, seed, data, service):
        ada = data.person("ada", "ada@example.com")
        data.commit("ada@example.com", utc(2024, 10, 5, 9), [("a.py", 1, 0)])
        data.commit("ada@example.com", utc(2024, 12, 1, 9), [("a.py", 2, 0)])

        _recompute(service, seed)

        assert service.person_score_history(seed.project.id, ada.id, today=TODAY) == [
            {"month": "2024-10", "score": 11},
            {"month": "2024-11", "score": 0},
            {"month": "2024-12", "score": 12},
        ]
        assert service.person_score_history(seed.project.id, ObjectId(), today=TODAY) == []

    def test_weekly_averages(self, db, seed, data, service):
        ada = data.person("ada", "ada@example.com")
        data.commit("ada@example.com", utc(2024, 5, 1, 9), [("a.py", 30, 0)])
        data.commit("ada@example.com", utc(2024, 5, 15, 9), [("a.py", 3, 3)])

        _recompute(service, seed)

        averages = service.person_weekly_averages(seed.project.id, ada.id)
        assert averages["commits"] == pytest.approx(2 / 3)
        assert averages["additions"] == pytest.approx(11.0)
        assert averages["deletions"] == pytest.approx(1.0)
        assert averages["pull_requests"] == 0
        assert service.person_weekly_averages(seed.project.id, ObjectId()) == {
            "commits": 0.0,
            "additions": 0.0,
            "deletions": 0.0,
            "comments": 0.0,
            "pull_requests": 0.0,
        }

    def test_top_commits_and_pull_requests(self, db, seed, data, service):
        ada = data.person("ada", "ada@example.com")
        data.person("bob", "bob@example.com")
        small = data.commit("ada@example.com", utc(2024, 5, 1, 9), [("a.py", 5, 0)])
        large = data.commit("ada@example.com", utc(2024, 5, 2, 9), [("a.py", 40, 10)])
        medium = data.commit("ada@example.com", utc(2024, 5, 3, 9), [("a.py", 20, 0)])
        data.commit("ada@example.com", utc(2024, 5, 4, 9), [("a.py", 1, 0)])
        data.commit("bob@example.com", utc(2024, 5, 4, 9), [("a.py", 900, 0)])

        first = data.pull_request(1, "ada", utc(2024, 5, 1, 9))
        data.pull_request(2, "ada", utc(2024, 5, 2, 9))
        third = data.pull_request(3, "bob", utc(2024, 5, 3, 9))
        fourth = data.pull_request(4, "ada", utc(2024, 5, 4, 9))
        for review_id, pr in enumerate([first, first, fourth, third, third, third]):
            data.review(review_id + 1, pr, "bob", utc(2024, 5, 5, 9))

        top = service.person_top_contributions(seed.project.id, ada.id)

        assert [c["sha"] for c in top["commits"]] == [large.sha, medium.sha, small.sha]
        assert top["commits"][0]["lines_changed"] == 50
        assert top["commits"][0]["date"] == "2024-05-02"
        assert [(p["number"], p["reviews"]) for p in top["pull_requests"]] == [(1, 2), (4, 1), (2, 0)]


def test_deleting_a_commit_removes_its_files(db, seed, data):
    kept = data.commit("ada@example.com", utc(2024, 5, 1, 9), [("a.py", 1, 0)])
    doomed = data.commit("ada@example.com", utc(2024, 5, 2, 9), [("a.py", 1, 0), ("b.py", 2, 0)])
    commits = CommitRepository(db)
    files = CommitFileRepository(db)

    assert commits.delete_with_files(doomed.id)

    assert commits.find_by_id(doomed.id) is None
    assert files.find_by_commit(doomed.id) == []
    assert len(files.find_by_commit(kept.id)) == 1
