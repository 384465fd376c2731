import shutil
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import mongomock
import pytest

from gitscope.database.ensure_indexes import ensure_indexes
from gitscope.entities.project import GitHubRepository, Project, ProjectRepository, User
from gitscope.repositories.project import (
    GitHubRepositoryRepository,
    ProjectRepo,
    ProjectRepositoryRepository,
    UserRepository,
)

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


@pytest.fixture
def db():
    client = mongomock.MongoClient()
    database = client["gitscope_test"]
    ensure_indexes(database)
    yield database
    client.close()


@pytest.fixture
def seed(db):
    """One user, one project and one tracked repository link."""
    user = UserRepository(db).insert_one(
        User(github_login="octo", github_access_token="tok123")
    )
    project = ProjectRepo(db).insert_one(Project(name="Demo", owner_id=user.id))
    github_repo = GitHubRepositoryRepository(db).insert_one(
        GitHubRepository(
            full_name="owner/repo",
            clone_url="https://github.com/owner/repo.git",
        )
    )
    link = ProjectRepositoryRepository(db).insert_one(
        ProjectRepository(project_id=project.id, github_repository_id=github_repo.id)
    )
    return SimpleNamespace(user=user, project=project, github_repo=github_repo, link=link)


class GitRepoBuilder:
    """Creates commits with fixed authors and dates in a scratch repository."""

    def __init__(self, path: Path):
        self.path = path
        path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("config", "user.name", "Builder")
        self.git("config", "user.email", "builder@example.com")
        self.git("config", "commit.gpgsign", "false")

    def git(self, *args, env=None):
        return subprocess.run(
            ["git", *args],
            cwd=self.path,
            check=True,
            capture_output=True,
            text=True,
            env=env,
        ).stdout

    def write(self, relative: str, content: str) -> None:
        target = self.path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)

    def remove(self, relative: str) -> None:
        (self.path / relative).unlink()

    def commit(self, message: str, name: str, email: str, when: datetime) -> str:
        import os

        stamp = when.strftime("%Y-%m-%dT%H:%M:%S%z")
        env = dict(os.environ)
        env.update(
            {
                "GIT_AUTHOR_NAME": name,
                "GIT_AUTHOR_EMAIL": email,
                "GIT_AUTHOR_DATE": stamp,
                "GIT_COMMITTER_NAME": name,
                "GIT_COMMITTER_EMAIL": email,
                "GIT_COMMITTER_DATE": stamp,
            }
        )
        self.git("add", "-A")
        self.git("commit", "-q", "--allow-empty", "-m", message, env=env)
        return self.git("rev-parse", "HEAD").strip()

    def log_count(self) -> int:
        return len(self.git("log", "--oneline").splitlines())


@pytest.fixture
def git_repo(tmp_path):
    return GitRepoBuilder(tmp_path / "clones" / "owner" / "repo")


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
