"""
Clone-or-update of project repositories into the local clone base.
"""

from __future__ import annotations

import logging
import shutil
import threading
from collections import defaultdict
from pathlib import Path
from typing import Dict, Optional

from pymongo.database import Database
from tenacity import RetryCallState, Retrying, stop_after_attempt, wait_fixed

from gitscope.config import settings
from gitscope.core.exceptions import GitCommandError, PreconditionError
from gitscope.entities.job import Job
from gitscope.entities.project import GitHubRepository
from gitscope.paths import get_clone_base, get_repo_path, is_git_checkout
from gitscope.repositories.project import GitHubRepositoryRepository
from gitscope.services.job_context import JobContextResolver
from gitscope.utils.git import build_auth_url, remove_git_lock_files, run_git

logger = logging.getLogger(__name__)

_path_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    with _path_locks_guard:
        return _path_locks[str(path)]


def clone_url_for(repo: GitHubRepository) -> str:
    return repo.clone_url or f"https://github.com/{repo.full_name}.git"


class CloneService:
    def __init__(
        self,
        db: Database,
        clone_base: Path | None = None,
        attempts: int | None = None,
        retry_delay: float | None = None,
    ):
        self.db = db
        self.github_repo_repo = GitHubRepositoryRepository(db)
        self.resolver = JobContextResolver(db)
        self.clone_base = clone_base or get_clone_base()
        self.attempts = attempts or settings.GIT_CLONE_ATTEMPTS
        self.retry_delay = settings.GIT_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay

    def process(self, job: Job) -> Optional[GitHubRepository]:
        token = self.resolver.require_token(job)
        link, github_repo = self.resolver.require_repository(job)
        if not link.is_tracked:
            logger.info(f"Repository {github_repo.full_name} is not tracked, skipping clone")
            return None
        return self.clone_or_update(github_repo, token)

    def clone_or_update(self, github_repo: GitHubRepository, token: str) -> GitHubRepository:
        repo_path = get_repo_path(github_repo.full_name, self.clone_base)
        repo_path.parent.mkdir(parents=True, exist_ok=True)
        auth_url = build_auth_url(clone_url_for(github_repo), token)

        with _lock_for(repo_path):
            if is_git_checkout(repo_path):
                logger.info(f"Updating existing clone of {github_repo.full_name} at {repo_path}")
                self._update(repo_path, auth_url)
            else:
                logger.info(f"Cloning {github_repo.full_name} into {repo_path}")
                self._clone(repo_path, auth_url)

        return self.github_repo_repo.mark_cloned(github_repo.id, str(repo_path))

    def _retrying(self, before_sleep) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.retry_delay),
            before_sleep=before_sleep,
            reraise=True,
        )

    def _clone(self, repo_path: Path, auth_url: str) -> None:
        _remove_tree(repo_path)

        def _cleanup(retry_state: RetryCallState) -> None:
            logger.warning(
                f"git clone attempt {retry_state.attempt_number}/{self.attempts} failed: "
                f"{retry_state.outcome.exception()}"
            )
            _remove_tree(repo_path)

        self._retrying(_cleanup)(run_git, None, ["clone", auth_url, str(repo_path)])

    def _update(self, repo_path: Path, auth_url: str) -> None:
        run_git(repo_path, ["config", "credential.helper", "store"])
        run_git(repo_path, ["remote", "set-url", "origin", auth_url])

        def _cleanup(retry_state: RetryCallState) -> None:
            logger.warning(
                f"git pull attempt {retry_state.attempt_number}/{self.attempts} failed: "
                f"{retry_state.outcome.exception()}"
            )
            remove_git_lock_files(repo_path)

        try:
            self._retrying(_cleanup)(run_git, repo_path, ["pull"])
            return
        except GitCommandError as e:
            logger.warning(f"git pull failed after {self.attempts} attempts, falling back to reset: {e}")

        remove_git_lock_files(repo_path)
        run_git(repo_path, ["fetch", "--all"])
        branch = run_git(repo_path, ["rev-parse", "--abbrev-ref", "HEAD"])
        if not branch or branch == "HEAD":
            raise PreconditionError(f"Cannot determine current branch of {repo_path}")
        run_git(repo_path, ["reset", "--hard", f"origin/{branch}"])


def _remove_tree(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path, ignore_errors=True)
