"""
Incremental ingestion of ``git log --numstat`` into commits and commit files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from gitscope.core.exceptions import PreconditionError
from gitscope.entities.commit import Commit, CommitFile
from gitscope.entities.job import Job
from gitscope.entities.person import Person, PersonSource
from gitscope.entities.project import GitHubRepository
from gitscope.repositories.commit import CommitFileRepository, CommitRepository
from gitscope.repositories.person import (
    GitHubPersonEmailRepository,
    PersonRepository,
    ProjectGithubPersonRepository,
)
from gitscope.services.job_context import JobContextResolver
from gitscope.utils.git import (
    LogHeader,
    git_log_args,
    is_header_line,
    iter_git_lines,
    parse_log_header,
    parse_numstat_line,
)

logger = logging.getLogger(__name__)


@dataclass
class _OpenCommit:
    commit_id: ObjectId
    additions: int = 0
    deletions: int = 0
    changes: int = 0


@dataclass
class IngestResult:
    new_commits: int = 0
    new_files: int = 0
    skipped_commits: int = 0
    bad_lines: int = 0


class CommitIngestService:
    def __init__(self, db: Database):
        self.commit_repo = CommitRepository(db)
        self.file_repo = CommitFileRepository(db)
        self.person_repo = PersonRepository(db)
        self.person_email_repo = GitHubPersonEmailRepository(db)
        self.project_person_repo = ProjectGithubPersonRepository(db)
        self.resolver = JobContextResolver(db)

    def process(self, job: Job) -> Optional[IngestResult]:
        link, github_repo = self.resolver.require_repository(job)
        if not link.is_tracked:
            logger.info(f"Repository {github_repo.full_name} is not tracked, skipping commit ingest")
            return None
        return self.ingest(github_repo, project_id=job.project_id)

    def ingest(self, github_repo: GitHubRepository, project_id: ObjectId | None = None) -> IngestResult:
        if not github_repo.is_cloned or not github_repo.local_path:
            raise PreconditionError(f"Repository {github_repo.full_name} has not been cloned")
        repo_path = Path(github_repo.local_path)
        if not repo_path.is_dir():
            raise PreconditionError(f"Clone of {github_repo.full_name} is missing at {repo_path}")

        since = self.commit_repo.latest_commit_date(github_repo.id)
        if since:
            logger.info(f"Ingesting commits of {github_repo.full_name} since {since.isoformat()}")
        else:
            logger.info(f"Ingesting full history of {github_repo.full_name}")

        result = IngestResult()
        person_cache: Dict[str, Person] = {}
        current: Optional[_OpenCommit] = None

        for line in iter_git_lines(repo_path, git_log_args(since)):
            if not line.strip():
                continue

            if is_header_line(line):
                self._flush(current)
                current = None
                try:
                    header = parse_log_header(line)
                except ValueError as e:
                    result.bad_lines += 1
                    logger.warning(f"Skipping unparsable log header {line!r}: {e}")
                    continue

                if self.commit_repo.exists_by_sha(header.sha):
                    result.skipped_commits += 1
                    continue

                current = self._insert_commit(github_repo, header, person_cache, project_id)
                if current is None:
                    result.skipped_commits += 1
                else:
                    result.new_commits += 1
                continue

            if current is None:
                # Files of a skipped or already-stored commit
                continue

            try:
                entry = parse_numstat_line(line)
            except ValueError as e:
                result.bad_lines += 1
                logger.warning(f"Skipping numstat line {line!r}: {e}")
                continue
            if entry is None:
                continue

            self.file_repo.insert_one(
                CommitFile(
                    commit_id=current.commit_id,
                    filename=entry.filename,
                    status=entry.status,
                    additions=entry.additions,
                    deletions=entry.deletions,
                    changes=entry.changes,
                )
            )
            current.additions += entry.additions
            current.deletions += entry.deletions
            current.changes += entry.changes
            result.new_files += 1

        self._flush(current)
        logger.info(
            f"Ingested {result.new_commits} commits ({result.new_files} files) for "
            f"{github_repo.full_name}; skipped {result.skipped_commits}"
        )
        return result

    def _insert_commit(
        self,
        github_repo: GitHubRepository,
        header: LogHeader,
        person_cache: Dict[str, Person],
        project_id: ObjectId | None,
    ) -> Optional[_OpenCommit]:
        person = self._resolve_author(header, person_cache)
        try:
            commit = self.commit_repo.insert_one(
                Commit(
                    github_repository_id=github_repo.id,
                    sha=header.sha,
                    message=header.subject,
                    author_name=header.author_name,
                    author_email=header.author_email or None,
                    author_person_id=person.id if person else None,
                    commit_date=header.date,
                    is_merge_commit=header.is_merge,
                )
            )
        except DuplicateKeyError:
            logger.debug(f"Commit {header.sha} stored concurrently, skipping")
            return None

        if person and project_id is not None:
            self._attach_known_author(project_id, person)
        return _OpenCommit(commit_id=commit.id)

    def _resolve_author(self, header: LogHeader, cache: Dict[str, Person]) -> Optional[Person]:
        email = header.author_email
        if not email:
            return None
        # git log runs newest first, so the first sighting carries the current name
        person = cache.get(email)
        if person is not None:
            return person
        person = self.person_repo.get_or_create_by_email(email, header.author_name)
        if header.author_name and person.name != header.author_name:
            person = self.person_repo.update_name(person.id, header.author_name) or person
        cache[email] = person
        return person

    def _attach_known_author(self, project_id: ObjectId, person: Person) -> None:
        link = self.person_email_repo.find_by_person(project_id, person.id)
        if link:
            self.project_person_repo.attach(
                project_id, link.github_person_id, PersonSource.COMMIT_AUTHOR.value
            )

    def _flush(self, current: Optional[_OpenCommit]) -> None:
        if current is None:
            return
        self.commit_repo.update_totals(
            current.commit_id, current.additions, current.deletions, current.changes
        )
