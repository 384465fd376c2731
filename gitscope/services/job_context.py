"""Resolve the rows a job refers to, failing fast on missing inputs."""

from typing import List, Tuple

from pymongo.database import Database

from gitscope.core.exceptions import PreconditionError
from gitscope.entities.job import Job
from gitscope.entities.project import GitHubRepository, Project, ProjectRepository
from gitscope.repositories.project import (
    GitHubRepositoryRepository,
    ProjectRepo,
    ProjectRepositoryRepository,
    UserRepository,
)


class JobContextResolver:
    def __init__(self, db: Database):
        self.project_repo = ProjectRepo(db)
        self.user_repo = UserRepository(db)
        self.project_repository_repo = ProjectRepositoryRepository(db)
        self.github_repo_repo = GitHubRepositoryRepository(db)

    def require_project(self, job: Job) -> Project:
        project = self.project_repo.find_by_id(job.project_id)
        if project is None:
            raise PreconditionError(f"Project {job.project_id} not found")
        return project

    def require_token(self, job: Job) -> str:
        project = self.require_project(job)
        owner = self.user_repo.find_by_id(project.owner_id)
        if owner is None:
            raise PreconditionError(f"Owner {project.owner_id} of project {project.id} not found")
        if not owner.github_access_token:
            raise PreconditionError(
                f"Project owner {owner.github_login} has no GitHub access token"
            )
        return owner.github_access_token

    def require_repository(self, job: Job) -> Tuple[ProjectRepository, GitHubRepository]:
        if job.project_repository_id is None:
            raise PreconditionError(f"{job.job_type} job {job.id} has no project_repository_id")
        link = self.project_repository_repo.find_active(job.project_repository_id)
        if link is None:
            raise PreconditionError(f"Project repository {job.project_repository_id} not found")
        return link, self._github_repository(link)

    def tracked_repositories(self, job: Job) -> List[Tuple[ProjectRepository, GitHubRepository]]:
        """Every tracked repository of the job's project (legacy project-wide jobs)."""
        pairs = []
        for link in self.project_repository_repo.find_tracked_by_project(job.project_id):
            pairs.append((link, self._github_repository(link)))
        return pairs

    def _github_repository(self, link: ProjectRepository) -> GitHubRepository:
        github_repo = self.github_repo_repo.find_by_id(link.github_repository_id)
        if github_repo is None:
            raise PreconditionError(f"GitHub repository {link.github_repository_id} not found")
        return github_repo
