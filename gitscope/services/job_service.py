"""Job creation and status queries used by the scheduler and HTTP callers."""

import logging
from typing import Dict, List, Optional

from bson import ObjectId
from pymongo.database import Database

from gitscope.core.exceptions import JobConflictError
from gitscope.entities.job import CHAIN_ORDER, Job, JobType
from gitscope.repositories.job import JobRepository
from gitscope.repositories.project import ProjectRepositoryRepository

logger = logging.getLogger(__name__)


class JobService:
    def __init__(self, db: Database, job_repo: JobRepository | None = None):
        self.job_repo = job_repo or JobRepository(db)
        self.project_repository_repo = ProjectRepositoryRepository(db)

    def create_job(
        self,
        project_id: ObjectId,
        job_type: JobType,
        project_repository_id: Optional[ObjectId] = None,
        depends_on: Optional[ObjectId] = None,
    ) -> Job:
        return self.job_repo.create(
            Job(
                project_id=project_id,
                project_repository_id=project_repository_id,
                job_type=job_type.value,
                depends_on=depends_on,
            )
        )

    def create_chain(self, project_id: ObjectId, project_repository_id: ObjectId) -> List[Job]:
        """Enqueue clone -> commit -> pull_request -> stats for one repository."""
        return self._create_linked(project_id, project_repository_id, CHAIN_ORDER)

    def create_clone_job(self, project_id: ObjectId, project_repository_id: ObjectId) -> Job:
        if self.job_repo.has_active_job(project_repository_id, JobType.CLONE.value):
            raise JobConflictError(
                f"Repository {project_repository_id} already has an active clone job"
            )
        return self.create_job(project_id, JobType.CLONE, project_repository_id)

    def create_analyze_jobs(self, project_id: ObjectId, project_repository_id: ObjectId) -> List[Job]:
        """Enqueue commit -> pull_request -> stats against an existing clone."""
        for job_type in CHAIN_ORDER[1:]:
            if self.job_repo.has_active_job(project_repository_id, job_type.value):
                raise JobConflictError(
                    f"Repository {project_repository_id} already has an active {job_type.value} job"
                )
        return self._create_linked(project_id, project_repository_id, CHAIN_ORDER[1:])

    def create_clone_jobs_for_tracked_repositories(self, project_id: ObjectId) -> int:
        created = 0
        for link in self.project_repository_repo.find_tracked_by_project(project_id):
            try:
                self.create_clone_job(project_id, link.id)
                created += 1
            except JobConflictError as e:
                logger.info(str(e))
        return created

    def create_chains_for_tracked_repositories(self, project_id: ObjectId) -> int:
        """Enqueue a full chain per tracked repository; per-repository failures are skipped."""
        created = 0
        for link in self.project_repository_repo.find_tracked_by_project(project_id):
            try:
                self.create_chain(project_id, link.id)
                created += 1
            except Exception as e:
                logger.error(f"Failed to enqueue jobs for project repository {link.id}: {e}")
        return created

    def get_job(self, job_id: ObjectId) -> Optional[Job]:
        return self.job_repo.find_by_id(job_id)

    def get_jobs_by_project(self, project_id: ObjectId) -> List[Job]:
        return self.job_repo.find_by_project(project_id)

    def get_jobs_by_project_repository(self, project_repository_id: ObjectId) -> List[Job]:
        return self.job_repo.find_by_project_repository(project_repository_id)

    def summarize_project_jobs(self, project_id: ObjectId) -> Dict[str, int]:
        return self.job_repo.count_by_status(project_id)

    def _create_linked(
        self, project_id: ObjectId, project_repository_id: ObjectId, job_types
    ) -> List[Job]:
        jobs: List[Job] = []
        previous: Optional[Job] = None
        for job_type in job_types:
            job = self.create_job(
                project_id,
                job_type,
                project_repository_id,
                depends_on=previous.id if previous else None,
            )
            jobs.append(job)
            previous = job
        logger.info(
            f"Enqueued {' -> '.join(j.job_type for j in jobs)} for project repository {project_repository_id}"
        )
        return jobs
