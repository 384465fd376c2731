from gitscope.entities.job import Job, JobType
from gitscope.services.clone_service import CloneService
from gitscope.workers.base import BaseWorker


class CloneWorker(BaseWorker):
    job_type = JobType.CLONE

    def __init__(self, *args, clone_service: CloneService | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = clone_service or CloneService(self.db)

    def process(self, job: Job):
        return self.service.process(job)
