from gitscope.entities.job import Job, JobType
from gitscope.services.pull_request_sync_service import PullRequestSyncService
from gitscope.workers.base import BaseWorker


class PullRequestWorker(BaseWorker):
    job_type = JobType.PULL_REQUEST

    def __init__(self, *args, sync_service: PullRequestSyncService | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = sync_service or PullRequestSyncService(self.db)

    def process(self, job: Job):
        return self.service.process(job)
