from gitscope.entities.job import Job, JobType
from gitscope.services.commit_ingest_service import CommitIngestService
from gitscope.workers.base import BaseWorker


class CommitWorker(BaseWorker):
    job_type = JobType.COMMIT

    def __init__(self, *args, ingest_service: CommitIngestService | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = ingest_service or CommitIngestService(self.db)

    def process(self, job: Job):
        return self.service.process(job)
