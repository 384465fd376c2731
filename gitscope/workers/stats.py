from gitscope.entities.job import Job, JobType
from gitscope.services.people_statistics_service import PeopleStatisticsService
from gitscope.workers.base import BaseWorker


class StatsWorker(BaseWorker):
    job_type = JobType.STATS

    def __init__(self, *args, stats_service: PeopleStatisticsService | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = stats_service or PeopleStatisticsService(self.db)

    def process(self, job: Job):
        return self.service.process(job)
