"""Worker pool: N workers per job type with cooperative shutdown."""

import logging
import threading
from typing import Dict, List, Mapping, Optional, Type

from pymongo.database import Database

from gitscope.config import settings
from gitscope.entities.job import JobType
from gitscope.repositories.job import JobRepository
from gitscope.workers.base import BaseWorker
from gitscope.workers.clone import CloneWorker
from gitscope.workers.commit import CommitWorker
from gitscope.workers.pull_request import PullRequestWorker
from gitscope.workers.stats import StatsWorker

logger = logging.getLogger(__name__)

DEFAULT_WORKER_COUNTS: Dict[JobType, int] = {
    JobType.CLONE: 2,
    JobType.COMMIT: 2,
    JobType.PULL_REQUEST: 2,
    JobType.STATS: 1,
}

WORKER_COUNT_SETTINGS: Dict[JobType, str] = {
    JobType.CLONE: "CLONE_WORKERS",
    JobType.COMMIT: "COMMIT_WORKERS",
    JobType.PULL_REQUEST: "PULL_REQUEST_WORKERS",
    JobType.STATS: "STATS_WORKERS",
}

WORKER_CLASSES: Dict[JobType, Type[BaseWorker]] = {
    JobType.CLONE: CloneWorker,
    JobType.COMMIT: CommitWorker,
    JobType.PULL_REQUEST: PullRequestWorker,
    JobType.STATS: StatsWorker,
}


def parse_worker_count(raw: Optional[str], default: int, name: str) -> int:
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
    if value <= 0:
        logger.warning(f"{name} must be positive, got {value}; using default {default}")
        return default
    return value


def read_worker_counts(source: Optional[Mapping[str, Optional[str]]] = None) -> Dict[JobType, int]:
    """Worker count per type from settings (or ``source``), falling back to defaults."""
    counts = {}
    for job_type, name in WORKER_COUNT_SETTINGS.items():
        raw = source.get(name) if source is not None else getattr(settings, name)
        counts[job_type] = parse_worker_count(raw, DEFAULT_WORKER_COUNTS[job_type], name)
    return counts


class WorkerManager:
    def __init__(
        self,
        db: Database,
        counts: Optional[Dict[JobType, int]] = None,
        job_repo: Optional[JobRepository] = None,
        worker_classes: Optional[Dict[JobType, Type[BaseWorker]]] = None,
        **worker_kwargs,
    ):
        self.db = db
        self.counts = counts or read_worker_counts()
        self.job_repo = job_repo or JobRepository(db)
        self.worker_classes = {**WORKER_CLASSES, **(worker_classes or {})}
        self.worker_kwargs = worker_kwargs
        self.cancel_event = threading.Event()
        self.workers: List[BaseWorker] = []

    def start_all(self) -> None:
        self.cancel_event.clear()
        for job_type in JobType:
            worker_class = self.worker_classes[job_type]
            for index in range(1, self.counts.get(job_type, 0) + 1):
                worker = worker_class(
                    self.db,
                    index,
                    self.job_repo,
                    cancel_event=self.cancel_event,
                    **self.worker_kwargs,
                )
                worker.start()
                self.workers.append(worker)
        summary = ", ".join(f"{t.value}={self.counts.get(t, 0)}" for t in JobType)
        logger.info(f"Started {len(self.workers)} workers ({summary})")

    def stop_all(self, timeout: Optional[float] = None) -> None:
        """Signal every worker and wait for in-flight jobs to finish."""
        logger.info("Stopping workers, waiting for running jobs to finish")
        self.cancel_event.set()
        for worker in self.workers:
            worker.stop()
        for worker in self.workers:
            worker.join(timeout)
        logger.info("All workers stopped")

    def get_worker_status(self) -> Dict[str, bool]:
        return {worker.worker_id: worker.is_running for worker in self.workers}
