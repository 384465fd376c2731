"""
Base worker loop shared by every job type.

Each worker:
1. Checks the shared cancel event and its own stop event between jobs
2. Claims the next job of its type through the job store
3. Sleeps ``idle_sleep`` when nothing is claimable, ``error_sleep`` when the claim raised
4. Runs the type-specific processor synchronously and records the outcome

A processor failure marks the job failed with the error text. Jobs are never
re-queued and a running job is never preempted.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Optional

from pymongo.database import Database

from gitscope.config import settings
from gitscope.core.logging import log_ctx
from gitscope.entities.job import Job, JobType
from gitscope.repositories.job import JobRepository

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 1000


class BaseWorker(ABC):
    job_type: JobType

    def __init__(
        self,
        db: Database,
        index: int,
        job_repo: JobRepository,
        cancel_event: Optional[threading.Event] = None,
        idle_sleep: Optional[float] = None,
        error_sleep: Optional[float] = None,
    ):
        self.db = db
        self.worker_id = f"{self.job_type.value}-{index}"
        self.job_repo = job_repo
        self.cancel_event = cancel_event or threading.Event()
        self.stop_event = threading.Event()
        self.idle_sleep = settings.WORKER_IDLE_SLEEP_SECONDS if idle_sleep is None else idle_sleep
        self.error_sleep = settings.WORKER_ERROR_SLEEP_SECONDS if error_sleep is None else error_sleep
        self._thread: Optional[threading.Thread] = None

    @abstractmethod
    def process(self, job: Job) -> Any:
        """Run one claimed job. Raising marks it failed."""

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _should_stop(self) -> bool:
        return self.cancel_event.is_set() or self.stop_event.is_set()

    def _wait(self, seconds: float) -> None:
        # Wakes early on shutdown
        if self.cancel_event.is_set():
            return
        self.stop_event.wait(seconds)

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, name=self.worker_id)
        self._thread.start()

    def stop(self) -> None:
        self.stop_event.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread:
            self._thread.join(timeout)

    def run(self) -> None:
        logger.info(f"{log_ctx(self.worker_id)} started")
        while not self._should_stop():
            self.run_once()
        logger.info(f"{log_ctx(self.worker_id)} stopped")

    def run_once(self) -> Optional[Job]:
        """One iteration of the loop; returns the job it handled, if any."""
        try:
            job = self.job_repo.get_next_pending_job(self.job_type.value, self.worker_id)
        except Exception as e:
            logger.error(f"{log_ctx(self.worker_id)} failed to claim a job: {e}")
            self._wait(self.error_sleep)
            return None

        if job is None:
            self._wait(self.idle_sleep)
            return None

        self.handle(job)
        return job

    def handle(self, job: Job) -> None:
        ctx = log_ctx(self.worker_id, job.id)
        logger.info(f"{ctx} processing {job.job_type} job for project {job.project_id}")
        try:
            self.process(job)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"{ctx} failed: {message}")
            self._record(job, message[:MAX_ERROR_MESSAGE_LENGTH])
            return
        self._record(job, None)
        logger.info(f"{ctx} completed")

    def _record(self, job: Job, error_message: Optional[str]) -> None:
        try:
            if error_message is None:
                self.job_repo.mark_completed(job)
            else:
                self.job_repo.mark_failed(job, error_message)
        except Exception as e:
            logger.error(f"{log_ctx(self.worker_id, job.id)} could not persist job outcome: {e}")
