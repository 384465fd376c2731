"""
Hourly auto-update scheduler.

Once an hour the scheduler reads every enabled ProjectUpdateSettings and, for
each project whose hour matches the current local hour, enqueues a full job
chain per tracked repository. It then sleeps until the top of the next hour.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from pymongo.database import Database

from gitscope.repositories.settings import ProjectUpdateSettingsRepository
from gitscope.services.job_service import JobService

logger = logging.getLogger(__name__)


def seconds_until_next_hour(now: datetime) -> float:
    next_hour = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    return max((next_hour - now).total_seconds(), 1.0)


class SchedulerService:
    def __init__(
        self,
        db: Database,
        job_service: JobService | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.settings_repo = ProjectUpdateSettingsRepository(db)
        self.job_service = job_service or JobService(db)
        self._clock = clock or datetime.now
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="scheduler", daemon=True)
        self._thread.start()
        logger.info("Scheduler started")

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout)
        logger.info("Scheduler stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}")
            self._stop_event.wait(seconds_until_next_hour(self._clock()))

    def tick(self, now: datetime | None = None) -> int:
        """Enqueue chains for projects due at this hour; returns the number of chains."""
        now = now or self._clock()
        chains = 0
        for update_settings in self.settings_repo.find_enabled():
            if update_settings.hour != now.hour:
                continue
            logger.info(f"Auto-update due for project {update_settings.project_id} at hour {now.hour}")
            chains += self.job_service.create_chains_for_tracked_repositories(update_settings.project_id)
        return chains
