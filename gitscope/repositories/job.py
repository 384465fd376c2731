"""
Job Repository - durable job queue with atomic claim-next.

``get_next_pending_job`` is the only place a job moves from pending to
in-progress. Selection and transition are two steps on MongoDB: an
aggregation picks the oldest pending job whose dependency is terminal, then a
conditional ``find_one_and_update`` on ``{_id, status: pending}`` performs the
transition. A losing compare-and-set moves on to the next candidate, so no job
is ever handed to two workers.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from gitscope.core.exceptions import JobDependencyError
from gitscope.entities.job import ACTIVE_STATUSES, TERMINAL_STATUSES, Job, JobStatus

from .base import BaseRepository

logger = logging.getLogger(__name__)


class JobRepository(BaseRepository[Job]):
    def __init__(self, db: Database):
        super().__init__(db, "jobs", Job)
        # Serializes every mutating call made through this instance
        self._lock = threading.RLock()

    def create(self, job: Job) -> Job:
        """Insert a pending job. Raises JobDependencyError for an unknown or cyclic dependency."""
        with self._lock:
            if job.depends_on is not None:
                self._check_dependency(job)

            now = _now()
            job.status = JobStatus.PENDING.value
            job.worker_id = None
            job.started_at = None
            job.completed_at = None
            job.created_at = now
            job.updated_at = now
            return self.insert_one(job)

    def get_next_pending_job(self, job_type: str, worker_id: str) -> Optional[Job]:
        """
        Claim the oldest claimable job of ``job_type`` for ``worker_id``.

        Falls back to an in-progress job already stamped with this worker id,
        which is what a restarted worker left behind.
        """
        with self._lock:
            while True:
                candidate = self._next_claimable(job_type)
                if candidate is None:
                    break

                now = _now()
                claimed = self.collection.find_one_and_update(
                    {"_id": candidate["_id"], "status": JobStatus.PENDING.value},
                    {
                        "$set": {
                            "status": JobStatus.IN_PROGRESS.value,
                            "worker_id": worker_id,
                            "started_at": now,
                            "updated_at": now,
                        }
                    },
                    return_document=ReturnDocument.AFTER,
                )
                if claimed is not None:
                    return self._to_model(claimed)
                logger.debug(f"Lost claim race for job {candidate['_id']}, retrying")

            return self.find_one(
                {
                    "job_type": job_type,
                    "status": JobStatus.IN_PROGRESS.value,
                    "worker_id": worker_id,
                }
            )

    def _next_claimable(self, job_type: str) -> Optional[Dict[str, Any]]:
        pipeline = [
            {"$match": {"job_type": job_type, "status": JobStatus.PENDING.value}},
            {"$sort": {"created_at": 1, "_id": 1}},
            {
                "$lookup": {
                    "from": self.collection.name,
                    "localField": "depends_on",
                    "foreignField": "_id",
                    "as": "dependency",
                }
            },
            # A dependency that no longer exists keeps the job blocked
            {
                "$match": {
                    "$or": [
                        {"depends_on": None},
                        {"dependency.status": {"$in": list(TERMINAL_STATUSES)}},
                    ]
                }
            },
            {"$limit": 1},
            {"$project": {"_id": 1}},
        ]
        docs = self.aggregate(pipeline)
        return docs[0] if docs else None

    def update(self, job: Job) -> Optional[Job]:
        """Persist status, error, completion timestamp and worker stamp."""
        with self._lock:
            job.updated_at = _now()
            updates = {
                "status": job.status,
                "error_message": job.error_message,
                "started_at": job.started_at,
                "completed_at": job.completed_at,
                "worker_id": job.worker_id,
                "updated_at": job.updated_at,
            }
            self.collection.update_one({"_id": job.id}, {"$set": updates})
            return job

    def mark_completed(self, job: Job) -> Job:
        job.status = JobStatus.COMPLETED.value
        job.completed_at = _now()
        job.worker_id = None
        job.error_message = None
        return self.update(job)

    def mark_failed(self, job: Job, error_message: str) -> Job:
        job.status = JobStatus.FAILED.value
        job.completed_at = _now()
        job.worker_id = None
        job.error_message = error_message
        if job.started_at is None:
            job.started_at = job.completed_at
        return self.update(job)

    def find_by_project(self, project_id: ObjectId) -> List[Job]:
        return self.find_many({"project_id": project_id}, sort=[("created_at", 1)])

    def find_by_project_repository(self, project_repository_id: ObjectId) -> List[Job]:
        return self.find_many(
            {"project_repository_id": project_repository_id}, sort=[("created_at", 1)]
        )

    def find_by_dependency(self, job_id: ObjectId) -> List[Job]:
        return self.find_many({"depends_on": job_id}, sort=[("created_at", 1)])

    def has_active_job(self, project_repository_id: ObjectId, job_type: str) -> bool:
        return (
            self.collection.count_documents(
                {
                    "project_repository_id": project_repository_id,
                    "job_type": job_type,
                    "status": {"$in": list(ACTIVE_STATUSES)},
                },
                limit=1,
            )
            > 0
        )

    def count_by_status(self, project_id: ObjectId) -> Dict[str, int]:
        counts = {status.value: 0 for status in JobStatus}
        rows = self.aggregate(
            [
                {"$match": {"project_id": project_id}},
                {"$group": {"_id": "$status", "count": {"$sum": 1}}},
            ]
        )
        for row in rows:
            counts[row["_id"]] = row["count"]
        return counts

    def delete(self, job_id: ObjectId) -> bool:
        """Delete a job unless an unfinished job still depends on it."""
        with self._lock:
            blocking = self.collection.count_documents(
                {"depends_on": job_id, "status": {"$in": list(ACTIVE_STATUSES)}},
                limit=1,
            )
            if blocking:
                raise JobDependencyError(
                    f"Job {job_id} is still the dependency of an unfinished job"
                )
            return self.delete_one(job_id)

    def delete_by_project_id(self, project_id: ObjectId) -> int:
        with self._lock:
            return self.delete_many({"project_id": project_id})

    def _check_dependency(self, job: Job) -> None:
        if job.id is not None and job.depends_on == job.id:
            raise JobDependencyError("A job cannot depend on itself")

        seen = set()
        current = job.depends_on
        while current is not None:
            if current in seen or (job.id is not None and current == job.id):
                raise JobDependencyError(f"Dependency cycle detected at job {current}")
            seen.add(current)
            doc = self.collection.find_one({"_id": current}, {"depends_on": 1})
            if doc is None:
                if current == job.depends_on:
                    raise JobDependencyError(f"Unknown dependency job {current}")
                # Upstream of the dependency was removed; the chain still ends here
                break
            current = doc.get("depends_on")


def _now() -> datetime:
    return datetime.now(timezone.utc)
