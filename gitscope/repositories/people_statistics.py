"""Repository for daily per-person statistics rows."""

from typing import Any, Dict, List, Optional

from bson import ObjectId

from gitscope.entities.people_statistics import PeopleStatistics
from gitscope.repositories.base import BaseRepository

COUNT_FIELDS = ("commits", "additions", "deletions", "comments", "pull_requests", "score")


class PeopleStatisticsRepository(BaseRepository[PeopleStatistics]):
    def __init__(self, db) -> None:
        super().__init__(db, "people_statistics", PeopleStatistics)

    def delete_by_repository(self, github_repository_id: ObjectId) -> int:
        return self.delete_many({"github_repository_id": github_repository_id})

    def upsert_daily(self, row: PeopleStatistics) -> PeopleStatistics:
        """Upsert by (project, repository, github person, stat date)."""
        key = {
            "project_id": row.project_id,
            "github_repository_id": row.github_repository_id,
            "github_person_id": row.github_person_id,
            "stat_date": row.stat_date,
        }
        return self.upsert_one(key, {field: getattr(row, field) for field in COUNT_FIELDS})

    def find_by_repository(self, github_repository_id: ObjectId) -> List[PeopleStatistics]:
        return self.find_many(
            {"github_repository_id": github_repository_id},
            sort=[("stat_date", 1), ("github_person_id", 1)],
        )

    def find_by_person(self, project_id: ObjectId, github_person_id: ObjectId) -> List[PeopleStatistics]:
        return self.find_many(
            {"project_id": project_id, "github_person_id": github_person_id},
            sort=[("stat_date", 1)],
        )

    def totals_by_person(
        self,
        project_id: ObjectId,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Sum every count per GitHub person, highest score first.

        ``start``/``end`` are YYYY-MM-DD strings bounding stat_date inclusively.
        """
        match: Dict[str, Any] = {"project_id": project_id}
        date_filter: Dict[str, Any] = {}
        if start is not None:
            date_filter["$gte"] = start
        if end is not None:
            date_filter["$lte"] = end
        if date_filter:
            match["stat_date"] = date_filter

        group: Dict[str, Any] = {"_id": "$github_person_id"}
        for field in COUNT_FIELDS:
            group[field] = {"$sum": f"${field}"}

        rows = self.aggregate([{"$match": match}, {"$group": group}])
        rows.sort(key=lambda row: (-row["score"], str(row["_id"])))
        return rows

    def stat_dates(self, project_id: ObjectId) -> List[str]:
        return sorted(self.collection.distinct("stat_date", {"project_id": project_id}))
