"""Repositories for commits and their per-file deltas."""

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from bson import ObjectId

from gitscope.entities.base import ensure_utc
from gitscope.entities.commit import Commit, CommitFile
from gitscope.repositories.base import BaseRepository


class CommitRepository(BaseRepository[Commit]):
    def __init__(self, db) -> None:
        super().__init__(db, "commits", Commit)

    def exists_by_sha(self, sha: str) -> bool:
        return self.collection.count_documents({"sha": sha}, limit=1) > 0

    def latest_commit_date(self, github_repository_id: ObjectId) -> Optional[datetime]:
        doc = self.collection.find_one(
            {"github_repository_id": github_repository_id},
            {"commit_date": 1},
            sort=[("commit_date", -1)],
        )
        if not doc:
            return None
        return ensure_utc(doc["commit_date"])

    def update_totals(self, commit_id: ObjectId, additions: int, deletions: int, changes: int) -> None:
        self.collection.update_one(
            {"_id": commit_id},
            {"$set": {"additions": additions, "deletions": deletions, "changes": changes}},
        )

    def find_by_repository(self, github_repository_id: ObjectId) -> List[Commit]:
        return self.find_many(
            {"github_repository_id": github_repository_id}, sort=[("commit_date", 1)]
        )

    def count_by_repository(self, github_repository_id: ObjectId) -> int:
        return self.count({"github_repository_id": github_repository_id})

    def largest_by_authors(
        self, github_repository_ids: List[ObjectId], emails: List[str], limit: int = 3
    ) -> List[Commit]:
        """Commits by any of ``emails``, biggest additions + deletions first."""
        if not github_repository_ids or not emails:
            return []
        rows = self.aggregate(
            [
                {
                    "$match": {
                        "github_repository_id": {"$in": github_repository_ids},
                        "author_email": {"$in": emails},
                    }
                },
                {"$addFields": {"lines_changed": {"$add": ["$additions", "$deletions"]}}},
                {"$sort": {"lines_changed": -1, "commit_date": -1}},
                {"$limit": limit},
            ]
        )
        return [self._to_model(row) for row in rows]

    def delete_with_files(self, commit_id: ObjectId) -> bool:
        self.db["commit_files"].delete_many({"commit_id": commit_id})
        return self.delete_one(commit_id)


class CommitFileRepository(BaseRepository[CommitFile]):
    def __init__(self, db) -> None:
        super().__init__(db, "commit_files", CommitFile)

    def find_by_commit(self, commit_id: ObjectId) -> List[CommitFile]:
        return self.find_many({"commit_id": commit_id})

    def group_by_commit(self, commit_ids: List[ObjectId], batch_size: int = 1000) -> Dict[ObjectId, List[CommitFile]]:
        """Load every file of the given commits into a map keyed by commit id."""
        grouped: Dict[ObjectId, List[CommitFile]] = defaultdict(list)
        for start in range(0, len(commit_ids), batch_size):
            chunk = commit_ids[start : start + batch_size]
            for doc in self.collection.find({"commit_id": {"$in": chunk}}):
                file = self._to_model(doc)
                grouped[file.commit_id].append(file)
        return grouped
