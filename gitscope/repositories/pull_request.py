"""Repositories for pull requests and their reviews."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from gitscope.entities.base import ensure_utc
from gitscope.entities.pull_request import PullRequest, PullRequestReview
from gitscope.repositories.base import BaseRepository


class PullRequestRepository(BaseRepository[PullRequest]):
    def __init__(self, db) -> None:
        super().__init__(db, "pull_requests", PullRequest)

    def latest_github_created_at(self, github_repository_id: ObjectId) -> Optional[datetime]:
        doc = self.collection.find_one(
            {"github_repository_id": github_repository_id, "github_created_at": {"$ne": None}},
            {"github_created_at": 1},
            sort=[("github_created_at", -1)],
        )
        if not doc:
            return None
        return ensure_utc(doc["github_created_at"])

    def open_numbers(self, github_repository_id: ObjectId) -> Set[int]:
        docs = self.collection.find(
            {"github_repository_id": github_repository_id, "state": "open"}, {"number": 1}
        )
        return {doc["number"] for doc in docs}

    def upsert_by_github_pr_id(self, github_pr_id: int, data: Dict[str, Any]) -> PullRequest:
        try:
            return self.upsert_one({"github_pr_id": github_pr_id}, data)
        except DuplicateKeyError:
            return self.upsert_one({"github_pr_id": github_pr_id}, data)

    def find_by_number(self, github_repository_id: ObjectId, number: int) -> Optional[PullRequest]:
        return self.find_one({"github_repository_id": github_repository_id, "number": number})

    def find_by_repository(self, github_repository_id: ObjectId) -> List[PullRequest]:
        return self.find_many({"github_repository_id": github_repository_id})

    def find_by_author(self, github_repository_ids: List[ObjectId], login: str) -> List[PullRequest]:
        if not github_repository_ids or not login:
            return []
        return self.find_many(
            {"github_repository_id": {"$in": github_repository_ids}, "user.login": login},
            sort=[("github_created_at", -1)],
        )


class PullRequestReviewRepository(BaseRepository[PullRequestReview]):
    def __init__(self, db) -> None:
        super().__init__(db, "pr_reviews", PullRequestReview)

    def upsert_by_github_review_id(self, github_review_id: int, data: Dict[str, Any]) -> PullRequestReview:
        try:
            return self.upsert_one({"github_review_id": github_review_id}, data)
        except DuplicateKeyError:
            return self.upsert_one({"github_review_id": github_review_id}, data)

    def find_by_repository(self, github_repository_id: ObjectId) -> List[PullRequestReview]:
        return self.find_many({"github_repository_id": github_repository_id})

    def count_by_pull_request(self, pull_request_ids: List[ObjectId]) -> Dict[ObjectId, int]:
        if not pull_request_ids:
            return {}
        rows = self.aggregate(
            [
                {"$match": {"pull_request_id": {"$in": pull_request_ids}}},
                {"$group": {"_id": "$pull_request_id", "count": {"$sum": 1}}},
            ]
        )
        return {row["_id"]: row["count"] for row in rows}
