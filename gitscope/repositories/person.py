"""Repositories for commit-author and GitHub identities."""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from gitscope.entities.person import (
    EmailMerge,
    GithubPerson,
    GitHubPersonEmail,
    Person,
    ProjectGithubPerson,
)
from gitscope.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class PersonRepository(BaseRepository[Person]):
    def __init__(self, db) -> None:
        super().__init__(db, "people", Person)

    def find_by_email(self, email: str) -> Optional[Person]:
        return self.find_one({"primary_email": email})

    def get_or_create_by_email(self, email: str, name: str) -> Person:
        """
        Return the person owning ``email``, creating it when absent.

        Two commit workers can race to insert the same author. The unique
        index on primary_email makes the loser raise DuplicateKeyError, after
        which the winner's row is read back once.
        """
        existing = self.find_by_email(email)
        if existing:
            return existing
        try:
            return self.insert_one(Person(name=name, primary_email=email))
        except DuplicateKeyError:
            logger.debug(f"Person {email} inserted concurrently, re-reading")
            person = self.find_by_email(email)
            if person is None:
                raise
            return person

    def update_name(self, person_id: ObjectId, name: str) -> Optional[Person]:
        return self.update_one(person_id, {"name": name})

    def find_by_ids(self, person_ids: List[ObjectId]) -> List[Person]:
        if not person_ids:
            return []
        return self.find_many({"_id": {"$in": person_ids}})


class GithubPersonRepository(BaseRepository[GithubPerson]):
    def __init__(self, db) -> None:
        super().__init__(db, "github_people", GithubPerson)

    def find_by_github_user_id(self, github_user_id: int) -> Optional[GithubPerson]:
        return self.find_one({"github_user_id": github_user_id})

    def find_by_login(self, login: str) -> Optional[GithubPerson]:
        return self.find_one({"login": login})

    def upsert_by_github_user_id(self, github_user_id: int, data: Dict[str, Any]) -> GithubPerson:
        # Missing fields must not wipe what an earlier richer payload stored
        data = {key: value for key, value in data.items() if value is not None}
        try:
            return self.upsert_one({"github_user_id": github_user_id}, data)
        except DuplicateKeyError:
            # Concurrent upsert inserted first; the retry becomes an update
            return self.upsert_one({"github_user_id": github_user_id}, data)

    def find_by_ids(self, ids: List[ObjectId]) -> List[GithubPerson]:
        if not ids:
            return []
        return self.find_many({"_id": {"$in": ids}}, sort=[("login", 1)])


class ProjectGithubPersonRepository(BaseRepository[ProjectGithubPerson]):
    def __init__(self, db) -> None:
        super().__init__(db, "project_github_people", ProjectGithubPerson)

    def attach(self, project_id: ObjectId, github_person_id: ObjectId, source_type: str) -> ProjectGithubPerson:
        """Link a person to a project; an existing live link keeps its first source."""
        key = {
            "project_id": project_id,
            "github_person_id": github_person_id,
            "is_deleted": False,
        }
        existing = self.find_one(key)
        if existing:
            return existing
        try:
            return self.insert_one(ProjectGithubPerson(source_type=source_type, **key))
        except DuplicateKeyError:
            return self.find_one(key)

    def find_person_ids_by_project(self, project_id: ObjectId) -> List[ObjectId]:
        docs = self.collection.find(
            {"project_id": project_id, "is_deleted": False}, {"github_person_id": 1}
        )
        return [doc["github_person_id"] for doc in docs]


class GitHubPersonEmailRepository(BaseRepository[GitHubPersonEmail]):
    def __init__(self, db) -> None:
        super().__init__(db, "github_person_emails", GitHubPersonEmail)

    def find_by_project(self, project_id: ObjectId) -> List[GitHubPersonEmail]:
        return self.find_many({"project_id": project_id})

    def link(self, project_id: ObjectId, github_person_id: ObjectId, person_id: ObjectId) -> GitHubPersonEmail:
        """
        Associate a GitHub person with a commit-author person in a project.

        Replaces any association either side already had, keeping the mapping
        one-to-one within the project.
        """
        self.collection.delete_many(
            {
                "project_id": project_id,
                "$or": [{"github_person_id": github_person_id}, {"person_id": person_id}],
            }
        )
        return self.insert_one(
            GitHubPersonEmail(
                project_id=project_id,
                github_person_id=github_person_id,
                person_id=person_id,
            )
        )

    def find_by_person(self, project_id: ObjectId, person_id: ObjectId) -> Optional[GitHubPersonEmail]:
        return self.find_one({"project_id": project_id, "person_id": person_id})


class EmailMergeRepository(BaseRepository[EmailMerge]):
    def __init__(self, db) -> None:
        super().__init__(db, "email_merges", EmailMerge)

    def merge_map(self, project_id: ObjectId) -> Dict[str, str]:
        """source_email -> target_email for the project."""
        return {
            doc["source_email"]: doc["target_email"]
            for doc in self.collection.find({"project_id": project_id})
        }

    def add_merge(self, project_id: ObjectId, source_email: str, target_email: str) -> EmailMerge:
        if source_email == target_email:
            raise ValueError("An email cannot be merged into itself")
        return self.upsert_one(
            {"project_id": project_id, "source_email": source_email},
            {"target_email": target_email},
        )
