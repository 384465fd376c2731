"""Repositories for users, projects and their GitHub repositories."""

from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId

from gitscope.entities.project import GitHubRepository, Project, ProjectRepository, User
from gitscope.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db) -> None:
        super().__init__(db, "users", User)


class ProjectRepo(BaseRepository[Project]):
    def __init__(self, db) -> None:
        super().__init__(db, "projects", Project)


class GitHubRepositoryRepository(BaseRepository[GitHubRepository]):
    """Remote repository mirror rows."""

    def __init__(self, db) -> None:
        super().__init__(db, "github_repositories", GitHubRepository)

    def mark_cloned(self, repository_id: ObjectId, local_path: str) -> Optional[GitHubRepository]:
        return self.update_one(
            repository_id,
            {
                "is_cloned": True,
                "local_path": local_path,
                "last_cloned": datetime.now(timezone.utc),
            },
        )


class ProjectRepositoryRepository(BaseRepository[ProjectRepository]):
    """Project -> repository links. Soft-deleted links are invisible to the pipeline."""

    def __init__(self, db) -> None:
        super().__init__(db, "project_repositories", ProjectRepository)

    def find_active(self, project_repository_id: ObjectId) -> Optional[ProjectRepository]:
        return self.find_one({"_id": project_repository_id, "is_deleted": {"$ne": True}})

    def find_tracked_by_project(self, project_id: ObjectId) -> List[ProjectRepository]:
        return self.find_many(
            {"project_id": project_id, "is_tracked": True, "is_deleted": {"$ne": True}},
            sort=[("created_at", 1)],
        )

    def mark_analyzed(self, project_repository_id: ObjectId) -> Optional[ProjectRepository]:
        return self.update_one(
            project_repository_id,
            {"is_analyzed": True, "last_analyzed": datetime.now(timezone.utc)},
        )

    def mark_fetched(self, project_repository_id: ObjectId) -> Optional[ProjectRepository]:
        return self.update_one(
            project_repository_id, {"last_fetched": datetime.now(timezone.utc)}
        )
