"""Repositories for per-project settings records."""

from typing import List, Optional, Set

from bson import ObjectId

from gitscope.entities.settings import (
    ExcludedExtension,
    ExcludedFolder,
    ProjectUpdateSettings,
    ScoreSettings,
    WorkingHoursSettings,
)
from gitscope.repositories.base import BaseRepository


class ScoreSettingsRepository(BaseRepository[ScoreSettings]):
    def __init__(self, db) -> None:
        super().__init__(db, "score_settings", ScoreSettings)

    def find_by_project(self, project_id: ObjectId) -> Optional[ScoreSettings]:
        return self.find_one({"project_id": project_id})

    def save(self, settings: ScoreSettings) -> ScoreSettings:
        data = settings.model_dump(exclude={"id", "project_id", "created_at", "updated_at"})
        return self.upsert_one({"project_id": settings.project_id}, data)


class ExcludedExtensionRepository(BaseRepository[ExcludedExtension]):
    def __init__(self, db) -> None:
        super().__init__(db, "excluded_extensions", ExcludedExtension)

    def extension_set(self, project_id: ObjectId) -> Set[str]:
        """Lower-cased extensions without a leading dot."""
        return {
            doc["extension"].lower().lstrip(".")
            for doc in self.collection.find({"project_id": project_id})
            if doc.get("extension")
        }


class ExcludedFolderRepository(BaseRepository[ExcludedFolder]):
    def __init__(self, db) -> None:
        super().__init__(db, "excluded_folders", ExcludedFolder)

    def folder_list(self, project_id: ObjectId) -> List[str]:
        return [
            doc["folder_path"].strip("/")
            for doc in self.collection.find({"project_id": project_id})
            if doc.get("folder_path", "").strip("/")
        ]


class ProjectUpdateSettingsRepository(BaseRepository[ProjectUpdateSettings]):
    def __init__(self, db) -> None:
        super().__init__(db, "project_update_settings", ProjectUpdateSettings)

    def find_enabled(self) -> List[ProjectUpdateSettings]:
        return self.find_many({"enabled": True})

    def find_by_project(self, project_id: ObjectId) -> Optional[ProjectUpdateSettings]:
        return self.find_one({"project_id": project_id})

    def save(self, settings: ProjectUpdateSettings) -> ProjectUpdateSettings:
        return self.upsert_one(
            {"project_id": settings.project_id},
            {"enabled": settings.enabled, "hour": settings.hour},
        )


class WorkingHoursSettingsRepository(BaseRepository[WorkingHoursSettings]):
    def __init__(self, db) -> None:
        super().__init__(db, "working_hours_settings", WorkingHoursSettings)

    def find_by_project(self, project_id: ObjectId) -> Optional[WorkingHoursSettings]:
        return self.find_one({"project_id": project_id})

    def save(self, settings: WorkingHoursSettings) -> WorkingHoursSettings:
        data = settings.model_dump(exclude={"id", "project_id", "created_at", "updated_at"})
        return self.upsert_one({"project_id": settings.project_id}, data)
