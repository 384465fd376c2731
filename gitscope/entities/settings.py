"""
Per-project settings records.
"""

from pydantic import Field

from .base import BaseEntity, PyObjectId


class ScoreSettings(BaseEntity):
    project_id: PyObjectId
    additions: int = 1
    deletions: int = 3
    commits: int = 10
    pull_requests: int = 20
    comments: int = 100


class ExcludedExtension(BaseEntity):
    project_id: PyObjectId
    extension: str = Field(..., description="Extension without the dot, e.g. 'lock'")


class ExcludedFolder(BaseEntity):
    project_id: PyObjectId
    folder_path: str = Field(..., description="Repository-relative folder, e.g. 'vendor'")


class ProjectUpdateSettings(BaseEntity):
    project_id: PyObjectId
    enabled: bool = False
    hour: int = Field(0, ge=0, le=23, description="Local hour at which auto-update fires")


class WorkingHoursSettings(BaseEntity):
    project_id: PyObjectId
    start_hour: int = 9
    end_hour: int = 18
    monday: bool = True
    tuesday: bool = True
    wednesday: bool = True
    thursday: bool = True
    friday: bool = True
    saturday: bool = False
    sunday: bool = False

    def is_working_day(self, weekday: int) -> bool:
        """weekday follows datetime.weekday(): Monday is 0."""
        flags = (
            self.monday,
            self.tuesday,
            self.wednesday,
            self.thursday,
            self.friday,
            self.saturday,
            self.sunday,
        )
        return flags[weekday]
