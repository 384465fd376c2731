"""Working-hours settings and the overtime predicate."""

from datetime import datetime, timezone

from bson import ObjectId
from pymongo.database import Database

from gitscope.entities.settings import WorkingHoursSettings
from gitscope.repositories.settings import WorkingHoursSettingsRepository


def to_local(ts: datetime) -> datetime:
    """
    Naive and UTC timestamps are read in the process-local zone; any other
    aware timestamp is already in the author's zone and is kept as-is.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    if ts.utcoffset() == timezone.utc.utcoffset(None):
        return ts.astimezone()
    return ts


def is_overtime(settings: WorkingHoursSettings, ts: datetime) -> bool:
    local = to_local(ts)
    if not settings.is_working_day(local.weekday()):
        return True
    return local.hour < settings.start_hour or local.hour >= settings.end_hour


def validate_working_hours(settings: WorkingHoursSettings) -> None:
    for label, hour in (("start_hour", settings.start_hour), ("end_hour", settings.end_hour)):
        if not 0 <= hour <= 23:
            raise ValueError(f"{label} must be between 0 and 23")
    if settings.start_hour >= settings.end_hour:
        raise ValueError("start_hour must be before end_hour")
    if not any(settings.is_working_day(day) for day in range(7)):
        raise ValueError("At least one working day must be selected")


class WorkingHoursService:
    def __init__(self, db: Database):
        self.repo = WorkingHoursSettingsRepository(db)

    def get_or_default(self, project_id: ObjectId) -> WorkingHoursSettings:
        return self.repo.find_by_project(project_id) or WorkingHoursSettings(project_id=project_id)

    def update(self, settings: WorkingHoursSettings) -> WorkingHoursSettings:
        validate_working_hours(settings)
        return self.repo.save(settings)

    def is_overtime(self, project_id: ObjectId, ts: datetime) -> bool:
        return is_overtime(self.get_or_default(project_id), ts)
