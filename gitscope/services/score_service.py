"""Activity score model and per-project weights."""

from dataclasses import dataclass

from bson import ObjectId
from pymongo.database import Database

from gitscope.entities.settings import ScoreSettings
from gitscope.repositories.settings import ScoreSettingsRepository

WEIGHT_FIELDS = ("additions", "deletions", "commits", "pull_requests", "comments")


@dataclass
class ActivityCounts:
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    pull_requests: int = 0
    comments: int = 0

    def is_empty(self) -> bool:
        return not (self.commits or self.additions or self.deletions or self.pull_requests or self.comments)


def calculate_score(counts: ActivityCounts, weights: ScoreSettings) -> int:
    return (
        counts.commits * weights.commits
        + counts.additions * weights.additions
        + counts.deletions * weights.deletions
        + counts.pull_requests * weights.pull_requests
        + counts.comments * weights.comments
    )


def validate_score_settings(weights: ScoreSettings) -> None:
    for field in WEIGHT_FIELDS:
        if getattr(weights, field) < 0:
            raise ValueError(f"Score weight '{field}' must be non-negative")


class ScoreSettingsService:
    def __init__(self, db: Database):
        self.repo = ScoreSettingsRepository(db)

    def get_or_default(self, project_id: ObjectId) -> ScoreSettings:
        stored = self.repo.find_by_project(project_id)
        return stored or ScoreSettings(project_id=project_id)

    def update(self, weights: ScoreSettings) -> ScoreSettings:
        validate_score_settings(weights)
        return self.repo.save(weights)
