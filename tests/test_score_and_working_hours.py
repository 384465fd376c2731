"""Tests for the score model and the overtime predicate."""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from gitscope.entities.settings import ScoreSettings, WorkingHoursSettings
from gitscope.services.score_service import (
    ActivityCounts,
    ScoreSettingsService,
    calculate_score,
    validate_score_settings,
)
from gitscope.services.working_hours_service import (
    WorkingHoursService,
    is_overtime,
    validate_working_hours,
)

PLUS_SEVEN = timezone(timedelta(hours=7))


class TestScore:
    def test_default_weights(self):
        weights = ScoreSettings(project_id=ObjectId())
        counts = ActivityCounts(commits=5, additions=100, deletions=50, pull_requests=2, comments=10)

        assert calculate_score(counts, weights) == 1340

    def test_custom_weights(self):
        weights = ScoreSettings(
            project_id=ObjectId(), additions=2, deletions=1, commits=5, pull_requests=10, comments=50
        )
        counts = ActivityCounts(commits=3, additions=150, deletions=75, pull_requests=1, comments=5)

        assert calculate_score(counts, weights) == 650

    def test_empty_counts(self):
        assert ActivityCounts().is_empty()
        assert calculate_score(ActivityCounts(), ScoreSettings(project_id=ObjectId())) == 0

    def test_negative_weight_is_rejected(self):
        with pytest.raises(ValueError):
            validate_score_settings(ScoreSettings(project_id=ObjectId(), comments=-1))

    def test_service_falls_back_to_defaults_and_persists(self, db):
        service = ScoreSettingsService(db)
        project_id = ObjectId()

        assert service.get_or_default(project_id).commits == 10

        service.update(ScoreSettings(project_id=project_id, commits=7))
        service.update(ScoreSettings(project_id=project_id, commits=8))

        assert service.get_or_default(project_id).commits == 8
        assert service.repo.count({"project_id": project_id}) == 1


class TestWorkingHours:
    @pytest.fixture
    def settings(self):
        return WorkingHoursSettings(project_id=ObjectId())

    def test_inside_working_hours(self, settings):
        # 2024-05-06 is a Monday
        assert not is_overtime(settings, datetime(2024, 5, 6, 9, 0, tzinfo=PLUS_SEVEN))
        assert not is_overtime(settings, datetime(2024, 5, 6, 17, 59, tzinfo=PLUS_SEVEN))

    def test_outside_working_hours(self, settings):
        assert is_overtime(settings, datetime(2024, 5, 6, 8, 59, tzinfo=PLUS_SEVEN))
        assert is_overtime(settings, datetime(2024, 5, 6, 18, 0, tzinfo=PLUS_SEVEN))

    def test_non_working_day(self, settings):
        assert is_overtime(settings, datetime(2024, 5, 11, 12, 0, tzinfo=PLUS_SEVEN))

    def test_custom_days(self):
        settings = WorkingHoursSettings(project_id=ObjectId(), saturday=True, monday=False)

        assert not is_overtime(settings, datetime(2024, 5, 11, 12, 0, tzinfo=PLUS_SEVEN))
        assert is_overtime(settings, datetime(2024, 5, 6, 12, 0, tzinfo=PLUS_SEVEN))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"start_hour": 18, "end_hour": 9},
            {"start_hour": 9, "end_hour": 9},
            {"end_hour": 24},
            {"start_hour": -1},
            {day: False for day in ("monday", "tuesday", "wednesday", "thursday", "friday")},
        ],
    )
    def test_invalid_settings(self, overrides):
        with pytest.raises(ValueError):
            validate_working_hours(WorkingHoursSettings(project_id=ObjectId(), **overrides))

    def test_service_round_trip(self, db):
        service = WorkingHoursService(db)
        project_id = ObjectId()
        service.update(WorkingHoursSettings(project_id=project_id, start_hour=8, end_hour=16))

        stored = service.get_or_default(project_id)
        assert (stored.start_hour, stored.end_hour) == (8, 16)
        assert service.is_overtime(project_id, datetime(2024, 5, 6, 16, 30, tzinfo=PLUS_SEVEN))
        with pytest.raises(ValueError):
            service.update(WorkingHoursSettings(project_id=project_id, start_hour=20, end_hour=10))
