import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    ProgressionRuleRepository,
    UserProgressionRepository,
    WeeklyVolumeRepository,
    ExerciseCatalogRepository,
    WorkoutSessionRepository,
)
from progression_service import ProgressionService
from volume_service import VolumeService
from tracking_service import TrackingService
from errors import ValidationError, NotFoundError


@pytest.fixture()
def tracking(tmp_path):
    db_file = str(tmp_path / "tracking.db")
    progression = ProgressionService(
        ProgressionRuleRepository(db_file), UserProgressionRepository(db_file)
    )
    volume = VolumeService(
        WeeklyVolumeRepository(db_file), ExerciseCatalogRepository(db_file)
    )
    return TrackingService(WorkoutSessionRepository(db_file), progression, volume)


def test_record_exercise_updates_progression_and_volume(tracking):
    sid = tracking.start_session("u1", "2024-02-15")
    result = tracking.record_exercise(sid, "benchpress", 100, 3, 10)
    assert result["progression"]["current_weight"] == 100
    assert result["progression"]["sessions_at_weight"] == 1
    assert result["volume"]["week_start"] == "2024-02-12"
    weekly = tracking.volume.get_weekly_volume("u1", "2024-02-12")
    assert {v["muscle_group"]: v["volume"] for v in weekly["volumes"]} == {
        "chest": 3000,
        "shoulders": 3000,
        "triceps": 3000,
    }


def test_session_count_grows_across_sessions(tracking):
    for day in ("2024-02-12", "2024-02-14"):
        sid = tracking.start_session("u1", day)
        result = tracking.record_exercise(sid, "squat", 120, 5, 5)
    assert result["progression"]["sessions_at_weight"] == 2


def test_unknown_exercise_is_still_recorded(tracking):
    sid = tracking.start_session("u1", "2024-02-15")
    result = tracking.record_exercise(sid, "unicycle", 0, 1, 1)
    assert result["volume"] is None
    assert tracking.get_last_weight("u1", "unicycle") == 0


def test_missing_session(tracking):
    with pytest.raises(NotFoundError):
        tracking.record_exercise(999, "squat", 100, 3, 5)


def test_record_validation(tracking):
    sid = tracking.start_session("u1", "2024-02-15")
    with pytest.raises(ValidationError):
        tracking.record_exercise(sid, "squat", -5, 3, 5)
    with pytest.raises(ValidationError):
        tracking.record_exercise(sid, "squat", 100, 0, 5)
    with pytest.raises(ValidationError):
        tracking.record_exercise(sid, "", 100, 3, 5)
    assert tracking.get_last_weight("u1", "squat") is None


def test_start_session_validation(tracking):
    with pytest.raises(ValidationError):
        tracking.start_session("u1", "yesterday")
    with pytest.raises(ValidationError):
        tracking.start_session("", "2024-02-15")


def test_history_and_last_weight(tracking):
    first = tracking.start_session("u1", "2024-02-12")
    tracking.record_exercise(first, "deadlift", 140, 3, 5)
    second = tracking.start_session("u1", "2024-02-15")
    tracking.record_exercise(second, "deadlift", 150, 3, 5, notes="felt strong")
    other = tracking.start_session("u2", "2024-02-16")
    tracking.record_exercise(other, "deadlift", 200, 1, 1)

    assert tracking.get_last_weight("u1", "deadlift") == 150
    history = tracking.get_workout_history("u1", "deadlift")
    assert [h["date"] for h in history] == ["2024-02-15", "2024-02-12"]
    assert history[0]["notes"] == "felt strong"
    assert len(tracking.get_workout_history("u1", "deadlift", limit=1)) == 1
    with pytest.raises(ValidationError):
        tracking.get_workout_history("u1", "deadlift", limit=0)


def test_tracking_without_collaborators(tmp_path):
    service = TrackingService(WorkoutSessionRepository(str(tmp_path / "plain.db")))
    sid = service.start_session("u1", "2024-02-15")
    assert service.record_exercise(sid, "squat", 100, 3, 5) == {"id": 1}


def test_non_finite_record_rejected(tracking):
    sid = tracking.start_session("u1", "2024-02-15")
    with pytest.raises(ValidationError, match="weight"):
        tracking.record_exercise(sid, "squat", float("nan"), 3, 5)
    with pytest.raises(ValidationError, match="reps"):
        tracking.record_exercise(sid, "squat", 100, 3, float("inf"))
    assert tracking.get_workout_history("u1", "squat") == []
