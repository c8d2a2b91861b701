import os
import sys
import shutil
import datetime
import tempfile
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    ProgressionRuleRepository,
    UserProgressionRepository,
    WeeklyVolumeRepository,
    ExerciseCatalogRepository,
    WorkoutSessionRepository,
    SettingsRepository,
)
from progression_service import ProgressionService
from volume_service import VolumeService
from recommendation_service import RecommendationService
from tracking_service import TrackingService
from algorithms.workout_ranker import WorkoutSuggestionRanker
from errors import ValidationError


def _summary(suggestions):
    return [(s.muscle_group, s.priority) for s in suggestions]


class WorkoutSuggestionRankerTestCase(unittest.TestCase):
    EVEN = [(g, 1000.0) for g in WorkoutSuggestionRanker.CANONICAL_GROUPS]

    def test_baseline(self) -> None:
        baseline = WorkoutSuggestionRanker.baseline_suggestions(5)
        self.assertEqual(
            _summary(baseline),
            [
                ("chest", "high"),
                ("back", "high"),
                ("legs", "high"),
                ("shoulders", "medium"),
                ("arms", "low"),
            ],
        )
        self.assertEqual(len(WorkoutSuggestionRanker.baseline_suggestions(2)), 2)
        self.assertEqual(WorkoutSuggestionRanker.baseline_suggestions(0), [])

    def test_balanced_training_yields_nothing(self) -> None:
        freq = {g: 2 for g in WorkoutSuggestionRanker.CANONICAL_GROUPS}
        self.assertEqual(WorkoutSuggestionRanker.rank(freq, self.EVEN, 5), [])

    def test_rarely_trained_group_is_medium(self) -> None:
        freq = {g: 2 for g in WorkoutSuggestionRanker.CANONICAL_GROUPS}
        freq["back"] = 1
        ranked = WorkoutSuggestionRanker.rank(freq, self.EVEN, 5)
        self.assertEqual(_summary(ranked), [("back", "medium")])
        self.assertIn("1 time(s)", ranked[0].reason)

    def test_untrained_low_volume_group_is_high(self) -> None:
        freq = {g: 2 for g in WorkoutSuggestionRanker.CANONICAL_GROUPS}
        freq["legs"] = 0
        volumes = [(g, 1000.0) for g in WorkoutSuggestionRanker.CANONICAL_GROUPS if g != "legs"]
        volumes.append(("legs", 100.0))
        ranked = WorkoutSuggestionRanker.rank(freq, volumes, 5)
        self.assertEqual(_summary(ranked), [("legs", "high")])

    def test_high_volume_cutoff_is_strict(self) -> None:
        self.assertEqual(WorkoutSuggestionRanker.HIGH_CUTOFF, 0.3)
        groups = ["legs", "chest"]
        freq = {"legs": 0, "chest": 2}
        # average 1000, so the high cutoff sits at exactly 300
        at_cutoff = WorkoutSuggestionRanker.rank(
            freq, [("legs", 300.0), ("chest", 1700.0)], 5, groups=groups
        )
        self.assertEqual(_summary(at_cutoff), [("legs", "medium")])
        below = WorkoutSuggestionRanker.rank(
            freq, [("legs", 299.0), ("chest", 1701.0)], 5, groups=groups
        )
        self.assertEqual(_summary(below), [("legs", "high")])

    def test_untrained_without_volume_data_is_medium(self) -> None:
        ranked = WorkoutSuggestionRanker.rank({}, [], 10)
        self.assertEqual(
            _summary(ranked),
            [(g, "medium") for g in WorkoutSuggestionRanker.CANONICAL_GROUPS],
        )

    def test_medium_volume_cutoff_is_strict(self) -> None:
        groups = ["chest", "back"]
        freq = {"chest": 2, "back": 2}
        at_cutoff = WorkoutSuggestionRanker.rank(
            freq, [("chest", 250.0), ("back", 750.0)], 5, groups=groups
        )
        self.assertEqual(at_cutoff, [])
        below = WorkoutSuggestionRanker.rank(
            freq, [("chest", 249.0), ("back", 751.0)], 5, groups=groups
        )
        self.assertEqual(_summary(below), [("chest", "medium")])
        self.assertIn("below", below[0].reason)

    def test_neglected_partner_is_low(self) -> None:
        freq = {g: 2 for g in WorkoutSuggestionRanker.CANONICAL_GROUPS}
        freq["chest"] = 4
        ranked = WorkoutSuggestionRanker.rank(freq, self.EVEN, 5)
        self.assertEqual(_summary(ranked), [("back", "low")])
        self.assertEqual(ranked[0].reason, "chest trained 4 times vs 2 for back")

    def test_pair_difference_must_exceed_threshold(self) -> None:
        freq = {g: 2 for g in WorkoutSuggestionRanker.CANONICAL_GROUPS}
        freq["chest"] = 3
        self.assertEqual(WorkoutSuggestionRanker.rank(freq, self.EVEN, 5), [])

    def test_sorted_by_priority_and_limited(self) -> None:
        freq = {"chest": 5, "back": 2, "legs": 0, "shoulders": 1, "arms": 2, "core": 2}
        volumes = [
            ("chest", 1000.0),
            ("back", 1000.0),
            ("legs", 0.0),
            ("shoulders", 1000.0),
            ("arms", 1000.0),
            ("core", 1000.0),
        ]
        ranked = WorkoutSuggestionRanker.rank(freq, volumes, 5)
        self.assertEqual(
            _summary(ranked),
            [("legs", "high"), ("shoulders", "medium"), ("back", "low")],
        )
        self.assertEqual(
            _summary(WorkoutSuggestionRanker.rank(freq, volumes, 2)),
            [("legs", "high"), ("shoulders", "medium")],
        )


class RecommendationServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.mkdtemp()
        db_path = os.path.join(self.tmp, "recommend.db")
        yaml_path = os.path.join(self.tmp, "settings.yaml")
        self.settings = SettingsRepository(db_path, yaml_path)
        self.sessions = WorkoutSessionRepository(db_path)
        catalog = ExerciseCatalogRepository(db_path)
        volumes = WeeklyVolumeRepository(db_path)
        self.tracking = TrackingService(
            self.sessions,
            ProgressionService(
                ProgressionRuleRepository(db_path),
                UserProgressionRepository(db_path),
                self.settings,
            ),
            VolumeService(volumes, catalog, self.settings),
        )
        self.service = RecommendationService(
            self.sessions, catalog, volumes, self.settings
        )
        self.today = datetime.datetime.now(datetime.timezone.utc).date()

    def tearDown(self) -> None:
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _train(self, exercise: str, days_ago: int = 0) -> None:
        day = (self.today - datetime.timedelta(days=days_ago)).isoformat()
        sid = self.tracking.start_session("u1", day)
        self.tracking.record_exercise(sid, exercise, 100, 3, 5)

    def test_new_user_gets_baseline(self) -> None:
        suggestions = self.service.get_suggested_workouts("u1")
        self.assertEqual(len(suggestions), 5)
        self.assertEqual(
            [s.muscle_group for s in suggestions if s.priority == "high"],
            ["chest", "back", "legs"],
        )
        self.assertEqual(len(self.service.get_suggested_workouts("u1", limit=3)), 3)

    def test_old_sessions_fall_outside_lookback(self) -> None:
        self._train("benchpress", days_ago=30)
        suggestions = self.service.get_suggested_workouts("u1", lookback_days=7)
        self.assertEqual(suggestions, WorkoutSuggestionRanker.baseline_suggestions(5))

    def test_chest_only_training(self) -> None:
        for _ in range(3):
            self._train("benchpress")
        freq = self.service.muscle_group_frequency(["benchpress", "benchpress"])
        self.assertEqual(freq["chest"], 2)
        suggestions = self.service.get_suggested_workouts("u1")
        self.assertEqual(
            _summary(suggestions),
            [("back", "high"), ("legs", "high"), ("arms", "high"), ("core", "high")],
        )

    def test_canonical_groups_setting(self) -> None:
        self._train("benchpress")
        self.settings.set_text("canonical_muscle_groups", "chest,legs")
        suggestions = self.service.get_suggested_workouts("u1")
        self.assertEqual([s.muscle_group for s in suggestions], ["legs", "chest"])

    def test_invalid_arguments(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.get_suggested_workouts("u1", limit=0)
        with self.assertRaises(ValidationError):
            self.service.get_suggested_workouts("u1", lookback_days=-1)
        with self.assertRaises(ValidationError):
            self.service.get_suggested_workouts("")


if __name__ == "__main__":
    unittest.main()
