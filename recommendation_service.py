from __future__ import annotations

import logging
from typing import List, Protocol, Tuple

from db import WeeklyVolumeRepository, SettingsRepository
from algorithms.workout_ranker import WorkoutSuggestionRanker, MuscleGroupSuggestion
from algorithms.week_tools import week_start
from errors import ValidationError, require_id
from volume_service import MuscleGroupResolver

logger = logging.getLogger(__name__)


class SessionHistory(Protocol):
    """Feed of a user's recent workout sessions."""

    def recent_sessions(self, user_id: str, days: int) -> List[Tuple[int, str]]:
        ...

    def exercises_for_sessions(self, session_ids: List[int]) -> List[str]:
        ...


class RecommendationService:
    """Suggest which muscle groups to train next."""

    def __init__(
        self,
        history: SessionHistory,
        resolver: MuscleGroupResolver,
        volume_repo: WeeklyVolumeRepository,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.history = history
        self.resolver = resolver
        self.volumes = volume_repo
        self.settings = settings_repo

    def _default(self, key: str, fallback: int) -> int:
        if self.settings is None:
            return fallback
        return self.settings.get_int(key, fallback)

    def _ranking_options(self) -> dict:
        if self.settings is None:
            return {}
        return {
            "groups": self.settings.get_list("canonical_muscle_groups") or None,
            "pairs": self.settings.get_pairs("complementary_pairs") or None,
            "high_cutoff": self.settings.get_float(
                "rank_high_cutoff", WorkoutSuggestionRanker.HIGH_CUTOFF
            ),
            "medium_cutoff": self.settings.get_float(
                "rank_medium_cutoff", WorkoutSuggestionRanker.MEDIUM_CUTOFF
            ),
            "pair_difference": self.settings.get_int(
                "pair_difference", WorkoutSuggestionRanker.PAIR_DIFFERENCE
            ),
        }

    def muscle_group_frequency(self, exercises: List[str]) -> dict[str, int]:
        frequency: dict[str, int] = {}
        for exercise in exercises:
            for group in set(self.resolver.muscle_groups(exercise)):
                frequency[group] = frequency.get(group, 0) + 1
        return frequency

    def get_suggested_workouts(
        self,
        user_id: str,
        limit: int | None = None,
        lookback_days: int | None = None,
    ) -> List[MuscleGroupSuggestion]:
        user_id = require_id(user_id, "user")
        if limit is None:
            limit = self._default("default_suggestion_limit", 5)
        if lookback_days is None:
            lookback_days = self._default("default_lookback_days", 7)
        if limit <= 0:
            raise ValidationError("limit must be greater than 0")
        if lookback_days <= 0:
            raise ValidationError("lookback_days must be greater than 0")

        sessions = self.history.recent_sessions(user_id, lookback_days)
        if not sessions:
            logger.debug("no sessions for %s in %d days, using baseline", user_id, lookback_days)
            return WorkoutSuggestionRanker.baseline_suggestions(limit)

        exercises = self.history.exercises_for_sessions([sid for sid, _date in sessions])
        frequency = self.muscle_group_frequency(exercises)
        volumes = self.volumes.fetch_week(user_id, week_start())
        return WorkoutSuggestionRanker.rank(
            frequency, volumes, limit, **self._ranking_options()
        )
