from __future__ import annotations

import logging
import math
from typing import List, Protocol

from db import WeeklyVolumeRepository, SettingsRepository
from algorithms.balance_analyzer import BalanceAnalyzer
from algorithms.week_tools import week_start as compute_week_start
from errors import ValidationError, NotFoundError, require_id, require_number

logger = logging.getLogger(__name__)


class MuscleGroupResolver(Protocol):
    """Maps an exercise to the muscle groups it trains."""

    def muscle_groups(self, exercise: str) -> List[str]:
        ...


class VolumeService:
    """Accumulate weekly training volume and check muscle group balance."""

    def __init__(
        self,
        volume_repo: WeeklyVolumeRepository,
        resolver: MuscleGroupResolver,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.volumes = volume_repo
        self.resolver = resolver
        self.settings = settings_repo

    def update_volume(
        self,
        user_id: str,
        exercise: str,
        sets: int,
        reps: int,
        weight: float,
        week_start: str | None = None,
    ) -> dict:
        user_id = require_id(user_id, "user")
        exercise = require_id(exercise, "exercise")
        if require_number(sets, "sets") <= 0:
            raise ValidationError("sets must be greater than 0")
        if require_number(reps, "reps") <= 0:
            raise ValidationError("reps must be greater than 0")
        if require_number(weight, "weight") < 0:
            raise ValidationError("weight cannot be negative")
        week = compute_week_start(week_start)
        groups = list(dict.fromkeys(self.resolver.muscle_groups(exercise)))
        if not groups:
            raise NotFoundError(f"no muscle groups known for exercise {exercise}")
        contribution = sets * reps * weight
        if not math.isfinite(contribution):
            raise ValidationError("sets * reps * weight is too large")
        self.volumes.add_volume(user_id, groups, week, contribution)
        logger.info(
            "added %s volume to %s for %s (week %s)", contribution, groups, user_id, week
        )
        return {
            "week_start": week,
            "muscle_groups": groups,
            "contribution": contribution,
        }

    def get_weekly_volume(self, user_id: str, week_start: str | None = None) -> dict:
        user_id = require_id(user_id, "user")
        week = compute_week_start(week_start)
        rows = self.volumes.fetch_week(user_id, week)
        return {
            "week_start": week,
            "volumes": [{"muscle_group": g, "volume": v} for g, v in rows],
        }

    def _threshold(self) -> float:
        if self.settings is None:
            return BalanceAnalyzer.THRESHOLD
        return self.settings.get_float("balance_threshold", BalanceAnalyzer.THRESHOLD)

    def check_balance(self, user_id: str, week_start: str | None = None) -> List[str]:
        user_id = require_id(user_id, "user")
        week = compute_week_start(week_start)
        rows = self.volumes.fetch_week(user_id, week)
        imbalance = BalanceAnalyzer.find_imbalances(rows, self._threshold())
        logger.debug("balance for %s week %s: %s", user_id, week, imbalance)
        return imbalance
