from __future__ import annotations

import logging

from db import ProgressionRuleRepository, UserProgressionRepository, SettingsRepository
from algorithms.progression_advisor import (
    ProgressionAdvisor,
    ProgressionRule,
    UserProgression,
    Suggestion,
)
from errors import (
    ValidationError,
    NotFoundError,
    NoRuleFoundError,
    DuplicateError,
    require_id,
    require_number,
)

logger = logging.getLogger(__name__)


def _validate_rule_values(increment, deload_threshold, target_sessions) -> None:
    if require_number(increment, "increment") <= 0:
        raise ValidationError("increment must be greater than 0")
    if not 0 < require_number(deload_threshold, "deload_threshold") < 1:
        raise ValidationError("deload_threshold must be between 0 and 1 (exclusive)")
    if isinstance(target_sessions, bool):
        raise ValidationError("target_sessions must be a positive integer")
    target = require_number(target_sessions, "target_sessions")
    if target != int(target) or target <= 0:
        raise ValidationError("target_sessions must be a positive integer")


class ProgressionService:
    """Manage progression rules and per-user working weights."""

    RULE_FIELDS = ("increment", "deload_threshold", "target_sessions")

    def __init__(
        self,
        rule_repo: ProgressionRuleRepository,
        progression_repo: UserProgressionRepository,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.rules = rule_repo
        self.progressions = progression_repo
        self.settings = settings_repo

    def create_rule(
        self,
        exercise: str,
        increment: float,
        deload_threshold: float,
        target_sessions: int,
    ) -> ProgressionRule:
        exercise = require_id(exercise, "exercise")
        _validate_rule_values(increment, deload_threshold, target_sessions)
        try:
            rule = self.rules.add(
                exercise, float(increment), float(deload_threshold), int(target_sessions)
            )
        except ValueError:
            raise DuplicateError(f"progression rule already exists for exercise {exercise}")
        logger.info("created progression rule for %s", exercise)
        return rule

    def get_rule(self, exercise: str) -> ProgressionRule:
        exercise = require_id(exercise, "exercise")
        rule = self.rules.fetch(exercise)
        if rule is None:
            raise NotFoundError(f"no progression rule found for exercise {exercise}")
        return rule

    def list_rules(self) -> list[ProgressionRule]:
        return self.rules.fetch_rules()

    def update_rule(self, exercise: str, **changes) -> ProgressionRule:
        """Apply a partial update; omitted (or ``None``) fields keep their value."""
        unknown = set(changes) - set(self.RULE_FIELDS)
        if unknown:
            raise ValidationError(f"unknown rule fields: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            raise ValidationError("at least one field must be provided")
        current = self.get_rule(exercise)
        merged = current.to_dict()
        merged.update(changes)
        _validate_rule_values(
            merged["increment"], merged["deload_threshold"], merged["target_sessions"]
        )
        updated = self.rules.update(
            current.exercise,
            float(merged["increment"]),
            float(merged["deload_threshold"]),
            int(merged["target_sessions"]),
        )
        if not updated:
            raise NotFoundError(f"no progression rule found for exercise {current.exercise}")
        logger.info("updated progression rule for %s: %s", current.exercise, changes)
        return self.get_rule(current.exercise)

    def delete_rule(self, exercise: str) -> None:
        exercise = require_id(exercise, "exercise")
        if not self.rules.delete(exercise):
            raise NotFoundError(f"no progression rule found for exercise {exercise}")
        logger.info("deleted progression rule for %s", exercise)

    def _deload_factor(self) -> float:
        if self.settings is None:
            return ProgressionAdvisor.DELOAD_FACTOR
        return self.settings.get_float("deload_factor", ProgressionAdvisor.DELOAD_FACTOR)

    def suggest_weight(
        self,
        user_id: str,
        exercise: str,
        last_weight: float,
        last_sets: int,
        last_reps: int,
    ) -> Suggestion:
        user_id = require_id(user_id, "user")
        exercise = require_id(exercise, "exercise")
        rule = self.rules.fetch(exercise)
        if rule is None:
            raise NoRuleFoundError(f"no progression rule found for exercise {exercise}")
        last_weight = require_number(last_weight, "last_weight")
        if last_weight < 0:
            raise ValidationError("last_weight cannot be negative")
        if require_number(last_sets, "last_sets") <= 0:
            raise ValidationError("last_sets must be greater than 0")
        if require_number(last_reps, "last_reps") <= 0:
            raise ValidationError("last_reps must be greater than 0")
        state = self.progressions.fetch(user_id, exercise)
        return ProgressionAdvisor.advise(rule, state, last_weight, self._deload_factor())

    def record_progression(
        self, user_id: str, exercise: str, new_weight: float
    ) -> UserProgression:
        user_id = require_id(user_id, "user")
        exercise = require_id(exercise, "exercise")
        new_weight = require_number(new_weight, "new_weight")
        if new_weight < 0:
            raise ValidationError("new_weight cannot be negative")
        state = self.progressions.record_weight(user_id, exercise, new_weight)
        logger.info(
            "recorded %s for %s/%s (sessions at weight: %d)",
            new_weight,
            user_id,
            exercise,
            state.sessions_at_weight,
        )
        return state

    def get_progression(self, user_id: str, exercise: str) -> UserProgression:
        user_id = require_id(user_id, "user")
        exercise = require_id(exercise, "exercise")
        state = self.progressions.fetch(user_id, exercise)
        if state is None:
            raise NotFoundError(f"no progression tracked for {user_id} on {exercise}")
        return state

    def list_progressions(self, user_id: str) -> list[UserProgression]:
        return self.progressions.fetch_for_user(require_id(user_id, "user"))
