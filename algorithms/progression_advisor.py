from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Optional

logger = logging.getLogger(__name__)

INCREASE = "increase"
MAINTAIN = "maintain"
DELOAD = "deload"


@dataclass(frozen=True)
class ProgressionRule:
    exercise: str
    increment: float
    deload_threshold: float
    target_sessions: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class UserProgression:
    user_id: str
    exercise: str
    current_weight: float
    sessions_at_weight: int
    last_updated: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Suggestion:
    new_weight: float
    action: str
    reason: str

    def to_dict(self) -> dict:
        return asdict(self)


class ProgressionAdvisor:
    """Turn a progression rule and a tracked state into a weight suggestion.

    The advisor only reads. Persisting the outcome of a session is done
    separately through ``UserProgressionRepository.record_weight``.
    """

    DELOAD_FACTOR: float = 0.9

    @classmethod
    def advise(
        cls,
        rule: ProgressionRule,
        state: Optional[UserProgression],
        last_weight: float,
        deload_factor: float | None = None,
    ) -> Suggestion:
        factor = cls.DELOAD_FACTOR if deload_factor is None else deload_factor
        if state is None:
            suggestion = Suggestion(
                last_weight, MAINTAIN, "first session: establish baseline"
            )
        elif state.sessions_at_weight >= rule.target_sessions:
            if last_weight == state.current_weight:
                suggestion = Suggestion(
                    state.current_weight + rule.increment,
                    INCREASE,
                    f"completed {rule.target_sessions} target sessions",
                )
            else:
                suggestion = Suggestion(last_weight, MAINTAIN, "already progressing")
        elif last_weight < state.current_weight * (1 - rule.deload_threshold):
            # never suggest less than what was actually lifted
            suggestion = Suggestion(
                max(state.current_weight * factor, last_weight),
                DELOAD,
                "significant drop detected",
            )
        else:
            suggestion = Suggestion(
                state.current_weight,
                MAINTAIN,
                "continue toward target sessions "
                f"({state.sessions_at_weight} of {rule.target_sessions})",
            )
        logger.debug(
            "advice for %s: %s -> %s", rule.exercise, suggestion.action, suggestion.new_weight
        )
        return suggestion
