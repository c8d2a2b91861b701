from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Mapping, Tuple

from .balance_analyzer import BalanceAnalyzer

logger = logging.getLogger(__name__)

HIGH = "high"
MEDIUM = "medium"
LOW = "low"
PRIORITY_ORDER = {HIGH: 0, MEDIUM: 1, LOW: 2}


@dataclass(frozen=True)
class MuscleGroupSuggestion:
    muscle_group: str
    reason: str
    priority: str

    def to_dict(self) -> dict:
        return asdict(self)


class WorkoutSuggestionRanker:
    """Rank muscle groups to train next from frequency and weekly volume."""

    CANONICAL_GROUPS: Tuple[str, ...] = ("chest", "back", "legs", "shoulders", "arms", "core")
    COMPLEMENTARY_PAIRS: Tuple[Tuple[str, str], ...] = (
        ("chest", "back"),
        ("legs", "core"),
        ("shoulders", "arms"),
    )
    HIGH_CUTOFF: float = 0.3
    MEDIUM_CUTOFF: float = 0.5
    PAIR_DIFFERENCE: int = 1
    BASELINE: Tuple[Tuple[str, str], ...] = (
        ("chest", HIGH),
        ("back", HIGH),
        ("legs", HIGH),
        ("shoulders", MEDIUM),
        ("arms", LOW),
    )

    @staticmethod
    def pair_lookup(pairs: Iterable[Tuple[str, str]]) -> Dict[str, str]:
        lookup: Dict[str, str] = {}
        for a, b in pairs:
            lookup[a] = b
            lookup[b] = a
        return lookup

    @classmethod
    def baseline_suggestions(cls, limit: int) -> List[MuscleGroupSuggestion]:
        return [
            MuscleGroupSuggestion(group, "no recent workouts: start with a balanced base", priority)
            for group, priority in cls.BASELINE
        ][: max(limit, 0)]

    @staticmethod
    def sort_by_priority(
        suggestions: List[MuscleGroupSuggestion],
    ) -> List[MuscleGroupSuggestion]:
        return sorted(suggestions, key=lambda s: PRIORITY_ORDER[s.priority])

    @classmethod
    def rank(
        cls,
        frequency: Mapping[str, int],
        volumes: List[Tuple[str, float]],
        limit: int,
        *,
        groups: Iterable[str] | None = None,
        pairs: Iterable[Tuple[str, str]] | None = None,
        high_cutoff: float | None = None,
        medium_cutoff: float | None = None,
        pair_difference: int | None = None,
    ) -> List[MuscleGroupSuggestion]:
        groups = list(cls.CANONICAL_GROUPS if groups is None else groups)
        partner = cls.pair_lookup(cls.COMPLEMENTARY_PAIRS if pairs is None else pairs)
        high_cut = cls.HIGH_CUTOFF if high_cutoff is None else high_cutoff
        medium_cut = cls.MEDIUM_CUTOFF if medium_cutoff is None else medium_cutoff
        pair_diff = cls.PAIR_DIFFERENCE if pair_difference is None else pair_difference

        average = BalanceAnalyzer.average(volumes)
        by_group: Dict[str, float] = {}
        for group, volume in volumes:
            by_group[group] = by_group.get(group, 0.0) + float(volume)

        emitted: List[MuscleGroupSuggestion] = []
        for group in groups:
            freq = int(frequency.get(group, 0))
            volume = by_group.get(group, 0.0)
            if freq == 0 and volume < high_cut * average:
                emitted.append(
                    MuscleGroupSuggestion(
                        group,
                        f"not trained recently and weekly volume {volume:g} is below "
                        f"{high_cut:.0%} of the average {average:g}",
                        HIGH,
                    )
                )
            elif freq <= 1 or volume < medium_cut * average:
                if freq <= 1:
                    reason = f"trained only {freq} time(s) recently"
                else:
                    reason = (
                        f"weekly volume {volume:g} is below {medium_cut:.0%} "
                        f"of the average {average:g}"
                    )
                emitted.append(MuscleGroupSuggestion(group, reason, MEDIUM))
            else:
                other = partner.get(group)
                if other is None:
                    continue
                other_freq = int(frequency.get(other, 0))
                if other_freq - freq > pair_diff:
                    emitted.append(
                        MuscleGroupSuggestion(
                            group,
                            f"{other} trained {other_freq} times vs {freq} for {group}",
                            LOW,
                        )
                    )
        ranked = cls.sort_by_priority(emitted)[: max(limit, 0)]
        logger.debug("ranked muscle groups: %s", [(s.muscle_group, s.priority) for s in ranked])
        return ranked
