from typing import Iterable, List, Tuple


class BalanceAnalyzer:
    """Flag muscle groups trained well below the weekly average."""

    THRESHOLD: float = 0.5

    @staticmethod
    def average(volumes: Iterable[Tuple[str, float]]) -> float:
        values = [float(v) for _g, v in volumes]
        if not values:
            return 0.0
        return sum(values) / len(values)

    @classmethod
    def find_imbalances(
        cls, volumes: List[Tuple[str, float]], threshold: float | None = None
    ) -> List[str]:
        """Return groups whose volume is below ``threshold`` times the mean.

        Only rows that exist are examined; a group absent from ``volumes`` is
        never reported.
        """
        if not volumes:
            return []
        cutoff = (cls.THRESHOLD if threshold is None else threshold) * cls.average(volumes)
        return [group for group, volume in volumes if volume < cutoff]
