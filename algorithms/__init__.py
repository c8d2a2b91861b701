from .progression_advisor import ProgressionAdvisor, ProgressionRule, UserProgression, Suggestion
from .balance_analyzer import BalanceAnalyzer
from .workout_ranker import WorkoutSuggestionRanker, MuscleGroupSuggestion
from .week_tools import week_start, parse_date

__all__ = [
    "ProgressionAdvisor",
    "ProgressionRule",
    "UserProgression",
    "Suggestion",
    "BalanceAnalyzer",
    "WorkoutSuggestionRanker",
    "MuscleGroupSuggestion",
    "week_start",
    "parse_date",
]
