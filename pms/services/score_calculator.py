"""
Achievement scoring.

    score(value, weight) = (value or 0) * weight

Values are reported on the percentage-of-target scale (80 == 80 % of
target) and weights are fractions of 1.0, so an 80 on a 0.25-weight
activity scores 20.0. All arithmetic here is unrounded; rounding happens
only in format_score() at presentation time so month and year rollups do
not compound rounding error.

Month rollups take (activity, achievement) pairs where achievement may be
None (nothing reported for that month):

    counted_weight  = Σ activity.weight            for achievement.status == COUNT
    achieved_weight = Σ score(value, weight)       for the same set
"""

from collections.abc import Iterable


def score(value: float | None, weight: float) -> float:
    """Weighted contribution of one achievement; NULL value scores as zero."""
    return (value or 0) * weight


def format_score(value: float | None, digits: int = 2) -> str:
    """Display rounding (two-decimal convention)."""
    return f"{(value or 0):.{digits}f}"


def is_counted(achievement) -> bool:
    return achievement is not None and achievement.status == "COUNT"


def counted_pairs(pairs: Iterable[tuple]) -> list[tuple]:
    """Filter (activity, achievement) pairs down to the COUNT ones."""
    return [(act, ach) for act, ach in pairs if is_counted(ach)]


def counted_weight(pairs: Iterable[tuple]) -> float:
    return sum(act.weight for act, _ in counted_pairs(pairs))


def achieved_weight(pairs: Iterable[tuple]) -> float:
    return sum(score(ach.value, act.weight) for act, ach in counted_pairs(pairs))
