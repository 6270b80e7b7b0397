"""
Activity weight allocation rule.

An IPP's Category caps how much of the plan may sit in each activity
category (ROUTINE / NON_ROUTINE / PROJECT), and the weights across all
activities must add up to 100 %.

  - Editing is allowed at any total; drafts may be out of balance.
  - Over-limit on a category is surfaced as a warning while editing
    (check_category_limits) and blocks submission (validate).
  - The 100 % total is checked only at submission time.

Usage:
    from pms.services.weight_allocator import validate, check_category_limits

    warnings = check_category_limits(ipp.activities, ipp.category)
    validate(ipp.activities, ipp.category)     # raises WeightError
"""

from collections.abc import Iterable

from pms.core.exceptions import WeightError
from pms.models import ACTIVITY_CATEGORIES

TOTAL_EPSILON = 0.0001


def weights_by_category(activities: Iterable) -> dict[str, float]:
    """Sum activity weights per category; every category key is present."""
    totals = {cat: 0.0 for cat in ACTIVITY_CATEGORIES}
    for act in activities:
        if act.category in totals:
            totals[act.category] += act.weight or 0.0
    return totals


def total_weight(activities: Iterable) -> float:
    return sum(weights_by_category(activities).values())


def check_category_limits(activities: Iterable, category) -> list[dict]:
    """Return one warning dict per category whose weight sum exceeds its limit.

    Empty list means every category is within its envelope. Never raises.
    """
    warnings = []
    for cat, total in weights_by_category(activities).items():
        limit = category.limit_for(cat)
        if total > limit + TOTAL_EPSILON:
            warnings.append({
                "category": cat,
                "total": total,
                "limit": limit,
                "message": (
                    f"{cat} weight {total * 100:.1f}% exceeds the "
                    f"{limit * 100:.1f}% limit of category '{category.name}'"
                ),
            })
    return warnings


def allocation_report(activities: Iterable, category) -> dict:
    """Per-category totals vs limits plus the grand total, for editors."""
    activities = list(activities)
    totals = weights_by_category(activities)
    grand = sum(totals.values())
    return {
        "category_id": category.id,
        "category_name": category.name,
        "by_category": {
            cat: {
                "total": total,
                "limit": category.limit_for(cat),
                "over_limit": total > category.limit_for(cat) + TOTAL_EPSILON,
            }
            for cat, total in totals.items()
        },
        "total": grand,
        "balanced": abs(grand - 1.0) <= TOTAL_EPSILON,
    }


def validate(activities: Iterable, category) -> None:
    """Enforce the full allocation rule (submission gate).

    Raises:
        WeightError(CATEGORY_EXCEEDED) when any category sum is over its limit.
        WeightError(TOTAL_NOT_100) when the grand total is not 1.0 ± 0.0001.
    """
    activities = list(activities)
    exceeded = check_category_limits(activities, category)
    if exceeded:
        raise WeightError(
            WeightError.CATEGORY_EXCEEDED,
            "; ".join(w["message"] for w in exceeded),
            details={"exceeded": exceeded},
        )

    grand = total_weight(activities)
    if abs(grand - 1.0) > TOTAL_EPSILON:
        raise WeightError(
            WeightError.TOTAL_NOT_100,
            f"Total activity weight must equal 100% (currently {grand * 100:.2f}%)",
            details={"total": grand},
        )
