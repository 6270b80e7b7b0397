"""
Weight allocation rule tests.

Covers:
  - per-category sums and grand total
  - over-limit warnings while editing (never raise)
  - validate(): CATEGORY_EXCEEDED takes precedence over TOTAL_NOT_100
  - total tolerance of ±0.0001
  - allocation_report shape
"""

from types import SimpleNamespace

import pytest

from pms.core.exceptions import WeightError
from pms.models.reference import Category
from pms.services import weight_allocator


def _cat(routine=0.6, non_routine=0.3, project=0.4) -> Category:
    return Category(name="Staff", routine_limit=routine, non_routine_limit=non_routine, project_limit=project)


def _acts(*pairs):
    return [SimpleNamespace(category=c, weight=w) for c, w in pairs]


BALANCED = (("ROUTINE", 0.3), ("ROUTINE", 0.2), ("NON_ROUTINE", 0.2), ("PROJECT", 0.3))


# ═════════════════════════════════════════════════════════════════════════════
# Sums
# ═════════════════════════════════════════════════════════════════════════════


class TestSums:
    def test_every_category_key_present(self):
        totals = weight_allocator.weights_by_category([])
        assert totals == {"ROUTINE": 0.0, "NON_ROUTINE": 0.0, "PROJECT": 0.0}

    def test_sums_per_category(self):
        totals = weight_allocator.weights_by_category(_acts(*BALANCED))
        assert totals["ROUTINE"] == pytest.approx(0.5)
        assert totals["NON_ROUTINE"] == pytest.approx(0.2)
        assert totals["PROJECT"] == pytest.approx(0.3)

    def test_total_weight(self):
        assert weight_allocator.total_weight(_acts(*BALANCED)) == pytest.approx(1.0)


# ═════════════════════════════════════════════════════════════════════════════
# Editing-time warnings
# ═════════════════════════════════════════════════════════════════════════════


class TestCategoryLimits:
    def test_within_limits_no_warnings(self):
        assert weight_allocator.check_category_limits(_acts(*BALANCED), _cat()) == []

    def test_over_limit_reported(self):
        warnings = weight_allocator.check_category_limits(
            _acts(("ROUTINE", 0.7), ("PROJECT", 0.3)), _cat()
        )
        assert len(warnings) == 1
        assert warnings[0]["category"] == "ROUTINE"
        assert warnings[0]["limit"] == 0.6
        assert "70.0%" in warnings[0]["message"]

    def test_exactly_at_limit_is_allowed(self):
        assert weight_allocator.check_category_limits(_acts(("NON_ROUTINE", 0.3)), _cat()) == []

    def test_draft_out_of_balance_only_warns(self):
        # 40 % total is fine while editing
        assert weight_allocator.check_category_limits(_acts(("ROUTINE", 0.4)), _cat()) == []


# ═════════════════════════════════════════════════════════════════════════════
# Submission gate
# ═════════════════════════════════════════════════════════════════════════════


class TestValidate:
    def test_balanced_plan_passes(self):
        weight_allocator.validate(_acts(*BALANCED), _cat())

    def test_total_below_100(self):
        with pytest.raises(WeightError) as exc:
            weight_allocator.validate(_acts(("ROUTINE", 0.5), ("PROJECT", 0.3)), _cat())
        assert exc.value.kind == WeightError.TOTAL_NOT_100
        assert exc.value.details["total"] == pytest.approx(0.8)

    def test_total_above_100(self):
        with pytest.raises(WeightError) as exc:
            weight_allocator.validate(
                _acts(("ROUTINE", 0.6), ("NON_ROUTINE", 0.3), ("PROJECT", 0.2)), _cat()
            )
        assert exc.value.kind == WeightError.TOTAL_NOT_100

    def test_category_exceeded_reported_first(self):
        with pytest.raises(WeightError) as exc:
            weight_allocator.validate(_acts(("ROUTINE", 0.9), ("PROJECT", 0.1)), _cat())
        assert exc.value.kind == WeightError.CATEGORY_EXCEEDED
        assert exc.value.details["exceeded"][0]["category"] == "ROUTINE"

    def test_float_noise_within_tolerance(self):
        weight_allocator.validate(
            _acts(("ROUTINE", 0.1), ("ROUTINE", 0.2), ("NON_ROUTINE", 0.3), ("PROJECT", 0.4)), _cat()
        )

    def test_outside_tolerance(self):
        with pytest.raises(WeightError):
            weight_allocator.validate(_acts(("ROUTINE", 0.6), ("NON_ROUTINE", 0.3), ("PROJECT", 0.0998)), _cat())

    def test_empty_plan_fails_total(self):
        with pytest.raises(WeightError) as exc:
            weight_allocator.validate([], _cat())
        assert exc.value.kind == WeightError.TOTAL_NOT_100


class TestAllocationReport:
    def test_report_shape(self):
        report = weight_allocator.allocation_report(_acts(("ROUTINE", 0.7), ("PROJECT", 0.3)), _cat())
        assert report["category_name"] == "Staff"
        assert report["by_category"]["ROUTINE"]["over_limit"] is True
        assert report["by_category"]["PROJECT"]["over_limit"] is False
        assert report["total"] == pytest.approx(1.0)
        assert report["balanced"] is True
