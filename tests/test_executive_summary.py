"""
Executive summary tests.

Covers:
  - pure fold arithmetic per month (counts, weights, ratio, sign-off)
  - total_average as the unrounded mean of monthly achieve_weight
  - build_executive_summary gates: read access and APPROVED plans only
  - degraded branches surface in the result instead of failing the call
"""

from types import SimpleNamespace

import pytest

from pms.core.exceptions import ForbiddenError, StateError
from pms.services import achievement_ledger, executive_summary, ipp_workflow
from pms.services.executive_summary import (
    AchievementFigure,
    ActivityFigure,
    MonthlyApprovalFigure,
    summarize,
)

YEAR = SimpleNamespace(year=2025)


# ═════════════════════════════════════════════════════════════════════════════
# Pure fold
# ═════════════════════════════════════════════════════════════════════════════


class TestSummarize:
    def test_month_arithmetic(self):
        activities = [ActivityFigure(1, 0.2), ActivityFigure(2, 0.3), ActivityFigure(3, 0.5)]
        achievements = {
            3: [
                AchievementFigure(1, 3, 10, "COUNT"),
                AchievementFigure(2, 3, 0, "COUNT"),
                AchievementFigure(3, 3, 90, "NOT_COUNT"),
            ]
        }
        summary = summarize(YEAR, activities, achievements, [MonthlyApprovalFigure(3, "APPROVED")])

        march = summary.rows[2]
        assert march.year == 2025
        assert march.month == 3
        assert march.total_activity == 3
        assert march.count_activity == 2
        assert march.achieve == 1
        assert march.not_achieve == 1
        assert march.count_weight == pytest.approx(50.0)
        assert march.achieve_weight == pytest.approx(200.0)
        assert march.monthly_activity_achievement_count == pytest.approx(0.5)
        assert march.monthly_approval == "APPROVED"

    def test_empty_months_default(self):
        summary = summarize(YEAR, [ActivityFigure(1, 1.0)], {}, [])
        assert len(summary.rows) == 12
        for row in summary.rows:
            assert row.count_activity == 0
            assert row.achieve_weight == 0
            assert row.monthly_activity_achievement_count == 0
            assert row.monthly_approval == "PENDING"
        assert summary.total_average == 0

    def test_null_value_counts_but_does_not_achieve(self):
        summary = summarize(YEAR, [ActivityFigure(1, 0.5)], {1: [AchievementFigure(1, 1, None, "COUNT")]}, [])
        jan = summary.rows[0]
        assert jan.count_activity == 1
        assert jan.achieve == 0
        assert jan.not_achieve == 1
        assert jan.count_weight == pytest.approx(50.0)

    def test_total_average_is_unrounded_mean(self):
        activities = [ActivityFigure(1, 1 / 3)]
        achievements = {m: [AchievementFigure(1, m, 1, "COUNT")] for m in (1, 2)}
        summary = summarize(YEAR, activities, achievements, [])
        expected = (2 * (1 / 3) * 100) / 12
        assert summary.total_average == pytest.approx(expected)
        assert summary.total_average == sum(r.achieve_weight for r in summary.rows) / 12

    def test_to_dict_wire_shape(self):
        summary = summarize(YEAR, [], {}, [])
        summary.header = {"ipp_id": "X"}
        d = summary.to_dict()
        assert d["ipp_id"] == "X"
        assert len(d["summary"]) == 12
        assert set(d["summary"][0]) == {
            "year", "month", "total_activity", "count_activity", "achieve", "not_achieve",
            "count_weight", "achieve_weight", "monthly_activity_achievement_count", "monthly_approval",
        }
        assert "degraded" not in d


# ═════════════════════════════════════════════════════════════════════════════
# Service
# ═════════════════════════════════════════════════════════════════════════════


class TestBuildExecutiveSummary:
    @pytest.fixture()
    def approved(self, make_ipp, owner, operation):
        ipp = make_ipp(submitted=True, verify="VERIFIED", approval="APPROVED")
        acts = {a.code: a for a in ipp.activities}
        achievement_ledger.upsert(owner, ipp.id, acts["N-01"].id, 3, 10, "COUNT")
        achievement_ledger.upsert(owner, ipp.id, acts["R-01"].id, 3, 0, "COUNT")
        achievement_ledger.upsert(owner, ipp.id, acts["P-01"].id, 3, 50, "NOT_COUNT")
        ipp_workflow.set_monthly_approval(operation, ipp.monthly_approvals[2].id, "APPROVED")
        return ipp

    def test_header_and_rows(self, approved, operation):
        summary = executive_summary.build_executive_summary(operation, approved.id)
        assert summary.header == {
            "ipp_id": approved.id,
            "npk": approved.owner_npk,
            "username": "Owner One",
            "department": "Finance",
            "category": "Staff",
        }
        march = summary.rows[2]
        assert (march.count_activity, march.achieve, march.not_achieve) == (2, 1, 1)
        assert march.achieve_weight == pytest.approx(200.0)
        assert march.count_weight == pytest.approx(50.0)
        assert march.monthly_approval == "APPROVED"
        assert summary.total_average == pytest.approx(200.0 / 12)
        assert summary.degraded == []

    def test_owner_may_read(self, approved, owner):
        assert executive_summary.build_executive_summary(owner, approved.id).rows

    def test_other_user_forbidden(self, approved, other_user):
        with pytest.raises(ForbiddenError):
            executive_summary.build_executive_summary(other_user, approved.id)

    @pytest.mark.parametrize(
        "kwargs",
        [{}, {"submitted": True}, {"submitted": True, "verify": "VERIFIED"},
         {"submitted": True, "verify": "VERIFIED", "approval": "REJECTED"}],
    )
    def test_requires_approved_plan(self, make_ipp, operation, kwargs):
        ipp = make_ipp(**kwargs)
        with pytest.raises(StateError):
            executive_summary.build_executive_summary(operation, ipp.id)

    def test_degraded_branch_reported(self, approved, operation, monkeypatch):
        def _fail(ipp_id):
            raise RuntimeError("approvals store down")

        monkeypatch.setattr(executive_summary, "_load_monthly_approvals", _fail)
        summary = executive_summary.build_executive_summary(operation, approved.id)
        assert summary.degraded == ["monthly_approvals"]
        assert {r.monthly_approval for r in summary.rows} == {"PENDING"}
        assert summary.rows[2].achieve_weight == pytest.approx(200.0)
        assert summary.to_dict()["degraded"] == ["monthly_approvals"]
