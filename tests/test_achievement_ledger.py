"""
Achievement ledger tests.

Covers:
  - upsert idempotence on (activity, month) and verify left untouched on update
  - owner-only writes, reviewer-only verify
  - evidence attach / list / remove, NotFound on a repeated delete
  - twelve-month drill-through with evidence per month
"""

import pytest

from pms.core.exceptions import ForbiddenError, NotFoundError, StateError, ValidationError
from pms.models import db
from pms.models.achievement import Achievement
from pms.services import achievement_ledger


@pytest.fixture()
def plan(make_ipp):
    return make_ipp(submitted=True, verify="VERIFIED", approval="APPROVED")


def _activity(plan, code="R-01"):
    return next(a for a in plan.activities if a.code == code)


# ═════════════════════════════════════════════════════════════════════════════
# Upsert
# ═════════════════════════════════════════════════════════════════════════════


class TestUpsert:
    def test_create_starts_pending(self, plan, owner):
        act = _activity(plan)
        ach = achievement_ledger.upsert(owner, plan.id, act.id, 3, 80, "COUNT")
        assert ach.verify == "PENDING"
        assert ach.value == 80
        assert ach.status == "COUNT"

    def test_repeated_upsert_keeps_one_row(self, plan, owner):
        act = _activity(plan)
        first = achievement_ledger.upsert(owner, plan.id, act.id, 3, 50, "COUNT")
        second = achievement_ledger.upsert(owner, plan.id, act.id, 3, 70, "NOT_COUNT")
        assert first.id == second.id
        assert db.session.query(Achievement).filter_by(activity_id=act.id, month=3).count() == 1
        assert second.value == 70
        assert second.status == "NOT_COUNT"

    def test_update_leaves_verify_untouched(self, plan, owner, operation):
        act = _activity(plan)
        ach = achievement_ledger.upsert(owner, plan.id, act.id, 5, 40, "COUNT")
        achievement_ledger.set_verify(operation, ach.id, "VERIFIED")
        updated = achievement_ledger.upsert(owner, plan.id, act.id, 5, 45, "COUNT")
        assert updated.verify == "VERIFIED"

    def test_score_uses_activity_weight(self, make_ipp, owner):
        ipp = make_ipp(activities=[
            {"code": "R-01", "category": "ROUTINE", "weight": 0.25},
            {"code": "P-01", "category": "PROJECT", "weight": 0.4},
        ])
        act = _activity(ipp)
        ach = achievement_ledger.upsert(owner, ipp.id, act.id, 1, 80, "COUNT")
        assert ach.to_dict()["score"] == pytest.approx(20.0)
        assert ach.to_dict()["score_display"] == "20.00"

    def test_null_value_allowed(self, plan, owner):
        ach = achievement_ledger.upsert(owner, plan.id, _activity(plan).id, 1)
        assert ach.value is None
        assert ach.status == "NOT_COUNT"

    def test_allowed_on_draft_plan(self, make_ipp, owner):
        ipp = make_ipp()
        assert achievement_ledger.upsert(owner, ipp.id, ipp.activities[0].id, 1, 1, "COUNT").id

    @pytest.mark.parametrize("month", [0, 13, "abc"])
    def test_bad_month(self, plan, owner, month):
        with pytest.raises(ValidationError):
            achievement_ledger.upsert(owner, plan.id, _activity(plan).id, month, 10, "COUNT")

    def test_bad_status(self, plan, owner):
        with pytest.raises(ValidationError):
            achievement_ledger.upsert(owner, plan.id, _activity(plan).id, 1, 10, "MAYBE")

    def test_bad_value(self, plan, owner):
        with pytest.raises(ValidationError):
            achievement_ledger.upsert(owner, plan.id, _activity(plan).id, 1, "lots", "COUNT")

    def test_activity_of_another_plan(self, make_ipp, owner):
        first = make_ipp("IPP-A")
        second = make_ipp("IPP-B")
        with pytest.raises(NotFoundError):
            achievement_ledger.upsert(owner, first.id, second.activities[0].id, 1, 10, "COUNT")

    def test_non_owner_forbidden(self, plan, other_user, operation):
        act = _activity(plan)
        with pytest.raises(ForbiddenError):
            achievement_ledger.upsert(other_user, plan.id, act.id, 1, 10, "COUNT")
        with pytest.raises(ForbiddenError):
            achievement_ledger.upsert(operation, plan.id, act.id, 1, 10, "COUNT")


# ═════════════════════════════════════════════════════════════════════════════
# Verify
# ═════════════════════════════════════════════════════════════════════════════


class TestAchievementVerify:
    def test_reviewer_verifies(self, plan, owner, admin):
        ach = achievement_ledger.upsert(owner, plan.id, _activity(plan).id, 2, 10, "COUNT")
        assert achievement_ledger.set_verify(admin, ach.id, "REJECTED").verify == "REJECTED"

    def test_owner_cannot_verify(self, plan, owner):
        ach = achievement_ledger.upsert(owner, plan.id, _activity(plan).id, 2, 10, "COUNT")
        with pytest.raises(ForbiddenError):
            achievement_ledger.set_verify(owner, ach.id, "VERIFIED")

    def test_invalid_target(self, plan, owner, operation):
        ach = achievement_ledger.upsert(owner, plan.id, _activity(plan).id, 2, 10, "COUNT")
        with pytest.raises(ValidationError):
            achievement_ledger.set_verify(operation, ach.id, "PENDING")


# ═════════════════════════════════════════════════════════════════════════════
# Evidence
# ═════════════════════════════════════════════════════════════════════════════


class TestEvidence:
    def test_attach_and_list(self, plan, owner):
        act = _activity(plan)
        ach = achievement_ledger.upsert(owner, plan.id, act.id, 4, 10, "COUNT")
        ev = achievement_ledger.attach_evidence(owner, ach.id, "s3://bucket/april.pdf", 1536, "application/pdf")
        achievement_ledger.attach_evidence(owner, ach.id, "s3://bucket/april-2.pdf")

        items = achievement_ledger.list_evidence(plan.id, act.id, 4)
        assert [e.id for e in items][0] == ev.id
        assert len(items) == 2
        assert ev.to_dict()["file_size_display"] == "1.5 KB"
        assert ev.to_dict()["file_name"] == "april.pdf"

    def test_unreported_month_has_no_evidence(self, plan):
        assert achievement_ledger.list_evidence(plan.id, _activity(plan).id, 9) == []

    def test_reference_required(self, plan, owner):
        ach = achievement_ledger.upsert(owner, plan.id, _activity(plan).id, 4, 10, "COUNT")
        with pytest.raises(ValidationError):
            achievement_ledger.attach_evidence(owner, ach.id, "  ")

    def test_negative_size_rejected(self, plan, owner):
        ach = achievement_ledger.upsert(owner, plan.id, _activity(plan).id, 4, 10, "COUNT")
        with pytest.raises(ValidationError):
            achievement_ledger.attach_evidence(owner, ach.id, "f.pdf", file_size=-1)

    def test_non_owner_cannot_attach(self, plan, owner, operation):
        ach = achievement_ledger.upsert(owner, plan.id, _activity(plan).id, 4, 10, "COUNT")
        with pytest.raises(ForbiddenError):
            achievement_ledger.attach_evidence(operation, ach.id, "f.pdf")

    def test_remove_twice_is_not_found(self, plan, owner):
        ach = achievement_ledger.upsert(owner, plan.id, _activity(plan).id, 4, 10, "COUNT")
        ev = achievement_ledger.attach_evidence(owner, ach.id, "f.pdf")
        evidence_id = ev.id
        achievement_ledger.remove_evidence(owner, evidence_id)
        with pytest.raises(NotFoundError):
            achievement_ledger.remove_evidence(owner, evidence_id)


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════


class TestReads:
    def test_get_missing_month(self, plan):
        with pytest.raises(NotFoundError):
            achievement_ledger.get_achievement(plan.id, _activity(plan).id, 7)

    def test_list_ordered_by_month(self, plan, owner):
        act = _activity(plan)
        for month in (5, 1, 3):
            achievement_ledger.upsert(owner, plan.id, act.id, month, month, "COUNT")
        db.session.expire_all()
        assert [a.month for a in achievement_ledger.list_achievements(plan.id, act.id)] == [1, 3, 5]

    def test_activity_detail(self, plan, owner, operation):
        act = _activity(plan)
        ach = achievement_ledger.upsert(owner, plan.id, act.id, 2, 60, "COUNT")
        achievement_ledger.attach_evidence(owner, ach.id, "feb.pdf")

        detail = achievement_ledger.activity_detail(operation, plan.id, act.id)
        assert detail["activity"]["code"] == "R-01"
        assert len(detail["months"]) == 12
        feb = detail["months"][1]
        assert feb["achievement"]["value"] == 60
        assert [e["file_reference"] for e in feb["evidences"]] == ["feb.pdf"]
        assert detail["months"][0]["achievement"] is None
        assert detail["months"][0]["evidences"] == []
        assert detail["degraded"] == []

    def test_activity_detail_read_access(self, plan, other_user):
        with pytest.raises(ForbiddenError):
            achievement_ledger.activity_detail(other_user, plan.id, _activity(plan).id)

    @pytest.mark.parametrize("verify", ["PENDING", "VERIFIED"])
    def test_activity_detail_requires_approved_plan(self, make_ipp, operation, verify):
        draft = make_ipp("IPP-T-002", submitted=True, verify=verify)
        with pytest.raises(StateError):
            achievement_ledger.activity_detail(operation, draft.id, _activity(draft).id)
