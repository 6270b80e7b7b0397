"""
Achievement ledger — monthly values and their evidence per Activity.

Rules:
  - One Achievement per (activity, month). upsert() updates the existing
    row in place, so repeated calls never produce a second record.
  - Entry is allowed at any IPP stage; achievements follow the year month
    by month, not the plan's review workflow.
  - verify starts PENDING on creation and is left untouched on update.
  - Value and evidence are owner-only; verify is reviewer-only.
  - Concurrent upserts on the same key are last-writer-wins.
"""

import logging

from pms.core.actor import ActorContext
from pms.core.exceptions import ForbiddenError, NotFoundError, StateError, ValidationError
from pms.models import COUNT_STATUSES, MONTHS, db
from pms.models.achievement import Achievement, Evidence
from pms.services.helpers import scoped_queries as q
from pms.services.ipp_service import require_read_access
from pms.services.read_plan import ReadPlan
from pms.utils.helpers import (
    commit_or_raise,
    format_file_size,
    parse_month,
    parse_optional_number,
)

logger = logging.getLogger(__name__)

ACHIEVEMENT_VERIFY_TARGETS = ("VERIFIED", "REJECTED")

__all__ = [
    "upsert",
    "attach_evidence",
    "remove_evidence",
    "set_verify",
    "get_achievement",
    "list_achievements",
    "list_evidence",
    "activity_detail",
    "format_file_size",
]


def _require_owner(actor: ActorContext, ipp, action: str) -> None:
    if not actor.owns(ipp):
        raise ForbiddenError(actor.npk, action, "plan owner")


def _require_reviewer(actor: ActorContext, action: str) -> None:
    if not actor.is_reviewer:
        raise ForbiddenError(actor.npk, action, "ADMIN/OPERATION")


def _log(actor: ActorContext, ipp_id: str, message: str, *args, event_type: str) -> None:
    logger.info(
        message, *args,
        extra={"ipp_id": ipp_id, "npk": actor.npk, "role": actor.role, "event_type": event_type},
    )


# ── Writes ───────────────────────────────────────────────────────────────────


def upsert(
    actor: ActorContext,
    ipp_id: str,
    activity_id: int,
    month,
    value=None,
    status: str = "NOT_COUNT",
) -> Achievement:
    """Create or update the achievement for (activity, month).

    Raises:
        ValidationError: month outside 1..12, bad status, non-numeric value.
        NotFoundError: activity does not belong to ipp_id.
        ForbiddenError: actor is not the plan owner.
    """
    month = parse_month(month)
    if status not in COUNT_STATUSES:
        raise ValidationError(
            f"Invalid achievement status '{status}'",
            details={"status": status, "allowed": list(COUNT_STATUSES)},
        )
    value = parse_optional_number(value, "value")

    activity = q.get_activity(ipp_id, activity_id)
    _require_owner(actor, activity.ipp, "upsert_achievement")

    achievement = q.get_achievement_or_none(activity.id, month)
    created = achievement is None
    if created:
        achievement = Achievement(activity_id=activity.id, month=month, verify="PENDING")
        db.session.add(achievement)
    achievement.value = value
    achievement.status = status

    commit_or_raise(
        "upsert_achievement",
        resource="Achievement",
        field="activity_id,month",
        value=f"{activity.id},{month}",
    )
    _log(
        actor, ipp_id,
        "Achievement %s activity=%s month=%s value=%s status=%s",
        "created" if created else "updated", activity.id, month, value, status,
        event_type="achievement.upsert",
    )
    return achievement


def attach_evidence(
    actor: ActorContext,
    achievement_id: int,
    file_reference: str,
    file_size=None,
    mime_type: str | None = None,
) -> Evidence:
    """Attach a stored-file pointer to an achievement. No per-achievement cap."""
    if not file_reference or not str(file_reference).strip():
        raise ValidationError("file_reference is required", details={"field": "file_reference"})
    if file_size is not None:
        try:
            file_size = int(file_size)
        except (TypeError, ValueError) as exc:
            raise ValidationError("file_size must be an integer", details={"file_size": file_size}) from exc
        if file_size < 0:
            raise ValidationError("file_size must not be negative", details={"file_size": file_size})

    achievement = q.get_achievement(achievement_id)
    ipp = achievement.activity.ipp
    _require_owner(actor, ipp, "attach_evidence")

    evidence = Evidence(
        achievement_id=achievement.id,
        file_reference=str(file_reference).strip(),
        file_size=file_size,
        mime_type=mime_type,
    )
    db.session.add(evidence)
    commit_or_raise("attach_evidence")

    _log(
        actor, ipp.id,
        "Evidence #%s attached to achievement #%s",
        evidence.id, achievement.id,
        event_type="evidence.attach",
    )
    return evidence


def remove_evidence(actor: ActorContext, evidence_id: int) -> None:
    """Delete one evidence row. Missing ids raise NotFoundError."""
    evidence = q.get_evidence(evidence_id)
    ipp = evidence.achievement.activity.ipp
    _require_owner(actor, ipp, "remove_evidence")

    achievement_id = evidence.achievement_id
    db.session.delete(evidence)
    commit_or_raise("remove_evidence")

    _log(
        actor, ipp.id,
        "Evidence #%s removed from achievement #%s",
        evidence_id, achievement_id,
        event_type="evidence.remove",
    )


def set_verify(actor: ActorContext, achievement_id: int, status: str) -> Achievement:
    """Reviewer verdict on one month's achievement (VERIFIED | REJECTED)."""
    _require_reviewer(actor, "verify_achievement")
    if status not in ACHIEVEMENT_VERIFY_TARGETS:
        raise ValidationError(
            f"Invalid verify status '{status}'",
            details={"status": status, "allowed": list(ACHIEVEMENT_VERIFY_TARGETS)},
        )
    achievement = q.get_achievement(achievement_id)
    previous = achievement.verify
    achievement.verify = status
    commit_or_raise("verify_achievement")

    _log(
        actor, achievement.activity.ipp_id,
        "Achievement #%s verify: %s -> %s",
        achievement.id, previous, status,
        event_type="achievement.verify",
    )
    return achievement


# ── Reads ────────────────────────────────────────────────────────────────────


def get_achievement(ipp_id: str, activity_id: int, month) -> Achievement:
    month = parse_month(month)
    activity = q.get_activity(ipp_id, activity_id)
    achievement = q.get_achievement_or_none(activity.id, month)
    if achievement is None:
        raise NotFoundError(resource="Achievement", resource_id=f"{activity.id}/{month}")
    return achievement


def list_achievements(ipp_id: str, activity_id: int) -> list[Achievement]:
    return list(q.get_activity(ipp_id, activity_id).achievements)


def list_evidence(ipp_id: str, activity_id: int, month) -> list[Evidence]:
    """Evidence for one month; an unreported month has none."""
    month = parse_month(month)
    activity = q.get_activity(ipp_id, activity_id)
    achievement = q.get_achievement_or_none(activity.id, month)
    return list(achievement.evidences) if achievement else []


def _evidence_dicts(achievement_id: int) -> list[dict]:
    return [
        e.to_dict()
        for e in db.session.query(Evidence)
        .filter(Evidence.achievement_id == achievement_id)
        .order_by(Evidence.id)
    ]


def _achievement_dicts(activity_id: int) -> list[dict]:
    return [
        a.to_dict()
        for a in db.session.query(Achievement)
        .filter(Achievement.activity_id == activity_id)
        .order_by(Achievement.month)
    ]


def activity_detail(actor: ActorContext, ipp_id: str, activity_id: int) -> dict:
    """
    Twelve-month drill-through for one activity.

    Two read stages: the achievements first, then the evidence of every
    reported month in parallel. A failed evidence branch leaves that month
    with an empty list and is named in ``degraded``.
    Only APPROVED plans have a drill-through (StateError otherwise).
    """
    activity = q.get_activity(ipp_id, activity_id)
    require_read_access(actor, activity.ipp)
    ipp = activity.ipp
    if ipp.approval != "APPROVED":
        raise StateError(
            f"Ipp {ipp.id}",
            "activity_detail",
            f"approval={ipp.approval}",
            "activity detail is available only for APPROVED plans",
        )
    activity_data = activity.to_dict()

    first = ReadPlan().add("achievements", lambda: _achievement_dicts(activity_data["id"]), default=[]).run()
    by_month = {a["month"]: a for a in first["achievements"]}

    evidence_plan = ReadPlan()
    for month, ach in by_month.items():
        evidence_plan.add(f"evidence_{month}", lambda aid=ach["id"]: _evidence_dicts(aid), default=[])
    second = evidence_plan.run()

    months = []
    for month in MONTHS:
        ach = by_month.get(month)
        months.append({
            "month": month,
            "achievement": ach,
            "evidences": second.get(f"evidence_{month}", []) if ach else [],
        })

    return {
        "activity": activity_data,
        "months": months,
        "degraded": first.degraded + second.degraded,
    }
