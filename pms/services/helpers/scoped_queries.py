"""
IPP-scoped lookup helpers.

Activities, achievements and evidence are always addressed through their
parent IPP: child lookups take the parent key too, and a child that
exists under a different parent is indistinguishable from a missing one
(NotFoundError).

Usage:
    ipp = get_ipp(ipp_id)
    activity = get_activity(ipp_id, activity_id)
    achievement = get_achievement_or_none(activity.id, month)
"""

from sqlalchemy import select

from pms.core.exceptions import NotFoundError
from pms.models import db
from pms.models.achievement import Achievement, Evidence
from pms.models.ipp import Activity, Ipp, MonthlyApproval


def get_ipp(ipp_id: str) -> Ipp:
    ipp = db.session.get(Ipp, ipp_id)
    if ipp is None:
        raise NotFoundError(resource="Ipp", resource_id=ipp_id)
    return ipp


def get_activity(ipp_id: str, activity_id: int) -> Activity:
    activity = db.session.execute(
        select(Activity).where(Activity.id == activity_id, Activity.ipp_id == ipp_id)
    ).scalar_one_or_none()
    if activity is None:
        raise NotFoundError(resource="Activity", resource_id=activity_id)
    return activity


def get_achievement_or_none(activity_id: int, month: int) -> Achievement | None:
    return db.session.execute(
        select(Achievement).where(
            Achievement.activity_id == activity_id,
            Achievement.month == month,
        )
    ).scalar_one_or_none()


def get_achievement(achievement_id: int) -> Achievement:
    achievement = db.session.get(Achievement, achievement_id)
    if achievement is None:
        raise NotFoundError(resource="Achievement", resource_id=achievement_id)
    return achievement


def get_evidence(evidence_id: int) -> Evidence:
    evidence = db.session.get(Evidence, evidence_id)
    if evidence is None:
        raise NotFoundError(resource="Evidence", resource_id=evidence_id)
    return evidence


def get_monthly_approval(monthly_approval_id: int) -> MonthlyApproval:
    row = db.session.get(MonthlyApproval, monthly_approval_id)
    if row is None:
        raise NotFoundError(resource="MonthlyApproval", resource_id=monthly_approval_id)
    return row


def list_activities(ipp_id: str) -> list[Activity]:
    return list(
        db.session.execute(
            select(Activity).where(Activity.ipp_id == ipp_id).order_by(Activity.id)
        ).scalars()
    )


def list_ipp_achievements(ipp_id: str) -> list[Achievement]:
    """Every achievement under an IPP, across all activities and months."""
    return list(
        db.session.execute(
            select(Achievement)
            .join(Activity, Achievement.activity_id == Activity.id)
            .where(Activity.ipp_id == ipp_id)
            .order_by(Achievement.activity_id, Achievement.month)
        ).scalars()
    )


def list_monthly_approvals(ipp_id: str) -> list[MonthlyApproval]:
    return list(
        db.session.execute(
            select(MonthlyApproval)
            .where(MonthlyApproval.ipp_id == ipp_id)
            .order_by(MonthlyApproval.month)
        ).scalars()
    )
