"""
Executive summary — year-end rollup of an approved IPP.

summarize() is a pure fold over plain records; load_summary_source() does
the fan-out reads; build_executive_summary() adds the access and
approval gates and the report header.

Per month m in 1..12:
    total_activity   = number of activities in the plan
    count_activity   = activities whose m-achievement is COUNT
    achieve          = COUNT achievements with value > 0
    not_achieve      = count_activity - achieve
    count_weight     = Σ weight of COUNT activities            × 100
    achieve_weight   = Σ (value or 0) × weight, COUNT only     × 100
    monthly_activity_achievement_count
                     = achieve / count_activity (0 when nothing counted)
    monthly_approval = MonthlyApproval.approval, PENDING if missing

total_average = mean(achieve_weight) over the twelve months, from the
unrounded values.

Values are on the percentage-of-target scale, so one activity reported at
10 with weight 0.2 contributes 10 × 0.2 × 100 = 200 to achieve_weight.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

from sqlalchemy import select

from pms.core.actor import ActorContext
from pms.core.exceptions import StateError
from pms.models import MONTHS, db
from pms.models.achievement import Achievement
from pms.models.ipp import Activity, MonthlyApproval
from pms.models.reference import Category, Department, User
from pms.services import score_calculator
from pms.services.helpers.scoped_queries import get_ipp
from pms.services.ipp_service import require_read_access
from pms.services.read_plan import ReadPlan

logger = logging.getLogger(__name__)


# ── Plain records crossing the read-plan boundary ────────────────────────


@dataclass(frozen=True)
class ActivityFigure:
    id: int
    weight: float


@dataclass(frozen=True)
class AchievementFigure:
    activity_id: int
    month: int
    value: float | None
    status: str


@dataclass(frozen=True)
class MonthlyApprovalFigure:
    month: int
    approval: str


@dataclass
class ExecutiveSummaryRow:
    year: int
    month: int
    total_activity: int
    count_activity: int
    achieve: int
    not_achieve: int
    count_weight: float
    achieve_weight: float
    monthly_activity_achievement_count: float
    monthly_approval: str


@dataclass
class ExecutiveSummary:
    rows: list[ExecutiveSummaryRow]
    total_average: float
    header: dict = field(default_factory=dict)
    degraded: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        d = dict(self.header)
        d["summary"] = [asdict(r) for r in self.rows]
        d["total_average"] = self.total_average
        if self.degraded:
            d["degraded"] = list(self.degraded)
        return d


@dataclass
class SummarySource:
    activities: list[ActivityFigure]
    achievements_by_month: dict[int, list[AchievementFigure]]
    monthly_approvals: list[MonthlyApprovalFigure]
    owner: dict | None = None
    category: dict | None = None
    department: dict | None = None
    degraded: list[str] = field(default_factory=list)


# ── Fold ─────────────────────────────────────────────────────────────────


def summarize(ipp, activities, achievements_by_month, monthly_approvals) -> ExecutiveSummary:
    """Fold a year of activities, achievements and month sign-offs.

    Args:
        ipp: anything with a ``year`` attribute.
        activities: records with ``id`` and ``weight``.
        achievements_by_month: {month: [records with activity_id, value, status]}.
        monthly_approvals: records with ``month`` and ``approval``.
    """
    activities = list(activities)
    approvals = {ma.month: ma.approval for ma in monthly_approvals}

    rows = []
    for month in MONTHS:
        by_activity = {a.activity_id: a for a in achievements_by_month.get(month, [])}
        pairs = [(act, by_activity.get(act.id)) for act in activities]
        counted = score_calculator.counted_pairs(pairs)

        count_activity = len(counted)
        achieve = sum(1 for _, ach in counted if (ach.value or 0) > 0)
        rows.append(ExecutiveSummaryRow(
            year=ipp.year,
            month=month,
            total_activity=len(activities),
            count_activity=count_activity,
            achieve=achieve,
            not_achieve=count_activity - achieve,
            count_weight=score_calculator.counted_weight(pairs) * 100,
            achieve_weight=score_calculator.achieved_weight(pairs) * 100,
            monthly_activity_achievement_count=achieve / count_activity if count_activity else 0,
            monthly_approval=approvals.get(month, "PENDING"),
        ))

    total_average = sum(r.achieve_weight for r in rows) / len(rows)
    return ExecutiveSummary(rows=rows, total_average=total_average)


# ── Source loading ───────────────────────────────────────────────────────


def _load_activities(ipp_id: str) -> list[ActivityFigure]:
    rows = db.session.execute(
        select(Activity.id, Activity.weight).where(Activity.ipp_id == ipp_id).order_by(Activity.id)
    )
    return [ActivityFigure(id=r.id, weight=r.weight) for r in rows]


def _load_achievements(ipp_id: str) -> dict[int, list[AchievementFigure]]:
    rows = db.session.execute(
        select(Achievement.activity_id, Achievement.month, Achievement.value, Achievement.status)
        .join(Activity, Achievement.activity_id == Activity.id)
        .where(Activity.ipp_id == ipp_id)
    )
    by_month: dict[int, list[AchievementFigure]] = {}
    for r in rows:
        by_month.setdefault(r.month, []).append(
            AchievementFigure(activity_id=r.activity_id, month=r.month, value=r.value, status=r.status)
        )
    return by_month


def _load_monthly_approvals(ipp_id: str) -> list[MonthlyApprovalFigure]:
    rows = db.session.execute(
        select(MonthlyApproval.month, MonthlyApproval.approval).where(MonthlyApproval.ipp_id == ipp_id)
    )
    return [MonthlyApprovalFigure(month=r.month, approval=r.approval) for r in rows]


def _load_dict(model, key):
    if key is None:
        return None
    row = db.session.get(model, key)
    return row.to_dict() if row else None


def load_summary_source(ipp_id: str, owner_npk: str, category_id: int) -> SummarySource:
    """Fan out the independent reads behind one summary.

    Every branch degrades to empty on failure; the owner's department is
    resolved in a second stage because it hangs off the owner profile.
    """
    result = (
        ReadPlan()
        .add("activities", lambda: _load_activities(ipp_id), default=[])
        .add("achievements", lambda: _load_achievements(ipp_id), default={})
        .add("monthly_approvals", lambda: _load_monthly_approvals(ipp_id), default=[])
        .add("owner", lambda: _load_dict(User, owner_npk), default=None)
        .add("category", lambda: _load_dict(Category, category_id), default=None)
        .run()
    )
    owner = result["owner"]
    department = None
    degraded = list(result.degraded)
    if owner and owner.get("department_id") is not None:
        dept = (
            ReadPlan()
            .add("department", lambda: _load_dict(Department, owner["department_id"]), default=None)
            .run()
        )
        department = dept["department"]
        degraded += dept.degraded

    return SummarySource(
        activities=result["activities"],
        achievements_by_month=result["achievements"],
        monthly_approvals=result["monthly_approvals"],
        owner=owner,
        category=result["category"],
        department=department,
        degraded=degraded,
    )


def build_executive_summary(actor: ActorContext, ipp_id: str) -> ExecutiveSummary:
    """Summary of an APPROVED plan, with the report header attached."""
    ipp = get_ipp(ipp_id)
    require_read_access(actor, ipp)
    if ipp.approval != "APPROVED":
        raise StateError(
            f"Ipp {ipp.id}",
            "executive_summary",
            f"approval={ipp.approval}",
            "executive summary is available only for APPROVED plans",
        )

    source = load_summary_source(ipp.id, ipp.owner_npk, ipp.category_id)
    summary = summarize(ipp, source.activities, source.achievements_by_month, source.monthly_approvals)
    summary.header = {
        "ipp_id": ipp.id,
        "npk": ipp.owner_npk,
        "username": (source.owner or {}).get("name", ""),
        "department": (source.department or {}).get("name", ""),
        "category": (source.category or {}).get("name", ""),
    }
    summary.degraded = source.degraded
    if source.degraded:
        logger.warning(
            "Executive summary for %s built with degraded branches: %s",
            ipp.id, ", ".join(source.degraded),
            extra={"ipp_id": ipp.id, "npk": actor.npk, "event_type": "summary.degraded"},
        )
    return summary
