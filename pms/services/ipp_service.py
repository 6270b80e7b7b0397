"""IPP service layer — plan header and activity management.

Transaction policy: every public write validates its whole input first and
commits once through commit_or_raise(); nothing is half-applied.

Operations:
- IPP create (with its twelve MonthlyApproval rows), read, list, header
  update, delete (draft only)
- Activity create / update / delete (owner only, draft only) returning the
  weight allocator's warnings alongside the saved row
- Read-access rule shared with the other services

Access:
    USER      → own plans only
    OPERATION → any plan (read), review transitions
    ADMIN     → any plan (read), review transitions
"""
import logging

from sqlalchemy import or_, select

from pms.core.actor import ActorContext
from pms.core.exceptions import ConflictError, ForbiddenError, StateError, ValidationError
from pms.models import ACTIVITY_CATEGORIES, MONTHS, db
from pms.models.ipp import Activity, Ipp, MonthlyApproval
from pms.models.reference import Category, User
from pms.services import weight_allocator
from pms.services.helpers import scoped_queries as q
from pms.utils.helpers import commit_or_raise, parse_optional_number

logger = logging.getLogger(__name__)

ACTIVITY_REQUIRED_FIELDS = ("code", "name", "kpi", "target", "deliverable")
ACTIVITY_FIELDS = ACTIVITY_REQUIRED_FIELDS + ("category", "weight")

# status filter → predicate over Ipp columns
STATUS_FILTERS = {
    "pending": lambda: Ipp.verify == "PENDING",
    "verified": lambda: (Ipp.verify == "VERIFIED") & (Ipp.approval == "PENDING"),
    "approved": lambda: Ipp.approval == "APPROVED",
    "rejected": lambda: or_(Ipp.verify == "REJECTED", Ipp.approval == "REJECTED"),
}


# ── Access ───────────────────────────────────────────────────────────────


def require_read_access(actor: ActorContext, ipp: Ipp) -> None:
    if actor.is_reviewer or actor.owns(ipp):
        return
    raise ForbiddenError(actor.npk, "read_ipp", "plan owner or ADMIN/OPERATION")


def _require_owner(actor: ActorContext, ipp: Ipp, action: str) -> None:
    if not actor.owns(ipp):
        raise ForbiddenError(actor.npk, action, "plan owner")


def ensure_draft(ipp: Ipp, action: str) -> None:
    """Activity set and header are frozen once the plan is submitted."""
    if not ipp.is_draft:
        raise StateError(
            f"Ipp {ipp.id}",
            action,
            "submitted",
            "IPP has already been submitted and can no longer be edited",
        )


# ── Validation helpers ───────────────────────────────────────────────────


def _parse_year(value) -> int:
    try:
        year = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("year must be an integer", details={"year": value}) from exc
    if not 1900 <= year <= 9999:
        raise ValidationError("year is out of range", details={"year": year})
    return year


def _get_category(category_id) -> Category:
    if category_id is None:
        raise ValidationError("category_id is required", details={"field": "category_id"})
    try:
        category_id = int(category_id)
    except (TypeError, ValueError) as exc:
        raise ValidationError("category_id must be an integer", details={"category_id": category_id}) from exc
    category = db.session.get(Category, category_id)
    if category is None:
        raise ValidationError("Unknown category", details={"category_id": category_id})
    return category


def _clean_activity(data: dict, *, partial: bool = False) -> dict:
    """Validate an activity payload. partial=True accepts a subset of fields."""
    clean = {}
    missing = []
    for field in ACTIVITY_REQUIRED_FIELDS:
        if field not in data:
            if not partial:
                missing.append(field)
            continue
        text = str(data[field] or "").strip()
        if not text:
            missing.append(field)
        clean[field] = text
    if missing:
        raise ValidationError(
            f"Missing required activity fields: {', '.join(missing)}",
            details={"missing": missing},
        )

    if "category" in data or not partial:
        category = data.get("category")
        if category not in ACTIVITY_CATEGORIES:
            raise ValidationError(
                f"Invalid activity category '{category}'",
                details={"category": category, "allowed": list(ACTIVITY_CATEGORIES)},
            )
        clean["category"] = category

    if "weight" in data or not partial:
        weight = parse_optional_number(data.get("weight"), "weight")
        if weight is None or weight <= 0:
            raise ValidationError("weight must be greater than 0", details={"weight": data.get("weight")})
        clean["weight"] = weight
    return clean


def _weight_feedback(ipp: Ipp) -> dict:
    activities = q.list_activities(ipp.id)
    return {
        "warnings": weight_allocator.check_category_limits(activities, ipp.category),
        "allocation": weight_allocator.allocation_report(activities, ipp.category),
    }


# ── IPP ──────────────────────────────────────────────────────────────────


def create_ipp(actor: ActorContext, data: dict) -> Ipp:
    """Create a draft plan owned by the actor.

    data: {id, year, category_id, activities?: [...]}
    The twelve MonthlyApproval rows are created in the same commit.
    """
    ipp_id = str(data.get("id") or "").strip()
    if not ipp_id:
        raise ValidationError("id is required", details={"field": "id"})
    year = _parse_year(data.get("year"))
    category = _get_category(data.get("category_id"))

    if db.session.get(Ipp, ipp_id) is not None:
        raise ConflictError("Ipp", "id", ipp_id)

    activities = [_clean_activity(a) for a in data.get("activities") or []]
    codes = [a["code"] for a in activities]
    duplicates = sorted({c for c in codes if codes.count(c) > 1})
    if duplicates:
        raise ConflictError("Activity", "code", duplicates[0])

    ipp = Ipp(id=ipp_id, year=year, owner_npk=actor.npk, category_id=category.id)
    ipp.monthly_approvals = [MonthlyApproval(month=m, approval="PENDING") for m in MONTHS]
    ipp.activities = [Activity(**a) for a in activities]
    db.session.add(ipp)
    commit_or_raise("create_ipp", resource="Ipp", field="id", value=ipp_id)

    logger.info(
        "IPP %s created by %s (%d activities)",
        ipp.id, actor.npk, len(activities),
        extra={"ipp_id": ipp.id, "npk": actor.npk, "role": actor.role, "event_type": "ipp.create"},
    )
    return ipp


def get_ipp(actor: ActorContext, ipp_id: str) -> Ipp:
    ipp = q.get_ipp(ipp_id)
    require_read_access(actor, ipp)
    return ipp


def list_ipps(actor: ActorContext, owner_npk=None, status=None, year=None, search=None) -> list[Ipp]:
    """Filtered plan list.

    USER actors only ever see their own plans, whatever owner_npk says.
    status ∈ pending | verified | approved | rejected applies to submitted
    plans only; search matches plan id, owner npk or owner name.
    """
    stmt = select(Ipp).join(User, Ipp.owner_npk == User.npk)
    if not actor.is_reviewer:
        owner_npk = actor.npk
    if owner_npk:
        stmt = stmt.where(Ipp.owner_npk == owner_npk)
    if status:
        predicate = STATUS_FILTERS.get(status)
        if predicate is None:
            raise ValidationError(
                f"Invalid status filter '{status}'",
                details={"status": status, "allowed": list(STATUS_FILTERS)},
            )
        stmt = stmt.where(Ipp.submitted_at.isnot(None), predicate())
    if year is not None:
        stmt = stmt.where(Ipp.year == _parse_year(year))
    if search:
        like = f"%{search}%"
        stmt = stmt.where(or_(Ipp.id.ilike(like), Ipp.owner_npk.ilike(like), User.name.ilike(like)))
    stmt = stmt.order_by(Ipp.year.desc(), Ipp.id)
    return list(db.session.execute(stmt).scalars().unique())


def list_active_ipps(actor: ActorContext, npk: str) -> list[Ipp]:
    """Submitted plans of one employee that are still in play (not rejected)."""
    return [ipp for ipp in list_ipps(actor, owner_npk=npk) if not ipp.is_draft and not ipp.is_rejected]


def list_approved_ipps(actor: ActorContext, npk: str) -> list[Ipp]:
    return list_ipps(actor, owner_npk=npk, status="approved")


def update_ipp_header(actor: ActorContext, ipp_id: str, data: dict) -> Ipp:
    """Change year and/or category of a draft plan."""
    ipp = q.get_ipp(ipp_id)
    _require_owner(actor, ipp, "update_ipp")
    ensure_draft(ipp, "update_ipp")

    if "year" in data:
        ipp.year = _parse_year(data["year"])
    if "category_id" in data:
        ipp.category = _get_category(data["category_id"])
    commit_or_raise("update_ipp")
    return ipp


def delete_ipp(actor: ActorContext, ipp_id: str) -> None:
    """Drafts only; submitted plans are never hard-deleted."""
    ipp = q.get_ipp(ipp_id)
    _require_owner(actor, ipp, "delete_ipp")
    ensure_draft(ipp, "delete_ipp")

    db.session.delete(ipp)
    commit_or_raise("delete_ipp")
    logger.info(
        "IPP %s deleted",
        ipp_id,
        extra={"ipp_id": ipp_id, "npk": actor.npk, "role": actor.role, "event_type": "ipp.delete"},
    )


def weight_report(actor: ActorContext, ipp_id: str) -> dict:
    ipp = get_ipp(actor, ipp_id)
    return _weight_feedback(ipp)


# ── Activity ─────────────────────────────────────────────────────────────


def list_activities(actor: ActorContext, ipp_id: str) -> list[Activity]:
    get_ipp(actor, ipp_id)
    return q.list_activities(ipp_id)


def _code_taken(ipp_id: str, code: str, exclude_id=None) -> bool:
    stmt = select(Activity.id).where(Activity.ipp_id == ipp_id, Activity.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Activity.id != exclude_id)
    return db.session.execute(stmt).first() is not None


def create_activity(actor: ActorContext, ipp_id: str, data: dict) -> tuple[Activity, dict]:
    """Add an activity to a draft plan.

    Returns:
        (Activity, {"warnings": [...], "allocation": {...}})
    """
    ipp = q.get_ipp(ipp_id)
    _require_owner(actor, ipp, "create_activity")
    ensure_draft(ipp, "create_activity")

    clean = _clean_activity(data)
    if _code_taken(ipp.id, clean["code"]):
        raise ConflictError("Activity", "code", clean["code"])

    activity = Activity(ipp_id=ipp.id, **clean)
    db.session.add(activity)
    commit_or_raise("create_activity", resource="Activity", field="code", value=clean["code"])
    return activity, _weight_feedback(ipp)


def update_activity(actor: ActorContext, ipp_id: str, activity_id: int, data: dict) -> tuple[Activity, dict]:
    ipp = q.get_ipp(ipp_id)
    activity = q.get_activity(ipp_id, activity_id)
    _require_owner(actor, ipp, "update_activity")
    ensure_draft(ipp, "update_activity")

    clean = _clean_activity(data, partial=True)
    if "code" in clean and _code_taken(ipp.id, clean["code"], exclude_id=activity.id):
        raise ConflictError("Activity", "code", clean["code"])

    for field, value in clean.items():
        setattr(activity, field, value)
    commit_or_raise("update_activity", resource="Activity", field="code", value=activity.code)
    return activity, _weight_feedback(ipp)


def delete_activity(actor: ActorContext, ipp_id: str, activity_id: int) -> dict:
    ipp = q.get_ipp(ipp_id)
    activity = q.get_activity(ipp_id, activity_id)
    _require_owner(actor, ipp, "delete_activity")
    ensure_draft(ipp, "delete_activity")

    db.session.delete(activity)
    commit_or_raise("delete_activity")
    return _weight_feedback(ipp)
