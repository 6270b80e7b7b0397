"""Master data service — Category, Department and User reference records.

Reads are open to every authenticated actor; writes are ADMIN-only, except
that a user may edit their own profile (never their role or department).
Category limits are fractions of 1.0 and must stay within [0, 1].
"""
import logging

from sqlalchemy import select

from pms.core.actor import ActorContext
from pms.core.exceptions import ConflictError, ForbiddenError, NotFoundError, StateError, ValidationError
from pms.models import ROLES, db
from pms.models.ipp import Ipp
from pms.models.reference import Category, Department, User
from pms.utils.helpers import commit_or_raise, parse_optional_number

logger = logging.getLogger(__name__)

LIMIT_FIELDS = ("routine_limit", "non_routine_limit", "project_limit")
USER_FIELDS = ("name", "role", "department_id", "section", "position", "grade")
ADMIN_USER_FIELDS = ("role", "department_id")


def _require_admin(actor: ActorContext, action: str) -> None:
    if not actor.is_admin:
        raise ForbiddenError(actor.npk, action, "ADMIN")


def _required_name(data: dict, field: str = "name") -> str:
    name = str(data.get(field) or "").strip()
    if not name:
        raise ValidationError(f"{field} is required", details={"field": field})
    return name


def _name_taken(model, name: str, exclude_id=None) -> bool:
    stmt = select(model.id).where(model.name == name)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    return db.session.execute(stmt).first() is not None


# ── Category ─────────────────────────────────────────────────────────────


def _clean_limits(data: dict, *, partial: bool) -> dict:
    limits = {}
    for field in LIMIT_FIELDS:
        if field not in data and partial:
            continue
        value = parse_optional_number(data.get(field), field)
        if value is None:
            value = 0.0
        if not 0.0 <= value <= 1.0:
            raise ValidationError(f"{field} must be between 0 and 1", details={field: value})
        limits[field] = value
    return limits


def list_categories() -> list[Category]:
    return list(db.session.execute(select(Category).order_by(Category.name)).scalars())


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError(resource="Category", resource_id=category_id)
    return category


def create_category(actor: ActorContext, data: dict) -> Category:
    _require_admin(actor, "create_category")
    name = _required_name(data)
    limits = _clean_limits(data, partial=False)
    if _name_taken(Category, name):
        raise ConflictError("Category", "name", name)

    category = Category(name=name, **limits)
    db.session.add(category)
    commit_or_raise("create_category", resource="Category", field="name", value=name)
    logger.info("Category %s created", name, extra={"npk": actor.npk, "event_type": "master.category"})
    return category


def update_category(actor: ActorContext, category_id: int, data: dict) -> Category:
    _require_admin(actor, "update_category")
    category = get_category(category_id)
    if "name" in data:
        name = _required_name(data)
        if _name_taken(Category, name, exclude_id=category.id):
            raise ConflictError("Category", "name", name)
        category.name = name
    for field, value in _clean_limits(data, partial=True).items():
        setattr(category, field, value)
    commit_or_raise("update_category", resource="Category", field="name", value=category.name)
    return category


# ── Department ───────────────────────────────────────────────────────────


def list_departments() -> list[Department]:
    return list(db.session.execute(select(Department).order_by(Department.name)).scalars())


def get_department(department_id: int) -> Department:
    department = db.session.get(Department, department_id)
    if department is None:
        raise NotFoundError(resource="Department", resource_id=department_id)
    return department


def create_department(actor: ActorContext, data: dict) -> Department:
    _require_admin(actor, "create_department")
    name = _required_name(data)
    if _name_taken(Department, name):
        raise ConflictError("Department", "name", name)
    department = Department(name=name)
    db.session.add(department)
    commit_or_raise("create_department", resource="Department", field="name", value=name)
    return department


def update_department(actor: ActorContext, department_id: int, data: dict) -> Department:
    _require_admin(actor, "update_department")
    department = get_department(department_id)
    name = _required_name(data)
    if _name_taken(Department, name, exclude_id=department.id):
        raise ConflictError("Department", "name", name)
    department.name = name
    commit_or_raise("update_department", resource="Department", field="name", value=name)
    return department


# ── User ─────────────────────────────────────────────────────────────────


def _clean_user(data: dict) -> dict:
    clean = {k: data[k] for k in USER_FIELDS if k in data}
    if "name" in clean:
        clean["name"] = _required_name(clean)
    if "role" in clean and clean["role"] not in ROLES:
        raise ValidationError(
            f"Invalid role '{clean['role']}'",
            details={"role": clean["role"], "allowed": list(ROLES)},
        )
    if clean.get("department_id") is not None:
        get_department(clean["department_id"])
    if clean.get("grade") is not None:
        try:
            clean["grade"] = int(clean["grade"])
        except (TypeError, ValueError) as exc:
            raise ValidationError("grade must be an integer", details={"grade": clean["grade"]}) from exc
    return clean


def list_users(department_id=None, role=None) -> list[User]:
    stmt = select(User)
    if department_id is not None:
        stmt = stmt.where(User.department_id == department_id)
    if role:
        stmt = stmt.where(User.role == role)
    return list(db.session.execute(stmt.order_by(User.npk)).scalars())


def get_user_profile(npk: str) -> User:
    user = db.session.get(User, npk)
    if user is None:
        raise NotFoundError(resource="User", resource_id=npk)
    return user


def create_user(actor: ActorContext, data: dict) -> User:
    _require_admin(actor, "create_user")
    npk = str(data.get("npk") or "").strip()
    if not npk:
        raise ValidationError("npk is required", details={"field": "npk"})
    if "name" not in data:
        raise ValidationError("name is required", details={"field": "name"})
    clean = _clean_user(data)
    if db.session.get(User, npk) is not None:
        raise ConflictError("User", "npk", npk)

    user = User(npk=npk, **clean)
    db.session.add(user)
    commit_or_raise("create_user", resource="User", field="npk", value=npk)
    logger.info("User %s created with role %s", npk, user.role, extra={"npk": actor.npk, "event_type": "master.user"})
    return user


def update_user(actor: ActorContext, npk: str, data: dict) -> User:
    """ADMIN edits anyone; a user edits their own profile minus role and department."""
    if not actor.is_admin:
        if actor.npk != npk:
            raise ForbiddenError(actor.npk, "update_user", "ADMIN or profile owner")
        locked = [f for f in ADMIN_USER_FIELDS if f in data]
        if locked:
            raise ForbiddenError(actor.npk, f"update_user:{','.join(locked)}", "ADMIN")
    user = get_user_profile(npk)
    for field, value in _clean_user(data).items():
        setattr(user, field, value)
    commit_or_raise("update_user")
    return user


def delete_user(actor: ActorContext, npk: str) -> None:
    """Remove a user and their draft IPPs. Owners of a submitted IPP are kept."""
    _require_admin(actor, "delete_user")
    user = get_user_profile(npk)
    submitted = db.session.execute(
        select(Ipp.id).where(Ipp.owner_npk == npk, Ipp.submitted_at.isnot(None))
    ).scalars().all()
    if submitted:
        raise StateError(
            f"User {npk}",
            "delete_user",
            f"owns {len(submitted)} submitted IPP(s)",
            "users with submitted plans cannot be deleted",
        )

    drafts = db.session.execute(select(Ipp).where(Ipp.owner_npk == npk)).scalars().all()
    for ipp in drafts:
        db.session.delete(ipp)
    db.session.delete(user)
    commit_or_raise("delete_user")
    logger.info(
        "User %s deleted with %d draft IPP(s)",
        npk,
        len(drafts),
        extra={"npk": actor.npk, "event_type": "master.user"},
    )
