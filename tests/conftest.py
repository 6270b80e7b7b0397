"""
Shared pytest fixtures for the IPP Performance Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test app context + drop/recreate (autouse)
    - client: Flask test client (function-scoped)
    - category / users / actors / tokens: master data and caller identities
    - make_ipp: factory for plans at any workflow stage
"""

from datetime import datetime, timezone

import pytest

from pms import create_app
from pms.core.actor import ActorContext
from pms.models import MONTHS
from pms.models import db as _db
from pms.models.ipp import Activity, Ipp, MonthlyApproval
from pms.models.reference import Category, Department, User
from pms.services.jwt_service import generate_access_token

OWNER_NPK = "10001"
OTHER_NPK = "10002"
OPERATION_NPK = "20001"
ADMIN_NPK = "90001"

# Balanced plan under the default category (ROUTINE 0.5 / NON_ROUTINE 0.2 / PROJECT 0.3)
DEFAULT_ACTIVITIES = (
    {"code": "R-01", "category": "ROUTINE", "weight": 0.3},
    {"code": "R-02", "category": "ROUTINE", "weight": 0.2},
    {"code": "N-01", "category": "NON_ROUTINE", "weight": 0.2},
    {"code": "P-01", "category": "PROJECT", "weight": 0.3},
)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Master data ──────────────────────────────────────────────────────────


@pytest.fixture()
def department():
    dept = Department(name="Finance")
    _db.session.add(dept)
    _db.session.commit()
    return dept


@pytest.fixture()
def category():
    """Staff category: ROUTINE ≤ 60 %, NON_ROUTINE ≤ 30 %, PROJECT ≤ 40 %."""
    cat = Category(name="Staff", routine_limit=0.6, non_routine_limit=0.3, project_limit=0.4)
    _db.session.add(cat)
    _db.session.commit()
    return cat


@pytest.fixture()
def users(department):
    rows = [
        User(npk=OWNER_NPK, name="Owner One", role="USER", department_id=department.id,
             section="Accounting", position="Staff", grade=3),
        User(npk=OTHER_NPK, name="Other Employee", role="USER", department_id=department.id),
        User(npk=OPERATION_NPK, name="Op Reviewer", role="OPERATION", department_id=department.id),
        User(npk=ADMIN_NPK, name="Admin User", role="ADMIN", department_id=department.id),
    ]
    _db.session.add_all(rows)
    _db.session.commit()
    return {u.npk: u for u in rows}


@pytest.fixture()
def owner(users):
    return ActorContext(npk=OWNER_NPK, role="USER")


@pytest.fixture()
def other_user(users):
    return ActorContext(npk=OTHER_NPK, role="USER")


@pytest.fixture()
def operation(users):
    return ActorContext(npk=OPERATION_NPK, role="OPERATION")


@pytest.fixture()
def admin(users):
    return ActorContext(npk=ADMIN_NPK, role="ADMIN")


def _auth_header(actor: ActorContext) -> dict:
    return {"Authorization": f"Bearer {generate_access_token(actor.npk, actor.role)}"}


@pytest.fixture()
def headers_for():
    """Factory: headers_for(actor) -> Authorization header dict."""
    return _auth_header


@pytest.fixture()
def owner_headers(owner):
    return _auth_header(owner)


@pytest.fixture()
def other_headers(other_user):
    return _auth_header(other_user)


@pytest.fixture()
def operation_headers(operation):
    return _auth_header(operation)


@pytest.fixture()
def admin_headers(admin):
    return _auth_header(admin)


# ── ORM helper factories (bypass the workflow to set any starting stage) ─


def _activity_row(row: dict) -> Activity:
    code = row["code"]
    return Activity(
        code=code,
        category=row["category"],
        name=row.get("name", f"Activity {code}"),
        kpi=row.get("kpi", f"KPI {code}"),
        weight=row["weight"],
        target=row.get("target", "Target"),
        deliverable=row.get("deliverable", "Deliverable"),
    )


@pytest.fixture()
def make_ipp(category, users):
    """Factory: make_ipp(ipp_id="IPP-T-001", submitted=False, verify=..., approval=..., activities=...)."""

    def _make(
        ipp_id: str = "IPP-T-001",
        *,
        owner_npk: str = OWNER_NPK,
        submitted: bool = False,
        verify: str = "PENDING",
        approval: str = "PENDING",
        activities=DEFAULT_ACTIVITIES,
        year: int = 2025,
    ) -> Ipp:
        ipp = Ipp(
            id=ipp_id,
            year=year,
            owner_npk=owner_npk,
            category_id=category.id,
            submitted_at=datetime.now(timezone.utc) if submitted else None,
            verify=verify,
            approval=approval,
        )
        ipp.activities = [_activity_row(a) for a in activities]
        ipp.monthly_approvals = [MonthlyApproval(month=m) for m in MONTHS]
        _db.session.add(ipp)
        _db.session.commit()
        return ipp

    return _make

