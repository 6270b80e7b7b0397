"""
Reference data maintained by administrators: Category, Department, User.

Category limits are fractions of 1.0 (0.6 == 60 %). They are read by the
weight allocator and never mutated by the IPP workflow.
"""

from datetime import datetime, timezone

from pms.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class Category(db.Model):
    """Weight envelope an IPP must respect, per activity category."""

    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    routine_limit = db.Column(db.Float, nullable=False, default=0.0)
    non_routine_limit = db.Column(db.Float, nullable=False, default=0.0)
    project_limit = db.Column(db.Float, nullable=False, default=0.0)

    def limit_for(self, activity_category: str) -> float:
        """Return the limit matching an Activity.category value."""
        return {
            "ROUTINE": self.routine_limit,
            "NON_ROUTINE": self.non_routine_limit,
            "PROJECT": self.project_limit,
        }[activity_category]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "routine_limit": self.routine_limit,
            "non_routine_limit": self.non_routine_limit,
            "project_limit": self.project_limit,
        }

    def __repr__(self) -> str:
        return f"<Category #{self.id} {self.name}>"


class Department(db.Model):
    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    def __repr__(self) -> str:
        return f"<Department #{self.id} {self.name}>"


class User(db.Model):
    """
    Employee profile keyed by NPK (employee number).

    role drives every workflow permission:
      USER       — plan owner, may only touch their own IPPs
      OPERATION  — reviewer, may verify / approve
      ADMIN      — reviewer plus master-data maintenance
    """

    __tablename__ = "users"

    npk = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(
        db.String(20),
        nullable=False,
        default="USER",
        comment="USER | OPERATION | ADMIN",
    )
    department_id = db.Column(
        db.Integer,
        db.ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    section = db.Column(db.String(100), nullable=True)
    position = db.Column(db.String(100), nullable=True)
    grade = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    department = db.relationship("Department", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "npk": self.npk,
            "name": self.name,
            "role": self.role,
            "department_id": self.department_id,
            "department": self.department.to_dict() if self.department else None,
            "section": self.section,
            "position": self.position,
            "grade": self.grade,
        }

    def __repr__(self) -> str:
        return f"<User {self.npk} {self.role}>"
