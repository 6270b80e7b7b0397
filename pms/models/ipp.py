"""
Individual Performance Plan — Ipp, Activity, MonthlyApproval.

Lifecycle (IPP level):
    draft (submitted_at NULL)  --submit-->  submitted
    verify:   PENDING -> VERIFIED | REJECTED      (reviewer, after submit)
    approval: PENDING -> APPROVED | REJECTED      (reviewer, after VERIFIED)

Invariants kept by the workflow service:
  - submitted_at NULL  =>  verify == approval == PENDING
  - approval != PENDING  =>  verify == VERIFIED
  - submitted_at set  =>  the Activity set is frozen
"""

from datetime import datetime, timezone

from pms.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class Ipp(db.Model):
    """Yearly plan of weighted activities owned by one employee."""

    __tablename__ = "ipps"

    id = db.Column(
        db.String(64),
        primary_key=True,
        comment="Human-assigned plan identifier (e.g. IPP-2025-00123)",
    )
    year = db.Column(db.Integer, nullable=False, index=True)
    owner_npk = db.Column(
        db.String(32),
        db.ForeignKey("users.npk", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id = db.Column(
        db.Integer,
        db.ForeignKey("categories.id"),
        nullable=False,
    )
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    verify = db.Column(
        db.String(20),
        nullable=False,
        default="PENDING",
        comment="PENDING | VERIFIED | REJECTED",
    )
    approval = db.Column(
        db.String(20),
        nullable=False,
        default="PENDING",
        comment="PENDING | APPROVED | REJECTED",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    owner = db.relationship("User", lazy="joined")
    category = db.relationship("Category", lazy="joined")
    activities = db.relationship(
        "Activity",
        back_populates="ipp",
        cascade="all, delete-orphan",
        order_by="Activity.id",
    )
    monthly_approvals = db.relationship(
        "MonthlyApproval",
        back_populates="ipp",
        cascade="all, delete-orphan",
        order_by="MonthlyApproval.month",
    )

    @property
    def is_draft(self) -> bool:
        return self.submitted_at is None

    @property
    def is_rejected(self) -> bool:
        return self.verify == "REJECTED" or self.approval == "REJECTED"

    def to_dict(self, include_activities: bool = False) -> dict:
        d = {
            "id": self.id,
            "year": self.year,
            "owner_npk": self.owner_npk,
            "owner_name": self.owner.name if self.owner else None,
            "category_id": self.category_id,
            "category": self.category.to_dict() if self.category else None,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "verify": self.verify,
            "approval": self.approval,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_activities:
            d["activities"] = [a.to_dict() for a in self.activities]
        return d

    def __repr__(self) -> str:
        return f"<Ipp {self.id} {self.year} verify={self.verify} approval={self.approval}>"


class Activity(db.Model):
    """Weighted KPI line item. Weight is a fraction of 1.0."""

    __tablename__ = "activities"

    id = db.Column(db.Integer, primary_key=True)
    ipp_id = db.Column(
        db.String(64),
        db.ForeignKey("ipps.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code = db.Column(db.String(50), nullable=False)
    category = db.Column(
        db.String(20),
        nullable=False,
        comment="ROUTINE | NON_ROUTINE | PROJECT",
    )
    name = db.Column(db.String(255), nullable=False)
    kpi = db.Column(db.Text, nullable=False)
    weight = db.Column(db.Float, nullable=False, default=0.0)
    target = db.Column(db.Text, nullable=False)
    deliverable = db.Column(db.Text, nullable=False)

    ipp = db.relationship("Ipp", back_populates="activities")
    achievements = db.relationship(
        "Achievement",
        back_populates="activity",
        cascade="all, delete-orphan",
        order_by="Achievement.month",
    )

    __table_args__ = (
        db.UniqueConstraint("ipp_id", "code", name="uq_activity_ipp_code"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ipp_id": self.ipp_id,
            "code": self.code,
            "category": self.category,
            "name": self.name,
            "kpi": self.kpi,
            "weight": self.weight,
            "target": self.target,
            "deliverable": self.deliverable,
        }

    def __repr__(self) -> str:
        return f"<Activity #{self.id} {self.ipp_id}/{self.code} w={self.weight}>"


class MonthlyApproval(db.Model):
    """Per-month sign-off, twelve rows per IPP, created with the IPP."""

    __tablename__ = "monthly_approvals"

    id = db.Column(db.Integer, primary_key=True)
    ipp_id = db.Column(
        db.String(64),
        db.ForeignKey("ipps.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month = db.Column(db.Integer, nullable=False)
    approval = db.Column(
        db.String(20),
        nullable=False,
        default="PENDING",
        comment="PENDING | APPROVED | REJECTED",
    )
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    ipp = db.relationship("Ipp", back_populates="monthly_approvals")

    __table_args__ = (
        db.UniqueConstraint("ipp_id", "month", name="uq_monthly_approval_ipp_month"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ipp_id": self.ipp_id,
            "month": self.month,
            "approval": self.approval,
        }

    def __repr__(self) -> str:
        return f"<MonthlyApproval {self.ipp_id}/{self.month} {self.approval}>"
