"""
Monthly achievements and their supporting evidence.

One Achievement per (activity, month) — enforced by a unique constraint and
by the ledger's upsert. Evidence rows only hold a pointer to stored content;
the file bytes live in the external file store.
"""

from datetime import datetime, timezone

from pms.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class Achievement(db.Model):
    __tablename__ = "achievements"

    id = db.Column(db.Integer, primary_key=True)
    activity_id = db.Column(
        db.Integer,
        db.ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month = db.Column(db.Integer, nullable=False)
    value = db.Column(
        db.Float,
        nullable=True,
        comment="Reported value on the percentage-of-target scale; NULL scores as 0",
    )
    status = db.Column(
        db.String(20),
        nullable=False,
        default="NOT_COUNT",
        comment="COUNT | NOT_COUNT",
    )
    verify = db.Column(
        db.String(20),
        nullable=False,
        default="PENDING",
        comment="PENDING | VERIFIED | REJECTED",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    activity = db.relationship("Activity", back_populates="achievements")
    evidences = db.relationship(
        "Evidence",
        back_populates="achievement",
        cascade="all, delete-orphan",
        order_by="Evidence.id",
    )

    __table_args__ = (
        db.UniqueConstraint("activity_id", "month", name="uq_achievement_activity_month"),
    )

    def to_dict(self) -> dict:
        from pms.services.score_calculator import format_score, score

        weight = self.activity.weight if self.activity else 0.0
        weighted = score(self.value, weight)
        return {
            "id": self.id,
            "activity_id": self.activity_id,
            "month": self.month,
            "value": self.value,
            "status": self.status,
            "verify": self.verify,
            "score": weighted,
            "score_display": format_score(weighted),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Achievement #{self.id} activity={self.activity_id} m={self.month}>"


class Evidence(db.Model):
    __tablename__ = "evidences"

    id = db.Column(db.Integer, primary_key=True)
    achievement_id = db.Column(
        db.Integer,
        db.ForeignKey("achievements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_reference = db.Column(
        db.String(1024),
        nullable=False,
        comment="Opaque pointer (URL or object key) into the external file store",
    )
    file_size = db.Column(db.Integer, nullable=True)
    mime_type = db.Column(db.String(100), nullable=True)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    achievement = db.relationship("Achievement", back_populates="evidences")

    def to_dict(self) -> dict:
        from pms.utils.helpers import file_name_from_reference, format_file_size

        return {
            "id": self.id,
            "achievement_id": self.achievement_id,
            "file_reference": self.file_reference,
            "file_name": file_name_from_reference(self.file_reference),
            "file_size": self.file_size,
            "file_size_display": format_file_size(self.file_size) if self.file_size is not None else None,
            "mime_type": self.mime_type,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }

    def __repr__(self) -> str:
        return f"<Evidence #{self.id} achievement={self.achievement_id}>"
