"""initial_ipp_schema

Creates the IPP tracker tables:
  - categories, departments, users   — master data
  - ipps, activities                 — yearly plan and its weighted KPI lines
  - monthly_approvals                — twelve sign-off rows per plan
  - achievements, evidences          — monthly values and supporting files

Tables are created conditionally so the revision can run against a
development database that already received them via db.create_all().

Revision ID: a1c0e5d2b7f1
Revises:
Create Date: 2026-10-17 09:12:44.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'a1c0e5d2b7f1'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing = set(sa_inspect(bind).get_table_names())

    # ── Master data ──────────────────────────────────────────────────────
    if "categories" not in existing:
        op.create_table(
            "categories",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=100), nullable=False, unique=True),
            sa.Column("routine_limit", sa.Float(), nullable=False, server_default="0"),
            sa.Column("non_routine_limit", sa.Float(), nullable=False, server_default="0"),
            sa.Column("project_limit", sa.Float(), nullable=False, server_default="0"),
        )

    if "departments" not in existing:
        op.create_table(
            "departments",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=150), nullable=False, unique=True),
        )

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("npk", sa.String(length=32), primary_key=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column(
                "role", sa.String(length=20), nullable=False, server_default="USER",
                comment="USER | OPERATION | ADMIN",
            ),
            sa.Column(
                "department_id", sa.Integer(),
                sa.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column("section", sa.String(length=100), nullable=True),
            sa.Column("position", sa.String(length=100), nullable=True),
            sa.Column("grade", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_users_department_id", "users", ["department_id"])

    # ── Plans ────────────────────────────────────────────────────────────
    if "ipps" not in existing:
        op.create_table(
            "ipps",
            sa.Column(
                "id", sa.String(length=64), primary_key=True,
                comment="Human-assigned plan identifier (e.g. IPP-2025-00123)",
            ),
            sa.Column("year", sa.Integer(), nullable=False),
            sa.Column(
                "owner_npk", sa.String(length=32),
                sa.ForeignKey("users.npk", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=False),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column(
                "verify", sa.String(length=20), nullable=False, server_default="PENDING",
                comment="PENDING | VERIFIED | REJECTED",
            ),
            sa.Column(
                "approval", sa.String(length=20), nullable=False, server_default="PENDING",
                comment="PENDING | APPROVED | REJECTED",
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_ipps_year", "ipps", ["year"])
        op.create_index("ix_ipps_owner_npk", "ipps", ["owner_npk"])

    if "activities" not in existing:
        op.create_table(
            "activities",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "ipp_id", sa.String(length=64),
                sa.ForeignKey("ipps.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("code", sa.String(length=50), nullable=False),
            sa.Column(
                "category", sa.String(length=20), nullable=False,
                comment="ROUTINE | NON_ROUTINE | PROJECT",
            ),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("kpi", sa.Text(), nullable=False),
            sa.Column("weight", sa.Float(), nullable=False, server_default="0"),
            sa.Column("target", sa.Text(), nullable=False),
            sa.Column("deliverable", sa.Text(), nullable=False),
            sa.UniqueConstraint("ipp_id", "code", name="uq_activity_ipp_code"),
        )
        op.create_index("ix_activities_ipp_id", "activities", ["ipp_id"])

    if "monthly_approvals" not in existing:
        op.create_table(
            "monthly_approvals",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "ipp_id", sa.String(length=64),
                sa.ForeignKey("ipps.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("month", sa.Integer(), nullable=False),
            sa.Column(
                "approval", sa.String(length=20), nullable=False, server_default="PENDING",
                comment="PENDING | APPROVED | REJECTED",
            ),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("ipp_id", "month", name="uq_monthly_approval_ipp_month"),
        )
        op.create_index("ix_monthly_approvals_ipp_id", "monthly_approvals", ["ipp_id"])

    # ── Achievements ─────────────────────────────────────────────────────
    if "achievements" not in existing:
        op.create_table(
            "achievements",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "activity_id", sa.Integer(),
                sa.ForeignKey("activities.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("month", sa.Integer(), nullable=False),
            sa.Column("value", sa.Float(), nullable=True),
            sa.Column(
                "status", sa.String(length=20), nullable=False, server_default="NOT_COUNT",
                comment="COUNT | NOT_COUNT",
            ),
            sa.Column(
                "verify", sa.String(length=20), nullable=False, server_default="PENDING",
                comment="PENDING | VERIFIED | REJECTED",
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("activity_id", "month", name="uq_achievement_activity_month"),
        )
        op.create_index("ix_achievements_activity_id", "achievements", ["activity_id"])

    if "evidences" not in existing:
        op.create_table(
            "evidences",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "achievement_id", sa.Integer(),
                sa.ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("file_reference", sa.String(length=1024), nullable=False),
            sa.Column("file_size", sa.Integer(), nullable=True),
            sa.Column("mime_type", sa.String(length=100), nullable=True),
            sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_evidences_achievement_id", "evidences", ["achievement_id"])


def downgrade():
    for table in (
        "evidences",
        "achievements",
        "monthly_approvals",
        "activities",
        "ipps",
        "users",
        "departments",
        "categories",
    ):
        op.drop_table(table)
