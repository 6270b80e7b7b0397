"""
Storage models for the IPP performance-appraisal tracker.

The shared Flask-SQLAlchemy handle lives here so every model module and
service imports it from one place:

    from pms.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


# ── Shared status vocabularies ──────────────────────────────────────────────

ROLES = ("USER", "OPERATION", "ADMIN")
REVIEWER_ROLES = frozenset({"OPERATION", "ADMIN"})

VERIFY_STATUSES = ("PENDING", "VERIFIED", "REJECTED")
APPROVAL_STATUSES = ("PENDING", "APPROVED", "REJECTED")

ACTIVITY_CATEGORIES = ("ROUTINE", "NON_ROUTINE", "PROJECT")
COUNT_STATUSES = ("COUNT", "NOT_COUNT")

MONTHS = tuple(range(1, 13))
