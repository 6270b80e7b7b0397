"""Shared utility functions.

normalize_payload:   the single inbound wire-name boundary (camelCase / legacy → snake_case)
parse_month:         1–12 month guard used by ledger and blueprints
commit_or_raise:     service-layer commit that maps driver errors onto the exception hierarchy
format_file_size:    evidence size display (base 1024)
"""
import logging
import math
import re
from urllib.parse import unquote

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from pms.core.exceptions import ConflictError, TransportError, ValidationError
from pms.models import db

logger = logging.getLogger(__name__)


# ── Wire-name normalization ──────────────────────────────────────────────────

# Legacy field names seen on the wire that do not map mechanically.
_ALIASES = {
    "ipp": "id",
    "ippId": "ipp_id",
    "npk": "owner_npk",
    "activity": "code",
    "activity_category": "category",
    "activity_name": "name",
    "achievement_value": "value",
    "submitAt": "submitted_at",
    "routine": "routine_limit",
    "non_routine": "non_routine_limit",
    "project": "project_limit",
    "privillege": "role",
    "file_path": "file_reference",
    "fileSize": "file_size",
    "mimeType": "mime_type",
}

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def normalize_payload(data: dict | None, *, aliases: dict | None = None) -> dict:
    """Return a copy of an inbound JSON object with internal snake_case keys.

    Explicit aliases win over the mechanical camelCase conversion; when both
    a legacy and an internal key are present, the internal key is kept.
    Nested lists of objects (e.g. ``activities``) are normalized too.
    """
    if not data:
        return {}
    mapping = dict(_ALIASES)
    if aliases:
        mapping.update(aliases)

    out: dict = {}
    for key, value in data.items():
        target = mapping.get(key) or _snake(key)
        if isinstance(value, list):
            value = [normalize_payload(v, aliases=aliases) if isinstance(v, dict) else v for v in value]
        if target in out and target == key:
            out[target] = value
        else:
            out.setdefault(target, value)
    return out


# ── Input guards ─────────────────────────────────────────────────────────────

def parse_month(value) -> int:
    """Coerce a month to int and require 1 <= month <= 12."""
    try:
        month = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("month must be an integer", details={"month": value}) from exc
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12", details={"month": month})
    return month


def parse_optional_number(value, field: str):
    """Return None for null/empty, float otherwise; ValidationError on junk."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={field: value})
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a number", details={field: value}) from exc
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{field} must be a finite number", details={field: value})
    return number


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_raise(operation: str, *, resource: str | None = None, field: str | None = None, value=None):
    """Commit the current session or raise a service-layer exception.

    IntegrityError  → ConflictError (duplicate / constraint violation)
    OperationalError and other driver errors → TransportError

    The session is always rolled back on failure so no partial write
    survives.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error during %s: %s", operation, exc.orig)
        raise ConflictError(resource or operation, field or "key", value) from exc
    except OperationalError as exc:
        db.session.rollback()
        logger.exception("Database operational error during %s", operation)
        raise TransportError(operation, str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Unexpected database error during %s", operation)
        raise TransportError(operation, type(exc).__name__) from exc


# ── Evidence presentation ────────────────────────────────────────────────────

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_file_size(num_bytes: int) -> str:
    """Human-readable size: 0 Bytes, 512 Bytes, 1.5 KB, 2.25 MB …"""
    if not num_bytes or num_bytes <= 0:
        return "0 Bytes"
    size = float(num_bytes)
    i = 0
    while size >= 1024 and i < len(_SIZE_UNITS) - 1:
        size /= 1024
        i += 1
    text = f"{size:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[i]}"


def file_name_from_reference(reference: str | None) -> str:
    """Last path segment of a file reference, URL-decoded."""
    if not reference:
        return "Unknown file"
    name = reference.rstrip("/").split("/")[-1] or "Unknown file"
    return unquote(name)
