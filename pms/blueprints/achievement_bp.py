"""Achievement blueprint — monthly values, verification and evidence.

Endpoint groups:
  Achievements   GET   /api/v1/ipps/<ipp_id>/activities/<activity_id>/achievements
                 GET   /api/v1/ipps/<ipp_id>/activities/<activity_id>/achievements/<month>
                 PUT   /api/v1/ipps/<ipp_id>/activities/<activity_id>/achievements/<month>
  Verification   PATCH /api/v1/ipps/<ipp_id>/activities/<activity_id>/achievements/<month>/verification
  Evidence       GET   /api/v1/ipps/<ipp_id>/activities/<activity_id>/achievements/<month>/evidences
                 POST  /api/v1/ipps/<ipp_id>/activities/<activity_id>/achievements/<month>/evidences
                 DELETE /api/v1/evidences/<evidence_id>
  Drill-through  GET   /api/v1/ipps/<ipp_id>/activities/<activity_id>/detail

Month is taken as a string from the URL so a non-numeric value answers 400
rather than a routing 404.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify

from pms.blueprints import json_body, require_actor, required_field
from pms.services import achievement_ledger, ipp_service
from pms.utils.errors import MalformedRequest, register_error_handlers

logger = logging.getLogger(__name__)

achievement_bp = Blueprint("achievement", __name__, url_prefix="/api/v1")
register_error_handlers(achievement_bp)

_BASE = "/ipps/<ipp_id>/activities/<int:activity_id>"


def _url_month(month: str) -> int:
    if not month.isdigit():
        raise MalformedRequest("month must be an integer", field="month")
    return int(month)


@achievement_bp.route(f"{_BASE}/achievements", methods=["GET"])
def list_achievements(ipp_id, activity_id):
    actor = require_actor()
    ipp_service.get_ipp(actor, ipp_id)
    items = achievement_ledger.list_achievements(ipp_id, activity_id)
    return jsonify({"items": [a.to_dict() for a in items], "total": len(items)}), 200


@achievement_bp.route(f"{_BASE}/achievements/<month>", methods=["GET"])
def get_achievement(ipp_id, activity_id, month):
    actor = require_actor()
    ipp_service.get_ipp(actor, ipp_id)
    achievement = achievement_ledger.get_achievement(ipp_id, activity_id, _url_month(month))
    return jsonify(achievement.to_dict()), 200


@achievement_bp.route(f"{_BASE}/achievements/<month>", methods=["PUT"])
def upsert_achievement(ipp_id, activity_id, month):
    """Create or update one month's value. Body: {value, status}."""
    actor = require_actor()
    data = json_body()
    achievement = achievement_ledger.upsert(
        actor,
        ipp_id,
        activity_id,
        _url_month(month),
        value=data.get("value"),
        status=data.get("status", "NOT_COUNT"),
    )
    return jsonify(achievement.to_dict()), 200


@achievement_bp.route(f"{_BASE}/achievements/<month>/verification", methods=["PATCH"])
def set_achievement_verify(ipp_id, activity_id, month):
    actor = require_actor()
    status = required_field(json_body(), "status")
    achievement = achievement_ledger.get_achievement(ipp_id, activity_id, _url_month(month))
    achievement = achievement_ledger.set_verify(actor, achievement.id, status)
    return jsonify(achievement.to_dict()), 200


@achievement_bp.route(f"{_BASE}/achievements/<month>/evidences", methods=["GET"])
def list_evidence(ipp_id, activity_id, month):
    actor = require_actor()
    ipp_service.get_ipp(actor, ipp_id)
    items = achievement_ledger.list_evidence(ipp_id, activity_id, _url_month(month))
    return jsonify({"items": [e.to_dict() for e in items], "total": len(items)}), 200


@achievement_bp.route(f"{_BASE}/achievements/<month>/evidences", methods=["POST"])
def upload_evidence(ipp_id, activity_id, month):
    """Register an already-stored file. Body: {file_reference, file_size?, mime_type?}."""
    actor = require_actor()
    data = json_body()
    file_reference = required_field(data, "file_reference")
    achievement = achievement_ledger.get_achievement(ipp_id, activity_id, _url_month(month))
    evidence = achievement_ledger.attach_evidence(
        actor,
        achievement.id,
        file_reference,
        file_size=data.get("file_size"),
        mime_type=data.get("mime_type"),
    )
    return jsonify(evidence.to_dict()), 201


@achievement_bp.route("/evidences/<int:evidence_id>", methods=["DELETE"])
def delete_evidence(evidence_id):
    actor = require_actor()
    achievement_ledger.remove_evidence(actor, evidence_id)
    return jsonify({"message": "Evidence deleted"}), 200


@achievement_bp.route(f"{_BASE}/detail", methods=["GET"])
def activity_detail(ipp_id, activity_id):
    actor = require_actor()
    return jsonify(achievement_ledger.activity_detail(actor, ipp_id, activity_id)), 200
