"""IPP blueprint — plan header, activities, workflow transitions, summary.

Endpoint groups:
  Plans               GET/POST        /api/v1/ipps
                      GET/PATCH/DELETE /api/v1/ipps/<ipp_id>
  Activities          GET/POST        /api/v1/ipps/<ipp_id>/activities
                      PUT/DELETE      /api/v1/ipps/<ipp_id>/activities/<activity_id>
  Weight report       GET             /api/v1/ipps/<ipp_id>/weights
  Workflow            POST            /api/v1/ipps/<ipp_id>/submit
                      PATCH           /api/v1/ipps/<ipp_id>/verification
                      PATCH           /api/v1/ipps/<ipp_id>/approval
  Monthly sign-off    GET             /api/v1/ipps/<ipp_id>/monthly-approvals
                      PATCH           /api/v1/monthly-approvals/<id>
  Executive summary   GET             /api/v1/ipps/<ipp_id>/executive-summary[?format=xlsx|csv]

The actor comes from the JWT middleware; services own validation,
permission checks and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, jsonify, request, send_file

from pms.blueprints import int_arg, json_body, require_actor, required_field
from pms.services import executive_summary, export_service, ipp_service, ipp_workflow
from pms.services.helpers.scoped_queries import list_monthly_approvals
from pms.utils.errors import MalformedRequest, register_error_handlers

logger = logging.getLogger(__name__)

ipp_bp = Blueprint("ipp", __name__, url_prefix="/api/v1")
register_error_handlers(ipp_bp)


def _ipp_view(actor, ipp, include_activities: bool = False) -> dict:
    d = ipp.to_dict(include_activities=include_activities)
    d["available_transitions"] = ipp_workflow.available_transitions(actor, ipp)
    d["status_message"] = ipp_workflow.status_message(ipp)
    return d


# ═════════════════════════════════════════════════════════════════════════
# Plans
# ═════════════════════════════════════════════════════════════════════════


@ipp_bp.route("/ipps", methods=["GET"])
def list_ipps():
    """List plans visible to the caller.

    Query params: owner_npk, status (pending|verified|approved|rejected),
    year, search, scope (active|approved — needs owner_npk or defaults to self).
    """
    actor = require_actor()
    scope = request.args.get("scope")
    owner_npk = request.args.get("owner_npk") or None
    if scope == "active":
        items = ipp_service.list_active_ipps(actor, owner_npk or actor.npk)
    elif scope == "approved":
        items = ipp_service.list_approved_ipps(actor, owner_npk or actor.npk)
    elif scope:
        raise MalformedRequest("scope must be 'active' or 'approved'", field="scope")
    else:
        items = ipp_service.list_ipps(
            actor,
            owner_npk=owner_npk,
            status=request.args.get("status") or None,
            year=int_arg("year"),
            search=request.args.get("search") or None,
        )
    return jsonify({"items": [i.to_dict() for i in items], "total": len(items)}), 200


@ipp_bp.route("/ipps", methods=["POST"])
def create_ipp():
    actor = require_actor()
    data = json_body()
    required_field(data, "id")
    ipp = ipp_service.create_ipp(actor, data)
    return jsonify(_ipp_view(actor, ipp, include_activities=True)), 201


@ipp_bp.route("/ipps/<ipp_id>", methods=["GET"])
def get_ipp(ipp_id):
    actor = require_actor()
    ipp = ipp_service.get_ipp(actor, ipp_id)
    return jsonify(_ipp_view(actor, ipp, include_activities=True)), 200


@ipp_bp.route("/ipps/<ipp_id>", methods=["PATCH"])
def update_ipp(ipp_id):
    actor = require_actor()
    ipp = ipp_service.update_ipp_header(actor, ipp_id, json_body())
    return jsonify(_ipp_view(actor, ipp)), 200


@ipp_bp.route("/ipps/<ipp_id>", methods=["DELETE"])
def delete_ipp(ipp_id):
    actor = require_actor()
    ipp_service.delete_ipp(actor, ipp_id)
    return jsonify({"message": f"IPP {ipp_id} deleted"}), 200


# ═════════════════════════════════════════════════════════════════════════
# Activities
# ═════════════════════════════════════════════════════════════════════════


@ipp_bp.route("/ipps/<ipp_id>/activities", methods=["GET"])
def list_activities(ipp_id):
    actor = require_actor()
    items = ipp_service.list_activities(actor, ipp_id)
    return jsonify({"items": [a.to_dict() for a in items], "total": len(items)}), 200


@ipp_bp.route("/ipps/<ipp_id>/activities", methods=["POST"])
def create_activity(ipp_id):
    actor = require_actor()
    activity, feedback = ipp_service.create_activity(actor, ipp_id, json_body())
    return jsonify({"activity": activity.to_dict(), **feedback}), 201


@ipp_bp.route("/ipps/<ipp_id>/activities/<int:activity_id>", methods=["PUT"])
def update_activity(ipp_id, activity_id):
    actor = require_actor()
    activity, feedback = ipp_service.update_activity(actor, ipp_id, activity_id, json_body())
    return jsonify({"activity": activity.to_dict(), **feedback}), 200


@ipp_bp.route("/ipps/<ipp_id>/activities/<int:activity_id>", methods=["DELETE"])
def delete_activity(ipp_id, activity_id):
    actor = require_actor()
    feedback = ipp_service.delete_activity(actor, ipp_id, activity_id)
    return jsonify({"message": "Activity deleted", **feedback}), 200


@ipp_bp.route("/ipps/<ipp_id>/weights", methods=["GET"])
def weight_report(ipp_id):
    actor = require_actor()
    return jsonify(ipp_service.weight_report(actor, ipp_id)), 200


# ═════════════════════════════════════════════════════════════════════════
# Workflow
# ═════════════════════════════════════════════════════════════════════════


@ipp_bp.route("/ipps/<ipp_id>/submit", methods=["POST"])
def submit_ipp(ipp_id):
    actor = require_actor()
    return jsonify(ipp_workflow.submit_ipp(actor, ipp_id)), 200


@ipp_bp.route("/ipps/<ipp_id>/verification", methods=["PATCH"])
def set_verification(ipp_id):
    actor = require_actor()
    status = required_field(json_body(), "status")
    return jsonify(ipp_workflow.set_verify(actor, ipp_id, status)), 200


@ipp_bp.route("/ipps/<ipp_id>/approval", methods=["PATCH"])
def set_approval(ipp_id):
    actor = require_actor()
    status = required_field(json_body(), "status")
    return jsonify(ipp_workflow.set_approval(actor, ipp_id, status)), 200


@ipp_bp.route("/ipps/<ipp_id>/monthly-approvals", methods=["GET"])
def get_monthly_approvals(ipp_id):
    actor = require_actor()
    ipp_service.get_ipp(actor, ipp_id)
    items = list_monthly_approvals(ipp_id)
    return jsonify({"items": [m.to_dict() for m in items], "total": len(items)}), 200


@ipp_bp.route("/monthly-approvals/<int:monthly_approval_id>", methods=["PATCH"])
def set_monthly_approval(monthly_approval_id):
    actor = require_actor()
    status = required_field(json_body(aliases={"approval": "status"}), "status")
    return jsonify(ipp_workflow.set_monthly_approval(actor, monthly_approval_id, status)), 200


# ═════════════════════════════════════════════════════════════════════════
# Executive summary
# ═════════════════════════════════════════════════════════════════════════


@ipp_bp.route("/ipps/<ipp_id>/executive-summary", methods=["GET"])
def get_executive_summary(ipp_id):
    actor = require_actor()
    summary = executive_summary.build_executive_summary(actor, ipp_id)

    fmt = request.args.get("format", "json")
    if fmt == "json":
        return jsonify(summary.to_dict()), 200
    if fmt == "xlsx":
        buf = export_service.export_summary_xlsx(summary)
        return send_file(
            buf,
            mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            as_attachment=True,
            download_name=f"executive_summary_{ipp_id}.xlsx",
        )
    if fmt == "csv":
        return Response(
            export_service.export_summary_csv(summary),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename=executive_summary_{ipp_id}.csv"},
        )
    raise MalformedRequest("format must be json, xlsx or csv", field="format")
