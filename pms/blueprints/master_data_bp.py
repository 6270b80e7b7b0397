"""Master data blueprint — categories, departments, users.

  GET/POST   /api/v1/categories          GET/PUT /api/v1/categories/<id>
  GET/POST   /api/v1/departments         GET/PUT /api/v1/departments/<id>
  GET/POST   /api/v1/users               PUT/DELETE /api/v1/users/<npk>
  GET        /api/v1/users/<npk>/profile

Writes are ADMIN-only (enforced in the service); users may PUT their own profile.
"""

import logging

from flask import Blueprint, jsonify, request

from pms.blueprints import int_arg, json_body, require_actor
from pms.services import master_data_service as mds
from pms.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

master_data_bp = Blueprint("master_data", __name__, url_prefix="/api/v1")
register_error_handlers(master_data_bp)

# User payloads carry their own npk, not an IPP owner reference
_USER_ALIASES = {"npk": "npk"}


# ── Categories ───────────────────────────────────────────────────────────


@master_data_bp.route("/categories", methods=["GET"])
def list_categories():
    require_actor()
    items = mds.list_categories()
    return jsonify({"items": [c.to_dict() for c in items], "total": len(items)}), 200


@master_data_bp.route("/categories/<int:category_id>", methods=["GET"])
def get_category(category_id):
    require_actor()
    return jsonify(mds.get_category(category_id).to_dict()), 200


@master_data_bp.route("/categories", methods=["POST"])
def create_category():
    actor = require_actor()
    return jsonify(mds.create_category(actor, json_body()).to_dict()), 201


@master_data_bp.route("/categories/<int:category_id>", methods=["PUT"])
def update_category(category_id):
    actor = require_actor()
    return jsonify(mds.update_category(actor, category_id, json_body()).to_dict()), 200


# ── Departments ──────────────────────────────────────────────────────────


@master_data_bp.route("/departments", methods=["GET"])
def list_departments():
    require_actor()
    items = mds.list_departments()
    return jsonify({"items": [d.to_dict() for d in items], "total": len(items)}), 200


@master_data_bp.route("/departments/<int:department_id>", methods=["GET"])
def get_department(department_id):
    require_actor()
    return jsonify(mds.get_department(department_id).to_dict()), 200


@master_data_bp.route("/departments", methods=["POST"])
def create_department():
    actor = require_actor()
    return jsonify(mds.create_department(actor, json_body()).to_dict()), 201


@master_data_bp.route("/departments/<int:department_id>", methods=["PUT"])
def update_department(department_id):
    actor = require_actor()
    return jsonify(mds.update_department(actor, department_id, json_body()).to_dict()), 200


# ── Users ────────────────────────────────────────────────────────────────


@master_data_bp.route("/users", methods=["GET"])
def list_users():
    require_actor()
    items = mds.list_users(department_id=int_arg("department_id"), role=request.args.get("role") or None)
    return jsonify({"items": [u.to_dict() for u in items], "total": len(items)}), 200


@master_data_bp.route("/users/<npk>/profile", methods=["GET"])
def get_user_profile(npk):
    require_actor()
    return jsonify(mds.get_user_profile(npk).to_dict()), 200


@master_data_bp.route("/users", methods=["POST"])
def create_user():
    actor = require_actor()
    return jsonify(mds.create_user(actor, json_body(aliases=_USER_ALIASES)).to_dict()), 201


@master_data_bp.route("/users/<npk>", methods=["PUT"])
def update_user(npk):
    actor = require_actor()
    return jsonify(mds.update_user(actor, npk, json_body(aliases=_USER_ALIASES)).to_dict()), 200


@master_data_bp.route("/users/<npk>", methods=["DELETE"])
def delete_user(npk):
    actor = require_actor()
    mds.delete_user(actor, npk)
    return jsonify({"message": f"User {npk} deleted"}), 200
