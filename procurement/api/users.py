"""Users API: registration, approval workflow and profile maintenance."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from procurement.api.decorators import authenticate, get_caller, require_roles
from procurement.core.constants import RoleId
from procurement.core.users import UserLifecycleManager

bp = Blueprint("users", __name__)


def _manager() -> UserLifecycleManager:
    return current_app.extensions["user_manager"]


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


@bp.route("", methods=["POST"])
@authenticate(optional=True)
def create_user():
    """Register a user; anonymous self-registration needs a reCAPTCHA payload."""
    return jsonify(_manager().create(_json_body(), get_caller())), 200


@bp.route("/<path:email>", methods=["GET"])
@authenticate()
@require_roles(RoleId.USER, RoleId.COORDINATOR, RoleId.ADMIN)
def get_user(email: str):
    return jsonify(_manager().get(email, get_caller())), 200


@bp.route("", methods=["GET"])
@authenticate()
@require_roles(RoleId.ADMIN)
def list_users():
    return jsonify({"users": _manager().get_all(get_caller())}), 200


@bp.route("/<path:email>", methods=["PATCH"])
@authenticate()
@require_roles(RoleId.USER, RoleId.COORDINATOR, RoleId.ADMIN)
def update_user(email: str):
    """Owners edit their names; Admins also change role, status and email."""
    return jsonify(_manager().update(email, _json_body(), get_caller())), 200


@bp.route("/<path:email>", methods=["DELETE"])
@authenticate()
@require_roles(RoleId.ADMIN)
def delete_user(email: str):
    _manager().delete(email, get_caller())
    return "", 200
