"""Requests API: versioned purchase requests and their CSV export."""
from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request

from procurement.api.decorators import authenticate, get_caller, require_roles
from procurement.core.constants import RoleId
from procurement.core.csv_export import CONTENT_TYPE, export_filename, render_csv
from procurement.core.purchase_requests import RequestVersioningEngine

bp = Blueprint("purchase_requests", __name__)


def _engine() -> RequestVersioningEngine:
    return current_app.extensions["request_engine"]


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


@bp.route("", methods=["POST"])
@authenticate()
@require_roles(RoleId.USER)
def create_request():
    """Submit a request, or a new revision when ``ref_no`` is given."""
    return jsonify(_engine().create(_json_body(), get_caller())), 200


@bp.route("/<ref_no>", methods=["PATCH"])
@authenticate()
@require_roles(RoleId.COORDINATOR)
def update_request(ref_no: str):
    return jsonify(_engine().update_status(ref_no, _json_body(), get_caller())), 200


@bp.route("", methods=["GET"])
@authenticate()
@require_roles(RoleId.USER, RoleId.COORDINATOR)
def list_requests():
    return jsonify({"requests": _engine().get_all(get_caller())}), 200


@bp.route("/download", methods=["GET"])
@authenticate()
@require_roles(RoleId.USER, RoleId.COORDINATOR)
def download_requests():
    """Current revisions as CSV, one line per detail line."""
    body = render_csv(_engine().get_all_rows(get_caller()))
    return Response(
        body,
        status=200,
        content_type=CONTENT_TYPE,
        headers={"Content-Disposition": f"attachment; filename={export_filename()}"},
    )


@bp.route("/<ref_no>", methods=["DELETE"])
@authenticate()
@require_roles(RoleId.USER, RoleId.COORDINATOR)
def delete_request(ref_no: str):
    """Delete every revision of the chain."""
    _engine().delete(ref_no, get_caller())
    return "", 200
