"""Health checks and the echo endpoint."""
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text

from procurement.db.engine import session_scope

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Basic health check endpoint."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Ready once the database answers."""
    with session_scope(current_app.extensions["session_factory"]) as session:
        session.execute(text("SELECT 1"))
    return ("ready", 200, {"Content-Type": "text/plain"})


@bp.route("/", methods=["GET"])
def echo_hello():
    return jsonify("Hello World"), 200


@bp.route("/", methods=["POST"])
def echo():
    """Return the JSON body unchanged."""
    return jsonify(request.get_json(silent=True)), 200
