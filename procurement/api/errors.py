"""Error handlers rendering every failure as a problem-details JSON body."""
from __future__ import annotations
import logging
import uuid
from typing import Optional

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from procurement.core.errors import ProblemError, problem_type

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-Id"


def get_trace_id() -> str:
    """Inbound correlation id, or a fresh one per request."""
    trace_id = g.get("trace_id")
    if trace_id is None:
        trace_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        g.trace_id = trace_id
    return trace_id


def problem_response(status: int, title: str, detail: Optional[str] = None):
    """Problem body without a business error code (401, 404, 405, 500...)."""
    body = {
        "type": problem_type(status),
        "title": title,
        "status": status,
        "trace_id": get_trace_id(),
    }
    if detail:
        body["detail"] = detail
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    """Register error handlers with the Flask app."""

    @app.errorhandler(ProblemError)
    def handle_problem(error: ProblemError):
        return jsonify(error.to_dict(get_trace_id())), error.status

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        return problem_response(error.code or 500, error.name, error.description)

    @app.errorhandler(Exception)
    def handle_exception(error: Exception):
        # Always log the full error, never return it
        logger.error(f"Unhandled exception: {error}", exc_info=True)
        return problem_response(500, "Internal Server Error", "An unexpected error occurred")
