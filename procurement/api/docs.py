"""OpenAPI description of the Users and Requests APIs."""
from __future__ import annotations
import logging
from pathlib import Path
from typing import Any

import yaml
from flask import Blueprint, current_app, jsonify

from procurement.api.errors import problem_response

logger = logging.getLogger(__name__)

bp = Blueprint("docs", __name__)

DEFAULT_DOCUMENT = Path("openapi") / "procurement_openapi.yaml"


def _spec_path() -> Path:
    """OPENAPI_SPEC_PATH when configured, else the document shipped beside the package."""
    configured = current_app.config.get("OPENAPI_SPEC_PATH")
    if configured:
        return Path(configured)
    return Path(current_app.root_path).parent / DEFAULT_DOCUMENT


def _read_document(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


@bp.route("/openapi.json", methods=["GET"])
def openapi_document():
    path = _spec_path()
    if not path.is_file():
        logger.error(f"OpenAPI document missing at {path}")
        return problem_response(404, "Not Found", "API description is not bundled with this deployment")
    return jsonify(_read_document(path))
