"""Flask application factory and bootstrap.

This module provides the create_app() factory function wiring configuration,
storage, the domain services and the blueprints together.
"""
from __future__ import annotations
from pathlib import Path
from typing import Optional

from flask import Flask, request
from sqlalchemy.orm import Session, sessionmaker

from procurement.api.json_provider import DecimalJSONProvider
from procurement.config import AppConfig, load_settings
from procurement.core.policy import AuthorizationPolicy
from procurement.core.purchase_requests import RequestVersioningEngine
from procurement.core.users import UserLifecycleManager
from procurement.db.engine import (
    create_tables,
    get_session_factory,
    init_engine,
    seed_reference_data,
    session_scope,
)
from procurement.services.graph import DirectoryInviter, GraphInvitationClient
from procurement.services.recaptcha import BotVerifier, ReCaptchaClient


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(
    cfg: Optional[AppConfig] = None,
    session_factory: Optional[sessionmaker[Session]] = None,
    bot_verifier: Optional[BotVerifier] = None,
    directory_inviter: Optional[DirectoryInviter] = None,
) -> Flask:
    """Create and configure Flask application.

    Every collaborator can be injected; whatever is left out is built from
    the configuration.
    """
    cfg = cfg or load_settings()

    app = Flask(__name__)
    app.json = DecimalJSONProvider(app)
    app.config.setdefault(
        "OPENAPI_SPEC_PATH",
        str(Path(app.root_path).parent / "openapi" / "procurement_openapi.yaml"),
    )
    app.config["APP_CONFIG"] = cfg

    # Storage
    if session_factory is None:
        init_engine(cfg.database_url, cfg.database_echo)
        session_factory = get_session_factory()
        if cfg.demo_mode:
            create_tables()
            with session_scope(session_factory) as session:
                seed_reference_data(session)

    # External collaborators (only the B2B scheme talks to them)
    if cfg.uses_b2b_auth:
        bot_verifier = bot_verifier or ReCaptchaClient(
            cfg.recaptcha_secret_key, cfg.recaptcha_verify_url, timeout=cfg.http_timeout
        )
        directory_inviter = directory_inviter or GraphInvitationClient(
            cfg.graph_endpoint,
            cfg.graph_tenant_id,
            cfg.graph_client_id,
            cfg.graph_client_secret,
            cfg.invite_redirect_url,
            timeout=cfg.http_timeout,
        )

    # Domain services
    policy = AuthorizationPolicy(self_registration_enabled=cfg.uses_b2b_auth)
    app.extensions["session_factory"] = session_factory
    app.extensions["user_manager"] = UserLifecycleManager(
        session_factory,
        policy,
        bot_verifier=bot_verifier,
        directory_inviter=directory_inviter,
        uses_b2b_auth=cfg.uses_b2b_auth,
    )
    app.extensions["request_engine"] = RequestVersioningEngine(session_factory, policy)

    # Register blueprints
    from procurement.api import docs as docs_routes
    from procurement.api import errors, health, purchase_requests, users

    app.register_blueprint(health.bp)
    app.register_blueprint(docs_routes.bp)
    app.register_blueprint(users.bp, url_prefix="/api/users")
    app.register_blueprint(purchase_requests.bp, url_prefix="/api/requests")

    errors.register_error_handlers(app)
    _register_response_headers(app, cfg)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}; auth_scheme={cfg.auth_scheme}")
    print("[flask_app] Users API at /api/users, Requests API at /api/requests")
    if cfg.demo_mode:
        print(f"[flask_app] WARNING: Demo mode active - CORS open to {cfg.cors_allowed_origin}")

    return app


def _register_response_headers(app: Flask, cfg: AppConfig):
    """Register after_request hooks for caching and CORS headers."""

    @app.after_request
    def disable_api_caching(response):
        if request.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"
        return response

    @app.after_request
    def add_cors_headers(response):
        """Allow the local SPA during development."""
        if not cfg.demo_mode or not cfg.cors_allowed_origin:
            return response
        origin = request.headers.get("Origin")
        if origin != cfg.cors_allowed_origin:
            return response

        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Vary"] = "Origin"
        requested_method = request.headers.get("Access-Control-Request-Method")
        if requested_method:
            response.headers["Access-Control-Allow-Methods"] = requested_method
        requested_headers = request.headers.get("Access-Control-Request-Headers")
        if requested_headers:
            response.headers["Access-Control-Allow-Headers"] = requested_headers
        return response


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
