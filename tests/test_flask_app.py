import pytest

from procurement.services.graph import GraphInvitationClient
from procurement.services.recaptcha import ReCaptchaClient

from conftest import ROOT, make_config


def test_echo_get(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.get_json() == "Hello World"


def test_echo_post_returns_body(client):
    body = {"a": [1, 2], "b": {"c": None}}
    assert client.post("/", json=body).get_json() == body


def test_health_and_ready(client):
    assert client.get("/health").data == b"ok"
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.data == b"ready"


def test_root_routes_not_marked_no_store(client):
    assert "Cache-Control" not in client.get("/health").headers


def test_trace_id_echoes_correlation_header(client):
    response = client.get("/api/users", headers={"X-Correlation-Id": "corr-42"})
    assert response.status_code == 401
    assert response.get_json()["trace_id"] == "corr-42"


def test_no_cors_outside_demo_mode(client):
    response = client.get("/", headers={"Origin": "http://localhost:3000"})
    assert "Access-Control-Allow-Origin" not in response.headers


@pytest.mark.parametrize("app_config", [make_config(demo_mode=True)])
def test_cors_in_demo_mode(client):
    response = client.get(
        "/",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "PATCH",
            "Access-Control-Request-Headers": "Authorization",
        },
    )
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
    assert response.headers["Access-Control-Allow-Credentials"] == "true"
    assert response.headers["Access-Control-Allow-Methods"] == "PATCH"
    assert response.headers["Access-Control-Allow-Headers"] == "Authorization"

    other = client.get("/", headers={"Origin": "https://evil.example"})
    assert "Access-Control-Allow-Origin" not in other.headers


def test_b2b_builds_http_collaborators(session_factory):
    from procurement.flask_app import create_app

    cfg = make_config(auth_scheme="AzureAdB2B", recaptcha_secret_key="k", graph_tenant_id="t")
    app = create_app(cfg, session_factory=session_factory)

    manager = app.extensions["user_manager"]
    assert isinstance(manager.bot_verifier, ReCaptchaClient)
    assert isinstance(manager.directory_inviter, GraphInvitationClient)
    assert manager.policy.self_registration_enabled is True


def test_b2c_has_no_self_registration(flask_app):
    assert flask_app.extensions["user_manager"].policy.self_registration_enabled is False


def test_demo_mode_creates_schema(monkeypatch, tmp_path):
    from procurement.db import engine as db_engine
    from procurement.flask_app import create_app

    monkeypatch.setattr(db_engine, "_engine", None)
    monkeypatch.setattr(db_engine, "_SessionFactory", None)
    cfg = make_config(demo_mode=True, database_url=f"sqlite:///{tmp_path / 'demo.db'}")
    app = create_app(cfg)
    try:
        assert app.test_client().get("/ready").status_code == 200
        assert (tmp_path / "demo.db").exists()
    finally:
        db_engine.dispose_engine()


def test_decimals_are_json_numbers(flask_app):
    from decimal import Decimal

    with flask_app.app_context():
        body = flask_app.json.dumps({"price": Decimal("5.99000"), "total": Decimal("15.00000")})
    assert flask_app.json.loads(body) == {"price": 5.99, "total": 15}
    assert '"total":15' in body.replace(" ", "")


def test_gunicorn_builds_app_from_factory():
    import runpy

    import procurement.flask_app as flask_module

    conf = runpy.run_path(str(ROOT / "gunicorn.conf.py"))
    module_name, call = conf["wsgi_app"].split(":")
    assert module_name == flask_module.__name__
    assert call == "create_app()"
    assert callable(flask_module.create_app)
