"""Pytest shared fixtures: in-memory database, fake collaborators, Flask client."""
import json
import pathlib
import sys
from typing import Optional
from uuid import UUID

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from sqlalchemy import create_engine, event, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from procurement.api import decorators
from procurement.config.settings import AUTH_SCHEME_B2B, AUTH_SCHEME_B2C, AppConfig
from procurement.core.identity import Caller
from procurement.core.policy import AuthorizationPolicy
from procurement.core.purchase_requests import RequestVersioningEngine
from procurement.core.users import UserLifecycleManager
from procurement.db.engine import DEMO_PRODUCTS, create_tables, seed_reference_data, session_scope
from procurement.db.models import Request, User
from procurement.flask_app import create_app
from procurement.services.graph import INVITE_PENDING
from procurement.services.recaptcha import BotVerificationResult

PRODUCT1, PRODUCT2, PRODUCT3 = (product[0] for product in DEMO_PRODUCTS)


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    def __init__(self, payload, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code
        self.text = json.dumps(payload)

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(response=self)


@pytest.fixture(autouse=True)
def _block_network(monkeypatch):
    """Unit tests never talk to Google, Microsoft Graph or Azure AD."""

    def _unexpected(method):
        def _stub(url, *args, **kwargs):
            raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")
        return _stub

    monkeypatch.setattr(requests, "post", _unexpected("POST"))
    monkeypatch.setattr(requests, "get", _unexpected("GET"))


# ─────────────────────────────────────────────────────────────────────────────
# Database
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def session_factory():
    """Fresh in-memory SQLite database per test, reference data seeded."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    create_tables(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    with session_scope(factory) as session:
        seed_reference_data(session)
    yield factory
    engine.dispose()


def add_user(factory, email: str, role: str = "User", status: str = "Approved",
             first: str = "First", last: str = "Last") -> None:
    with session_scope(factory) as session:
        session.add(User(email=email, first_name=first, last_name=last, role_id=role, user_status_id=status))


def revisions_for(factory, ref_no) -> list[tuple[int, str]]:
    """Sorted (is_current, status) pairs for every revision of a chain."""
    with session_scope(factory) as session:
        rows = session.execute(
            select(Request.is_current, Request.request_status_id).where(Request.ref_no == UUID(str(ref_no)))
        )
        return sorted(tuple(row) for row in rows)


def count_rows(factory, model) -> int:
    with session_scope(factory) as session:
        return session.scalar(select(func.count()).select_from(model))


def current_counts_per_ref_no(factory) -> dict:
    """Number of current revisions for every RefNo that has revisions."""
    with session_scope(factory) as session:
        totals = {}
        for ref_no, is_current in session.execute(select(Request.ref_no, Request.is_current)):
            totals[ref_no] = totals.get(ref_no, 0) + is_current
        return totals


def caller(email: Optional[str], *roles: str) -> Caller:
    return Caller(email=email, roles=frozenset(roles))


# ─────────────────────────────────────────────────────────────────────────────
# Fake Collaborators
# ─────────────────────────────────────────────────────────────────────────────
class FakeBotVerifier:
    def __init__(self, success: bool = True, error_codes: Optional[list] = None):
        self.success = success
        self.error_codes = error_codes or []
        self.payloads = []

    def verify(self, payload: str) -> BotVerificationResult:
        self.payloads.append(payload)
        return BotVerificationResult(success=self.success, error_codes=list(self.error_codes))


class FakeInviter:
    def __init__(self, outcome: str = INVITE_PENDING):
        self.outcome = outcome
        self.emails = []

    def invite(self, email: str) -> str:
        self.emails.append(email)
        return self.outcome


@pytest.fixture()
def bot_verifier():
    return FakeBotVerifier()


@pytest.fixture()
def inviter():
    return FakeInviter()


# ─────────────────────────────────────────────────────────────────────────────
# Domain Services
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def user_manager(session_factory, bot_verifier, inviter):
    """B2C deployment: no self-registration, no invitations."""
    return UserLifecycleManager(
        session_factory,
        AuthorizationPolicy(self_registration_enabled=False),
        bot_verifier=bot_verifier,
        directory_inviter=inviter,
        uses_b2b_auth=False,
    )


@pytest.fixture()
def b2b_user_manager(session_factory, bot_verifier, inviter):
    """B2B guest deployment: anonymous self-registration and invitations on approval."""
    return UserLifecycleManager(
        session_factory,
        AuthorizationPolicy(self_registration_enabled=True),
        bot_verifier=bot_verifier,
        directory_inviter=inviter,
        uses_b2b_auth=True,
    )


@pytest.fixture()
def request_engine(session_factory):
    return RequestVersioningEngine(session_factory, AuthorizationPolicy(self_registration_enabled=False))


# ─────────────────────────────────────────────────────────────────────────────
# Flask Test Client
# ─────────────────────────────────────────────────────────────────────────────
def make_config(**overrides) -> AppConfig:
    base = dict(
        demo_mode=False,
        auth_scheme=AUTH_SCHEME_B2C,
        jwt_issuer="https://login.example.test/tenant/v2.0",
        jwks_url="https://login.example.test/tenant/discovery/v2.0/keys",
        database_url="sqlite://",
    )
    base.update(overrides)
    return AppConfig(**base)


def bearer(email: str) -> dict:
    """Authorization header whose (stubbed) token resolves to ``email``."""
    return {"Authorization": f"Bearer {email}"}


@pytest.fixture()
def stub_token_validation(monkeypatch):
    """Tokens are the caller's email; ``bad-token`` fails validation."""

    def _validate(token: str) -> dict:
        if token == "bad-token":
            raise decorators.TokenValidationError("Token expired (exp claim)")
        return {"sub": token, "emails": [token]}

    monkeypatch.setattr(decorators, "validate_jwt_token", _validate)


@pytest.fixture()
def app_config():
    return make_config()


@pytest.fixture()
def flask_app(app_config, session_factory, bot_verifier, inviter, stub_token_validation):
    flask_app = create_app(
        app_config,
        session_factory=session_factory,
        bot_verifier=bot_verifier,
        directory_inviter=inviter,
    )
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def client(flask_app):
    with flask_app.test_client() as client:
        yield client


# ─────────────────────────────────────────────────────────────────────────────
# RSA Key Pair for JWT Testing
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def rsa_key_pair():
    """Generate RSA key pair for JWT signing in tests."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return {
        "private_key": private_key,
        "private_pem": private_pem,
        "public_key": private_key.public_key(),
    }

