"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


AUTH_SCHEME_B2C = "AzureAdB2C"
AUTH_SCHEME_B2B = "AzureAdB2B"
SUPPORTED_AUTH_SCHEMES = {AUTH_SCHEME_B2C, AUTH_SCHEME_B2B}

DEFAULT_RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
DEFAULT_GRAPH_ENDPOINT = "https://graph.microsoft.com/v1.0"


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass(frozen=True)
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # Identity provider
    auth_scheme: str = AUTH_SCHEME_B2C
    jwt_issuer: str = ""
    jwt_audience: str = ""
    jwks_url: str = ""

    # Storage
    database_url: str = "sqlite:///./procurement.db"
    database_echo: bool = False

    # Bot verification (reCAPTCHA)
    recaptcha_secret_key: str = ""
    recaptcha_verify_url: str = DEFAULT_RECAPTCHA_VERIFY_URL

    # Directory invitations (Microsoft Graph)
    graph_endpoint: str = DEFAULT_GRAPH_ENDPOINT
    graph_tenant_id: str = ""
    graph_client_id: str = ""
    graph_client_secret: str = ""
    invite_redirect_url: str = ""

    # HTTP
    cors_allowed_origin: str = "http://localhost:3000"
    http_timeout: float = 10.0

    @property
    def uses_b2b_auth(self) -> bool:
        """True when guests register themselves and are invited on approval."""
        return self.auth_scheme == AUTH_SCHEME_B2B


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _env_flag(var_name: str, default: str = "false") -> bool:
    return os.environ.get(var_name, default).strip().lower() == "true"


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _env_flag("DEMO_MODE")

    auth_scheme = os.environ.get("AUTH_SCHEME", AUTH_SCHEME_B2C).strip()
    if auth_scheme not in SUPPORTED_AUTH_SCHEMES:
        raise RuntimeError(
            f"AUTH_SCHEME must be one of {sorted(SUPPORTED_AUTH_SCHEMES)}, got '{auth_scheme}'"
        )

    database_url = _get_or_generate(
        "DATABASE_URL",
        demo_default="sqlite:///./procurement.db",
        demo_mode=demo_mode,
    )

    jwt_issuer = _get_or_generate(
        "JWT_ISSUER",
        demo_default="https://login.microsoftonline.com/demo/v2.0",
        demo_mode=demo_mode,
    ).rstrip("/")
    jwks_url = os.environ.get("JWKS_URL") or f"{jwt_issuer}/discovery/v2.0/keys"
    jwt_audience = os.environ.get("JWT_AUDIENCE", "")

    recaptcha_secret_key = _load_secret_from_file("recaptcha_server_key", "RECAPTCHA_SERVER_KEY") or ""
    graph_client_secret = _load_secret_from_file("graph_client_secret", "GRAPH_CLIENT_SECRET") or ""

    if auth_scheme == AUTH_SCHEME_B2B and not demo_mode:
        # Self-registration relies on reCAPTCHA, approvals rely on Graph
        if not recaptcha_secret_key:
            raise RuntimeError("RECAPTCHA_SERVER_KEY is required when AUTH_SCHEME=AzureAdB2B.")
        if not graph_client_secret:
            raise RuntimeError("GRAPH_CLIENT_SECRET is required when AUTH_SCHEME=AzureAdB2B.")

    try:
        http_timeout = float(os.environ.get("HTTP_TIMEOUT_SECONDS", "10"))
    except ValueError:
        raise RuntimeError("HTTP_TIMEOUT_SECONDS must be a number")

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; auth_scheme={auth_scheme}; issuer={jwt_issuer}")

    if demo_mode:
        print("[settings] WARNING: Demo defaults in use. Do not deploy with these defaults.")

    return AppConfig(
        demo_mode=demo_mode,
        auth_scheme=auth_scheme,
        jwt_issuer=jwt_issuer,
        jwt_audience=jwt_audience,
        jwks_url=jwks_url,
        database_url=database_url,
        database_echo=_env_flag("DATABASE_ECHO"),
        recaptcha_secret_key=recaptcha_secret_key,
        recaptcha_verify_url=os.environ.get("RECAPTCHA_VERIFY_URL", DEFAULT_RECAPTCHA_VERIFY_URL),
        graph_endpoint=os.environ.get("GRAPH_ENDPOINT", DEFAULT_GRAPH_ENDPOINT).rstrip("/"),
        graph_tenant_id=os.environ.get("GRAPH_TENANT_ID", ""),
        graph_client_id=os.environ.get("GRAPH_CLIENT_ID", ""),
        graph_client_secret=graph_client_secret,
        invite_redirect_url=os.environ.get("INVITE_LANDING_PAGE", ""),
        cors_allowed_origin=os.environ.get("CORS_ALLOWED_ORIGIN", "http://localhost:3000"),
        http_timeout=http_timeout,
    )
