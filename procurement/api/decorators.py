"""
Flask decorators for authentication and authorization.

Bearer tokens are issued by Azure AD (B2C or B2B) and validated locally:
- RSA-SHA256 signature verification via the tenant JWKS (RFC 7517)
- Expiration, not-before, issuer and (optional) audience checks (RFC 7519)

Application roles are not taken from the token alone: an Approved account in
storage contributes its role to the caller (see ``attach_stored_role``).
"""
from __future__ import annotations
import logging
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from flask import current_app, g, request
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
)

from procurement.api.errors import problem_response
from procurement.core.constants import ErrorCode
from procurement.core.errors import ProblemError
from procurement.core.identity import ANONYMOUS, Caller, attach_stored_role, resolve_caller
from procurement.db.engine import session_scope

logger = logging.getLogger(__name__)

# Global JWKS client (cached singleton)
_jwks_client: Optional[PyJWKClient] = None


class TokenValidationError(Exception):
    """Exception raised when JWT token validation fails."""


def get_jwks_client() -> PyJWKClient:
    """
    Get the cached JWKS client.

    Keys are cached (up to 16) and the key set is refreshed hourly; the ``kid``
    header of each token selects the key.
    """
    global _jwks_client

    if _jwks_client is None:
        cfg = current_app.config["APP_CONFIG"]
        logger.info(f"Initializing JWKS client for: {cfg.jwks_url}")
        _jwks_client = PyJWKClient(
            cfg.jwks_url,
            cache_keys=True,
            max_cached_keys=16,
            lifespan=3600,
            headers={"User-Agent": "Procurement-API/1.0"},
        )
    return _jwks_client


def reset_jwks_client() -> None:
    """Forget the cached JWKS client (configuration reloads, tests)."""
    global _jwks_client
    _jwks_client = None


def validate_jwt_token(token: str) -> Dict[str, Any]:
    """
    Validate a JWT bearer token.

    Args:
        token: JWT token string (without "Bearer " prefix)

    Returns:
        dict: Validated token claims

    Raises:
        TokenValidationError: If any validation fails
    """
    cfg = current_app.config["APP_CONFIG"]

    try:
        signing_key = get_jwks_client().get_signing_key_from_jwt(token)
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            issuer=cfg.jwt_issuer,
            audience=cfg.jwt_audience or None,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_nbf": True,
                "verify_iss": True,
                "verify_aud": bool(cfg.jwt_audience),
                "require": ["exp"],
            },
            leeway=5,  # clock skew between the IdP and this service
        )
        logger.debug(f"JWT validated for subject: {claims.get('sub', 'unknown')}")
        return claims

    except ExpiredSignatureError:
        raise TokenValidationError("Token expired (exp claim)")
    except InvalidIssuerError as e:
        raise TokenValidationError(f"Invalid issuer: {e}")
    except InvalidAudienceError as e:
        raise TokenValidationError(f"Invalid audience (token not for this API): {e}")
    except InvalidSignatureError:
        raise TokenValidationError("Invalid signature (token tampered or wrong key)")
    except DecodeError as e:
        raise TokenValidationError(f"Token decode error (malformed JWT): {e}")
    except Exception as e:
        logger.error(f"JWT validation failed: {e}")
        raise TokenValidationError(f"Token validation failed: {e}")


def authenticate(optional: bool = False):
    """
    Resolve the caller from the Authorization header and store it in ``g.caller``.

    With ``optional=True`` a request without an Authorization header proceeds
    as anonymous; a header that is present but invalid is always rejected.

    Example:
        @bp.route("/api/users", methods=["POST"])
        @authenticate(optional=True)
        def create_user():
            ...
    """

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth_header = request.headers.get("Authorization", "")

            if not auth_header:
                if optional:
                    g.caller = ANONYMOUS
                    return fn(*args, **kwargs)
                logger.warning(f"{request.method} {request.path} missing Authorization header")
                return problem_response(401, "Unauthorized", "Authorization header required. Use 'Authorization: Bearer <token>'")

            if not auth_header.startswith("Bearer "):
                logger.warning(f"Invalid Authorization format: {auth_header[:20]}")
                return problem_response(401, "Unauthorized", "Invalid Authorization header format. Expected 'Bearer <token>'")

            token = auth_header[7:].strip()
            if not token:
                logger.warning("Empty Bearer token")
                return problem_response(401, "Unauthorized", "Bearer token is empty")

            try:
                claims = validate_jwt_token(token)
            except TokenValidationError as e:
                logger.warning(f"JWT validation failed: {e}")
                return problem_response(401, "Unauthorized", str(e))

            caller = resolve_caller(claims)
            factory = current_app.extensions["session_factory"]
            with session_scope(factory) as session:
                caller = attach_stored_role(caller, session)

            g.caller = caller
            g.token_claims = claims
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def require_roles(*roles: str):
    """
    Require at least one of ``roles``. Must be applied below ``@authenticate``.

    Anonymous callers get 401; authenticated callers without any of the roles
    get 403 ``UserNotAllowed``.
    """

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            caller = get_caller()
            if caller.is_anonymous:
                return problem_response(401, "Unauthorized", "Authentication required")
            if not any(caller.has_role(role) for role in roles):
                logger.warning(
                    f"{caller.email} lacks required role for {request.method} {request.path}. "
                    f"Required: {', '.join(roles)}, caller has: {', '.join(sorted(caller.roles)) or 'none'}"
                )
                raise ProblemError(403, "Forbidden", ErrorCode.USER_NOT_ALLOWED)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def get_caller() -> Caller:
    """Caller resolved by ``@authenticate`` for the current request."""
    return g.get("caller") or ANONYMOUS
