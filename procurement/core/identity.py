"""Caller identity extraction from verified token claims.

The email claim differs between identity-provider flavours, so candidates are
evaluated in a fixed priority order:

    emails              (B2C user flows, usually a list)
    email               (B2B, standard OIDC claim)
    upn                 (B2B, work accounts)
    preferred_username  (B2B, fallback)
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement.core.constants import UserStatusId
from procurement.db.models import User

logger = logging.getLogger(__name__)

EMAIL_CLAIM_KEYS = (
    "emails",
    "email",
    "upn",
    "preferred_username",
)
ROLE_CLAIM_KEYS = ("roles", "role")


@dataclass(frozen=True)
class Caller:
    """Who is calling: ``email`` is None for anonymous callers."""

    email: Optional[str] = None
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_anonymous(self) -> bool:
        return self.email is None

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def with_role(self, role: str) -> "Caller":
        return Caller(email=self.email, roles=self.roles | {role})


ANONYMOUS = Caller()


def _first_string(value) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, str) and item.strip():
                return item.strip()
    return None


def extract_email(claims: Optional[dict]) -> Optional[str]:
    """Return the first usable email claim, or None."""
    if not claims:
        return None
    for key in EMAIL_CLAIM_KEYS:
        email = _first_string(claims.get(key))
        if email:
            return email
    return None


def extract_roles(claims: Optional[dict]) -> frozenset[str]:
    """Collect role claims (string or list) into a set."""
    roles: set[str] = set()
    if not claims:
        return frozenset()
    for key in ROLE_CLAIM_KEYS:
        value = claims.get(key)
        if isinstance(value, str) and value:
            roles.add(value)
        elif isinstance(value, (list, tuple)):
            roles.update(r for r in value if isinstance(r, str) and r)
    return frozenset(roles)


def resolve_caller(claims: Optional[dict]) -> Caller:
    """Build a Caller from verified claims. No claims means anonymous."""
    if not claims:
        return ANONYMOUS
    email = extract_email(claims)
    if email is None:
        return ANONYMOUS
    return Caller(email=email, roles=extract_roles(claims))


def attach_stored_role(caller: Caller, session: Session) -> Caller:
    """Grant the caller the role stored for their account if it is Approved.

    Pending and Rejected accounts get no role from storage.
    """
    if caller.is_anonymous:
        return caller
    user = session.scalar(
        select(User).where(
            User.email == caller.email,
            User.user_status_id == UserStatusId.APPROVED,
        )
    )
    if user is None:
        logger.debug(f"No approved account for caller {caller.email}")
        return caller
    return caller.with_role(user.role_id)
