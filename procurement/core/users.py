"""
User Lifecycle Manager

Create, read, update and delete application users. Registration always lands
in the Pending status; an Admin approves or rejects later. When the deployment
uses the B2B guest scheme, approving a user also sends a directory invitation.

Flow:
    blueprint (procurement.api.users) ──> UserLifecycleManager ──> SQLAlchemy session
                                                  │
                                                  ├──> BotVerifier      (anonymous create)
                                                  └──> DirectoryInviter (approval under B2B)
"""
from __future__ import annotations
import logging
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from procurement.core.constants import ErrorCode, RoleId, UserStatusId
from procurement.core.errors import ProblemError
from procurement.core.identity import Caller
from procurement.core.policy import AuthorizationPolicy
from procurement.core.validators import any_missing, is_missing
from procurement.db.engine import session_scope
from procurement.db.models import Request, RequestDetail, Role, User, UserStatus
from procurement.services.graph import INVITE_ERROR, DirectoryInviter
from procurement.services.recaptcha import BotVerifier

logger = logging.getLogger(__name__)

TITLE_CREATE = "Unable to create user"
TITLE_GET = "Unable to get user"
TITLE_GET_ALL = "Unable to get users"
TITLE_UPDATE = "Unable to update the user"
TITLE_DELETE = "Unable to delete the user"

PRIVILEGED_FIELDS = ("role", "status", "email")


def user_to_dict(user: User) -> dict:
    """Public projection of a user."""
    return {
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role_id,
        "status": user.user_status_id,
    }


def _text(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    return value if isinstance(value, str) else None


class UserLifecycleManager:
    """User registration and approval workflow."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        policy: AuthorizationPolicy,
        bot_verifier: Optional[BotVerifier] = None,
        directory_inviter: Optional[DirectoryInviter] = None,
        uses_b2b_auth: bool = False,
    ):
        self.session_factory = session_factory
        self.policy = policy
        self.bot_verifier = bot_verifier
        self.directory_inviter = directory_inviter
        self.uses_b2b_auth = uses_b2b_auth

    # ─────────────────────────────────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────────────────────────────────

    def create(self, payload: dict[str, Any], caller: Caller) -> dict:
        """
        Register a user.

        Authenticated callers register their own token email; anonymous
        callers (self-registration) supply the email and a bot-verification
        payload.

        Raises:
            ProblemError: 403 when anonymous registration is disabled, 400 for
                missing fields, failed bot verification, an existing email or
                an unknown role
        """
        payload = payload or {}
        if not self.policy.can_create_user(caller):
            logger.warning("Anonymous registration rejected: self-registration disabled")
            raise ProblemError(403, TITLE_CREATE, ErrorCode.USER_NOT_ALLOWED)

        email = caller.email if not caller.is_anonymous else _text(payload, "email")
        first_name = _text(payload, "first_name")
        last_name = _text(payload, "last_name")
        bot_payload = _text(payload, "recaptcha_payload")

        if any_missing(email, first_name, last_name) or (caller.is_anonymous and is_missing(bot_payload)):
            raise ProblemError(400, TITLE_CREATE, ErrorCode.MISSING_MANDATORY_FIELD)

        if caller.is_anonymous:
            if self.bot_verifier is None:
                raise RuntimeError("Self-registration requires a bot verifier")
            result = self.bot_verifier.verify(bot_payload)
            if not result.success:
                raise ProblemError(
                    400,
                    TITLE_CREATE,
                    ErrorCode.BOT_VALIDATION_ERROR,
                    inner_detail=f"Validation error codes: {', '.join(result.error_codes)}",
                )

        with session_scope(self.session_factory) as session:
            if session.scalar(select(User).where(User.email == email)) is not None:
                raise ProblemError(400, TITLE_CREATE, ErrorCode.USER_ALREADY_EXISTS)

            # Registrations default to the User role
            role_id = payload.get("role")
            if role_id is None:
                role_id = RoleId.USER
            role = session.get(Role, role_id) if isinstance(role_id, str) else None
            if role is None:
                raise ProblemError(400, TITLE_CREATE, ErrorCode.INVALID_USER_ROLE_ID)

            user = User(
                email=email,
                first_name=first_name,
                last_name=last_name,
                role_id=role.id,
                user_status_id=UserStatusId.PENDING,
            )
            session.add(user)
            session.flush()
            logger.info(f"User {email} registered (role={role.id}, status={UserStatusId.PENDING})")
            return user_to_dict(user)

    # ─────────────────────────────────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────────────────────────────────

    def get(self, email: str, caller: Caller) -> dict:
        if not self.policy.can_read_user(caller, email):
            logger.warning(f"{caller.email} denied read access to user {email}")
            raise ProblemError(403, TITLE_GET, ErrorCode.USER_NOT_ALLOWED)

        with session_scope(self.session_factory) as session:
            user = session.scalar(select(User).where(User.email == email))
            if user is None:
                raise ProblemError(404, TITLE_GET, ErrorCode.USER_NOT_FOUND, inner_detail=f"Unknown user: {email}")
            return user_to_dict(user)

    def get_all(self, caller: Caller) -> list[dict]:
        """All users ordered by email (Admin only)."""
        if not self.policy.can_read_all_users(caller):
            logger.warning(f"{caller.email} denied user listing")
            raise ProblemError(403, TITLE_GET_ALL, ErrorCode.USER_NOT_ALLOWED)

        with session_scope(self.session_factory) as session:
            users = session.scalars(select(User).order_by(User.email, User.id)).all()
            return [user_to_dict(user) for user in users]

    # ─────────────────────────────────────────────────────────────────────────
    # Update
    # ─────────────────────────────────────────────────────────────────────────

    def update(self, email: str, payload: dict[str, Any], caller: Caller) -> dict:
        """
        Partially update a user.

        Only keys present with a non-null value are applied. Approving a user
        under the B2B scheme invites the (possibly new) email to the directory;
        the invitation is sent before the transaction commits and is not undone
        if the commit later fails.

        Raises:
            ProblemError: 403 when not allowed, 404 for an unknown user, 400 for
                invalid role, email or status, or when the invitation fails
        """
        payload = payload or {}
        changes_privileged = any(payload.get(key) is not None for key in PRIVILEGED_FIELDS)
        if not self.policy.can_update_user(caller, email, changes_privileged):
            logger.warning(f"{caller.email} denied update of user {email}")
            raise ProblemError(403, TITLE_UPDATE, ErrorCode.USER_NOT_ALLOWED)

        with session_scope(self.session_factory) as session:
            user = session.scalar(select(User).where(User.email == email))
            if user is None:
                raise ProblemError(404, TITLE_UPDATE, ErrorCode.USER_NOT_FOUND)

            for field in ("first_name", "last_name"):
                value = payload.get(field)
                if value is None:
                    continue
                if not isinstance(value, str):
                    raise ProblemError(400, TITLE_UPDATE, ErrorCode.MISSING_MANDATORY_FIELD)
                setattr(user, field, value)

            new_role = payload.get("role")
            if new_role is not None:
                role = session.get(Role, new_role) if isinstance(new_role, str) else None
                if role is None:
                    raise ProblemError(400, TITLE_UPDATE, ErrorCode.INVALID_USER_ROLE_ID)
                user.role_id = role.id

            new_email = payload.get("email")
            if new_email is not None:
                if not isinstance(new_email, str) or not new_email.strip():
                    raise ProblemError(400, TITLE_UPDATE, ErrorCode.INVALID_EMAIL)
                # Uniqueness is only enforced at registration
                user.email = new_email

            new_status = payload.get("status")
            if new_status is not None:
                status = session.get(UserStatus, new_status) if isinstance(new_status, str) else None
                if status is None:
                    raise ProblemError(400, TITLE_UPDATE, ErrorCode.INVALID_USER_STATUS_ID)
                user.user_status_id = status.id

                if status.id == UserStatusId.APPROVED and self.uses_b2b_auth:
                    self._invite(user.email)

            session.flush()
            logger.info(
                f"User {email} updated by {caller.email} "
                f"(email={user.email}, role={user.role_id}, status={user.user_status_id})"
            )
            return user_to_dict(user)

    def _invite(self, email: str) -> None:
        if self.directory_inviter is None:
            raise RuntimeError("B2B approval requires a directory inviter")
        outcome = self.directory_inviter.invite(email)
        if outcome == INVITE_ERROR:
            logger.warning(f"Directory invitation failed for {email}")
            raise ProblemError(400, TITLE_UPDATE, ErrorCode.UNABLE_TO_SEND_B2B_INVITATION)
        logger.info(f"Directory invitation for {email}: {outcome}")

    # ─────────────────────────────────────────────────────────────────────────
    # Delete
    # ─────────────────────────────────────────────────────────────────────────

    def delete(self, email: str, caller: Caller) -> None:
        """Delete a user with every revision of every request they own (Admin only)."""
        if not self.policy.can_delete_user(caller):
            logger.warning(f"{caller.email} denied deletion of user {email}")
            raise ProblemError(403, TITLE_DELETE, ErrorCode.USER_NOT_ALLOWED)

        with session_scope(self.session_factory) as session:
            user = session.scalar(select(User).where(User.email == email))
            if user is None:
                raise ProblemError(404, TITLE_DELETE, ErrorCode.USER_NOT_FOUND)

            owned_requests = select(Request.id).where(Request.user_id == user.id)
            details = session.execute(
                delete(RequestDetail).where(RequestDetail.request_id.in_(owned_requests))
            ).rowcount
            requests = session.execute(delete(Request).where(Request.user_id == user.id)).rowcount
            session.execute(delete(User).where(User.id == user.id))
            logger.info(f"User {email} deleted with {requests} request revision(s) and {details} detail line(s)")
