"""
Request Versioning Engine

Purchase requests are append-only revision chains. Every revision of one
logical request shares a RefNo; exactly one revision per RefNo is current.

    create (no ref_no)        -> new chain, revision is current
    create (ref_no of chain)  -> previous current revision flips to 0, new one is current
    update_status             -> status of the current revision changes in place
    delete                    -> whole chain (every revision + details) is removed

Only the original creator of a chain may add revisions to it. Concurrent
creates on the same RefNo are not serialized beyond the storage transaction.
"""
from __future__ import annotations
import logging
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from procurement.core.constants import ErrorCode, RequestStatusId
from procurement.core.errors import ProblemError
from procurement.core.identity import Caller
from procurement.core.policy import AuthorizationPolicy
from procurement.core.validators import is_missing, parse_quantity, parse_uuid
from procurement.db.engine import session_scope
from procurement.db.models import Product, Request, RequestDetail, RequestStatus, User

logger = logging.getLogger(__name__)

TITLE_CREATE = "Unable to create request"
TITLE_UPDATE = "Unable to update the request"
TITLE_LIST = "Unable to get requests"
TITLE_DELETE = "Unable to delete the request"


class RequestVersioningEngine:
    """Create, amend, approve and delete purchase request chains."""

    def __init__(self, session_factory: sessionmaker[Session], policy: AuthorizationPolicy):
        self.session_factory = session_factory
        self.policy = policy

    # ─────────────────────────────────────────────────────────────────────────
    # Create / amend
    # ─────────────────────────────────────────────────────────────────────────

    def create(self, payload: dict[str, Any], caller: Caller) -> dict:
        """
        Submit a new request, or a new revision of an existing chain.

        Returns:
            ``{"ref_no": <str>}``

        Raises:
            ProblemError: 403 for callers without the User role or who do not
                own the chain, 400 for missing/negative/unknown products or an
                unknown ref_no
        """
        payload = payload or {}
        if not self.policy.can_create_request(caller):
            logger.warning(f"{caller.email} denied request creation")
            raise ProblemError(403, TITLE_CREATE, ErrorCode.USER_NOT_ALLOWED)

        selected = _parse_selected_products(payload.get("selected_products"))
        if any(quantity < 0 for _, quantity in selected):
            raise ProblemError(400, TITLE_CREATE, ErrorCode.NEGATIVE_VALUE)

        with session_scope(self.session_factory) as session:
            raw_ref_no = payload.get("ref_no")
            if raw_ref_no is None:
                ref_no = uuid4()
            else:
                ref_no = parse_uuid(raw_ref_no)
                previous = self._current_revision(session, ref_no) if ref_no else None
                if previous is None:
                    raise ProblemError(400, TITLE_CREATE, ErrorCode.INVALID_REF_NO)
                if previous.user.email != caller.email:
                    logger.warning(f"{caller.email} tried to amend request {ref_no} owned by {previous.user.email}")
                    raise ProblemError(403, TITLE_CREATE, ErrorCode.USER_NOT_ALLOWED)
                previous.is_current = 0
                session.flush()

            owner = session.scalar(select(User).where(User.email == caller.email))
            if owner is None:
                logger.warning(f"{caller.email} has no stored account and cannot submit requests")
                raise ProblemError(403, TITLE_CREATE, ErrorCode.USER_NOT_ALLOWED)

            revision = Request(
                id=uuid4(),
                ref_no=ref_no,
                is_current=1,
                user_id=owner.id,
                request_status_id=RequestStatusId.PENDING,
            )
            details = [
                RequestDetail(
                    id=uuid4(),
                    qty=quantity,
                    product=session.get(Product, product_id) if product_id else None,
                    request=revision,
                )
                for product_id, quantity in selected
            ]
            if any(detail.product is None for detail in details):
                raise ProblemError(400, TITLE_CREATE, ErrorCode.INVALID_PRODUCT_ID)

            session.add(revision)
            session.add_all(details)
            session.flush()
            logger.info(
                f"Request {ref_no} revision {revision.id} submitted by {caller.email} "
                f"({len(details)} line(s))"
            )
            return {"ref_no": str(ref_no)}

    # ─────────────────────────────────────────────────────────────────────────
    # Status
    # ─────────────────────────────────────────────────────────────────────────

    def update_status(self, ref_no: str, payload: dict[str, Any], caller: Caller) -> dict:
        """Set the status of the current revision (Coordinator only)."""
        payload = payload or {}
        if not self.policy.can_update_request(caller):
            logger.warning(f"{caller.email} denied status change on request {ref_no}")
            raise ProblemError(403, TITLE_UPDATE, ErrorCode.USER_NOT_ALLOWED)

        status_id = payload.get("status")
        if is_missing(status_id):
            raise ProblemError(400, TITLE_UPDATE, ErrorCode.MISSING_MANDATORY_FIELD)

        with session_scope(self.session_factory) as session:
            status = session.get(RequestStatus, status_id) if isinstance(status_id, str) else None
            if status is None:
                raise ProblemError(400, TITLE_UPDATE, ErrorCode.INVALID_REQUEST_STATUS_ID)

            parsed = parse_uuid(ref_no)
            current = self._current_revision(session, parsed) if parsed else None
            if current is None:
                raise ProblemError(400, TITLE_UPDATE, ErrorCode.INVALID_REF_NO)

            previous_status = current.request_status_id
            current.request_status_id = status.id
            session.flush()
            logger.info(f"Request {parsed} status {previous_status} -> {status.id} by {caller.email}")
            return {"ref_no": str(current.ref_no), "status": status.id}

    # ─────────────────────────────────────────────────────────────────────────
    # Listing
    # ─────────────────────────────────────────────────────────────────────────

    def get_all(self, caller: Caller) -> list[dict]:
        """Current revisions visible to the caller, with their detail lines."""
        with session_scope(self.session_factory) as session:
            return [
                {
                    "ref_no": str(revision.ref_no),
                    "request_status": revision.request_status_id,
                    "user_email": revision.user.email,
                    "request_details": [
                        {
                            "qty": detail.qty,
                            "product_display_name": detail.product.display_name,
                            "product_price": detail.product.price,
                            "product_price_currency": detail.product.price_currency,
                        }
                        for detail in revision.request_details
                    ],
                }
                for revision in self._visible_revisions(session, caller)
            ]

    def get_all_rows(self, caller: Caller) -> list[dict]:
        """Same visible set as get_all(), one row per (revision, detail line)."""
        with session_scope(self.session_factory) as session:
            return [
                {
                    "ref_no": str(revision.ref_no),
                    "request_status": revision.request_status_id,
                    "user_email": revision.user.email,
                    "qty": detail.qty,
                    "product_display_name": detail.product.display_name,
                    "product_price": detail.product.price,
                    "product_price_currency": detail.product.price_currency,
                }
                for revision in self._visible_revisions(session, caller)
                for detail in revision.request_details
            ]

    def _visible_revisions(self, session: Session, caller: Caller) -> list[Request]:
        if not self.policy.can_list_requests(caller):
            logger.warning(f"{caller.email} denied request listing")
            raise ProblemError(403, TITLE_LIST, ErrorCode.USER_NOT_ALLOWED)

        stmt = (
            select(Request)
            .join(Request.user)
            .where(Request.is_current == 1)
            .options(
                selectinload(Request.user),
                selectinload(Request.request_details).selectinload(RequestDetail.product),
            )
            .order_by(User.email, Request.ref_no)
        )
        if not self.policy.sees_all_requests(caller):
            stmt = stmt.where(User.email == caller.email)
        return list(session.scalars(stmt))

    # ─────────────────────────────────────────────────────────────────────────
    # Delete
    # ─────────────────────────────────────────────────────────────────────────

    def delete(self, ref_no: str, caller: Caller) -> None:
        """Purge every revision of a chain together with their detail lines."""
        if not self.policy.can_delete_requests(caller):
            logger.warning(f"{caller.email} denied deletion of request {ref_no}")
            raise ProblemError(403, TITLE_DELETE, ErrorCode.USER_NOT_ALLOWED)

        with session_scope(self.session_factory) as session:
            parsed = parse_uuid(ref_no)
            revisions = []
            if parsed is not None:
                revisions = list(
                    session.scalars(
                        select(Request).where(Request.ref_no == parsed).options(selectinload(Request.user))
                    )
                )
            if not revisions:
                raise ProblemError(404, TITLE_DELETE, ErrorCode.INVALID_REF_NO)

            owners = {revision.user.email for revision in revisions}
            if not self.policy.can_delete_request(caller, owners):
                logger.warning(f"{caller.email} denied deletion of request {parsed} owned by {', '.join(sorted(owners))}")
                raise ProblemError(403, TITLE_DELETE, ErrorCode.USER_NOT_ALLOWED)

            revision_ids = [revision.id for revision in revisions]
            details = session.execute(
                delete(RequestDetail).where(RequestDetail.request_id.in_(revision_ids))
            ).rowcount
            session.execute(delete(Request).where(Request.id.in_(revision_ids)))
            logger.info(
                f"Request {parsed} deleted by {caller.email} "
                f"({len(revision_ids)} revision(s), {details} detail line(s))"
            )

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def _current_revision(session: Session, ref_no: UUID) -> Optional[Request]:
        return session.scalar(
            select(Request)
            .where(Request.ref_no == ref_no, Request.is_current == 1)
            .options(selectinload(Request.user))
        )


def _parse_selected_products(raw: Any) -> list[tuple[Optional[UUID], int]]:
    """Turn ``[{"id": ..., "quantity": ...}]`` into (product id, quantity) pairs.

    Unparseable product ids become None and are reported as unknown products
    once the revision is built.
    """
    if is_missing(raw) or not isinstance(raw, list):
        raise ProblemError(400, TITLE_CREATE, ErrorCode.MISSING_MANDATORY_FIELD)

    selected = []
    for item in raw:
        if not isinstance(item, dict) or item.get("id") is None or item.get("quantity") is None:
            raise ProblemError(400, TITLE_CREATE, ErrorCode.MISSING_MANDATORY_FIELD)
        try:
            quantity = parse_quantity(item["quantity"])
        except ValueError:
            raise ProblemError(400, TITLE_CREATE, ErrorCode.MISSING_MANDATORY_FIELD) from None
        selected.append((parse_uuid(item["id"]), quantity))
    return selected
