from procurement.core.identity import (
    ANONYMOUS,
    attach_stored_role,
    extract_email,
    extract_roles,
    resolve_caller,
)
from procurement.db.engine import session_scope

from conftest import add_user, caller


def test_extract_email_prefers_emails_claim_list():
    claims = {
        "emails": ["b2c@example.com"],
        "email": "std@example.com",
        "upn": "upn@example.com",
        "preferred_username": "pref@example.com",
    }
    assert extract_email(claims) == "b2c@example.com"


def test_extract_email_falls_back_in_priority_order():
    assert extract_email({"email": "std@example.com", "upn": "upn@example.com"}) == "std@example.com"
    assert extract_email({"upn": "upn@example.com", "preferred_username": "p@example.com"}) == "upn@example.com"
    assert extract_email({"preferred_username": "p@example.com"}) == "p@example.com"


def test_extract_email_skips_blank_values():
    assert extract_email({"emails": [], "email": "  ", "upn": "upn@example.com"}) == "upn@example.com"


def test_no_claims_is_anonymous():
    assert resolve_caller(None) is ANONYMOUS
    assert resolve_caller({}) is ANONYMOUS
    assert resolve_caller({"sub": "abc"}).is_anonymous


def test_extract_roles_accepts_string_and_list():
    assert extract_roles({"roles": ["Coordinator"], "role": "Admin"}) == frozenset({"Coordinator", "Admin"})
    assert extract_roles({"sub": "x"}) == frozenset()


def test_resolve_caller_carries_token_roles():
    resolved = resolve_caller({"email": "a@example.com", "roles": ["User"]})
    assert resolved.email == "a@example.com"
    assert resolved.has_role("User")


def test_attach_stored_role_for_approved_account(session_factory):
    add_user(session_factory, "boss@example.com", role="Admin", status="Approved")
    with session_scope(session_factory) as session:
        resolved = attach_stored_role(caller("boss@example.com"), session)
    assert resolved.has_role("Admin")


def test_attach_stored_role_ignores_pending_and_rejected(session_factory):
    add_user(session_factory, "pending@example.com", role="Admin", status="Pending")
    add_user(session_factory, "rejected@example.com", role="Coordinator", status="Rejected")
    with session_scope(session_factory) as session:
        assert attach_stored_role(caller("pending@example.com"), session).roles == frozenset()
        assert attach_stored_role(caller("rejected@example.com"), session).roles == frozenset()
        assert attach_stored_role(caller("nobody@example.com"), session).roles == frozenset()


def test_attach_stored_role_leaves_anonymous_untouched(session_factory):
    with session_scope(session_factory) as session:
        assert attach_stored_role(ANONYMOUS, session) is ANONYMOUS
