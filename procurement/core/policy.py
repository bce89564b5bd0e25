"""Role-Based Access Control rules for users and purchase requests.

Every rule is a pure decision over the caller (email + role set) and the
target resource owner. The auth scheme is injected, never read from the
environment.
"""
from __future__ import annotations
from typing import Optional

from procurement.core.constants import RoleId
from procurement.core.identity import Caller


class AuthorizationPolicy:
    """Allow/deny decisions per operation."""

    def __init__(self, self_registration_enabled: bool):
        self.self_registration_enabled = self_registration_enabled

    # Users ------------------------------------------------------------------

    def can_create_user(self, caller: Caller) -> bool:
        """Authenticated callers register themselves; anonymous ones only via self-registration."""
        if caller.is_anonymous:
            return self.self_registration_enabled
        return True

    def can_read_user(self, caller: Caller, target_email: str) -> bool:
        return _is_self(caller, target_email) or caller.has_role(RoleId.ADMIN)

    def can_read_all_users(self, caller: Caller) -> bool:
        return caller.has_role(RoleId.ADMIN)

    def can_update_user(self, caller: Caller, target_email: str, changes_privileged_fields: bool) -> bool:
        """Owners may edit their names; role, status or email changes need an Admin."""
        if caller.has_role(RoleId.ADMIN):
            return True
        return _is_self(caller, target_email) and not changes_privileged_fields

    def can_delete_user(self, caller: Caller) -> bool:
        return caller.has_role(RoleId.ADMIN)

    # Requests ---------------------------------------------------------------

    def can_create_request(self, caller: Caller) -> bool:
        return not caller.is_anonymous and caller.has_role(RoleId.USER)

    def can_update_request(self, caller: Caller) -> bool:
        return caller.has_role(RoleId.COORDINATOR)

    def can_list_requests(self, caller: Caller) -> bool:
        return caller.has_role(RoleId.USER) or caller.has_role(RoleId.COORDINATOR)

    def sees_all_requests(self, caller: Caller) -> bool:
        return caller.has_role(RoleId.COORDINATOR)

    def can_delete_requests(self, caller: Caller) -> bool:
        """Role gate checked before the chain is looked up."""
        return caller.has_role(RoleId.USER) or caller.has_role(RoleId.COORDINATOR)

    def can_delete_request(self, caller: Caller, owner_emails: set[str]) -> bool:
        """A User may delete only chains they own entirely; a Coordinator may delete any."""
        if caller.has_role(RoleId.USER):
            return all(_is_self(caller, owner) for owner in owner_emails)
        return caller.has_role(RoleId.COORDINATOR)


def _is_self(caller: Caller, target_email: Optional[str]) -> bool:
    return caller.email is not None and caller.email == target_email
