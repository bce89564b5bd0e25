"""Directory invitations through the Microsoft Graph ``/invitations`` API.

The client acquires an application token with the client-credentials grant
and sends one invitation per call. The outcome is reported as the Graph
invitation status string; transport and API failures collapse to ``Error``.
"""
from __future__ import annotations
import logging
from typing import Protocol

import requests

logger = logging.getLogger(__name__)

INVITE_PENDING = "PendingAcceptance"
INVITE_COMPLETED = "Completed"
INVITE_IN_PROGRESS = "InProgress"
INVITE_ERROR = "Error"

INVITEE_IN_INVITER_TENANT = "Invitee is in inviter tenant"
TOKEN_URL_TEMPLATE = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"


class DirectoryInviter(Protocol):
    def invite(self, email: str) -> str:
        ...


class GraphInvitationClient:
    """Invites external identities into the organization's directory."""

    def __init__(
        self,
        endpoint: str,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        redirect_url: str,
        timeout: float = 10.0,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_url = redirect_url
        self.timeout = timeout

    def _get_access_token(self) -> str:
        response = requests.post(
            TOKEN_URL_TEMPLATE.format(tenant=self.tenant_id),
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "scope": GRAPH_SCOPE,
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        token = response.json().get("access_token")
        if not token:
            raise RuntimeError("Token endpoint returned no access_token")
        return token

    def invite(self, email: str) -> str:
        try:
            token = self._get_access_token()
            response = requests.post(
                f"{self.endpoint}/invitations",
                json={
                    "invitedUserEmailAddress": email,
                    "inviteRedirectUrl": self.redirect_url,
                    "sendInvitationMessage": True,
                },
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except (requests.RequestException, RuntimeError, ValueError) as exc:
            logger.error(f"Invitation request failed: {exc}")
            return INVITE_ERROR

        if response.status_code >= 400:
            message = _graph_error_message(response)
            if message == INVITEE_IN_INVITER_TENANT:
                logger.error(message)
                return INVITE_COMPLETED
            logger.error(f"Invitation rejected by Graph ({response.status_code}): {message}")
            return INVITE_ERROR

        try:
            status = response.json().get("status")
        except ValueError:
            status = None
        if not status:
            logger.error("Invitation response carried no status")
            return INVITE_ERROR
        logger.info(f"Invitation sent (status={status})")
        return status


def _graph_error_message(response) -> str:
    try:
        return ((response.json() or {}).get("error") or {}).get("message", "")
    except ValueError:
        return response.text or ""
