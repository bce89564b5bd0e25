"""Clients for the external collaborators (bot verification, directory invitations)."""
from .graph import DirectoryInviter, GraphInvitationClient
from .recaptcha import BotVerificationResult, BotVerifier, ReCaptchaClient

__all__ = [
    "BotVerificationResult",
    "BotVerifier",
    "DirectoryInviter",
    "GraphInvitationClient",
    "ReCaptchaClient",
]
