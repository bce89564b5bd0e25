"""Bot verification through Google reCAPTCHA siteverify."""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BotVerificationResult:
    success: bool
    error_codes: list[str] = field(default_factory=list)
    challenge_ts: Optional[str] = None


class BotVerifier(Protocol):
    def verify(self, payload: str) -> BotVerificationResult:
        ...


class ReCaptchaClient:
    """Validates the client-side reCAPTCHA token.

    Network failures and non-2xx answers raise ``requests`` exceptions; they
    are fatal to the calling operation and are not retried.
    """

    def __init__(self, secret_key: str, verify_url: str, timeout: float = 10.0):
        self.secret_key = secret_key
        self.verify_url = verify_url
        self.timeout = timeout

    def verify(self, payload: str) -> BotVerificationResult:
        response = requests.post(
            self.verify_url,
            data={"secret": self.secret_key, "response": payload},
            timeout=self.timeout,
        )
        response.raise_for_status()
        body = response.json() or {}

        result = BotVerificationResult(
            success=bool(body.get("success")),
            error_codes=list(body.get("error-codes") or []),
            challenge_ts=body.get("challenge_ts"),
        )
        if not result.success:
            logger.warning(f"reCAPTCHA verification failed: {', '.join(result.error_codes) or 'no error codes'}")
        return result
