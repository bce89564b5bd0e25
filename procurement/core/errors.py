"""Problem-details error raised by the domain layer."""
from __future__ import annotations
from typing import Optional

from procurement.core.constants import ErrorCode


_STATUS_TYPES = {
    400: "https://tools.ietf.org/html/rfc7231#section-6.5.1",
    401: "https://tools.ietf.org/html/rfc7235#section-3.1",
    403: "https://tools.ietf.org/html/rfc7231#section-6.5.3",
    404: "https://tools.ietf.org/html/rfc7231#section-6.5.4",
    500: "https://tools.ietf.org/html/rfc7231#section-6.6.1",
}


def problem_type(status: int) -> str:
    """RFC section URL used as the ``type`` member of a problem body."""
    return _STATUS_TYPES.get(status, "about:blank")


class ProblemError(Exception):
    """Business-rule failure with HTTP status, title and numeric error code."""

    def __init__(
        self,
        status: int,
        title: str,
        code: ErrorCode,
        inner_detail: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        self.status = status
        self.title = title
        self.code = code
        self.inner_detail = inner_detail
        self.detail = detail or code.description
        super().__init__(f"{title}: {self.detail}")

    def to_dict(self, trace_id: str) -> dict:
        """Convert to the problem response body."""
        body = {
            "type": problem_type(self.status),
            "title": self.title,
            "status": self.status,
            "detail": self.detail,
            "detail_code": int(self.code),
            "trace_id": trace_id,
        }
        if self.inner_detail is not None:
            body["inner_detail"] = self.inner_detail
        return body
