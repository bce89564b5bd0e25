"""Closed reference sets and error codes shared by the domain layer."""
from __future__ import annotations
from enum import IntEnum


class RoleId:
    USER = "User"
    COORDINATOR = "Coordinator"
    ADMIN = "Admin"

    ALL = (USER, COORDINATOR, ADMIN)


class UserStatusId:
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    ALL = (PENDING, APPROVED, REJECTED)


class RequestStatusId:
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    ALL = (PENDING, APPROVED, REJECTED)


class ErrorCode(IntEnum):
    """Numeric codes returned as ``detail_code`` in problem responses."""

    MISSING_MANDATORY_FIELD = 100
    USER_ALREADY_EXISTS = 101
    INVALID_USER_ROLE_ID = 102
    USER_NOT_FOUND = 103
    USER_NOT_ALLOWED = 104
    INVALID_USER_STATUS_ID = 105
    INVALID_EMAIL = 106
    NEGATIVE_VALUE = 107
    INVALID_PRODUCT_ID = 108
    INVALID_REQUEST_STATUS_ID = 109
    INVALID_REF_NO = 110
    UNABLE_TO_SEND_B2B_INVITATION = 111
    BOT_VALIDATION_ERROR = 112

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    ErrorCode.MISSING_MANDATORY_FIELD: "Missing mandatory field in the request",
    ErrorCode.USER_ALREADY_EXISTS: "User already exists",
    ErrorCode.INVALID_USER_ROLE_ID: "Invalid User Role Id",
    ErrorCode.USER_NOT_FOUND: "User not found",
    ErrorCode.USER_NOT_ALLOWED: "User not allowed",
    ErrorCode.INVALID_USER_STATUS_ID: "Invalid User Status Id",
    ErrorCode.INVALID_EMAIL: "Invalid Email",
    ErrorCode.NEGATIVE_VALUE: "Negative value",
    ErrorCode.INVALID_PRODUCT_ID: "Invalid product Id",
    ErrorCode.INVALID_REQUEST_STATUS_ID: "Invalid Request status Id",
    ErrorCode.INVALID_REF_NO: "Invalid Request RefNo",
    ErrorCode.UNABLE_TO_SEND_B2B_INVITATION: "Unable to send B2B invitation",
    ErrorCode.BOT_VALIDATION_ERROR: "Bot validation error",
}
