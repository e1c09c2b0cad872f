"""
Error taxonomy shared by the qrnr services.

Every controlled failure is an :class:`AppError` subclass carrying an
:class:`ErrorCode`, an HTTP status and an optional machine readable
``detail_code`` (e.g. ``MAPPING_EXISTS``). Flask handlers in
``qrnr_shared.error_handlers`` render them into the standard envelope.
"""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus
from typing import Any


class ErrorCode(str, Enum):
    AUTH_MISSING = "AUTH_MISSING"
    AUTH_INVALID = "AUTH_INVALID"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"
    NOT_FOUND = "NOT_FOUND"


ERROR_CATALOG = {
    ErrorCode.AUTH_MISSING: {
        "title": "인증 필요",
        "description": "No token was presented in the header, cookie or body.",
        "http_code": 401,
    },
    ErrorCode.AUTH_INVALID: {
        "title": "토큰 오류",
        "description": "The token signature did not verify or the token expired.",
        "http_code": 401,
    },
    ErrorCode.AUTH_FORBIDDEN: {
        "title": "권한 없음",
        "description": "The token is valid but its realm or store does not allow this operation.",
        "http_code": 403,
    },
    ErrorCode.VALIDATION_ERROR: {
        "title": "입력 오류",
        "description": "A required field is missing or malformed.",
        "http_code": 400,
    },
    ErrorCode.CONFLICT: {
        "title": "충돌",
        "description": "Uniqueness violation or an invalid state transition.",
        "http_code": 409,
    },
    ErrorCode.RATE_LIMITED: {
        "title": "요청 과다",
        "description": "Too many requests from this IP for this endpoint.",
        "http_code": 429,
    },
    ErrorCode.UPSTREAM_FAILURE: {
        "title": "서버 오류",
        "description": "Storage or payment provider failure.",
        "http_code": 500,
    },
    ErrorCode.NOT_FOUND: {
        "title": "찾을 수 없음",
        "description": "The resource does not exist in this store.",
        "http_code": 404,
    },
}


class AppError(Exception):
    """Base class for controlled errors."""

    code: ErrorCode = ErrorCode.UPSTREAM_FAILURE
    status: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str | None = None,
        *,
        detail_code: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ):
        self.message = message or ERROR_CATALOG[self.code]["title"]
        self.detail_code = detail_code
        self.details = details
        self.retryable = retryable
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "status": "error",
            "data": None,
            "error": self.message,
            "code": self.detail_code or self.code.value,
        }
        if self.detail_code:
            body["category"] = self.code.value
        if self.details:
            body["details"] = self.details
        if self.retryable:
            body["retryable"] = True
        return body


class AuthMissingError(AppError):
    code = ErrorCode.AUTH_MISSING
    status = HTTPStatus.UNAUTHORIZED


class AuthInvalidError(AppError):
    code = ErrorCode.AUTH_INVALID
    status = HTTPStatus.UNAUTHORIZED


class AuthForbiddenError(AppError):
    code = ErrorCode.AUTH_FORBIDDEN
    status = HTTPStatus.FORBIDDEN


class ValidationError(AppError):
    """Raised when validation fails."""

    code = ErrorCode.VALIDATION_ERROR
    status = HTTPStatus.BAD_REQUEST


class ConflictError(AppError):
    code = ErrorCode.CONFLICT
    status = HTTPStatus.CONFLICT


class RateLimitedError(AppError):
    code = ErrorCode.RATE_LIMITED
    status = HTTPStatus.TOO_MANY_REQUESTS

    def __init__(self, retry_after: int, message: str | None = None):
        self.retry_after = retry_after
        super().__init__(message, details={"retry_after": retry_after})


class NotFoundError(AppError):
    code = ErrorCode.NOT_FOUND
    status = HTTPStatus.NOT_FOUND


class UpstreamError(AppError):
    code = ErrorCode.UPSTREAM_FAILURE
    status = HTTPStatus.INTERNAL_SERVER_ERROR
