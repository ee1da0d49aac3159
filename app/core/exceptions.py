"""
Base exception classes for application-wide error handling.

Exceptions are reserved for failures that cross a layer boundary without a
ServiceResult to carry them (token parsing, cursor decoding). Expected
business failures are returned as ServiceResult.failure instead.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed client input (e.g. pagination cursors)
    └── IdentityTokenError - Identity provider token missing claims or invalid

Usage:
    from core.exceptions import ValidationError

    try:
        watermark = decode_message_cursor(cursor)
    except ValidationError as e:
        return ServiceResult.from_exception(e)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when client input cannot be interpreted.

    Example:
        raise ValidationError("Malformed cursor", error_code="INVALID_CURSOR")
    """

    default_error_code: str = "VALIDATION_ERROR"


class IdentityTokenError(BaseApplicationError):
    """
    Raised when an identity provider token fails verification.

    The HTTP layer converts this to DRF's AuthenticationFailed; the
    WebSocket middleware treats the connection as anonymous.
    """

    default_error_code: str = "INVALID_IDENTITY_TOKEN"
