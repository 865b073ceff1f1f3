"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    default_code = "APP_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with message, status code and machine-readable code."""
        self.message = message
        self.status_code = status_code
        self.code = code or self.default_code
        self.details = details
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    default_code = "NOT_FOUND_ERROR"

    def __init__(
        self,
        message: str = "Resource not found",
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404, code=code, details=details)


class UnauthorizedException(AppException):
    """Authentication failure (missing, invalid or revoked credentials)."""

    default_code = "AUTHENTICATION_ERROR"

    def __init__(
        self,
        message: str = "Unauthorized",
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401, code=code, details=details)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    default_code = "AUTHORIZATION_ERROR"

    def __init__(
        self,
        message: str = "Forbidden",
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403, code=code, details=details)


class BadRequestException(AppException):
    """Bad request exception."""

    default_code = "BAD_REQUEST"

    def __init__(
        self,
        message: str = "Bad request",
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400, code=code, details=details)


class ConflictException(AppException):
    """Conflict exception."""

    default_code = "CONFLICT_ERROR"

    def __init__(
        self,
        message: str = "Conflict",
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, code=code, details=details)


class RateLimitException(AppException):
    """Rate limit exceeded exception."""

    default_code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str = "Rate limit exceeded", code: str | None = None):
        """Initialize with 429 status code."""
        super().__init__(message, status_code=429, code=code)


class ExternalServiceException(AppException):
    """Upstream dependency (mail server, identity provider) failed."""

    default_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, message: str = "External service error", code: str | None = None):
        """Initialize with 502 status code."""
        super().__init__(message, status_code=502, code=code)


class DatabaseException(AppException):
    """Credential store operation failed."""

    default_code = "DATABASE_ERROR"

    def __init__(self, message: str = "Database error", code: str | None = None):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500, code=code)


class WriteConflictError(Exception):
    """Retryable write conflict reported by the database.

    Raised by the store layer and consumed by ``with_optimistic_retry``;
    never surfaced to API clients.
    """
