"""Consolidated exception hierarchy for the Qwen proxy.

All exceptions use proper exception chaining with the `from` keyword.
Error types use StrEnum for type safety and autocompletion.
"""

from enum import StrEnum
from typing import Any

from starlette import status


class ErrorType(StrEnum):
    """Error type codes for API responses."""

    INVALID_REQUEST = "invalid_request_error"
    AUTHENTICATION = "authentication_error"
    RATE_LIMIT = "rate_limit_error"
    SERVICE_UNAVAILABLE = "service_unavailable_error"
    UPSTREAM = "upstream_error"
    INTERNAL_SERVER = "internal_server_error"


class ErrorKind(StrEnum):
    """Retry policy bucket for a failed provider call."""

    UNAUTHORIZED = "unauthorized"
    QUOTA_EXCEEDED = "quota_exceeded"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    OTHER = "other"


# ============================================================================
# Base Exceptions
# ============================================================================


class ProxyError(Exception):
    """Base exception for all proxy errors.

    Supports HTTP status codes and structured error details.
    """

    def __init__(
        self,
        message: str,
        *,
        error_type: ErrorType = ErrorType.INTERNAL_SERVER,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or {}


# ============================================================================
# API Errors (Client-facing)
# ============================================================================


class ValidationError(ProxyError):
    """Validation error (400)."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            error_type=ErrorType.INVALID_REQUEST,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class AuthenticationError(ProxyError):
    """Authentication error (401)."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(
            message,
            error_type=ErrorType.AUTHENTICATION,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


# ============================================================================
# Account Pool Errors
# ============================================================================


class NoAccountsAvailableError(ProxyError):
    """No account has a usable credential (all failed, missing or unrefreshable)."""

    def __init__(
        self,
        message: str = "No valid accounts available. All accounts may be failed or expired.",
    ) -> None:
        super().__init__(
            message,
            error_type=ErrorType.SERVICE_UNAVAILABLE,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


class CredentialsStorageError(ProxyError):
    """Error occurred during credential store operations."""


# ============================================================================
# OAuth Errors
# ============================================================================


class TokenExchangeError(AuthenticationError):
    """Token endpoint returned an error or an unusable response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_text: str | None = None,
        oauth_error: str | None = None,
    ) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.response_text = response_text
        self.oauth_error = oauth_error


class AuthorizationPendingError(TokenExchangeError):
    """Device flow not approved yet (authorization_pending / slow_down)."""


class RefreshFailedError(AuthenticationError):
    """Refresh-token grant failed for an account."""

    def __init__(self, account_id: str, provider_error: str) -> None:
        super().__init__(f"Token refresh failed for {account_id}: {provider_error}")
        self.account_id = account_id
        self.provider_error = provider_error


# ============================================================================
# Provider Errors
# ============================================================================

_SERVER_ERROR_STATUSES = frozenset({500, 502, 504})


def classify_provider_failure(status_code: int, body: str = "") -> ErrorKind:
    """Map an upstream status code and error body to a retry bucket.

    Precedence: unauthorized, quota exceeded, provider unavailable, other.
    """
    text = body.lower()
    if status_code == status.HTTP_401_UNAUTHORIZED or "unauthorized" in text:
        return ErrorKind.UNAUTHORIZED
    if (
        status_code == status.HTTP_429_TOO_MANY_REQUESTS
        or "quota" in text
        or "rate limit" in text
    ):
        return ErrorKind.QUOTA_EXCEEDED
    if status_code in _SERVER_ERROR_STATUSES:
        return ErrorKind.PROVIDER_UNAVAILABLE
    return ErrorKind.OTHER


_KIND_ERROR_TYPES = {
    ErrorKind.UNAUTHORIZED: ErrorType.AUTHENTICATION,
    ErrorKind.QUOTA_EXCEEDED: ErrorType.RATE_LIMIT,
    ErrorKind.PROVIDER_UNAVAILABLE: ErrorType.SERVICE_UNAVAILABLE,
    ErrorKind.OTHER: ErrorType.UPSTREAM,
}


class ProviderError(ProxyError):
    """Non-2xx response from the chat-completion provider.

    The retry bucket is decided once, when the response is read, so retry
    policy never has to parse messages.
    """

    def __init__(
        self,
        status_code: int,
        response_text: str = "",
        *,
        kind: ErrorKind | None = None,
    ) -> None:
        self.kind = kind or classify_provider_failure(status_code, response_text)
        self.response_text = response_text
        super().__init__(
            f"Qwen API error: {status_code} - {response_text}",
            error_type=_KIND_ERROR_TYPES[self.kind],
            status_code=status_code,
        )


__all__ = [
    "ErrorType",
    "ErrorKind",
    "ProxyError",
    "ValidationError",
    "AuthenticationError",
    "NoAccountsAvailableError",
    "CredentialsStorageError",
    "TokenExchangeError",
    "AuthorizationPendingError",
    "RefreshFailedError",
    "ProviderError",
    "classify_provider_failure",
]
