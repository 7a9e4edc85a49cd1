#!/usr/bin/env python3
"""Exception Hierarchy for the Intune Assignment Report.

This module provides a structured exception hierarchy for handling errors
across the Graph client, the normalization layer and the report run.

Design Principles:
    - All exceptions inherit from IntuneError base class
    - Exceptions preserve context (original error, timestamps, details)
    - Exceptions are categorized by recoverability
    - Transport errors are retried at the client boundary only

Exception Hierarchy:
    IntuneError (base)
    ├── ConfigurationError (fatal - fix config / category table)
    ├── TransportError (remote or network failure)
    │   ├── AuthenticationError
    │   │   ├── TokenFetchError
    │   │   ├── TokenExpiredError
    │   │   └── InvalidCredentialsError
    │   ├── APIError
    │   │   ├── RateLimitError
    │   │   ├── NotFoundError
    │   │   ├── ValidationError
    │   │   └── ServerError
    │   ├── NetworkError
    │   │   ├── ConnectionError
    │   │   └── TimeoutError
    │   └── CircuitOpenError
    └── ReportError (contained, run continues)
        ├── NormalizationError
        ├── AssignmentFetchError
        └── CategoryFetchError
"""
from datetime import datetime, timezone
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================

class IntuneError(Exception):
    """Base exception for all report errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "TOKEN_EXPIRED")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether this error might be recoverable with retry
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Configuration Errors (Fatal)
# ============================================

class ConfigurationError(IntuneError):
    """Raised when configuration or the category table is missing or invalid.

    These errors abort the run before any fetch is issued.
    """

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


# ============================================
# Transport Errors
# ============================================

class TransportError(IntuneError):
    """Base class for network, auth and remote service failures."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class AuthenticationError(TransportError):
    """Base class for authentication-related errors."""


class TokenFetchError(AuthenticationError):
    """Raised when token cannot be fetched from the identity platform."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        attempts: int = 1,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if status_code:
            details["status_code"] = status_code
        details["attempts"] = attempts
        super().__init__(
            message,
            code="TOKEN_FETCH_ERROR",
            details=details,
            **kwargs,
        )


class TokenExpiredError(AuthenticationError):
    """Raised when the access token was rejected by Graph (HTTP 401)."""

    def __init__(self, message: str = "Access token has expired", **kwargs):
        super().__init__(message, code="TOKEN_EXPIRED", **kwargs)


class InvalidCredentialsError(AuthenticationError):
    """Raised when the app registration credentials are invalid."""

    def __init__(
        self,
        message: str = "Invalid client credentials",
        **kwargs,
    ):
        super().__init__(
            message,
            code="INVALID_CREDENTIALS",
            recoverable=False,
            **kwargs,
        )


class APIError(TransportError):
    """Base class for Graph API response errors.

    Attributes:
        status_code: HTTP status code
        endpoint: API endpoint that was called
        response_body: Raw response body (may be truncated)
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        endpoint: Optional[str] = None,
        response_body: Optional[str] = None,
        method: str = "GET",
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["status_code"] = status_code
        if endpoint:
            details["endpoint"] = endpoint
        if method:
            details["method"] = method
        if response_body:
            details["response_body"] = response_body[:500]

        kwargs.setdefault("recoverable", status_code in (429, 500, 502, 503, 504))
        kwargs.setdefault("code", f"API_ERROR_{status_code}")

        super().__init__(
            message,
            details=details,
            **kwargs,
        )
        self.status_code = status_code
        self.endpoint = endpoint
        self.response_body = response_body
        self.method = method


class RateLimitError(APIError):
    """Raised when Graph throttles the request (HTTP 429).

    Attributes:
        retry_after: Seconds to wait before retrying (from Retry-After header)
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("status_code", 429)
        details = kwargs.pop("details", {})
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(
            message,
            code="RATE_LIMIT_EXCEEDED",
            details=details,
            **kwargs,
        )
        self.retry_after = retry_after or 30


class NotFoundError(APIError):
    """Raised when requested resource is not found (HTTP 404)."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        **kwargs,
    ):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} '{resource_id}' not found"

        kwargs.setdefault("status_code", 404)
        details = kwargs.pop("details", {})
        details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message,
            code="NOT_FOUND",
            details=details,
            recoverable=False,
            **kwargs,
        )


class ValidationError(APIError):
    """Raised when Graph rejects the request (HTTP 400/403/422)."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("status_code", 400)
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field

        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


class ServerError(APIError):
    """Raised when Graph returns a 5xx error."""

    def __init__(
        self,
        message: str = "Server error",
        **kwargs,
    ):
        kwargs.setdefault("status_code", 500)
        super().__init__(
            message,
            code="SERVER_ERROR",
            recoverable=True,
            **kwargs,
        )


class NetworkError(TransportError):
    """Base class for network-related errors."""


class ConnectionError(NetworkError):
    """Raised when connection to server fails."""

    def __init__(
        self,
        message: str = "Failed to connect to server",
        host: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if host:
            details["host"] = host
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details=details,
            **kwargs,
        )


class TimeoutError(NetworkError):
    """Raised when request times out."""

    def __init__(
        self,
        message: str = "Request timed out",
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if timeout_seconds:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(
            message,
            code="TIMEOUT_ERROR",
            details=details,
            **kwargs,
        )


class CircuitOpenError(TransportError):
    """Raised when circuit breaker is open and requests are being rejected.

    Attributes:
        reset_at: When the circuit breaker will attempt to close
    """

    def __init__(
        self,
        message: str = "Circuit breaker is open, requests rejected",
        reset_at: Optional[datetime] = None,
        failure_count: int = 0,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if reset_at:
            details["reset_at"] = reset_at.isoformat()
        details["failure_count"] = failure_count

        super().__init__(
            message,
            code="CIRCUIT_OPEN",
            details=details,
            **kwargs,
        )
        self.reset_at = reset_at
        self.failure_count = failure_count


# ============================================
# Report Errors (Contained)
# ============================================

class ReportError(IntuneError):
    """Base class for errors that are logged and contained during a run."""


class NormalizationError(ReportError):
    """Raised when an assignment record lacks the fields its schema requires.

    Attributes:
        schema_variant: Schema the record was expected to follow
        record: The offending raw record
    """

    def __init__(
        self,
        message: str,
        schema_variant: Optional[str] = None,
        record: Any = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if schema_variant:
            details["schema_variant"] = schema_variant
        super().__init__(
            message,
            code="NORMALIZATION_ERROR",
            details=details,
            **kwargs,
        )
        self.schema_variant = schema_variant
        self.record = record


class AssignmentFetchError(ReportError):
    """Raised when one configuration object's assignments cannot be listed."""

    def __init__(
        self,
        message: str,
        category: Optional[str] = None,
        object_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if category:
            details["category"] = category
        if object_id:
            details["object_id"] = object_id
        super().__init__(
            message,
            code="ASSIGNMENT_FETCH_ERROR",
            details=details,
            recoverable=True,
            **kwargs,
        )
        self.category = category
        self.object_id = object_id


class CategoryFetchError(ReportError):
    """Raised when a category's configuration objects cannot be enumerated."""

    def __init__(
        self,
        message: str,
        category: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if category:
            details["category"] = category
        super().__init__(
            message,
            code="CATEGORY_FETCH_ERROR",
            details=details,
            recoverable=True,
            **kwargs,
        )
        self.category = category


__all__ = [
    "IntuneError",
    "ConfigurationError",
    "TransportError",
    "AuthenticationError",
    "TokenFetchError",
    "TokenExpiredError",
    "InvalidCredentialsError",
    "APIError",
    "RateLimitError",
    "NotFoundError",
    "ValidationError",
    "ServerError",
    "NetworkError",
    "ConnectionError",
    "TimeoutError",
    "CircuitOpenError",
    "ReportError",
    "NormalizationError",
    "AssignmentFetchError",
    "CategoryFetchError",
]
