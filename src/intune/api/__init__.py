"""Microsoft Graph transport modules.

This package provides the authenticated HTTP client used by the assignment
adapters to talk to Microsoft Graph.

Classes:
    GraphClient: Generic HTTP client with pagination, retry, and circuit breaker
    TokenManager: OAuth2 client credentials token management with caching

Exceptions:
    IntuneError: Base exception for all report errors
    ConfigurationError: Missing or invalid configuration (fatal)
    TransportError: Auth, API and network failures
    ReportError: Contained errors (normalization, assignment and category fetch)

Resilience:
    CircuitBreaker: Prevent cascading failures
    with_timeout: Bound a whole run by wall-clock time
    process_concurrent: Bounded-concurrency fan-out with ordered results
"""
from .auth import CachedToken, TokenManager
from .client import (
    DEFAULT_GRAPH_URL,
    GRAPH_PAGINATION,
    GraphClient,
    PaginationConfig,
)
from .exceptions import (
    APIError,
    AssignmentFetchError,
    AuthenticationError,
    CategoryFetchError,
    CircuitOpenError,
    ConfigurationError,
    ConnectionError,
    IntuneError,
    InvalidCredentialsError,
    NetworkError,
    NormalizationError,
    NotFoundError,
    RateLimitError,
    ReportError,
    ServerError,
    TimeoutError,
    TokenExpiredError,
    TokenFetchError,
    TransportError,
    ValidationError,
)
from .resilience import (
    CircuitBreaker,
    CircuitState,
    process_concurrent,
    with_timeout,
)

__all__ = [
    # Auth
    "CachedToken",
    "TokenManager",
    # Client
    "GraphClient",
    "PaginationConfig",
    "GRAPH_PAGINATION",
    "DEFAULT_GRAPH_URL",
    # Exceptions - Base
    "IntuneError",
    "ConfigurationError",
    # Exceptions - Transport
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
    # Exceptions - Report
    "ReportError",
    "NormalizationError",
    "AssignmentFetchError",
    "CategoryFetchError",
    # Resilience
    "CircuitBreaker",
    "CircuitState",
    "process_concurrent",
    "with_timeout",
]
