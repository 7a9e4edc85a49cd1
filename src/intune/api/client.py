#!/usr/bin/env python3
"""Generic HTTP Client for the Microsoft Graph API.

This module provides a reusable, composable HTTP client that handles the
common concerns of Graph communication:

    - OAuth2 authentication via TokenManager
    - Automatic token refresh on 401 responses
    - Throttling handling on 429 responses (honours Retry-After)
    - Cursor pagination via @odata.nextLink
    - Connection pooling via shared aiohttp session
    - Circuit breaker for resilience against Graph outages
    - Typed exceptions for every failure mode

Design Philosophy:
    This client knows HOW to talk to Graph, but not WHAT to fetch.
    It has no knowledge of policies, apps or groups. That knowledge belongs
    in the adapters that compose this client.

Usage:
    async with GraphClient(token_manager) as client:
        data = await client.get("/groups", params={"$top": 1})

        async for page in client.paginate("/deviceManagement/intents"):
            for item in page:
                process(item)

        all_items = await client.fetch_all("/deviceAppManagement/mobileApps")
"""
import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import aiohttp

from .auth import TokenManager
from .exceptions import (
    APIError,
    CircuitOpenError,
    ConfigurationError,
    ConnectionError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TimeoutError,
    TokenExpiredError,
    ValidationError,
)
from .resilience import CircuitBreaker

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_URL = "https://graph.microsoft.com/beta"

# ============================================
# Configuration
# ============================================

@dataclass
class PaginationConfig:
    """Configuration for paginated Graph requests.

    Attributes:
        page_size: Value sent as $top (None = let Graph pick its default)
        delay_between_pages: Seconds to wait between requests (throttling)
        max_pages: Safety limit to prevent infinite loops (None = no limit)
    """
    page_size: Optional[int] = None
    delay_between_pages: float = 0.0
    max_pages: Optional[int] = None


# Several deviceManagement collections reject $top, so it stays unset here
GRAPH_PAGINATION = PaginationConfig(
    page_size=None,
    delay_between_pages=0.0,
    max_pages=None,
)


# ============================================
# The Client
# ============================================

class GraphClient:
    """Async HTTP client for Microsoft Graph.

    Use as an async context manager to ensure proper session lifecycle:

        async with GraphClient(token_manager) as client:
            data = await client.get("/deviceManagement/intents")

    Attributes:
        token_manager: TokenManager instance for OAuth2 authentication
        base_url: Graph root including version (e.g., "https://graph.microsoft.com/beta")
    """

    def __init__(
        self,
        token_manager: TokenManager,
        base_url: Optional[str] = None,
        enable_circuit_breaker: bool = True,
        circuit_failure_threshold: int = 5,
        circuit_timeout: float = 60.0,
        max_connections: int = 10,
        request_timeout: float = 60.0,
    ):
        """Initialize the GraphClient.

        Args:
            token_manager: TokenManager instance for authentication
            base_url: Graph base URL. Falls back to INTUNE_GRAPH_URL, then the beta endpoint.
            enable_circuit_breaker: Enable circuit breaker for resilience
            circuit_failure_threshold: Failures before circuit opens
            circuit_timeout: Seconds before circuit attempts to close
            max_connections: Connection pool size
            request_timeout: Total timeout per request in seconds

        Raises:
            ConfigurationError: If the resulting base URL is not an http(s) URL.
        """
        self.token_manager = token_manager
        self.base_url = (
            base_url or os.getenv("INTUNE_GRAPH_URL") or DEFAULT_GRAPH_URL
        ).rstrip("/")

        if not self.base_url.startswith(("https://", "http://")):
            raise ConfigurationError(
                f"Graph base URL must be an http(s) URL, got {self.base_url!r}",
                missing_keys=["INTUNE_GRAPH_URL"],
            )

        self.max_connections = max_connections
        self.request_timeout = request_timeout

        # Session is created in __aenter__, closed in __aexit__
        self._session: Optional[aiohttp.ClientSession] = None

        self._circuit_breaker: Optional[CircuitBreaker] = None
        if enable_circuit_breaker:
            self._circuit_breaker = CircuitBreaker(
                failure_threshold=circuit_failure_threshold,
                timeout=circuit_timeout,
                name="graph_api",
            )

    # ----------------------------------------
    # Context Manager Protocol
    # ----------------------------------------

    async def __aenter__(self) -> "GraphClient":
        """Enter async context: create the HTTP session."""
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(
                limit=self.max_connections,
                limit_per_host=self.max_connections,
            ),
            timeout=aiohttp.ClientTimeout(
                total=self.request_timeout,
                connect=10,
            ),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context: close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    # ----------------------------------------
    # Low-Level Request Methods
    # ----------------------------------------

    def _build_url(self, endpoint: str) -> str:
        """Absolute URLs (nextLink) pass through, paths are joined to base_url."""
        if endpoint.startswith(("https://", "http://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def _get_auth_headers(self) -> dict[str, str]:
        """Get authorization headers with current token."""
        token = await self.token_manager.get_token()
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make a single HTTP request (no retry logic).

        Raises:
            APIError: If response status is not 2xx or the body is not valid JSON
            RuntimeError: If called outside of async context manager
            ConnectionError: If connection to server fails
            TimeoutError: If request times out
        """
        if not self._session:
            raise RuntimeError(
                "GraphClient must be used as async context manager: "
                "async with GraphClient(...) as client:"
            )

        url = self._build_url(endpoint)

        try:
            headers = await self._get_auth_headers()

            async with self._session.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
            ) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    raise self._create_api_error(
                        status=response.status,
                        method=method,
                        endpoint=endpoint,
                        response_body=error_text,
                        retry_after=response.headers.get("Retry-After"),
                    )

                try:
                    return await response.json()
                except ValueError as e:
                    raise APIError(
                        f"Malformed JSON from {method} {endpoint}",
                        status_code=response.status,
                        endpoint=endpoint,
                        method=method,
                        cause=e,
                    )

        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(
                f"Failed to connect to {self.base_url}",
                host=self.base_url,
                cause=e,
            )

        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"Request to {endpoint} timed out",
                timeout_seconds=self.request_timeout,
                cause=e,
            )

        except aiohttp.ClientError as e:
            raise NetworkError(
                f"Network error during {method} {endpoint}: {e}",
                cause=e,
            )

    def _create_api_error(
        self,
        status: int,
        method: str,
        endpoint: str,
        response_body: str,
        retry_after: Optional[str] = None,
    ) -> APIError:
        """Create appropriate APIError subclass based on status code."""
        if status == 401:
            return TokenExpiredError(
                "Access token expired or invalid",
                details={"endpoint": endpoint},
            )

        if status == 404:
            return NotFoundError(
                resource_type="Resource",
                resource_id=endpoint,
                endpoint=endpoint,
                response_body=response_body,
            )

        if status == 429:
            try:
                wait = int(retry_after) if retry_after else None
            except ValueError:
                wait = None
            return RateLimitError(
                f"Throttled by Graph for {endpoint}",
                retry_after=wait,
                endpoint=endpoint,
                response_body=response_body,
            )

        if status in (400, 403, 422):
            return ValidationError(
                f"Request rejected ({status}) for {method} {endpoint}",
                status_code=status,
                endpoint=endpoint,
                response_body=response_body,
            )

        if status >= 500:
            return ServerError(
                f"Server error ({status}) for {method} {endpoint}",
                status_code=status,
                endpoint=endpoint,
                response_body=response_body,
            )

        return APIError(
            f"{method} {endpoint} failed",
            status_code=status,
            endpoint=endpoint,
            method=method,
            response_body=response_body,
        )

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        max_retries: int = 3,
    ) -> dict[str, Any]:
        """Make an HTTP request with automatic retry and circuit breaker.

        Retry policy:
            - Circuit breaker open: fail fast with CircuitOpenError
            - 401 Unauthorized: invalidate token, refresh, retry
            - 429 Throttled: wait Retry-After seconds, retry
            - 5xx and network errors: exponential backoff retry
            - 400/403/404: fail immediately

        Raises:
            CircuitOpenError: If circuit breaker is open
            APIError: If request fails after all retries
            NetworkError: If network error persists after retries
        """
        if self._circuit_breaker and self._circuit_breaker.is_open:
            if not self._circuit_breaker._should_attempt():
                raise CircuitOpenError(
                    "Circuit breaker is open for Graph API",
                    reset_at=self._circuit_breaker.reset_at,
                    failure_count=self._circuit_breaker.failure_count,
                )

        last_error: Optional[Exception] = None
        backoff_delay = 1.0

        for attempt in range(1, max_retries + 1):
            try:
                result = await self._request(method, endpoint, params)

                if self._circuit_breaker:
                    await self._circuit_breaker._on_success()

                return result

            except TokenExpiredError as e:
                last_error = e
                logger.warning(f"Token rejected, refreshing (attempt {attempt})")
                self.token_manager.invalidate()
                continue

            except RateLimitError as e:
                last_error = e
                wait_time = e.retry_after
                logger.warning(
                    f"Throttled, waiting {wait_time}s (attempt {attempt}/{max_retries})"
                )
                await asyncio.sleep(wait_time)
                continue

            except (ServerError, NetworkError) as e:
                last_error = e
                if attempt < max_retries:
                    logger.warning(
                        f"Transient error: {e}. Retrying in {backoff_delay}s "
                        f"(attempt {attempt}/{max_retries})"
                    )
                    await asyncio.sleep(backoff_delay)
                    backoff_delay = min(backoff_delay * 2, 60.0)
                    continue

                if self._circuit_breaker:
                    await self._circuit_breaker._on_failure(e)
                raise

            except (NotFoundError, ValidationError):
                raise

            except APIError as e:
                if self._circuit_breaker:
                    await self._circuit_breaker._on_failure(e)
                raise

        if self._circuit_breaker and last_error:
            await self._circuit_breaker._on_failure(last_error)

        if last_error:
            raise last_error

        raise APIError(
            "Request failed after all retries",
            status_code=0,
            endpoint=endpoint,
            method=method,
        )

    # ----------------------------------------
    # High-Level Request Methods
    # ----------------------------------------

    async def get(
        self,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make a GET request.

        Args:
            endpoint: Path relative to base_url, or an absolute nextLink URL
            params: Query parameters

        Returns:
            Parsed JSON response
        """
        return await self._request_with_retry("GET", endpoint, params=params)

    # ----------------------------------------
    # Pagination Methods
    # ----------------------------------------

    async def paginate(
        self,
        endpoint: str,
        config: Optional[PaginationConfig] = None,
        params: Optional[dict] = None,
    ) -> AsyncIterator[list[dict]]:
        """Iterate through @odata.nextLink paginated responses.

        The first request carries the caller's params; follow-up requests use
        the nextLink URL verbatim since it already encodes the query.

        Args:
            endpoint: API endpoint path
            config: Pagination configuration
            params: Additional query parameters (e.g., $filter)

        Yields:
            List of items from each page ("value" array)
        """
        config = config or GRAPH_PAGINATION
        params = dict(params or {})
        if config.page_size:
            params["$top"] = config.page_size

        next_link: Optional[str] = None
        pages_fetched = 0
        total_items = 0

        while True:
            if next_link:
                data = await self.get(next_link)
            else:
                data = await self.get(endpoint, params=params or None)

            if not isinstance(data, dict):
                raise APIError(
                    f"Unexpected {type(data).__name__} page from {endpoint}",
                    status_code=200,
                    endpoint=endpoint,
                )

            items = data.get("value", [])
            if items:
                yield items
                total_items += len(items)

            pages_fetched += 1
            logger.debug(f"{endpoint}: page {pages_fetched}, {total_items:,} items so far")

            next_link = data.get("@odata.nextLink")
            if not next_link:
                break

            if config.max_pages and pages_fetched >= config.max_pages:
                logger.info(f"Reached max_pages limit ({config.max_pages}) for {endpoint}")
                break

            if config.delay_between_pages > 0:
                await asyncio.sleep(config.delay_between_pages)

        logger.debug(f"Pagination complete for {endpoint}: {total_items:,} items in {pages_fetched} pages")

    async def fetch_all(
        self,
        endpoint: str,
        config: Optional[PaginationConfig] = None,
        params: Optional[dict] = None,
    ) -> list[dict]:
        """Fetch all items from a paginated endpoint, draining every page."""
        all_items = []
        async for page in self.paginate(endpoint, config, params):
            all_items.extend(page)
        return all_items
