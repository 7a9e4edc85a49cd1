#!/usr/bin/env python3
"""OAuth2 Token Management for Microsoft Graph.

This module provides async-safe OAuth2 token management for the Graph API
using the client credentials grant against the Microsoft identity platform.

Features:
    - Automatic token caching with dynamic expiration buffer (10% of TTL, max 5min)
    - Refresh serialized with asyncio.Lock
    - Exponential backoff retry on failures (1s, 2s, 4s)
    - Transparent token refresh on 401 responses (via invalidate())

Security Notes:
    - Tokens are cached in memory only (never persisted to disk)
    - Client secrets should be provided via environment variables
    - Token ID in debug output uses SHA-256 hash (first 8 chars) - never shows actual token

Example:
    >>> manager = TokenManager()
    >>> token = await manager.get_token()
"""
import asyncio
import hashlib
import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp
from dotenv import load_dotenv

from .exceptions import (
    ConfigurationError,
    ConnectionError,
    InvalidCredentialsError,
    NetworkError,
    TimeoutError,
    TokenFetchError,
)

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URL = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
DEFAULT_SCOPE = "https://graph.microsoft.com/.default"


@dataclass
class CachedToken:
    """Container for a cached OAuth2 access token.

    Attributes:
        access_token: The OAuth2 bearer token string.
        expires_at: Unix timestamp when the token expires.
        token_type: Token type, typically "Bearer".
        expires_in: Original TTL in seconds (for dynamic buffer calculation).
    """
    access_token: str
    expires_at: float
    token_type: Optional[str] = "Bearer"
    expires_in: int = 3599

    MAX_BUFFER_SECONDS = 300
    MIN_BUFFER_SECONDS = 30

    @property
    def token_id(self) -> str:
        """Safe identifier for logging (SHA-256 hash, first 8 chars)."""
        return hashlib.sha256(self.access_token.encode()).hexdigest()[:8]

    @property
    def _buffer_seconds(self) -> float:
        """10% of TTL clamped to [MIN, MAX], plus ±10% jitter."""
        base_buffer = self.expires_in * 0.1
        buffer = max(self.MIN_BUFFER_SECONDS, min(base_buffer, self.MAX_BUFFER_SECONDS))
        jitter = buffer * random.uniform(-0.1, 0.1)
        return buffer + jitter

    @property
    def is_expired(self) -> bool:
        """Check if the token has expired (with dynamic safety buffer + jitter)."""
        return time.time() >= (self.expires_at - self._buffer_seconds)


class TokenManager:
    """OAuth2 token manager with automatic refresh.

    Handles the client credentials flow for an Entra ID app registration
    holding the DeviceManagement*.Read.All and Group.Read.All application
    permissions.

    Attributes:
        tenant_id: Directory (tenant) ID (from env: INTUNE_TENANT_ID).
        client_id: Application (client) ID (from env: INTUNE_CLIENT_ID).
        client_secret: Client secret (from env: INTUNE_CLIENT_SECRET).
        token_url: Token endpoint (from env: INTUNE_TOKEN_URL, derived from
            the tenant when unset).
        scope: Requested scope, defaults to the Graph ``.default`` scope.
    """

    def __init__(
        self,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        token_url: Optional[str] = None,
        scope: str = DEFAULT_SCOPE,
    ):
        self.tenant_id = tenant_id or os.getenv("INTUNE_TENANT_ID")
        self.client_id = client_id or os.getenv("INTUNE_CLIENT_ID")
        self.client_secret = client_secret or os.getenv("INTUNE_CLIENT_SECRET")
        self.scope = scope

        missing = []
        if not self.tenant_id:
            missing.append("INTUNE_TENANT_ID")
        if not self.client_id:
            missing.append("INTUNE_CLIENT_ID")
        if not self.client_secret:
            missing.append("INTUNE_CLIENT_SECRET")
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing_keys=missing,
            )

        self.token_url = (
            token_url
            or os.getenv("INTUNE_TOKEN_URL")
            or DEFAULT_TOKEN_URL.format(tenant_id=self.tenant_id)
        )

        self._cached_token: Optional[CachedToken] = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        """Get a valid access token, fetching or refreshing as needed.

        Raises:
            TokenFetchError: If token cannot be obtained after retries
            InvalidCredentialsError: If the identity platform rejects the credentials
        """
        if self._cached_token and not self._cached_token.is_expired:
            return self._cached_token.access_token

        async with self._lock:
            if self._cached_token and not self._cached_token.is_expired:
                return self._cached_token.access_token

            self._cached_token = await self._fetch_token()
            return self._cached_token.access_token

    async def _fetch_token(self, max_retries: int = 3) -> CachedToken:
        """Fetch a new access token from the identity platform.

        Args:
            max_retries: Maximum number of attempts

        Returns:
            CachedToken with the new access token

        Raises:
            TokenFetchError: If token cannot be fetched after retries
            InvalidCredentialsError: If credentials are invalid (400/401 invalid_client)
        """
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": self.scope,
        }

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
        }

        last_error: Optional[Exception] = None

        for attempt in range(1, max_retries + 1):
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.post(
                        self.token_url,
                        data=payload,
                        headers=headers,
                        timeout=aiohttp.ClientTimeout(total=30),
                    ) as response:
                        if response.status == 200:
                            data = await response.json()

                            access_token = data.get("access_token")
                            if not access_token:
                                raise TokenFetchError(
                                    "Token response missing access_token",
                                    status_code=200,
                                    attempts=attempt,
                                    details={"response_keys": list(data.keys())},
                                )

                            expires_in = int(data.get("expires_in", 3599))
                            token = CachedToken(
                                access_token=access_token,
                                expires_at=time.time() + expires_in,
                                token_type=data.get("token_type", "Bearer"),
                                expires_in=expires_in,
                            )
                            logger.info(
                                f"Token fetched (id={token.token_id}), expires in {expires_in}s"
                            )
                            return token

                        error_text = await response.text()

                        # AADSTS7000215 (bad secret) comes back as 401 invalid_client
                        if response.status == 401 or "invalid_client" in error_text:
                            raise InvalidCredentialsError(
                                "Invalid client credentials",
                                details={"response": error_text[:200]},
                            )

                        if response.status == 400:
                            raise TokenFetchError(
                                f"Invalid token request: {error_text[:200]}",
                                status_code=400,
                                attempts=attempt,
                            )

                        last_error = TokenFetchError(
                            f"Token endpoint returned HTTP {response.status}",
                            status_code=response.status,
                            attempts=attempt,
                            details={"response": error_text[:200]},
                        )
                        logger.warning(
                            f"Token fetch attempt {attempt}/{max_retries} failed: "
                            f"HTTP {response.status}"
                        )

            except (InvalidCredentialsError, TokenFetchError):
                raise

            except aiohttp.ClientConnectionError as e:
                last_error = ConnectionError(
                    f"Failed to connect to token endpoint: {e}",
                    host=self.token_url,
                    cause=e,
                )
                logger.warning(
                    f"Token fetch attempt {attempt}/{max_retries} failed: "
                    f"Connection error - {e}"
                )

            except asyncio.TimeoutError as e:
                last_error = TimeoutError(
                    "Token request timed out",
                    timeout_seconds=30,
                    cause=e,
                )
                logger.warning(
                    f"Token fetch attempt {attempt}/{max_retries} failed: Timeout"
                )

            except aiohttp.ClientError as e:
                last_error = NetworkError(
                    f"Network error fetching token: {e}",
                    cause=e,
                )
                logger.warning(
                    f"Token fetch attempt {attempt}/{max_retries} failed: {e}"
                )

            if attempt < max_retries:
                wait_time = 2 ** (attempt - 1)
                logger.debug(f"Waiting {wait_time}s before retry")
                await asyncio.sleep(wait_time)

        raise TokenFetchError(
            f"Failed to fetch token after {max_retries} attempts",
            attempts=max_retries,
            cause=last_error,
        )

    def invalidate(self):
        """Invalidate the cached token."""
        self._cached_token = None
