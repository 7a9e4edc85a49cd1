#!/usr/bin/env python3
"""Tests for the Graph HTTP client.

Tests cover:
    - URL building and base URL validation
    - Status code to exception mapping
    - Retry policy (401 refresh, 429 Retry-After, 5xx backoff, 4xx fail fast)
    - @odata.nextLink pagination
"""
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

sys.path.insert(0, str(__file__).rsplit("/tests", 1)[0])
from src.intune.api.client import DEFAULT_GRAPH_URL, GraphClient, PaginationConfig
from src.intune.api.resilience import CircuitState
from src.intune.api.exceptions import (
    APIError,
    CircuitOpenError,
    ConfigurationError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TokenExpiredError,
    ValidationError,
)


@pytest.fixture
def token_manager():
    manager = MagicMock()
    manager.get_token = AsyncMock(return_value="token")
    manager.invalidate = MagicMock()
    return manager


@pytest.fixture
def client(token_manager, monkeypatch):
    monkeypatch.delenv("INTUNE_GRAPH_URL", raising=False)
    return GraphClient(token_manager)


# ============================================
# Construction
# ============================================

class TestGraphClientConfig:

    def test_default_base_url(self, client):
        assert client.base_url == DEFAULT_GRAPH_URL

    def test_base_url_from_env(self, token_manager, monkeypatch):
        monkeypatch.setenv("INTUNE_GRAPH_URL", "https://graph.microsoft.com/v1.0/")
        client = GraphClient(token_manager)
        assert client.base_url == "https://graph.microsoft.com/v1.0"

    def test_rejects_non_http_base_url(self, token_manager):
        with pytest.raises(ConfigurationError):
            GraphClient(token_manager, base_url="graph.microsoft.com")

    def test_build_url_joins_paths(self, client):
        assert client._build_url("/groups") == f"{DEFAULT_GRAPH_URL}/groups"
        assert client._build_url("groups") == f"{DEFAULT_GRAPH_URL}/groups"

    def test_build_url_passes_next_link_through(self, client):
        link = "https://graph.microsoft.com/beta/groups?$skiptoken=abc"
        assert client._build_url(link) == link

    @pytest.mark.asyncio
    async def test_request_outside_context_manager(self, client):
        with pytest.raises(RuntimeError):
            await client._request("GET", "/groups")

    @pytest.mark.asyncio
    async def test_malformed_json_body_is_api_error(self, client):
        response = MagicMock()
        response.status = 200
        response.json = AsyncMock(side_effect=ValueError("Expecting value: line 1 column 1"))
        context = MagicMock()
        context.__aenter__ = AsyncMock(return_value=response)
        context.__aexit__ = AsyncMock(return_value=None)
        client._session = MagicMock()
        client._session.request = MagicMock(return_value=context)

        with pytest.raises(APIError) as exc:
            await client._request("GET", "/deviceManagement/intents")

        assert exc.value.status_code == 200
        assert isinstance(exc.value.cause, ValueError)


# ============================================
# Error Mapping
# ============================================

class TestCreateApiError:

    def test_401_is_token_expired(self, client):
        assert isinstance(client._create_api_error(401, "GET", "/x", ""), TokenExpiredError)

    def test_404_is_not_found(self, client):
        error = client._create_api_error(404, "GET", "/x", "")
        assert isinstance(error, NotFoundError)
        assert not error.recoverable

    def test_429_parses_retry_after(self, client):
        error = client._create_api_error(429, "GET", "/x", "", retry_after="7")
        assert isinstance(error, RateLimitError)
        assert error.retry_after == 7

    def test_429_without_header_uses_default(self, client):
        error = client._create_api_error(429, "GET", "/x", "", retry_after="soon")
        assert error.retry_after == 30

    @pytest.mark.parametrize("status", [400, 403, 422])
    def test_client_errors_are_validation(self, client, status):
        error = client._create_api_error(status, "GET", "/x", "")
        assert isinstance(error, ValidationError)
        assert error.status_code == status

    def test_5xx_is_server_error(self, client):
        error = client._create_api_error(503, "GET", "/x", "")
        assert isinstance(error, ServerError)
        assert error.recoverable

    def test_other_status_is_api_error(self, client):
        error = client._create_api_error(409, "GET", "/x", "")
        assert type(error) is APIError


# ============================================
# Retry Policy
# ============================================

class TestRetryPolicy:

    @pytest.mark.asyncio
    async def test_401_invalidates_token_and_retries(self, client, token_manager):
        client._request = AsyncMock(side_effect=[TokenExpiredError(), {"value": []}])

        result = await client.get("/groups")

        assert result == {"value": []}
        token_manager.invalidate.assert_called_once()

    @pytest.mark.asyncio
    async def test_429_waits_retry_after(self, client):
        client._request = AsyncMock(
            side_effect=[RateLimitError(retry_after=3), {"value": [1]}]
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await client.get("/groups")

        assert result == {"value": [1]}
        mock_sleep.assert_awaited_once_with(3)

    @pytest.mark.asyncio
    async def test_server_error_retries_then_raises(self, client):
        client._request = AsyncMock(side_effect=ServerError("down", status_code=503))

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ServerError):
                await client.get("/groups")

        assert client._request.await_count == 3

    @pytest.mark.asyncio
    async def test_not_found_fails_fast(self, client):
        client._request = AsyncMock(side_effect=NotFoundError("Resource", "/x"))

        with pytest.raises(NotFoundError):
            await client.get("/x")

        assert client._request.await_count == 1

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self, token_manager):
        client = GraphClient(token_manager, circuit_failure_threshold=1)
        client._request = AsyncMock(side_effect=ServerError("down", status_code=500))

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ServerError):
                await client.get("/x")
            with pytest.raises(CircuitOpenError):
                await client.get("/x")

        assert client._circuit_breaker.state == CircuitState.OPEN


# ============================================
# Pagination
# ============================================

class TestPagination:

    @pytest.mark.asyncio
    async def test_follows_next_link(self, client):
        next_link = "https://graph.microsoft.com/beta/deviceManagement/intents?$skiptoken=2"
        client.get = AsyncMock(side_effect=[
            {"value": [{"id": "a"}, {"id": "b"}], "@odata.nextLink": next_link},
            {"value": [{"id": "c"}]},
        ])

        items = await client.fetch_all("/deviceManagement/intents")

        assert [i["id"] for i in items] == ["a", "b", "c"]
        first, second = client.get.await_args_list
        assert first.args == ("/deviceManagement/intents",)
        assert second.args == (next_link,)

    @pytest.mark.asyncio
    async def test_page_size_sets_top(self, client):
        client.get = AsyncMock(return_value={"value": []})

        await client.fetch_all("/groups", config=PaginationConfig(page_size=50))

        assert client.get.await_args.kwargs["params"] == {"$top": 50}

    @pytest.mark.asyncio
    async def test_max_pages_stops_early(self, client):
        client.get = AsyncMock(return_value={
            "value": [{"id": "x"}],
            "@odata.nextLink": "https://graph.microsoft.com/beta/groups?$skiptoken=n",
        })

        items = await client.fetch_all("/groups", config=PaginationConfig(max_pages=2))

        assert len(items) == 2
        assert client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_collection(self, client):
        client.get = AsyncMock(return_value={"value": []})

        assert await client.fetch_all("/deviceManagement/intents") == []

    @pytest.mark.asyncio
    async def test_non_object_page_is_api_error(self, client):
        client.get = AsyncMock(return_value=[{"id": "a"}])

        with pytest.raises(APIError):
            await client.fetch_all("/deviceManagement/intents")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
