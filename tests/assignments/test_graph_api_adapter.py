"""Tests for the Graph adapters (configuration API and group resolver)."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.intune.api.client import GRAPH_PAGINATION, PaginationConfig
from src.intune.assignments.adapters.graph_api_adapter import (
    GraphConfigurationAPI,
    GraphGroupResolver,
)
from src.intune.assignments.domain.entities import ALL_DEVICES_ID, ALL_USERS_ID


@pytest.fixture
def client():
    mock = MagicMock()
    mock.fetch_all = AsyncMock(return_value=[{"id": "o1"}])
    mock.get = AsyncMock(return_value={"value": []})
    return mock


class TestGraphConfigurationAPI:

    @pytest.mark.asyncio
    async def test_lists_objects_under_service_path(self, client):
        api = GraphConfigurationAPI(client)

        objects = await api.list_configuration_objects("deviceAppManagement", "mobileApps")

        assert objects == [{"id": "o1"}]
        client.fetch_all.assert_awaited_once_with(
            "/deviceAppManagement/mobileApps",
            config=GRAPH_PAGINATION,
        )

    @pytest.mark.asyncio
    async def test_lists_assignments_by_relation(self, client):
        api = GraphConfigurationAPI(client)

        await api.list_assignments(
            "deviceManagement", "deviceConfigurations", "o1", "groupAssignments"
        )

        client.fetch_all.assert_awaited_once_with(
            "/deviceManagement/deviceConfigurations/o1/groupAssignments",
            config=GRAPH_PAGINATION,
        )

    @pytest.mark.asyncio
    async def test_custom_pagination(self, client):
        config = PaginationConfig(page_size=100)
        api = GraphConfigurationAPI(client, pagination_config=config)

        await api.list_configuration_objects("deviceManagement", "intents")

        assert client.fetch_all.await_args.kwargs["config"] is config


class TestGraphGroupResolver:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name,expected", [
        ("All Users", ALL_USERS_ID),
        ("all devices", ALL_DEVICES_ID),
        ("  ALL USERS ", ALL_USERS_ID),
    ])
    async def test_reserved_names_skip_graph(self, client, name, expected):
        identity = await GraphGroupResolver(client).resolve(name)

        assert identity.id == expected
        client.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_resolves_by_display_name(self, client):
        client.get.return_value = {"value": [{
            "id": "g1",
            "displayName": "Sales Laptops",
            "createdDateTime": "2024-01-15T10:30:00Z",
        }]}

        identity = await GraphGroupResolver(client).resolve("Sales Laptops")

        assert identity.id == "g1"
        assert identity.display_name == "Sales Laptops"
        assert identity.created_date_time == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        params = client.get.await_args.kwargs["params"]
        assert params["$filter"] == "displayName eq 'Sales Laptops'"
        assert params["$select"] == "id,displayName,createdDateTime"

    @pytest.mark.asyncio
    async def test_escapes_single_quotes(self, client):
        await GraphGroupResolver(client).resolve("O'Brien Team")

        params = client.get.await_args.kwargs["params"]
        assert params["$filter"] == "displayName eq 'O''Brien Team'"

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        assert await GraphGroupResolver(client).resolve("Nobody") is None

    @pytest.mark.asyncio
    async def test_ambiguous_name_takes_first(self, client):
        client.get.return_value = {"value": [
            {"id": "g1", "displayName": "Dup"},
            {"id": "g2", "displayName": "Dup"},
        ]}

        identity = await GraphGroupResolver(client).resolve("Dup")

        assert identity.id == "g1"
        assert identity.created_date_time is None

    def test_unparseable_timestamp(self):
        assert GraphGroupResolver._parse_timestamp("yesterday") is None
