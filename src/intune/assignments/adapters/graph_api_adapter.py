"""Graph API adapters for configuration objects and groups.

GraphConfigurationAPI implements IConfigurationAPI and GraphGroupResolver
implements IGroupResolver, both wrapping the shared GraphClient.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from ..domain.entities import (
    ALL_DEVICES_GROUP,
    ALL_DEVICES_NAME,
    ALL_USERS_GROUP,
    ALL_USERS_NAME,
    GroupIdentity,
)
from ..domain.ports import IConfigurationAPI, IGroupResolver

if TYPE_CHECKING:
    from ...api.client import GraphClient, PaginationConfig

logger = logging.getLogger(__name__)


class GraphConfigurationAPI(IConfigurationAPI):
    """Microsoft Graph adapter for listing configuration objects and assignments.

    Both listings are drained through GraphClient.fetch_all, so callers
    always receive complete, order-stable sequences.
    """

    def __init__(
        self,
        client: "GraphClient",
        pagination_config: "PaginationConfig | None" = None,
    ):
        """Initialize the API adapter.

        Args:
            client: Configured GraphClient instance
            pagination_config: Optional pagination config override.
                             Defaults to GRAPH_PAGINATION if not provided.
        """
        self.client = client
        self._pagination_config = pagination_config

    @property
    def pagination_config(self) -> "PaginationConfig":
        """Get pagination config, importing default if needed."""
        if self._pagination_config is None:
            from ...api.client import GRAPH_PAGINATION
            self._pagination_config = GRAPH_PAGINATION
        return self._pagination_config

    async def list_configuration_objects(
        self,
        service_path: str,
        resource_type: str,
    ) -> list[dict[str, Any]]:
        return await self.client.fetch_all(
            f"/{service_path}/{resource_type}",
            config=self.pagination_config,
        )

    async def list_assignments(
        self,
        service_path: str,
        resource_type: str,
        object_id: str,
        relation_name: str,
    ) -> list[dict[str, Any]]:
        return await self.client.fetch_all(
            f"/{service_path}/{resource_type}/{object_id}/{relation_name}",
            config=self.pagination_config,
        )


class GraphGroupResolver(IGroupResolver):
    """Resolves Entra ID group names through Graph.

    Reserved names map to the well-known pseudo-groups and never hit the
    network. When several groups share a display name the first one Graph
    returns is used and the ambiguity is logged.
    """

    ENDPOINT = "/groups"
    RESERVED = {
        ALL_USERS_NAME.lower(): ALL_USERS_GROUP,
        ALL_DEVICES_NAME.lower(): ALL_DEVICES_GROUP,
    }

    def __init__(self, client: "GraphClient"):
        self.client = client

    async def resolve(self, name: str) -> Optional[GroupIdentity]:
        name = name.strip()
        reserved = self.RESERVED.get(name.lower())
        if reserved is not None:
            return reserved

        # OData string literals escape a single quote by doubling it
        literal = name.replace("'", "''")
        data = await self.client.get(
            self.ENDPOINT,
            params={
                "$filter": f"displayName eq '{literal}'",
                "$select": "id,displayName,createdDateTime",
            },
        )
        matches = data.get("value", [])
        if not matches:
            logger.warning(f"No group named '{name}'")
            return None
        if len(matches) > 1:
            logger.warning(
                f"{len(matches)} groups named '{name}', using {matches[0].get('id')}"
            )

        group = matches[0]
        return GroupIdentity(
            id=group["id"],
            display_name=group.get("displayName") or name,
            created_date_time=self._parse_timestamp(group.get("createdDateTime")),
        )

    @staticmethod
    def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
        """Parse Graph ISO 8601 timestamps ("2024-01-15T10:30:00Z")."""
        if not value:
            return None
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable createdDateTime {value!r}")
            return None
