"""Port interfaces for assignment reporting.

Ports define the contracts between the use cases and the infrastructure.
Use cases depend only on these interfaces; the Graph and file-export
adapters implement them.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from .entities import GroupIdentity

if TYPE_CHECKING:
    from ..use_cases.build_report import AssignmentReport


class IGroupResolver(ABC):
    """Port for turning a group name into a group identity."""

    @abstractmethod
    async def resolve(self, name: str) -> Optional[GroupIdentity]:
        """Look up a group by display name.

        Reserved names ("All Users", "All Devices") resolve to the well-known
        pseudo-groups without a remote call.

        Returns:
            GroupIdentity, or None when no group has that name
        """
        ...


class IConfigurationAPI(ABC):
    """Port for listing configuration objects and their assignments."""

    @abstractmethod
    async def list_configuration_objects(
        self,
        service_path: str,
        resource_type: str,
    ) -> list[dict[str, Any]]:
        """List every object of a category, draining all pages.

        Returns:
            Raw object dictionaries in service order
        """
        ...

    @abstractmethod
    async def list_assignments(
        self,
        service_path: str,
        resource_type: str,
        object_id: str,
        relation_name: str,
    ) -> list[dict[str, Any]]:
        """List the raw assignment records of one object (may be empty)."""
        ...


class IReportExporter(ABC):
    """Port for writing the consolidated per-group report."""

    @abstractmethod
    def export(self, report: "AssignmentReport", path: Path) -> Path:
        """Write the report and return the path written."""
        ...
