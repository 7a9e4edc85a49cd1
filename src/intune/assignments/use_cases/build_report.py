"""Build Report Use Case - resolves groups and runs every category.

Workflow:
1. Validate the category table (fatal ConfigurationError before any fetch)
2. Resolve requested group names to identities (via IGroupResolver)
3. Process each category through CategoryProcessor, sequentially or
   concurrently across categories
4. Assemble one row per group: identity columns plus one trail column per
   category, in table order

Category failures are contained: the category is skipped for every group,
logged, and listed in the RunSummary.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence

from ...api.exceptions import CategoryFetchError, ConfigurationError
from ..domain.categories import CATEGORY_TABLE, CategoryDescriptor, validate_category_table
from ..domain.entities import CategoryResult, Group, GroupIdentity, RunSummary
from ..domain.ports import IConfigurationAPI, IGroupResolver
from .process_category import CategoryProcessor

logger = logging.getLogger(__name__)

IDENTITY_COLUMNS = ("id", "displayName", "createdDateTime")


@dataclass
class AssignmentReport:
    """Consolidated per-group report handed to exporters."""

    groups: list[Group]
    categories: list[str]
    summary: RunSummary
    unresolved_groups: list[str] = field(default_factory=list)

    @property
    def columns(self) -> list[str]:
        return list(IDENTITY_COLUMNS) + list(self.categories)

    def rows(self) -> list[dict[str, Any]]:
        """One row per group; skipped categories render as empty strings."""
        rows = []
        for group in self.groups:
            row: dict[str, Any] = {
                "id": group.id,
                "displayName": group.display_name,
                "createdDateTime": (
                    group.created_date_time.isoformat() if group.created_date_time else ""
                ),
            }
            for category in self.categories:
                row[category] = group.trail(category)
            rows.append(row)
        return rows


class BuildReportUseCase:
    """Orchestrates a full assignment report run.

    Example:
        use_case = BuildReportUseCase(
            api=GraphConfigurationAPI(client),
            group_resolver=GraphGroupResolver(client),
            max_concurrency=4,
        )
        report = await use_case.execute(["Sales Laptops", "All Devices"])
    """

    def __init__(
        self,
        api: IConfigurationAPI,
        group_resolver: Optional[IGroupResolver] = None,
        categories: Iterable[CategoryDescriptor] = CATEGORY_TABLE,
        max_concurrency: int = 1,
        parallel_categories: bool = False,
        processor: Optional[CategoryProcessor] = None,
    ):
        """Initialize the use case.

        Raises:
            ConfigurationError: If the category table is malformed.
        """
        self.categories = validate_category_table(categories)
        self.api = api
        self.group_resolver = group_resolver
        self.parallel_categories = parallel_categories
        self.processor = processor or CategoryProcessor(api, max_concurrency=max_concurrency)

    async def resolve_groups(self, names: Sequence[str]) -> tuple[list[Group], list[str]]:
        """Resolve names to Groups, dropping duplicates.

        Returns:
            Tuple of (groups in request order, names that did not resolve)
        """
        if self.group_resolver is None:
            raise ConfigurationError("A group resolver is required to resolve group names")

        groups: list[Group] = []
        unresolved: list[str] = []
        seen: set[str] = set()

        for name in names:
            identity = await self.group_resolver.resolve(name)
            if identity is None:
                unresolved.append(name)
                continue
            if identity.id in seen:
                continue
            seen.add(identity.id)
            groups.append(Group.from_identity(identity))

        return groups, unresolved

    async def execute(self, group_names: Sequence[str]) -> AssignmentReport:
        """Resolve the named groups and build their report."""
        groups, unresolved = await self.resolve_groups(group_names)
        for name in unresolved:
            logger.warning(f"Group '{name}' not found, leaving it out of the report")

        report = await self.execute_for_groups(groups)
        report.unresolved_groups = unresolved
        return report

    async def execute_for_groups(
        self,
        groups: Sequence[Group | GroupIdentity],
    ) -> AssignmentReport:
        """Build the report for already-resolved groups."""
        tracked = [g if isinstance(g, Group) else Group.from_identity(g) for g in groups]
        summary = RunSummary(started_at=datetime.now(timezone.utc))

        if not tracked:
            logger.warning("No groups to report on")
        else:
            logger.info(
                f"Resolving assignments for {len(tracked)} groups "
                f"across {len(self.categories)} categories"
            )
            if self.parallel_categories:
                outcomes = await asyncio.gather(
                    *(self._run_category(d, tracked) for d in self.categories)
                )
            else:
                outcomes = [await self._run_category(d, tracked) for d in self.categories]

            for descriptor, outcome in zip(self.categories, outcomes):
                if isinstance(outcome, CategoryResult):
                    summary.categories.append(outcome)
                else:
                    summary.skipped_categories[descriptor.name] = outcome

        summary.completed_at = datetime.now(timezone.utc)
        logger.info(
            f"Report run finished in {summary.duration_seconds:.2f}s: "
            f"{summary.entries_added} entries, "
            f"{len(summary.skipped_categories)} categories skipped, "
            f"{len(summary.skipped_objects)} objects skipped"
        )

        return AssignmentReport(
            groups=tracked,
            categories=[d.name for d in self.categories],
            summary=summary,
        )

    async def _run_category(
        self,
        descriptor: CategoryDescriptor,
        groups: list[Group],
    ) -> CategoryResult | str:
        """Process one category; a CategoryFetchError becomes the skip reason."""
        try:
            return await self.processor.process(descriptor, groups)
        except CategoryFetchError as e:
            logger.warning(f"Skipping category {descriptor.name}: {e}")
            return e.message
