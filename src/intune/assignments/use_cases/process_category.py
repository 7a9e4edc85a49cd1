"""Process Category Use Case - drives one category end to end.

Workflow:
1. List all configuration objects of the category (via IConfigurationAPI)
2. Map displayName/name through the category descriptor
3. Fetch each object's assignments (bounded concurrency, results kept in
   fetch order)
4. Normalize the records and resolve memberships object by object

Step 4 runs only after every fetch of the category has finished cleanly and
contains no awaits, so a failed or cancelled category never leaves a partial
trail behind.
"""

import logging
from typing import Any, Sequence

from ...api.exceptions import (
    AssignmentFetchError,
    CategoryFetchError,
    IntuneError,
)
from ...api.resilience import process_concurrent
from ..adapters.target_normalizer import TargetNormalizer
from ..domain.categories import CategoryDescriptor
from ..domain.entities import (
    CategoryResult,
    ConfigurationObject,
    Group,
    SkippedObject,
    SkippedRecord,
)
from ..domain.ports import IConfigurationAPI
from .resolve_membership import MembershipResolver

logger = logging.getLogger(__name__)


class CategoryProcessor:
    """Orchestrates fetch -> normalize -> resolve for one category.

    Example:
        processor = CategoryProcessor(GraphConfigurationAPI(client))
        result = await processor.process(descriptor, groups)
    """

    def __init__(
        self,
        api: IConfigurationAPI,
        normalizer: TargetNormalizer | None = None,
        resolver: MembershipResolver | None = None,
        max_concurrency: int = 1,
    ):
        """Initialize the processor with its dependencies.

        Args:
            api: Port for listing objects and assignments
            normalizer: Target normalizer (default instance if omitted)
            resolver: Membership resolver (default instance if omitted)
            max_concurrency: Assignment fetches in flight at once (1 = sequential)
        """
        self.api = api
        self.normalizer = normalizer or TargetNormalizer()
        self.resolver = resolver or MembershipResolver()
        self.max_concurrency = max(1, max_concurrency)

    async def list_objects(self, descriptor: CategoryDescriptor) -> list[ConfigurationObject]:
        """List a category's objects as ConfigurationObjects.

        Raises:
            CategoryFetchError: If the objects cannot be enumerated.
        """
        try:
            raw_objects = await self.api.list_configuration_objects(
                descriptor.service_path,
                descriptor.resource_type,
            )
        except IntuneError as e:
            raise CategoryFetchError(
                f"Cannot list {descriptor.name}: {e.message}",
                category=descriptor.name,
                cause=e,
            )

        objects = []
        for raw in raw_objects:
            object_id = raw.get("id")
            if not object_id:
                logger.warning(f"{descriptor.name}: ignoring object without id")
                continue
            objects.append(
                ConfigurationObject(
                    id=object_id,
                    display_name=descriptor.display_name_of(raw) or object_id,
                    category=descriptor.name,
                )
            )
        return objects

    async def fetch_assignments(
        self,
        descriptor: CategoryDescriptor,
        obj: ConfigurationObject,
    ) -> list[dict[str, Any]]:
        """Fetch raw assignment records of one object.

        Raises:
            AssignmentFetchError: If the listing fails.
        """
        try:
            return await self.api.list_assignments(
                descriptor.service_path,
                descriptor.resource_type,
                obj.id,
                descriptor.relation_name,
            )
        except IntuneError as e:
            raise AssignmentFetchError(
                f"Cannot list assignments of {obj.display_name}: {e.message}",
                category=descriptor.name,
                object_id=obj.id,
                cause=e,
            )

    async def process(
        self,
        descriptor: CategoryDescriptor,
        groups: Sequence[Group],
    ) -> CategoryResult:
        """Process one category for all tracked groups.

        Raises:
            CategoryFetchError: If the category cannot be listed, or an
                assignment fetch fails with anything but AssignmentFetchError;
                no group trail is touched in either case.
        """
        objects = await self.list_objects(descriptor)
        logger.info(f"{descriptor.name}: {len(objects)} objects")

        result = CategoryResult(category=descriptor.name)

        async def fetch(obj: ConfigurationObject) -> list[dict[str, Any]]:
            return await self.fetch_assignments(descriptor, obj)

        fetched = await process_concurrent(
            objects,
            fetch,
            max_concurrent=self.max_concurrency,
            return_exceptions=True,
        )

        # Any unexpected failure aborts the category before a trail is touched
        for obj, records in zip(objects, fetched):
            if isinstance(records, AssignmentFetchError):
                continue
            if isinstance(records, Exception):
                raise CategoryFetchError(
                    f"Unexpected error listing assignments of {obj.display_name}: {records!r}",
                    category=descriptor.name,
                    cause=records,
                )
            if isinstance(records, BaseException):
                raise records

        for obj, records in zip(objects, fetched):
            if isinstance(records, AssignmentFetchError):
                logger.warning(f"{descriptor.name}: skipping {obj.display_name}: {records}")
                result.skipped_objects.append(
                    SkippedObject(
                        category=descriptor.name,
                        object_id=obj.id,
                        display_name=obj.display_name,
                        reason=records.message,
                    )
                )
                continue

            targets, errors = self.normalizer.normalize_all(
                records,
                descriptor.schema_variant,
            )
            result.skipped_records.extend(
                SkippedRecord(category=descriptor.name, object_id=obj.id, reason=e.message)
                for e in errors
            )
            result.entries_added += self.resolver.resolve(
                descriptor.name,
                obj,
                targets,
                groups,
            )
            result.objects_processed += 1

        logger.info(
            f"{descriptor.name}: {result.objects_processed} processed, "
            f"{len(result.skipped_objects)} skipped, {result.entries_added} entries"
        )
        return result
