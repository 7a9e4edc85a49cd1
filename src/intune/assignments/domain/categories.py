"""Category table - the only place category-specific knowledge lives.

Each descriptor names where a category's objects are listed, which relation
holds their assignments, which assignment schema that relation returns, and
which field carries the object's display name.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from ...api.exceptions import ConfigurationError
from .entities import SchemaVariant

NAME_FIELDS = ("displayName", "name")


@dataclass(frozen=True)
class CategoryDescriptor:
    """Static description of one configuration category.

    Attributes:
        name: Category key used for trails and report columns
        service_path: Graph service segment (deviceManagement, deviceAppManagement)
        resource_type: Collection under the service path
        relation_name: Navigation property holding the assignments
        schema_variant: Wire schema of the assignment records
        name_field: Field carrying the object's display name
    """

    name: str
    service_path: str
    resource_type: str
    relation_name: str
    schema_variant: SchemaVariant
    name_field: str = "displayName"

    def display_name_of(self, raw: dict) -> Optional[str]:
        """Read the display name, accepting displayName and name interchangeably."""
        value = raw.get(self.name_field)
        if not value:
            other = "displayName" if self.name_field == "name" else "name"
            value = raw.get(other)
        return value


CATEGORY_TABLE: tuple[CategoryDescriptor, ...] = (
    CategoryDescriptor(
        name="configurationPolicies",
        service_path="deviceManagement",
        resource_type="configurationPolicies",
        relation_name="assignments",
        schema_variant=SchemaVariant.ASSIGNMENTS,
        name_field="name",
    ),
    CategoryDescriptor(
        name="deviceConfigurations",
        service_path="deviceManagement",
        resource_type="deviceConfigurations",
        relation_name="groupAssignments",
        schema_variant=SchemaVariant.GROUP_ASSIGNMENTS,
    ),
    CategoryDescriptor(
        name="groupPolicyConfigurations",
        service_path="deviceManagement",
        resource_type="groupPolicyConfigurations",
        relation_name="assignments",
        schema_variant=SchemaVariant.ASSIGNMENTS,
    ),
    CategoryDescriptor(
        name="deviceCompliancePolicies",
        service_path="deviceManagement",
        resource_type="deviceCompliancePolicies",
        relation_name="assignments",
        schema_variant=SchemaVariant.ASSIGNMENTS,
    ),
    CategoryDescriptor(
        name="mobileApps",
        service_path="deviceAppManagement",
        resource_type="mobileApps",
        relation_name="assignments",
        schema_variant=SchemaVariant.ASSIGNMENTS,
    ),
    CategoryDescriptor(
        name="deviceManagementScripts",
        service_path="deviceManagement",
        resource_type="deviceManagementScripts",
        relation_name="groupAssignments",
        schema_variant=SchemaVariant.GROUP_ASSIGNMENTS,
    ),
    CategoryDescriptor(
        name="deviceHealthScripts",
        service_path="deviceManagement",
        resource_type="deviceHealthScripts",
        relation_name="assignments",
        schema_variant=SchemaVariant.ASSIGNMENTS,
    ),
    CategoryDescriptor(
        name="windowsAutopilotDeploymentProfiles",
        service_path="deviceManagement",
        resource_type="windowsAutopilotDeploymentProfiles",
        relation_name="assignments",
        schema_variant=SchemaVariant.ASSIGNMENTS,
    ),
    CategoryDescriptor(
        name="deviceEnrollmentConfigurations",
        service_path="deviceManagement",
        resource_type="deviceEnrollmentConfigurations",
        relation_name="assignments",
        schema_variant=SchemaVariant.ASSIGNMENTS,
    ),
    CategoryDescriptor(
        name="intents",
        service_path="deviceManagement",
        resource_type="intents",
        relation_name="assignments",
        schema_variant=SchemaVariant.ASSIGNMENTS,
    ),
)


def validate_category_table(table: Iterable[CategoryDescriptor]) -> tuple[CategoryDescriptor, ...]:
    """Check a category table before any fetch is issued.

    Raises:
        ConfigurationError: On an empty table, duplicate names, blank fields,
            an unknown schema variant or an unknown name field.
    """
    table = tuple(table)
    if not table:
        raise ConfigurationError("Category table is empty")

    seen: set[str] = set()
    for descriptor in table:
        for attr in ("name", "service_path", "resource_type", "relation_name"):
            if not getattr(descriptor, attr, None):
                raise ConfigurationError(
                    f"Category descriptor has empty {attr}",
                    details={"category": descriptor.name or "?"},
                )
        if not isinstance(descriptor.schema_variant, SchemaVariant):
            raise ConfigurationError(
                f"Category {descriptor.name} has unknown schema variant "
                f"{descriptor.schema_variant!r}",
                details={"category": descriptor.name},
            )
        if descriptor.name_field not in NAME_FIELDS:
            raise ConfigurationError(
                f"Category {descriptor.name} has unknown name field {descriptor.name_field!r}",
                details={"category": descriptor.name},
            )
        if descriptor.name in seen:
            raise ConfigurationError(
                f"Duplicate category {descriptor.name}",
                details={"category": descriptor.name},
            )
        seen.add(descriptor.name)

    return table


def select_categories(
    names: Optional[Iterable[str]] = None,
    table: Iterable[CategoryDescriptor] = CATEGORY_TABLE,
) -> tuple[CategoryDescriptor, ...]:
    """Return the requested categories in table order (all when names is empty).

    Raises:
        ConfigurationError: If a requested name is not in the table.
    """
    table = validate_category_table(table)
    if not names:
        return table

    wanted = list(dict.fromkeys(names))
    known = {d.name for d in table}
    unknown = [n for n in wanted if n not in known]
    if unknown:
        raise ConfigurationError(
            f"Unknown categories: {', '.join(unknown)}",
            details={"known": sorted(known)},
        )
    return tuple(d for d in table if d.name in wanted)
