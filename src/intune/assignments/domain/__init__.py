"""Domain layer - Pure domain entities, the category table and port interfaces.

This layer contains:
- Entities: groups, configuration objects, canonical assignment targets
- Categories: the static category table
- Ports: Abstract interfaces defining contracts for adapters
"""

from .categories import (
    CATEGORY_TABLE,
    CategoryDescriptor,
    select_categories,
    validate_category_table,
)
from .entities import (
    ALL_DEVICES_GROUP,
    ALL_DEVICES_ID,
    ALL_USERS_GROUP,
    ALL_USERS_ID,
    AssignmentTarget,
    CategoryResult,
    ConfigurationObject,
    Group,
    GroupIdentity,
    RunSummary,
    SchemaVariant,
    SkippedObject,
    SkippedRecord,
    TargetKind,
)
from .ports import IConfigurationAPI, IGroupResolver, IReportExporter

__all__ = [
    # Categories
    "CATEGORY_TABLE",
    "CategoryDescriptor",
    "select_categories",
    "validate_category_table",
    # Entities
    "ALL_DEVICES_GROUP",
    "ALL_DEVICES_ID",
    "ALL_USERS_GROUP",
    "ALL_USERS_ID",
    "AssignmentTarget",
    "CategoryResult",
    "ConfigurationObject",
    "Group",
    "GroupIdentity",
    "RunSummary",
    "SchemaVariant",
    "SkippedObject",
    "SkippedRecord",
    "TargetKind",
    # Ports
    "IConfigurationAPI",
    "IGroupResolver",
    "IReportExporter",
]
