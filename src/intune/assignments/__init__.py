"""Assignments module - Clean Architecture implementation of assignment resolution.

Resolves, for a set of tracked groups, which Intune configuration objects
include or exclude each group, and builds a per-group, per-category
membership trail.

Architecture:
    domain/     - Pure domain entities, the category table and port interfaces
    use_cases/  - Membership resolution and report orchestration
    adapters/   - Infrastructure implementations (Graph API, exporters, normalizer)
"""

from .domain.categories import CATEGORY_TABLE, CategoryDescriptor
from .domain.entities import (
    AssignmentTarget,
    CategoryResult,
    ConfigurationObject,
    Group,
    GroupIdentity,
    RunSummary,
    SchemaVariant,
    TargetKind,
)
from .domain.ports import IConfigurationAPI, IGroupResolver, IReportExporter

__all__ = [
    # Category table
    "CATEGORY_TABLE",
    "CategoryDescriptor",
    # Entities
    "AssignmentTarget",
    "CategoryResult",
    "ConfigurationObject",
    "Group",
    "GroupIdentity",
    "RunSummary",
    "SchemaVariant",
    "TargetKind",
    # Ports
    "IConfigurationAPI",
    "IGroupResolver",
    "IReportExporter",
]
