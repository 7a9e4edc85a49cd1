"""Use cases layer - Business logic orchestration for assignment resolution.

This layer contains the classes that drive a report run:
- Resolve group names to identities (via IGroupResolver port)
- List objects and assignments per category (via IConfigurationAPI port)
- Normalize targets and append membership trail entries

Use cases depend only on ports, not concrete implementations.
"""

from .build_report import AssignmentReport, BuildReportUseCase
from .process_category import CategoryProcessor
from .resolve_membership import MembershipResolver

__all__ = [
    "AssignmentReport",
    "BuildReportUseCase",
    "CategoryProcessor",
    "MembershipResolver",
]
