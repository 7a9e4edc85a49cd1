"""Domain entities for assignment resolution.

These are pure data structures with no infrastructure dependencies.
They represent the groups being reported on, the configuration objects
Intune manages, and the canonical form of an assignment target.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

# Reserved ids Intune uses for the implicit "All users" / "All devices" targets
ALL_USERS_ID = "acacacac-9df4-4c7d-9d50-4ef0226f57a9"
ALL_DEVICES_ID = "adadadad-808e-44e2-905a-0b7873a8a531"

ALL_USERS_NAME = "All Users"
ALL_DEVICES_NAME = "All Devices"


class SchemaVariant(str, Enum):
    """Wire schema a category uses for its assignment records."""

    GROUP_ASSIGNMENTS = "A"  # flat {targetGroupId|groupId, excludeGroup}
    ASSIGNMENTS = "B"  # nested {target: {@odata.type, groupId}}


class TargetKind(str, Enum):
    """Canonical assignment target kinds."""

    NAMED_GROUP_INCLUDE = "namedGroupInclude"
    NAMED_GROUP_EXCLUDE = "namedGroupExclude"
    ALL_USERS = "allUsers"
    ALL_DEVICES = "allDevices"
    OTHER = "other"


NAMED_GROUP_KINDS = frozenset(
    {TargetKind.NAMED_GROUP_INCLUDE, TargetKind.NAMED_GROUP_EXCLUDE}
)


@dataclass(frozen=True)
class AssignmentTarget:
    """Schema-independent assignment target.

    target_group_id is set for the two named-group kinds and only for them.
    """

    kind: TargetKind
    target_group_id: Optional[str] = None

    def __post_init__(self):
        if self.kind in NAMED_GROUP_KINDS:
            if not self.target_group_id:
                raise ValueError(f"{self.kind.value} target requires a group id")
        elif self.target_group_id is not None:
            raise ValueError(f"{self.kind.value} target cannot carry a group id")

    @property
    def is_include(self) -> bool:
        return self.kind in (
            TargetKind.NAMED_GROUP_INCLUDE,
            TargetKind.ALL_USERS,
            TargetKind.ALL_DEVICES,
        )


@dataclass(frozen=True)
class ConfigurationObject:
    """One manageable unit within a category (policy, profile, script, app...)."""

    id: str
    display_name: str
    category: str


@dataclass(frozen=True)
class GroupIdentity:
    """What a group lookup returns for a name."""

    id: str
    display_name: str
    created_date_time: Optional[datetime] = None

    @property
    def is_pseudo_group(self) -> bool:
        return self.id in (ALL_USERS_ID, ALL_DEVICES_ID)


ALL_USERS_GROUP = GroupIdentity(id=ALL_USERS_ID, display_name=ALL_USERS_NAME)
ALL_DEVICES_GROUP = GroupIdentity(id=ALL_DEVICES_ID, display_name=ALL_DEVICES_NAME)


@dataclass
class Group:
    """A tracked target group and its per-category membership trails.

    Trails are only grown through add_entry(); one list per category name,
    entries kept in the order they were added.
    """

    id: str
    display_name: str
    created_date_time: Optional[datetime] = None
    trails: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_identity(cls, identity: GroupIdentity) -> "Group":
        return cls(
            id=identity.id,
            display_name=identity.display_name,
            created_date_time=identity.created_date_time,
        )

    def add_entry(self, category: str, entry: str) -> None:
        self.trails.setdefault(category, []).append(entry)

    def entries(self, category: str) -> list[str]:
        return list(self.trails.get(category, []))

    def trail(self, category: str) -> str:
        """Trail as exported: entries concatenated, e.g. "+ A;- B;"."""
        return "".join(self.trails.get(category, []))


@dataclass(frozen=True)
class SkippedObject:
    """A configuration object whose assignments could not be listed."""

    category: str
    object_id: str
    display_name: str
    reason: str


@dataclass(frozen=True)
class SkippedRecord:
    """A malformed assignment record left out of resolution."""

    category: str
    object_id: str
    reason: str


@dataclass
class CategoryResult:
    """Outcome of processing one category across all tracked groups."""

    category: str
    objects_processed: int = 0
    entries_added: int = 0
    skipped_objects: list[SkippedObject] = field(default_factory=list)
    skipped_records: list[SkippedRecord] = field(default_factory=list)

    @property
    def normalization_errors(self) -> int:
        return len(self.skipped_records)


@dataclass
class RunSummary:
    """What happened during a report run.

    Processed categories have trails in the report; skipped categories are
    absent for every group.
    """

    started_at: datetime
    completed_at: Optional[datetime] = None
    categories: list[CategoryResult] = field(default_factory=list)
    skipped_categories: dict[str, str] = field(default_factory=dict)

    @property
    def skipped_objects(self) -> list[SkippedObject]:
        return [obj for result in self.categories for obj in result.skipped_objects]

    @property
    def skipped_records(self) -> list[SkippedRecord]:
        return [rec for result in self.categories for rec in result.skipped_records]

    @property
    def normalization_errors(self) -> int:
        return sum(result.normalization_errors for result in self.categories)

    @property
    def entries_added(self) -> int:
        return sum(result.entries_added for result in self.categories)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "categories_processed": [r.category for r in self.categories],
            "skipped_categories": dict(self.skipped_categories),
            "skipped_objects": [
                {
                    "category": s.category,
                    "id": s.object_id,
                    "displayName": s.display_name,
                    "reason": s.reason,
                }
                for s in self.skipped_objects
            ],
            "normalization_errors": self.normalization_errors,
            "skipped_records": [
                {"category": r.category, "id": r.object_id, "reason": r.reason}
                for r in self.skipped_records
            ],
            "entries_added": self.entries_added,
        }
