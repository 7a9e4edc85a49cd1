"""Membership resolution - appends include/exclude entries to group trails.

For every tracked group and every normalized target of one configuration
object, in service order:

    include  "+ <name>;"  when the target includes the group by id, or is the
                          all-users / all-devices target and the group is the
                          matching pseudo-group
    exclude  "- <name>;"  when the target excludes the group by id

Include and exclude are checked independently, so one object can add several
entries to the same trail. The trail is an audit log of every matching rule,
not a final verdict.
"""

import logging
from typing import Iterable, Sequence

from ..domain.entities import (
    ALL_DEVICES_ID,
    ALL_USERS_ID,
    AssignmentTarget,
    ConfigurationObject,
    Group,
    TargetKind,
)

logger = logging.getLogger(__name__)


def include_entry(display_name: str) -> str:
    return f"+ {display_name};"


def exclude_entry(display_name: str) -> str:
    return f"- {display_name};"


class MembershipResolver:
    """Decides, per group, whether an object includes or excludes it."""

    @staticmethod
    def includes(target: AssignmentTarget, group: Group) -> bool:
        if target.kind is TargetKind.NAMED_GROUP_INCLUDE:
            return target.target_group_id == group.id
        if target.kind is TargetKind.ALL_USERS:
            return group.id == ALL_USERS_ID
        if target.kind is TargetKind.ALL_DEVICES:
            return group.id == ALL_DEVICES_ID
        return False

    @staticmethod
    def excludes(target: AssignmentTarget, group: Group) -> bool:
        return (
            target.kind is TargetKind.NAMED_GROUP_EXCLUDE
            and target.target_group_id == group.id
        )

    def resolve(
        self,
        category: str,
        obj: ConfigurationObject,
        targets: Sequence[AssignmentTarget],
        groups: Iterable[Group],
    ) -> int:
        """Append trail entries for one object to every matching group.

        Args:
            category: Trail key to append to
            obj: The configuration object whose targets are being evaluated
            targets: Normalized targets in the order the service returned them
            groups: Tracked groups (mutated in place)

        Returns:
            Number of entries appended across all groups
        """
        added = 0
        for group in groups:
            for target in targets:
                if self.includes(target, group):
                    group.add_entry(category, include_entry(obj.display_name))
                    added += 1
                if self.excludes(target, group):
                    group.add_entry(category, exclude_entry(obj.display_name))
                    added += 1

        if added:
            logger.debug(f"{category}/{obj.display_name}: {added} trail entries")
        return added
