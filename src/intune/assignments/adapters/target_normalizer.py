"""Target normalizer - maps raw assignment records to AssignmentTarget.

Two wire schemas exist:

    Schema A (groupAssignments):
        {"targetGroupId": "<id>", "excludeGroup": false}
        Some endpoints spell the id "groupId"; both are accepted.

    Schema B (assignments):
        {"target": {"@odata.type": "#microsoft.graph.groupAssignmentTarget",
                    "groupId": "<id>"}}

Both collapse to the same frozen AssignmentTarget, so normalizing the same
record twice yields equal values.
"""

import logging
from typing import Any, Iterable

from ...api.exceptions import NormalizationError
from ..domain.entities import AssignmentTarget, SchemaVariant, TargetKind

logger = logging.getLogger(__name__)

GROUP_TARGET = "#microsoft.graph.groupAssignmentTarget"
EXCLUSION_GROUP_TARGET = "#microsoft.graph.exclusionGroupAssignmentTarget"
ALL_LICENSED_USERS_TARGET = "#microsoft.graph.allLicensedUsersAssignmentTarget"
ALL_DEVICES_TARGET = "#microsoft.graph.allDevicesAssignmentTarget"

_GROUP_DISCRIMINATORS = {
    GROUP_TARGET: TargetKind.NAMED_GROUP_INCLUDE,
    EXCLUSION_GROUP_TARGET: TargetKind.NAMED_GROUP_EXCLUDE,
}

_PSEUDO_GROUP_DISCRIMINATORS = {
    ALL_LICENSED_USERS_TARGET: TargetKind.ALL_USERS,
    ALL_DEVICES_TARGET: TargetKind.ALL_DEVICES,
}


class TargetNormalizer:
    """Maps raw assignment records of either schema to AssignmentTarget.

    Stateless; every method is a pure function of its arguments.
    """

    def normalize(self, raw: Any, schema_variant: SchemaVariant) -> AssignmentTarget:
        """Produce exactly one canonical target for a raw record.

        Raises:
            NormalizationError: If the record lacks the fields its schema requires.
        """
        if not isinstance(raw, dict):
            raise NormalizationError(
                f"Assignment record must be an object, got {type(raw).__name__}",
                schema_variant=schema_variant.value,
                record=raw,
            )

        if schema_variant is SchemaVariant.GROUP_ASSIGNMENTS:
            return self._normalize_group_assignment(raw)
        return self._normalize_assignment(raw)

    def normalize_all(
        self,
        records: Iterable[Any],
        schema_variant: SchemaVariant,
    ) -> tuple[list[AssignmentTarget], list[NormalizationError]]:
        """Normalize a record list, skipping and logging malformed records.

        Returns:
            Tuple of (targets in record order, errors for skipped records)
        """
        targets: list[AssignmentTarget] = []
        errors: list[NormalizationError] = []

        for raw in records:
            try:
                targets.append(self.normalize(raw, schema_variant))
            except NormalizationError as e:
                logger.warning(f"Skipping malformed assignment record: {e}")
                errors.append(e)

        return targets, errors

    # ----------------------------------------
    # Schema A
    # ----------------------------------------

    def _normalize_group_assignment(self, raw: dict[str, Any]) -> AssignmentTarget:
        group_id = raw.get("targetGroupId") or raw.get("groupId")
        if not group_id or not isinstance(group_id, str):
            raise NormalizationError(
                "Group assignment record has no group id",
                schema_variant=SchemaVariant.GROUP_ASSIGNMENTS.value,
                record=raw,
                details={"record_id": raw.get("id")},
            )

        exclude = raw.get("excludeGroup", False)
        if exclude is None:
            exclude = False
        if not isinstance(exclude, bool):
            raise NormalizationError(
                f"excludeGroup must be a boolean, got {exclude!r}",
                schema_variant=SchemaVariant.GROUP_ASSIGNMENTS.value,
                record=raw,
                details={"record_id": raw.get("id")},
            )

        kind = TargetKind.NAMED_GROUP_EXCLUDE if exclude else TargetKind.NAMED_GROUP_INCLUDE
        return AssignmentTarget(kind=kind, target_group_id=group_id)

    # ----------------------------------------
    # Schema B
    # ----------------------------------------

    def _normalize_assignment(self, raw: dict[str, Any]) -> AssignmentTarget:
        target = raw.get("target")
        if not isinstance(target, dict):
            raise NormalizationError(
                "Assignment record has no target object",
                schema_variant=SchemaVariant.ASSIGNMENTS.value,
                record=raw,
                details={"record_id": raw.get("id")},
            )

        discriminator = target.get("@odata.type")
        if not discriminator or not isinstance(discriminator, str):
            raise NormalizationError(
                "Assignment target has no @odata.type",
                schema_variant=SchemaVariant.ASSIGNMENTS.value,
                record=raw,
                details={"record_id": raw.get("id")},
            )

        if discriminator in _GROUP_DISCRIMINATORS:
            group_id = target.get("groupId")
            if not group_id or not isinstance(group_id, str):
                raise NormalizationError(
                    f"{discriminator} target has no groupId",
                    schema_variant=SchemaVariant.ASSIGNMENTS.value,
                    record=raw,
                    details={"record_id": raw.get("id")},
                )
            return AssignmentTarget(
                kind=_GROUP_DISCRIMINATORS[discriminator],
                target_group_id=group_id,
            )

        kind = _PSEUDO_GROUP_DISCRIMINATORS.get(discriminator, TargetKind.OTHER)
        if kind is TargetKind.OTHER:
            logger.debug(f"Unmodelled assignment target type {discriminator}")
        return AssignmentTarget(kind=kind)
