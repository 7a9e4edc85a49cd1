"""Tests for the BuildReportUseCase and AssignmentReport."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from src.intune.api.exceptions import ConfigurationError, ValidationError
from src.intune.assignments.domain.categories import CATEGORY_TABLE, CategoryDescriptor
from src.intune.assignments.domain.entities import (
    ALL_USERS_GROUP,
    Group,
    GroupIdentity,
    SchemaVariant,
)
from src.intune.assignments.domain.ports import IConfigurationAPI, IGroupResolver
from src.intune.assignments.use_cases.build_report import BuildReportUseCase

GROUP = "#microsoft.graph.groupAssignmentTarget"
ALL_USERS = "#microsoft.graph.allLicensedUsersAssignmentTarget"

INTENTS = next(d for d in CATEGORY_TABLE if d.name == "intents")
APPS = next(d for d in CATEGORY_TABLE if d.name == "mobileApps")


class MockGroupResolver(IGroupResolver):
    """Mock implementation of IGroupResolver for testing."""

    def __init__(self, groups: dict[str, GroupIdentity]):
        self.groups = groups
        self.calls: list[str] = []

    async def resolve(self, name: str) -> Optional[GroupIdentity]:
        self.calls.append(name)
        return self.groups.get(name)


class MockConfigurationAPI(IConfigurationAPI):
    """Per-resource-type objects and assignments; listed types can fail."""

    def __init__(
        self,
        objects: dict[str, list[dict[str, Any]]],
        assignments: dict[str, list[dict[str, Any]]],
        failing_types: dict[str, Exception] | None = None,
        failing_objects: dict[str, Exception] | None = None,
    ):
        self.objects = objects
        self.assignments = assignments
        self.failing_types = failing_types or {}
        self.failing_objects = failing_objects or {}
        self.list_calls: list[str] = []

    async def list_configuration_objects(self, service_path, resource_type):
        self.list_calls.append(resource_type)
        await asyncio.sleep(0)
        if resource_type in self.failing_types:
            raise self.failing_types[resource_type]
        return self.objects.get(resource_type, [])

    async def list_assignments(self, service_path, resource_type, object_id, relation_name):
        if object_id in self.failing_objects:
            raise self.failing_objects[object_id]
        return self.assignments.get(object_id, [])


def target(odata_type: str, group_id: str | None = None) -> dict[str, Any]:
    t = {"@odata.type": odata_type}
    if group_id:
        t["groupId"] = group_id
    return {"target": t}


@pytest.fixture
def api():
    return MockConfigurationAPI(
        objects={
            "intents": [{"id": "i1", "displayName": "Security Baseline"}],
            "mobileApps": [
                {"id": "m1", "displayName": "Company Portal"},
                {"id": "m2", "displayName": "Teams"},
            ],
        },
        assignments={
            "i1": [target(GROUP, "g1")],
            "m1": [target(ALL_USERS)],
            "m2": [target(GROUP, "g1")],
        },
    )


@pytest.fixture
def sales():
    return GroupIdentity(
        id="g1",
        display_name="Sales",
        created_date_time=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
    )


class TestExecute:

    @pytest.mark.asyncio
    async def test_builds_rows_for_each_group(self, api, sales):
        use_case = BuildReportUseCase(
            api=api,
            group_resolver=MockGroupResolver({"Sales": sales, "All Users": ALL_USERS_GROUP}),
            categories=[APPS, INTENTS],
        )

        report = await use_case.execute(["Sales", "All Users"])

        assert report.columns == ["id", "displayName", "createdDateTime", "mobileApps", "intents"]
        rows = report.rows()
        assert rows[0] == {
            "id": "g1",
            "displayName": "Sales",
            "createdDateTime": "2024-01-15T10:30:00+00:00",
            "mobileApps": "+ Teams;",
            "intents": "+ Security Baseline;",
        }
        assert rows[1]["displayName"] == "All Users"
        assert rows[1]["createdDateTime"] == ""
        assert rows[1]["mobileApps"] == "+ Company Portal;"
        assert rows[1]["intents"] == ""
        assert report.summary.entries_added == 3
        assert report.summary.completed_at is not None

    @pytest.mark.asyncio
    async def test_unknown_and_duplicate_groups(self, api, sales):
        resolver = MockGroupResolver({"Sales": sales, "sales": sales})
        use_case = BuildReportUseCase(api=api, group_resolver=resolver, categories=[INTENTS])

        report = await use_case.execute(["Sales", "Nobody", "sales"])

        assert [g.id for g in report.groups] == ["g1"]
        assert report.unresolved_groups == ["Nobody"]

    @pytest.mark.asyncio
    async def test_category_failure_is_contained(self, sales):
        api = MockConfigurationAPI(
            objects={"intents": [{"id": "i1", "displayName": "Baseline"}]},
            assignments={"i1": [target(GROUP, "g1")]},
            failing_types={"mobileApps": ValidationError("Forbidden", status_code=403)},
        )
        use_case = BuildReportUseCase(api=api, categories=[APPS, INTENTS])

        report = await use_case.execute_for_groups([sales])

        group = report.groups[0]
        assert group.trail("mobileApps") == ""
        assert group.trail("intents") == "+ Baseline;"
        assert list(report.summary.skipped_categories) == ["mobileApps"]
        assert [r.category for r in report.summary.categories] == ["intents"]

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_skips_whole_category(self, sales):
        api = MockConfigurationAPI(
            objects={
                "intents": [
                    {"id": "i1", "displayName": "Baseline A"},
                    {"id": "i2", "displayName": "Baseline B"},
                ],
                "mobileApps": [{"id": "m1", "displayName": "Teams"}],
            },
            assignments={"i1": [target(GROUP, "g1")], "m1": [target(GROUP, "g1")]},
            failing_objects={"i2": ValueError("Expecting value: line 1 column 1")},
        )

        report = await BuildReportUseCase(
            api=api, categories=[APPS, INTENTS]
        ).execute_for_groups([sales])

        group = report.groups[0]
        assert group.trail("intents") == ""
        assert group.trail("mobileApps") == "+ Teams;"
        assert list(report.summary.skipped_categories) == ["intents"]
        assert "Baseline B" in report.summary.skipped_categories["intents"]

    @pytest.mark.asyncio
    async def test_summary_lists_malformed_records(self, sales):
        api = MockConfigurationAPI(
            objects={"intents": [{"id": "i1", "displayName": "Baseline"}]},
            assignments={"i1": [{"id": "a1"}, target(GROUP, "g1")]},
        )

        report = await BuildReportUseCase(api=api, categories=[INTENTS]).execute_for_groups([sales])

        summary = report.summary
        assert report.groups[0].trail("intents") == "+ Baseline;"
        assert summary.normalization_errors == 1
        assert summary.skipped_records[0].category == "intents"
        assert summary.skipped_records[0].object_id == "i1"
        document = summary.to_dict()
        assert document["normalization_errors"] == 1
        assert document["skipped_records"] == [{
            "category": "intents",
            "id": "i1",
            "reason": "Assignment record has no target object",
        }]

    @pytest.mark.asyncio
    async def test_parallel_categories_match_sequential(self, api, sales):
        sequential = await BuildReportUseCase(
            api=api, categories=[APPS, INTENTS]
        ).execute_for_groups([sales])
        parallel = await BuildReportUseCase(
            api=api, categories=[APPS, INTENTS], parallel_categories=True, max_concurrency=4
        ).execute_for_groups([sales])

        assert parallel.rows() == sequential.rows()

    @pytest.mark.asyncio
    async def test_no_groups_skips_fetching(self, api):
        use_case = BuildReportUseCase(api=api)

        report = await use_case.execute_for_groups([])

        assert report.rows() == []
        assert api.list_calls == []

    @pytest.mark.asyncio
    async def test_accepts_existing_groups(self, api):
        group = Group(id="g1", display_name="Sales")

        report = await BuildReportUseCase(api=api, categories=[INTENTS]).execute_for_groups([group])

        assert report.groups[0] is group
        assert group.trail("intents") == "+ Security Baseline;"


class TestConfiguration:

    def test_malformed_table_fails_before_any_fetch(self, api):
        broken = CategoryDescriptor(
            name="intents",
            service_path="deviceManagement",
            resource_type="",
            relation_name="assignments",
            schema_variant=SchemaVariant.ASSIGNMENTS,
        )

        with pytest.raises(ConfigurationError):
            BuildReportUseCase(api=api, categories=[broken])

        assert api.list_calls == []

    @pytest.mark.asyncio
    async def test_resolving_names_needs_a_resolver(self, api):
        with pytest.raises(ConfigurationError):
            await BuildReportUseCase(api=api).resolve_groups(["Sales"])
