"""Unit tests for the Redmine FastMCP server tools."""

import json
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest
from fastmcp import Client, FastMCP
from fastmcp.client import FastMCPTransport
from fastmcp.exceptions import ToolError

from mcp_redmine.exceptions import RedmineAuthenticationError, UpstreamError
from mcp_redmine.models.redmine import (
    CustomFieldRule,
    IDName,
    RedmineCustomFieldDefinition,
    RedmineIssue,
    WorkflowStatus,
    WorkflowTracker,
)
from mcp_redmine.redmine import CustomFieldRules, EntityResolver, WorkflowRules
from mcp_redmine.redmine.config import RedmineConfig
from mcp_redmine.servers.context import MainAppContext
from mcp_redmine.servers.dependencies import RedmineSession
from tests.utils.mocks import make_mock_fetcher

logger = logging.getLogger(__name__)

TOOL_NAMES = {
    "redmine_resolve_entity",
    "redmine_list_reference_data",
    "redmine_validate_custom_fields",
    "redmine_get_required_fields",
    "redmine_check_status_transition",
    "redmine_get_allowed_statuses",
    "redmine_reference_workflow",
}


@pytest.fixture
def mock_fetcher():
    return make_mock_fetcher()


@pytest.fixture
def redmine_session(mock_fetcher):
    """A session with rules for the Bug tracker (ID 1) only."""
    field_rules = CustomFieldRules(
        {
            "223": CustomFieldRule(
                name="Component", values=["SW Tool", "HW"], required_by_trackers=[1]
            ),
            "224": CustomFieldRule(name="Notes"),
        }
    )
    workflow_rules = WorkflowRules(
        {
            "1": WorkflowTracker(
                name="Bug",
                statuses={
                    "1": WorkflowStatus(name="New"),
                    "2": WorkflowStatus(name="In Progress"),
                    "5": WorkflowStatus(name="Closed", is_closed=True),
                },
                transitions={"1": [2], "2": [5], "5": []},
            )
        }
    )
    return RedmineSession(
        fetcher=mock_fetcher,
        resolver=EntityResolver(mock_fetcher),
        field_rules=field_rules,
        workflow_rules=workflow_rules,
    )


@pytest.fixture
def test_redmine_mcp():
    """Create a test FastMCP instance with the Redmine tools mounted."""

    @asynccontextmanager
    async def test_lifespan(app: FastMCP) -> AsyncGenerator[MainAppContext, None]:
        try:
            yield MainAppContext(
                base_config=RedmineConfig(
                    url="https://redmine.example.com", api_key="test-key"
                )
            )
        finally:
            pass

    test_mcp = FastMCP("TestRedmine", lifespan=test_lifespan)
    from mcp_redmine.servers.redmine import (
        check_status_transition,
        get_allowed_statuses,
        get_required_fields,
        list_reference_data,
        reference_workflow,
        resolve_entity,
        validate_custom_fields,
    )

    redmine_sub_mcp = FastMCP(name="TestRedmineSubMCP")
    redmine_sub_mcp.add_tool(resolve_entity)
    redmine_sub_mcp.add_tool(list_reference_data)
    redmine_sub_mcp.add_tool(validate_custom_fields)
    redmine_sub_mcp.add_tool(get_required_fields)
    redmine_sub_mcp.add_tool(check_status_transition)
    redmine_sub_mcp.add_tool(get_allowed_statuses)
    redmine_sub_mcp.add_tool(reference_workflow)
    test_mcp.mount(redmine_sub_mcp, prefix="redmine")
    return test_mcp


@pytest.fixture
async def redmine_client(test_redmine_mcp, redmine_session):
    """Create a FastMCP client with a mocked Redmine session."""
    with patch(
        "mcp_redmine.servers.redmine.get_redmine_session",
        AsyncMock(return_value=redmine_session),
    ):
        async with Client(transport=FastMCPTransport(test_redmine_mcp)) as client_instance:
            yield client_instance


async def call(client, name, arguments):
    response = await client.call_tool(name, arguments)
    assert response.content[0].type == "text"
    return json.loads(response.content[0].text)


@pytest.mark.anyio
async def test_tools_are_registered(redmine_client):
    tools = await redmine_client.list_tools()
    assert TOOL_NAMES <= {tool.name for tool in tools}


@pytest.mark.anyio
async def test_tools_are_read_only(redmine_client):
    tools = await redmine_client.list_tools()
    for tool in tools:
        if tool.name in TOOL_NAMES:
            assert tool.annotations.readOnlyHint is True


class TestResolveEntity:
    @pytest.mark.anyio
    async def test_resolve_tracker(self, redmine_client):
        content = await call(
            redmine_client, "redmine_resolve_entity", {"kind": "tracker", "name_or_id": "bug"}
        )
        assert content == {"success": True, "kind": "tracker", "query": "bug", "id": 1}

    @pytest.mark.anyio
    async def test_resolve_status_keyword(self, redmine_client):
        content = await call(
            redmine_client, "redmine_resolve_entity", {"kind": "status", "name_or_id": "all"}
        )
        assert content["id"] == "*"

    @pytest.mark.anyio
    async def test_resolve_user_in_project(self, redmine_client):
        content = await call(
            redmine_client,
            "redmine_resolve_entity",
            {"kind": "user", "name_or_id": "john", "project": "web"},
        )
        assert content["id"] == 8

    @pytest.mark.anyio
    async def test_ambiguous_lists_candidates(self, redmine_client):
        content = await call(
            redmine_client,
            "redmine_resolve_entity",
            {"kind": "project", "name_or_id": "plat"},
        )
        assert content["success"] is False
        assert content["error"] == "ambiguous"
        assert {c["id"] for c in content["candidates"]} == {1, 2}

    @pytest.mark.anyio
    async def test_not_found(self, redmine_client):
        content = await call(
            redmine_client,
            "redmine_resolve_entity",
            {"kind": "priority", "name_or_id": "urgent"},
        )
        assert content["success"] is False
        assert content["error"] == "not_found"
        assert content["message"] == "priority not found: urgent"

    @pytest.mark.anyio
    async def test_user_without_project(self, redmine_client):
        content = await call(
            redmine_client, "redmine_resolve_entity", {"kind": "user", "name_or_id": "jane"}
        )
        assert content["error"] == "configuration"

    @pytest.mark.anyio
    async def test_upstream_failure(self, redmine_client, mock_fetcher):
        mock_fetcher.list_trackers.side_effect = UpstreamError("Redmine down", 503)
        content = await call(
            redmine_client, "redmine_resolve_entity", {"kind": "tracker", "name_or_id": "bug"}
        )
        assert content["error"] == "upstream"
        assert content["status_code"] == 503

    @pytest.mark.anyio
    async def test_invalid_kind_is_rejected(self, redmine_client):
        with pytest.raises(ToolError):
            await redmine_client.call_tool(
                "redmine_resolve_entity", {"kind": "sprint", "name_or_id": "x"}
            )


class TestListReferenceData:
    @pytest.mark.anyio
    async def test_list_trackers(self, redmine_client):
        content = await call(
            redmine_client, "redmine_list_reference_data", {"kind": "trackers"}
        )
        assert content["count"] == 2
        assert content["items"][0] == {"id": 1, "name": "Bug"}

    @pytest.mark.anyio
    async def test_list_projects(self, redmine_client):
        content = await call(
            redmine_client, "redmine_list_reference_data", {"kind": "projects"}
        )
        assert [p["identifier"] for p in content["items"]] == ["platform", "ptools", "web"]

    @pytest.mark.anyio
    async def test_list_users(self, redmine_client, mock_fetcher):
        content = await call(
            redmine_client,
            "redmine_list_reference_data",
            {"kind": "users", "project": "web"},
        )
        assert content["items"] == [
            {"id": 7, "name": "Jane Doe"},
            {"id": 8, "name": "John Smith"},
        ]
        mock_fetcher.list_project_memberships.assert_called_once_with(3, limit=1000)

    @pytest.mark.anyio
    async def test_list_users_requires_project(self, redmine_client):
        with pytest.raises(ToolError) as excinfo:
            await redmine_client.call_tool(
                "redmine_list_reference_data", {"kind": "users"}
            )
        assert "requires a project" in str(excinfo.value)

    @pytest.mark.anyio
    async def test_list_custom_fields(self, redmine_client, mock_fetcher):
        mock_fetcher.list_all_custom_fields.return_value = [
            RedmineCustomFieldDefinition(id=223, name="Component", field_format="list")
        ]
        content = await call(
            redmine_client, "redmine_list_reference_data", {"kind": "custom_fields"}
        )
        assert content["items"][0]["name"] == "Component"

    @pytest.mark.anyio
    async def test_custom_fields_fall_back_to_project_issue(
        self, redmine_client, mock_fetcher
    ):
        mock_fetcher.list_all_custom_fields.side_effect = RedmineAuthenticationError(
            "forbidden", 403
        )
        mock_fetcher.get_project_custom_fields.return_value = [
            IDName(id=223, name="Component")
        ]

        content = await call(
            redmine_client,
            "redmine_list_reference_data",
            {"kind": "custom_fields", "project": "platform"},
        )

        assert content["items"] == [{"id": 223, "name": "Component"}]
        mock_fetcher.get_project_custom_fields.assert_called_once_with(1)

    @pytest.mark.anyio
    async def test_custom_fields_denied_without_project(self, redmine_client, mock_fetcher):
        mock_fetcher.list_all_custom_fields.side_effect = RedmineAuthenticationError(
            "forbidden", 403
        )
        content = await call(
            redmine_client, "redmine_list_reference_data", {"kind": "custom_fields"}
        )
        assert content["success"] is False
        assert content["kind"] == "custom_fields"
        assert content["status_code"] == 403


class TestValidateCustomFields:
    @pytest.mark.anyio
    async def test_values_are_corrected(self, redmine_client):
        content = await call(
            redmine_client,
            "redmine_validate_custom_fields",
            {"custom_fields": {"Component": "sw tool", "224": "anything"}, "tracker": "bug"},
        )
        assert content == {
            "success": True,
            "tracker_id": 1,
            "custom_fields": [
                {"id": 223, "value": "SW Tool"},
                {"id": 224, "value": "anything"},
            ],
        }

    @pytest.mark.anyio
    async def test_json_string_input(self, redmine_client):
        content = await call(
            redmine_client,
            "redmine_validate_custom_fields",
            {"custom_fields": '{"223": ["hw"]}'},
        )
        assert content["custom_fields"] == [{"id": 223, "value": ["HW"]}]
        assert content["tracker_id"] is None

    @pytest.mark.anyio
    async def test_invalid_value(self, redmine_client):
        content = await call(
            redmine_client,
            "redmine_validate_custom_fields",
            {"custom_fields": {"223": "bogus"}},
        )
        assert content["success"] is False
        assert content["error"] == "validation"
        assert content["allowed_values"] == ["SW Tool", "HW"]

    @pytest.mark.anyio
    async def test_missing_required_field(self, redmine_client):
        content = await call(
            redmine_client,
            "redmine_validate_custom_fields",
            {"custom_fields": {"224": "x"}, "tracker": "1"},
        )
        assert content["error"] == "validation"
        assert content["missing"][0]["field_id"] == 223

    @pytest.mark.anyio
    async def test_unknown_field_name_is_resolved(self, redmine_client, mock_fetcher):
        mock_fetcher.list_all_custom_fields.return_value = [
            RedmineCustomFieldDefinition(id=300, name="Severity")
        ]
        content = await call(
            redmine_client,
            "redmine_validate_custom_fields",
            {"custom_fields": {"severity": "High"}},
        )
        assert content["custom_fields"] == [{"id": 300, "value": "High"}]

    @pytest.mark.anyio
    async def test_malformed_json(self, redmine_client):
        with pytest.raises(ToolError) as excinfo:
            await redmine_client.call_tool(
                "redmine_validate_custom_fields", {"custom_fields": "{not json"}
            )
        assert "not valid JSON" in str(excinfo.value)

    @pytest.mark.anyio
    async def test_json_array_is_rejected(self, redmine_client):
        with pytest.raises(ToolError):
            await redmine_client.call_tool(
                "redmine_validate_custom_fields", {"custom_fields": "[1, 2]"}
            )


class TestRequiredFields:
    @pytest.mark.anyio
    async def test_required_fields_for_tracker(self, redmine_client):
        content = await call(
            redmine_client, "redmine_get_required_fields", {"tracker": "Bug"}
        )
        assert content["required_fields"] == [
            {"field_id": 223, "name": "Component", "allowed_values": ["SW Tool", "HW"]}
        ]

    @pytest.mark.anyio
    async def test_tracker_without_required_fields(self, redmine_client):
        content = await call(
            redmine_client, "redmine_get_required_fields", {"tracker": "feature"}
        )
        assert content["required_fields"] == []


class TestStatusTransitions:
    @pytest.mark.anyio
    async def test_allowed_transition(self, redmine_client):
        content = await call(
            redmine_client,
            "redmine_check_status_transition",
            {"tracker": "bug", "from_status": "new", "to_status": "in progress"},
        )
        assert content["allowed"] is True
        assert content["constrained"] is True
        assert (content["from_status_id"], content["to_status_id"]) == (1, 2)

    @pytest.mark.anyio
    async def test_disallowed_transition(self, redmine_client):
        content = await call(
            redmine_client,
            "redmine_check_status_transition",
            {"tracker": "bug", "from_status": "new", "to_status": "closed"},
        )
        assert content["success"] is False
        assert content["error"] == "transition"
        assert content["allowed"] == [{"id": 2, "name": "In Progress"}]

    @pytest.mark.anyio
    async def test_tracker_without_rules(self, redmine_client):
        content = await call(
            redmine_client,
            "redmine_check_status_transition",
            {"tracker": "feature", "from_status": "1", "to_status": "5"},
        )
        assert content["allowed"] is True
        assert content["constrained"] is False

    @pytest.mark.anyio
    async def test_allowed_statuses_from_redmine(self, redmine_client, mock_fetcher):
        mock_fetcher.get_issue.return_value = RedmineIssue(
            id=10,
            tracker=IDName(id=1, name="Bug"),
            status=IDName(id=1, name="New"),
            allowed_statuses=[IDName(id=2, name="In Progress"), IDName(id=5, name="Closed")],
        )
        content = await call(
            redmine_client, "redmine_get_allowed_statuses", {"issue_id": 10}
        )
        assert content["source"] == "redmine"
        assert [s["id"] for s in content["allowed_statuses"]] == [2, 5]

    @pytest.mark.anyio
    async def test_empty_allowed_statuses_from_redmine(self, redmine_client, mock_fetcher):
        # Redmine reports no outgoing transitions; the workflow rules would allow one
        mock_fetcher.get_issue.return_value = RedmineIssue(
            id=10,
            tracker=IDName(id=1, name="Bug"),
            status=IDName(id=2, name="In Progress"),
            allowed_statuses=[],
        )
        content = await call(
            redmine_client, "redmine_get_allowed_statuses", {"issue_id": 10}
        )
        assert content["source"] == "redmine"
        assert content["allowed_statuses"] == []

    @pytest.mark.anyio
    async def test_allowed_statuses_from_rules(self, redmine_client, mock_fetcher):
        mock_fetcher.get_issue.return_value = RedmineIssue(
            id=10,
            tracker=IDName(id=1, name="Bug"),
            status=IDName(id=2, name="In Progress"),
        )
        content = await call(
            redmine_client, "redmine_get_allowed_statuses", {"issue_id": 10}
        )
        assert content["source"] == "workflow_rules"
        assert content["allowed_statuses"] == [{"id": 5, "name": "Closed"}]

    @pytest.mark.anyio
    async def test_allowed_statuses_by_tracker_and_status(self, redmine_client):
        content = await call(
            redmine_client,
            "redmine_get_allowed_statuses",
            {"tracker": "feature", "current_status": "new"},
        )
        assert content["source"] == "unknown"
        assert content["allowed_statuses"] is None
        assert content["issue_id"] is None

    @pytest.mark.anyio
    async def test_allowed_statuses_needs_input(self, redmine_client):
        with pytest.raises(ToolError):
            await redmine_client.call_tool(
                "redmine_get_allowed_statuses", {"tracker": "bug"}
            )

    @pytest.mark.anyio
    async def test_allowed_statuses_issue_error(self, redmine_client, mock_fetcher):
        mock_fetcher.get_issue.side_effect = UpstreamError("not found", 404)
        content = await call(
            redmine_client, "redmine_get_allowed_statuses", {"issue_id": 99}
        )
        assert content["success"] is False
        assert content["issue_id"] == 99


class TestReferenceWorkflow:
    @pytest.mark.anyio
    async def test_all_trackers(self, redmine_client):
        content = await call(redmine_client, "redmine_reference_workflow", {})
        assert len(content["trackers"]) == 1
        bug = content["trackers"][0]
        assert bug["id"] == 1
        assert [s["id"] for s in bug["statuses"]] == [1, 2, 5]
        assert bug["transitions"][0] == {
            "from": {"id": 1, "name": "New"},
            "to": [{"id": 2, "name": "In Progress"}],
        }

    @pytest.mark.anyio
    async def test_tracker_without_rules(self, redmine_client):
        content = await call(
            redmine_client, "redmine_reference_workflow", {"tracker": "feature"}
        )
        assert content["trackers"] == []
        assert "all transitions are allowed" in content["message"]
