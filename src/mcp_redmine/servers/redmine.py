"""Redmine FastMCP server instance and tool definitions."""

import json
import logging
from typing import Annotated, Any, Literal

from fastmcp import Context, FastMCP
from pydantic import Field

from mcp_redmine.exceptions import (
    ErrorKind,
    MCPRedmineError,
    RedmineAuthenticationError,
)
from mcp_redmine.models.redmine import IDName, WorkflowTracker
from mcp_redmine.servers.dependencies import RedmineSession, get_redmine_session

logger = logging.getLogger("mcp-redmine.servers.redmine")

redmine_mcp = FastMCP(
    name="Redmine MCP Service",
    instructions=(
        "Resolves Redmine names to IDs and checks custom field values and "
        "status changes before they are sent to Redmine."
    ),
)

ResolvableKind = Literal[
    "project",
    "tracker",
    "status",
    "priority",
    "activity",
    "role",
    "user",
    "custom_field",
]

DirectoryKind = Literal[
    "projects",
    "trackers",
    "statuses",
    "priorities",
    "activities",
    "roles",
    "users",
    "custom_fields",
]


def _json(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _error_response(operation: str, error: MCPRedmineError, **context: Any) -> str:
    log_level = logging.ERROR if error.kind is ErrorKind.UPSTREAM else logging.WARNING
    logger.log(log_level, f"{operation} failed: {error}")
    return _json({"success": False, **error.to_dict(), **context})


def _parse_custom_fields(custom_fields: dict[str, Any] | str) -> dict[str, Any]:
    """Parse custom_fields from dict or JSON string.

    Raises:
        ValueError: If the input is not valid JSON or not an object.
    """
    if isinstance(custom_fields, dict):
        return custom_fields
    try:
        parsed = json.loads(custom_fields)
    except json.JSONDecodeError as e:
        raise ValueError(f"custom_fields is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError(
            'custom_fields must be a JSON object, e.g. {"Severity": "High"}'
        )
    return parsed


def _refs(items: list[IDName]) -> list[dict[str, Any]]:
    return [item.to_simplified_dict() for item in items]


def _describe_tracker(tracker_id: str, tracker: WorkflowTracker) -> dict[str, Any]:
    statuses = [
        {"id": int(status_id), "name": status.name, "is_closed": status.is_closed}
        for status_id, status in sorted(
            tracker.statuses.items(), key=lambda item: int(item[0])
        )
    ]
    transitions = [
        {
            "from": {"id": int(source), "name": tracker.status_name(int(source))},
            "to": [{"id": t, "name": tracker.status_name(t)} for t in targets],
        }
        for source, targets in sorted(
            tracker.transitions.items(), key=lambda item: int(item[0])
        )
    ]
    return {
        "id": int(tracker_id),
        "name": tracker.name,
        "statuses": statuses,
        "transitions": transitions,
    }


def _directory(
    session: RedmineSession, kind: str, project: str | None
) -> list[dict[str, Any]]:
    resolver = session.resolver
    if kind == "users":
        if not project:
            raise ValueError("Listing users requires a project.")
        return _refs(resolver.get_project_users(resolver.resolve_project(project)))
    if kind == "custom_fields":
        try:
            return [cf.to_simplified_dict() for cf in resolver.get_custom_fields()]
        except RedmineAuthenticationError:
            if not project:
                raise
            logger.info("Custom field listing denied, reading fields from a project issue")
            project_id = resolver.resolve_project(project)
            return _refs(session.fetcher.get_project_custom_fields(project_id))

    loaders = {
        "projects": resolver.get_projects,
        "trackers": resolver.get_trackers,
        "statuses": resolver.get_statuses,
        "priorities": resolver.get_priorities,
        "activities": resolver.get_activities,
        "roles": resolver.get_roles,
    }
    return [item.to_simplified_dict() for item in loaders[kind]()]


@redmine_mcp.tool(
    tags={"redmine", "read"},
    annotations={"title": "Resolve Entity", "readOnlyHint": True},
)
async def resolve_entity(
    ctx: Context,
    kind: Annotated[
        ResolvableKind,
        Field(description="Kind of entity to resolve."),
    ],
    name_or_id: Annotated[
        str,
        Field(
            description=(
                "Name, partial name or numeric ID. Statuses also accept 'open', "
                "'closed', 'all' and '*'; users accept 'me'."
            )
        ),
    ],
    project: Annotated[
        str | None,
        Field(
            description="(Optional) Project name, identifier or ID. Required to resolve user names.",
            default=None,
        ),
    ] = None,
    tracker: Annotated[
        str | None,
        Field(
            description="(Optional) Tracker name or ID, narrows custom field lookups.",
            default=None,
        ),
    ] = None,
) -> str:
    """
    Resolve a human-friendly name to a Redmine ID.

    Names are matched case-insensitively, exactly first and then as a
    substring. If more than one entity matches, the candidates are returned
    instead of a guess.

    Args:
        ctx: The FastMCP context.
        kind: The entity kind.
        name_or_id: What to resolve.
        project: Project context for users and custom fields.
        tracker: Tracker context for custom fields.

    Returns:
        JSON string with the resolved ID, or an error object listing candidates.
    """
    session = await get_redmine_session(ctx)
    try:
        resolved = session.resolver.resolve(kind, name_or_id, project, tracker)
    except MCPRedmineError as e:
        return _error_response("resolve_entity", e)
    return _json({"success": True, "kind": kind, "query": name_or_id, "id": resolved})


@redmine_mcp.tool(
    tags={"redmine", "read"},
    annotations={"title": "List Reference Data", "readOnlyHint": True},
)
async def list_reference_data(
    ctx: Context,
    kind: Annotated[
        DirectoryKind,
        Field(description="Which directory to list."),
    ],
    project: Annotated[
        str | None,
        Field(
            description=(
                "(Optional) Project name, identifier or ID. Required for 'users'; "
                "used for 'custom_fields' when the API key is not an administrator."
            ),
            default=None,
        ),
    ] = None,
) -> str:
    """
    List the entries of a Redmine directory (trackers, statuses, ...).

    Args:
        ctx: The FastMCP context.
        kind: The directory to list.
        project: Project context for users and custom fields.

    Returns:
        JSON string with the directory entries.
    """
    session = await get_redmine_session(ctx)
    try:
        items = _directory(session, kind, project)
    except MCPRedmineError as e:
        return _error_response("list_reference_data", e, kind=kind)
    return _json({"success": True, "kind": kind, "count": len(items), "items": items})


@redmine_mcp.tool(
    tags={"redmine", "read"},
    annotations={"title": "Validate Custom Fields", "readOnlyHint": True},
)
async def validate_custom_fields(
    ctx: Context,
    custom_fields: Annotated[
        dict[str, Any] | str,
        Field(
            description=(
                "Custom field values keyed by field ID or name, as an object or "
                'JSON string, e.g. {"Severity": "high", "12": ["A", "B"]}.'
            )
        ),
    ],
    tracker: Annotated[
        str | None,
        Field(
            description="(Optional) Tracker name or ID. Enables the required-field check.",
            default=None,
        ),
    ] = None,
    project: Annotated[
        str | None,
        Field(
            description="(Optional) Project name, identifier or ID, used to resolve field names.",
            default=None,
        ),
    ] = None,
) -> str:
    """
    Validate and normalize custom field values before an issue is written.

    Values are checked against the allowed values of each field and
    auto-corrected to the canonical casing. With a tracker, fields that the
    tracker requires and that are missing are reported.

    Args:
        ctx: The FastMCP context.
        custom_fields: The values to validate.
        tracker: Tracker of the issue.
        project: Project of the issue.

    Returns:
        JSON string with the corrected values keyed by field ID, or an error object.

    Raises:
        ValueError: If custom_fields is not a JSON object.
    """
    fields = _parse_custom_fields(custom_fields)
    session = await get_redmine_session(ctx)
    resolver = session.resolver
    try:
        tracker_id = resolver.resolve_tracker(tracker) if tracker else None
        validated = session.field_rules.validate_payload(
            fields,
            tracker_id,
            resolve_name=lambda name: resolver.resolve_custom_field(
                name, project, tracker_id
            ),
        )
    except MCPRedmineError as e:
        return _error_response("validate_custom_fields", e)

    return _json(
        {
            "success": True,
            "tracker_id": tracker_id,
            "custom_fields": [
                {"id": field_id, "value": value}
                for field_id, value in sorted(validated.items())
            ],
        }
    )


@redmine_mcp.tool(
    tags={"redmine", "read"},
    annotations={"title": "Get Required Fields", "readOnlyHint": True},
)
async def get_required_fields(
    ctx: Context,
    tracker: Annotated[str, Field(description="Tracker name or ID.")],
) -> str:
    """
    List the custom fields a tracker requires, with their allowed values.

    Args:
        ctx: The FastMCP context.
        tracker: The tracker.

    Returns:
        JSON string listing the required fields.
    """
    session = await get_redmine_session(ctx)
    try:
        tracker_id = session.resolver.resolve_tracker(tracker)
    except MCPRedmineError as e:
        return _error_response("get_required_fields", e)
    required = session.field_rules.required_fields_missing(tracker_id, [])
    return _json(
        {
            "success": True,
            "tracker_id": tracker_id,
            "required_fields": [field.to_dict() for field in required],
        }
    )


@redmine_mcp.tool(
    tags={"redmine", "read"},
    annotations={"title": "Check Status Transition", "readOnlyHint": True},
)
async def check_status_transition(
    ctx: Context,
    tracker: Annotated[str, Field(description="Tracker name or ID.")],
    from_status: Annotated[str, Field(description="Current status name or ID.")],
    to_status: Annotated[str, Field(description="Target status name or ID.")],
) -> str:
    """
    Check whether a tracker's workflow allows a status change.

    Trackers and statuses without workflow rules are not constrained.

    Args:
        ctx: The FastMCP context.
        tracker: The tracker.
        from_status: The current status.
        to_status: The target status.

    Returns:
        JSON string with the verdict, or an error object listing the allowed targets.
    """
    session = await get_redmine_session(ctx)
    resolver = session.resolver
    try:
        tracker_id = resolver.resolve_tracker(tracker)
        from_id = resolver.resolve_status_id(from_status)
        to_id = resolver.resolve_status_id(to_status)
        session.workflow_rules.validate_transition(tracker_id, from_id, to_id)
    except MCPRedmineError as e:
        return _error_response("check_status_transition", e)

    constrained = session.workflow_rules.allowed_targets(tracker_id, from_id) is not None
    return _json(
        {
            "success": True,
            "allowed": True,
            "constrained": constrained,
            "tracker_id": tracker_id,
            "from_status_id": from_id,
            "to_status_id": to_id,
        }
    )


@redmine_mcp.tool(
    tags={"redmine", "read"},
    annotations={"title": "Get Allowed Statuses", "readOnlyHint": True},
)
async def get_allowed_statuses(
    ctx: Context,
    issue_id: Annotated[
        int | None,
        Field(description="(Optional) Issue ID. Takes precedence over tracker/status.", default=None),
    ] = None,
    tracker: Annotated[
        str | None,
        Field(description="(Optional) Tracker name or ID.", default=None),
    ] = None,
    current_status: Annotated[
        str | None,
        Field(description="(Optional) Current status name or ID.", default=None),
    ] = None,
) -> str:
    """
    List the statuses an issue can move to next.

    For an issue, the statuses Redmine reports are used when available
    (Redmine 5.0 and later); otherwise the workflow rules are consulted.

    Args:
        ctx: The FastMCP context.
        issue_id: The issue to look at.
        tracker: Tracker, when no issue is given.
        current_status: Current status, when no issue is given.

    Returns:
        JSON string with the allowed statuses and where they came from.

    Raises:
        ValueError: If neither an issue nor a tracker and status are given.
    """
    if issue_id is None and not (tracker and current_status):
        raise ValueError("Provide issue_id, or both tracker and current_status.")

    session = await get_redmine_session(ctx)
    try:
        if issue_id is not None:
            issue = session.fetcher.get_issue(issue_id)
            if issue.allowed_statuses is not None:
                return _json(
                    {
                        "success": True,
                        "issue_id": issue_id,
                        "source": "redmine",
                        "allowed_statuses": _refs(issue.allowed_statuses),
                    }
                )
            tracker_id = issue.tracker.id if issue.tracker else 0
            status_id = issue.status.id if issue.status else 0
        else:
            tracker_id = session.resolver.resolve_tracker(tracker or "")
            status_id = session.resolver.resolve_status_id(current_status or "")
    except MCPRedmineError as e:
        return _error_response("get_allowed_statuses", e, issue_id=issue_id)

    allowed = session.workflow_rules.allowed_targets(tracker_id, status_id)
    return _json(
        {
            "success": True,
            "issue_id": issue_id,
            "tracker_id": tracker_id,
            "status_id": status_id,
            "source": "workflow_rules" if allowed is not None else "unknown",
            "allowed_statuses": _refs(allowed) if allowed is not None else None,
        }
    )


@redmine_mcp.tool(
    tags={"redmine", "read"},
    annotations={"title": "Reference Workflow", "readOnlyHint": True},
)
async def reference_workflow(
    ctx: Context,
    tracker: Annotated[
        str | None,
        Field(
            description="(Optional) Tracker name or ID. Shows all trackers if omitted.",
            default=None,
        ),
    ] = None,
) -> str:
    """
    Show the workflow transition rules for one or all trackers.

    Args:
        ctx: The FastMCP context.
        tracker: The tracker to show.

    Returns:
        JSON string with statuses and allowed transitions per tracker.
    """
    session = await get_redmine_session(ctx)
    rules = session.workflow_rules
    if tracker is None:
        trackers = [
            _describe_tracker(tracker_id, rules.trackers[tracker_id])
            for tracker_id in sorted(rules.trackers, key=int)
        ]
        return _json({"success": True, "trackers": trackers})

    try:
        tracker_id = session.resolver.resolve_tracker(tracker)
    except MCPRedmineError as e:
        return _error_response("reference_workflow", e)
    workflow = rules.get(tracker_id)
    if workflow is None:
        return _json(
            {
                "success": True,
                "trackers": [],
                "message": f"No workflow rules for tracker {tracker_id}; all transitions are allowed.",
            }
        )
    return _json(
        {"success": True, "trackers": [_describe_tracker(str(tracker_id), workflow)]}
    )
