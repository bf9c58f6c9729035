"""Module for Redmine custom field operations."""

import logging
from typing import Any

from ..models.redmine import IDName, RedmineCustomFieldDefinition, RedmineIssue
from ..utils.decorators import handle_redmine_api_errors
from .client import RedmineClient
from .constants import STATUS_WILDCARD

logger = logging.getLogger("mcp-redmine.redmine")


class FieldsMixin(RedmineClient):
    """Mixin for Redmine custom field operations.

    Redmine only lists custom field definitions to administrators. Regular
    users can still learn the (id, name) pairs of the fields that apply to a
    project by looking at an issue of that project.
    """

    @handle_redmine_api_errors("Redmine API")
    def list_all_custom_fields(self) -> list[RedmineCustomFieldDefinition]:
        """
        List every custom field definition.

        Returns:
            List of custom field definitions

        Raises:
            RedmineAuthenticationError: If the API key lacks administrator privileges
        """
        data = self._get("/custom_fields.json")
        return [
            RedmineCustomFieldDefinition.from_api_response(cf)
            for cf in data.get("custom_fields", [])
        ]

    @handle_redmine_api_errors("Redmine API")
    def get_project_custom_fields(
        self, project_id: int, tracker_id: int | None = None
    ) -> list[IDName]:
        """
        Derive the custom fields of a project from one of its issues.

        Args:
            project_id: Numeric project ID
            tracker_id: Optional tracker to narrow the sample issue

        Returns:
            (id, name) pairs of the custom fields on the sample issue; empty if
            the project has no issues in scope
        """
        params: dict[str, Any] = {
            "project_id": project_id,
            "status_id": STATUS_WILDCARD,
            "limit": 1,
        }
        if tracker_id:
            params["tracker_id"] = tracker_id

        issues = self._get("/issues.json", params=params).get("issues") or []
        if not issues:
            logger.info(
                f"No sample issue in project {project_id} to derive custom fields from"
            )
            return []

        sample_id = issues[0]["id"]
        data = self._get(f"/issues/{sample_id}.json")
        issue = RedmineIssue.from_api_response(data.get("issue", {}))
        return [IDName(id=cf.id, name=cf.name) for cf in issue.custom_fields]
