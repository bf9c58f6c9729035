"""Module for Redmine issue read operations."""

import logging
from typing import Any

from ..models.redmine import RedmineIssue
from ..utils.decorators import handle_redmine_api_errors
from .client import RedmineClient
from .constants import PAGE_SIZE

logger = logging.getLogger("mcp-redmine.redmine")


class IssuesMixin(RedmineClient):
    """Mixin for reading Redmine issues."""

    @handle_redmine_api_errors("Redmine API")
    def search_issues(
        self,
        project_id: int | None = None,
        tracker_id: int | None = None,
        status_id: str | int | None = None,
        sort: str | None = None,
        limit: int = 25,
        offset: int = 0,
    ) -> tuple[list[RedmineIssue], int]:
        """
        Search issues with the ``/issues.json`` filters.

        Args:
            project_id: Restrict to a project
            tracker_id: Restrict to a tracker
            status_id: Status filter: an ID, 'open', 'closed' or '*'
            sort: Sort expression, e.g. 'updated_on:desc'
            limit: Page size (Redmine caps it at 100)
            offset: Offset of the first issue

        Returns:
            Tuple of (issues on this page, total count reported by Redmine)
        """
        params: dict[str, Any] = {"limit": min(limit, PAGE_SIZE), "offset": offset}
        if project_id is not None:
            params["project_id"] = project_id
        if tracker_id is not None:
            params["tracker_id"] = tracker_id
        if status_id is not None:
            params["status_id"] = status_id
        if sort:
            params["sort"] = sort

        data = self._get("/issues.json", params=params)
        issues = [RedmineIssue.from_api_response(i) for i in data.get("issues", [])]
        return issues, int(data.get("total_count", len(issues)))

    @handle_redmine_api_errors("Redmine API")
    def get_issue(self, issue_id: int) -> RedmineIssue:
        """
        Get a single issue with its journals and allowed statuses.

        Args:
            issue_id: Numeric issue ID

        Returns:
            The issue
        """
        data = self._get(
            f"/issues/{issue_id}.json",
            params={"include": "journals,allowed_statuses"},
        )
        if "issue" not in data:
            raise ValueError(f"response for issue {issue_id} has no 'issue' object")
        return RedmineIssue.from_api_response(data["issue"])
