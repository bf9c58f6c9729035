"""Module for Redmine trackers, statuses, enumerations and roles."""

import logging

from ..models.redmine import (
    RedmineEnumeration,
    RedmineRole,
    RedmineStatus,
    RedmineTracker,
)
from ..utils.decorators import handle_redmine_api_errors
from .client import RedmineClient

logger = logging.getLogger("mcp-redmine.redmine")


class EnumerationsMixin(RedmineClient):
    """Mixin for the small, rarely changing directories Redmine exposes.

    None of these endpoints are paginated.
    """

    @handle_redmine_api_errors("Redmine API")
    def list_trackers(self) -> list[RedmineTracker]:
        data = self._get("/trackers.json")
        return [RedmineTracker.from_api_response(t) for t in data.get("trackers", [])]

    @handle_redmine_api_errors("Redmine API")
    def list_statuses(self) -> list[RedmineStatus]:
        data = self._get("/issue_statuses.json")
        return [
            RedmineStatus.from_api_response(s) for s in data.get("issue_statuses", [])
        ]

    @handle_redmine_api_errors("Redmine API")
    def list_priorities(self) -> list[RedmineEnumeration]:
        data = self._get("/enumerations/issue_priorities.json")
        return [
            RedmineEnumeration.from_api_response(p)
            for p in data.get("issue_priorities", [])
        ]

    @handle_redmine_api_errors("Redmine API")
    def list_activities(self) -> list[RedmineEnumeration]:
        """List time entry activities."""
        data = self._get("/enumerations/time_entry_activities.json")
        return [
            RedmineEnumeration.from_api_response(a)
            for a in data.get("time_entry_activities", [])
        ]

    @handle_redmine_api_errors("Redmine API")
    def list_roles(self) -> list[RedmineRole]:
        data = self._get("/roles.json")
        return [RedmineRole.from_api_response(r) for r in data.get("roles", [])]
