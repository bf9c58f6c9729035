"""Module for Redmine project and membership operations."""

import logging

from ..models.redmine import RedmineMembership, RedmineProject
from ..utils.decorators import handle_redmine_api_errors
from .client import RedmineClient
from .constants import DIRECTORY_LIMIT

logger = logging.getLogger("mcp-redmine.redmine")


class ProjectsMixin(RedmineClient):
    """Mixin for Redmine project operations."""

    @handle_redmine_api_errors("Redmine API")
    def list_projects(self, limit: int = DIRECTORY_LIMIT) -> list[RedmineProject]:
        """
        List the projects visible to the current user.

        Args:
            limit: Maximum number of projects to return

        Returns:
            List of projects
        """
        raw = self._get_paginated("/projects.json", "projects", limit)
        projects = [RedmineProject.from_api_response(item) for item in raw]
        logger.debug(f"Loaded {len(projects)} projects")
        return projects

    @handle_redmine_api_errors("Redmine API")
    def list_project_memberships(
        self, project_id: int, limit: int = DIRECTORY_LIMIT
    ) -> list[RedmineMembership]:
        """
        List the memberships of a project.

        Unlike ``/users.json`` this endpoint does not require administrator
        privileges, which makes it the source for user name lookups.

        Args:
            project_id: Numeric project ID
            limit: Maximum number of memberships to return

        Returns:
            List of memberships (user and group memberships alike)
        """
        raw = self._get_paginated(
            f"/projects/{project_id}/memberships.json", "memberships", limit
        )
        return [RedmineMembership.from_api_response(item) for item in raw]
