"""Module for Redmine user operations."""

import logging

from ..models.redmine import RedmineUser
from ..utils.decorators import handle_redmine_api_errors
from .client import RedmineClient

logger = logging.getLogger("mcp-redmine.redmine")


class UsersMixin(RedmineClient):
    """Mixin for Redmine user operations."""

    @handle_redmine_api_errors("Redmine API")
    def get_current_user(self) -> RedmineUser:
        """Get the user the API key belongs to.

        Returns:
            The current user

        Raises:
            RedmineAuthenticationError: If the API key is rejected
        """
        data = self._get("/users/current.json")
        if "user" not in data:
            raise ValueError("response has no 'user' object")
        user = RedmineUser.from_api_response(data["user"])
        logger.debug(f"Current Redmine user: {user.display_name} (ID: {user.id})")
        return user
