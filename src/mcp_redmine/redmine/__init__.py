"""Redmine API module for MCP Redmine.

This module provides a read-only Redmine data source plus the resolution and
validation layer built on top of it.
"""

from .client import RedmineClient
from .config import RedmineConfig
from .enumerations import EnumerationsMixin
from .fields import FieldsMixin
from .issues import IssuesMixin
from .projects import ProjectsMixin
from .resolver import EntityResolver
from .rules import CustomFieldRules
from .users import UsersMixin
from .workflow import WorkflowRules


class RedmineFetcher(
    ProjectsMixin,
    EnumerationsMixin,
    UsersMixin,
    FieldsMixin,
    IssuesMixin,
):
    """
    The main Redmine client class providing access to all read operations.

    This class inherits from multiple mixins that provide specific
    functionality:
    - ProjectsMixin: Projects and memberships
    - EnumerationsMixin: Trackers, statuses, priorities, activities, roles
    - UsersMixin: The current user
    - FieldsMixin: Custom field definitions
    - IssuesMixin: Issue search and issue details with journals
    """

    pass


__all__ = [
    "RedmineFetcher",
    "RedmineConfig",
    "RedmineClient",
    "EntityResolver",
    "CustomFieldRules",
    "WorkflowRules",
]
