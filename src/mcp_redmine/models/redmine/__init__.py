"""
Redmine data models for the MCP Redmine integration.

This package provides Pydantic models for Redmine API data structures and
for the persisted rule files, organized by entity type.
"""

from .common import (
    IDName,
    RedmineEnumeration,
    RedmineMembership,
    RedmineProject,
    RedmineRole,
    RedmineStatus,
    RedmineTracker,
    RedmineUser,
)
from .custom_field import (
    PossibleValue,
    RedmineCustomFieldDefinition,
    RedmineCustomFieldValue,
)
from .issue import RedmineIssue, RedmineJournal, RedmineJournalDetail
from .rules import CustomFieldRule, WorkflowStatus, WorkflowTracker

__all__ = [
    # Common models
    "IDName",
    "RedmineProject",
    "RedmineTracker",
    "RedmineStatus",
    "RedmineEnumeration",
    "RedmineRole",
    "RedmineUser",
    "RedmineMembership",
    # Custom fields
    "PossibleValue",
    "RedmineCustomFieldDefinition",
    "RedmineCustomFieldValue",
    # Issues
    "RedmineIssue",
    "RedmineJournal",
    "RedmineJournalDetail",
    # Rule files
    "CustomFieldRule",
    "WorkflowStatus",
    "WorkflowTracker",
]
