"""
Pydantic models for Redmine API responses and rule files.
"""

from .base import ApiModel
from .redmine import (
    CustomFieldRule,
    IDName,
    RedmineCustomFieldDefinition,
    RedmineCustomFieldValue,
    RedmineEnumeration,
    RedmineIssue,
    RedmineJournal,
    RedmineJournalDetail,
    RedmineMembership,
    RedmineProject,
    RedmineRole,
    RedmineStatus,
    RedmineTracker,
    RedmineUser,
    WorkflowStatus,
    WorkflowTracker,
)

__all__ = [
    "ApiModel",
    "CustomFieldRule",
    "IDName",
    "RedmineCustomFieldDefinition",
    "RedmineCustomFieldValue",
    "RedmineEnumeration",
    "RedmineIssue",
    "RedmineJournal",
    "RedmineJournalDetail",
    "RedmineMembership",
    "RedmineProject",
    "RedmineRole",
    "RedmineStatus",
    "RedmineTracker",
    "RedmineUser",
    "WorkflowStatus",
    "WorkflowTracker",
]
