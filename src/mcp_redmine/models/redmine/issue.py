"""
Redmine issue models.

Only the parts of an issue that the validation layer reads are modelled:
identity, classification, custom field values and the journal (change
history) used for workflow mining.
"""

from typing import Any

from pydantic import Field, field_validator

from ..base import ApiModel
from .common import IDName
from .custom_field import RedmineCustomFieldValue


class RedmineJournalDetail(ApiModel):
    """
    A single attribute change inside a journal entry.

    Status changes look like ``{"property": "attr", "name": "status_id",
    "old_value": "1", "new_value": "2"}``.
    """

    property_name: str = Field(default="", alias="property")
    name: str = ""
    old_value: str | None = None
    new_value: str | None = None

    @field_validator("old_value", "new_value", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value)

    @property
    def is_status_change(self) -> bool:
        return self.property_name == "attr" and self.name == "status_id"


class RedmineJournal(ApiModel):
    """An issue journal entry (a comment and/or a set of field changes)."""

    id: int = 0
    user: IDName | None = None
    notes: str | None = None
    created_on: str | None = None
    details: list[RedmineJournalDetail] = Field(default_factory=list)


class RedmineIssue(ApiModel):
    """Model representing a Redmine issue."""

    id: int = 0
    subject: str = ""
    project: IDName | None = None
    tracker: IDName | None = None
    status: IDName | None = None
    priority: IDName | None = None
    author: IDName | None = None
    assigned_to: IDName | None = None
    created_on: str | None = None
    updated_on: str | None = None
    custom_fields: list[RedmineCustomFieldValue] = Field(default_factory=list)
    journals: list[RedmineJournal] = Field(default_factory=list)
    allowed_statuses: list[IDName] | None = None

    def to_simplified_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "subject": self.subject}
        for key in ("project", "tracker", "status", "priority", "assigned_to"):
            ref = getattr(self, key)
            if ref is not None:
                result[key] = ref.to_simplified_dict()
        if self.updated_on:
            result["updated_on"] = self.updated_on
        return result
