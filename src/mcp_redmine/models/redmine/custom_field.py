"""Data models for Redmine custom field definitions and values."""

from typing import Any

from pydantic import BaseModel, Field

from ..base import UNKNOWN, ApiModel
from .common import IDName


class PossibleValue(BaseModel):
    """One entry of a list-format custom field's possible values."""

    value: str
    label: str | None = None


class RedmineCustomFieldDefinition(ApiModel):
    """
    Full custom field definition as returned by ``/custom_fields.json``.

    This listing requires administrator privileges.
    """

    id: int = 0
    name: str = UNKNOWN
    customized_type: str = ""
    field_format: str = ""
    is_required: bool = False
    multiple: bool = False
    visible: bool = True
    possible_values: list[PossibleValue] = Field(default_factory=list)
    trackers: list[IDName] = Field(default_factory=list)
    default_value: str | None = None

    @property
    def value_list(self) -> list[str]:
        """Possible values as plain strings, in server order."""
        return [pv.value for pv in self.possible_values]

    def to_simplified_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "field_format": self.field_format,
            "is_required": self.is_required,
        }
        if self.possible_values:
            result["possible_values"] = self.value_list
        if self.trackers:
            result["trackers"] = [t.to_simplified_dict() for t in self.trackers]
        return result


class RedmineCustomFieldValue(ApiModel):
    """A custom field value attached to an issue."""

    id: int = 0
    name: str = UNKNOWN
    value: Any = None
    multiple: bool = False
