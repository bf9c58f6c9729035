"""
Models for the persisted rule files.

Both files are plain JSON and their layout is kept stable so that curated
files written by hand keep loading:

* field rules: ``{"fields": {"<field id>": CustomFieldRule}}``
* workflow rules: ``{"trackers": {"<tracker id>": WorkflowTracker}}``
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _dedupe(items: list[Any]) -> list[Any]:
    seen: set[Any] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


class CustomFieldRule(BaseModel):
    """
    Validation rule for one custom field.

    An empty ``values`` list means the field is free text.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    values: list[str] = Field(default_factory=list)
    required_by_trackers: list[int] = Field(default_factory=list)

    @field_validator("values", "required_by_trackers", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("values", "required_by_trackers")
    @classmethod
    def _ordered_unique(cls, value: list[Any]) -> list[Any]:
        return _dedupe(value)

    @property
    def is_free_text(self) -> bool:
        return not self.values

    def to_file_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "values": list(self.values)}
        if self.required_by_trackers:
            result["required_by_trackers"] = list(self.required_by_trackers)
        return result


class WorkflowStatus(BaseModel):
    """A status node inside a tracker workflow."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    is_closed: bool = False


class WorkflowTracker(BaseModel):
    """Status nodes and allowed transitions for a single tracker."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    statuses: dict[str, WorkflowStatus] = Field(default_factory=dict)
    transitions: dict[str, list[int]] = Field(default_factory=dict)

    @field_validator("transitions")
    @classmethod
    def _unique_targets(cls, value: dict[str, list[int]]) -> dict[str, list[int]]:
        return {source: _dedupe(targets or []) for source, targets in value.items()}

    def status_name(self, status_id: int) -> str:
        status = self.statuses.get(str(status_id))
        if status is not None:
            return status.name
        return f"Unknown({status_id})"

    def to_file_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "statuses": {
                status_id: status.model_dump()
                for status_id, status in self.statuses.items()
            },
            "transitions": {
                source: list(targets) for source, targets in self.transitions.items()
            },
        }
