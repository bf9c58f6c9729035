"""
Base models and shared helpers for Redmine API data.
"""

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T", bound="ApiModel")

UNKNOWN = "Unknown"


class ApiModel(BaseModel):
    """
    Base model for all API payload models.

    Subclasses build themselves from raw API dictionaries with
    ``from_api_response`` and render a compact dictionary for tool output
    with ``to_simplified_dict``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_api_response(cls: type[T], data: dict[str, Any], **kwargs: Any) -> T:
        """Create a model instance from a raw API response."""
        if not data or not isinstance(data, dict):
            return cls()
        return cls.model_validate(data)

    def to_simplified_dict(self) -> dict[str, Any]:
        """Convert the model to a simplified dictionary for tool output."""
        return self.model_dump(exclude_none=True)
