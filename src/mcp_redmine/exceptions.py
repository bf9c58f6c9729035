"""
Exception hierarchy for MCP Redmine.

Every error carries an ``ErrorKind`` so callers can branch on the kind
instead of matching message text. ``to_dict`` renders the structured fields
for tool responses.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mcp_redmine.models.redmine.common import IDName


class ErrorKind(str, Enum):
    """Closed set of error categories raised by the validation layer."""

    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    TRANSITION = "transition"
    UPSTREAM = "upstream"


class MCPRedmineError(Exception):
    """Base exception for MCP-Redmine errors."""

    kind: ErrorKind = ErrorKind.UPSTREAM

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind.value, "message": str(self)}


class NotFoundError(MCPRedmineError):
    """Raised when a name lookup has zero candidates."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity_kind: str, query: str) -> None:
        self.entity_kind = entity_kind
        self.query = query
        super().__init__(f"{entity_kind} not found: {query}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "entity": self.entity_kind, "query": self.query}


class AmbiguousError(MCPRedmineError):
    """Raised when a name lookup matches more than one entry."""

    kind = ErrorKind.AMBIGUOUS

    def __init__(self, entity_kind: str, query: str, candidates: list[IDName]) -> None:
        self.entity_kind = entity_kind
        self.query = query
        self.candidates = list(candidates)
        names = ", ".join(str(candidate) for candidate in self.candidates)
        super().__init__(f"multiple {entity_kind} match '{query}': {names}")

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "entity": self.entity_kind,
            "query": self.query,
            "candidates": [c.to_simplified_dict() for c in self.candidates],
        }


class ConfigurationError(MCPRedmineError):
    """Raised when an operation lacks the context it needs."""

    kind = ErrorKind.CONFIGURATION


class RuleFileError(ConfigurationError):
    """Raised when a rule file exists but cannot be read or parsed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"failed to load rules from {path}: {reason}")


class ValidationError(MCPRedmineError):
    """Base class for custom field validation failures."""

    kind = ErrorKind.VALIDATION


class FieldValueError(ValidationError):
    """Raised when a custom field value is outside its allowed set."""

    def __init__(
        self,
        field_id: int | str,
        field_name: str,
        value: Any,
        allowed_values: list[str],
    ) -> None:
        self.field_id = str(field_id)
        self.field_name = field_name
        self.value = value
        self.allowed_values = list(allowed_values)
        super().__init__(
            f"invalid value {value!r} for {field_name} (ID: {self.field_id}). "
            f"Valid values: {', '.join(self.allowed_values)}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "field_id": self.field_id,
            "field_name": self.field_name,
            "value": self.value,
            "allowed_values": self.allowed_values,
        }


class RequiredFieldsMissingError(ValidationError):
    """Raised when fields required by a tracker are absent from a payload."""

    def __init__(self, tracker_id: int, missing: list[Any]) -> None:
        self.tracker_id = tracker_id
        self.missing = list(missing)
        parts = []
        for field in self.missing:
            hint = ", ".join(field.allowed_values) or "free text"
            parts.append(f"{field.name} (ID: {field.field_id}, values: {hint})")
        super().__init__(f"required custom field(s) missing: {'; '.join(parts)}")

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "tracker_id": self.tracker_id,
            "missing": [field.to_dict() for field in self.missing],
        }


class TransitionError(MCPRedmineError):
    """Raised when a status change is not allowed by the tracker workflow."""

    kind = ErrorKind.TRANSITION

    def __init__(
        self,
        tracker_id: int,
        tracker_name: str,
        from_status: IDName,
        to_status: IDName,
        allowed: list[IDName],
    ) -> None:
        self.tracker_id = tracker_id
        self.tracker_name = tracker_name
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = list(allowed)
        if not self.allowed:
            message = (
                f"cannot change {tracker_name} from '{from_status.name}' to "
                f"'{to_status.name}': no transitions allowed from '{from_status.name}'"
            )
        else:
            message = (
                f"cannot change {tracker_name} from '{from_status.name}' to "
                f"'{to_status.name}'. Allowed: "
                f"{', '.join(status.name for status in self.allowed)}"
            )
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "tracker_id": self.tracker_id,
            "from_status": self.from_status.to_simplified_dict(),
            "to_status": self.to_status.to_simplified_dict(),
            "allowed": [status.to_simplified_dict() for status in self.allowed],
        }


class UpstreamError(MCPRedmineError):
    """Raised when the Redmine API call fails (network, HTTP or payload)."""

    kind = ErrorKind.UPSTREAM

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.status_code is not None:
            result["status_code"] = self.status_code
        return result


class RedmineAuthenticationError(UpstreamError):
    """Raised when Redmine API authentication or authorization fails (401/403)."""
