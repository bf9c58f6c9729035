"""
Custom field value validation.

Rules come from a curated JSON file, from the administrator field listing, or
from both merged. A field without a rule, or with an empty value list, accepts
anything.
"""

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import (
    AmbiguousError,
    FieldValueError,
    NotFoundError,
    RequiredFieldsMissingError,
    RuleFileError,
)
from ..models.redmine import CustomFieldRule, IDName, RedmineCustomFieldDefinition
from ..utils.ids import parse_id, require_id
from .constants import ISSUE_CUSTOMIZED_TYPE, EntityKind

logger = logging.getLogger("mcp-redmine.rules")


@dataclass(frozen=True)
class ScalarValue:
    """A single-valued custom field value."""

    value: str


@dataclass(frozen=True)
class ListValue:
    """A multi-select custom field value."""

    values: tuple[str, ...]


CustomFieldValue = ScalarValue | ListValue


def custom_field_value(raw: Any) -> CustomFieldValue:
    """Build the tagged value from a JSON payload value.

    Lists become ``ListValue``; anything else is stringified into a
    ``ScalarValue`` (``None`` becomes the empty string).
    """
    if isinstance(raw, ScalarValue | ListValue):
        return raw
    if isinstance(raw, list | tuple):
        return ListValue(tuple("" if item is None else str(item) for item in raw))
    return ScalarValue("" if raw is None else str(raw))


def plain_value(value: CustomFieldValue) -> str | list[str]:
    """Inverse of ``custom_field_value`` for building API payloads."""
    if isinstance(value, ListValue):
        return list(value.values)
    return value.value


@dataclass(frozen=True)
class RequiredField:
    """A field a tracker requires that was not supplied."""

    field_id: int
    name: str
    allowed_values: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "field_id": self.field_id,
            "name": self.name,
            "allowed_values": list(self.allowed_values),
        }


class CustomFieldRules:
    """
    Read-only set of custom field rules keyed by field ID.

    Keys are kept as strings, matching the persisted file layout.
    """

    def __init__(self, fields: Mapping[str | int, CustomFieldRule] | None = None) -> None:
        self._fields: Mapping[str, CustomFieldRule] = MappingProxyType(
            {str(field_id): rule for field_id, rule in (fields or {}).items()}
        )

    @property
    def fields(self) -> Mapping[str, CustomFieldRule]:
        return self._fields

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, field_id: object) -> bool:
        return str(field_id) in self._fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CustomFieldRules):
            return NotImplemented
        return dict(self._fields) == dict(other._fields)

    def __repr__(self) -> str:
        return f"CustomFieldRules({len(self._fields)} fields)"

    def get(self, field_id: str | int) -> CustomFieldRule | None:
        return self._fields.get(str(field_id))

    def validate_value(self, field_id: str | int, value: str) -> str:
        """
        Validate one value, correcting its casing where possible.

        Args:
            field_id: Custom field ID
            value: The supplied value

        Returns:
            The value itself, or the canonical spelling of a case-insensitive match

        Raises:
            FieldValueError: If the field has allowed values and none matches
        """
        rule = self.get(field_id)
        if rule is None or rule.is_free_text:
            return value
        if value in rule.values:
            return value

        lowered = value.lower()
        for allowed in rule.values:
            if allowed.lower() == lowered:
                logger.debug(
                    f"Corrected custom field {field_id} value {value!r} to {allowed!r}"
                )
                return allowed

        raise FieldValueError(field_id, rule.name, value, rule.values)

    def validate_values(self, field_id: str | int, values: Iterable[str]) -> list[str]:
        """Validate each value of a multi-select field; the first failure is raised."""
        return [self.validate_value(field_id, value) for value in values]

    def validate(self, field_id: str | int, value: CustomFieldValue) -> CustomFieldValue:
        if isinstance(value, ListValue):
            return ListValue(tuple(self.validate_values(field_id, value.values)))
        return ScalarValue(self.validate_value(field_id, value.value))

    def required_fields_missing(
        self, tracker_id: str | int | None, supplied_field_ids: Iterable[str | int]
    ) -> list[RequiredField]:
        """
        List the fields the tracker requires that are not in ``supplied_field_ids``.

        Without a tracker (``None``, ``""`` or ``0``) nothing is required.

        Raises:
            ValueError: If ``tracker_id`` is not a numeric ID
        """
        if tracker_id is None or not str(tracker_id).strip():
            return []
        tracker_id = require_id(tracker_id, "tracker")
        if not tracker_id:
            return []

        supplied: set[str] = set()
        for field_id in supplied_field_ids:
            parsed = parse_id(field_id)
            supplied.add(str(field_id) if parsed is None else str(parsed))
        missing = [
            RequiredField(int(field_id), rule.name, list(rule.values))
            for field_id, rule in self._fields.items()
            if tracker_id in rule.required_by_trackers and field_id not in supplied
        ]
        return sorted(missing, key=lambda required: required.field_id)

    def check_required_fields(
        self, tracker_id: str | int | None, supplied_field_ids: Iterable[str | int]
    ) -> None:
        """Raise ``RequiredFieldsMissingError`` if any required field is absent."""
        missing = self.required_fields_missing(tracker_id, supplied_field_ids)
        if missing:
            raise RequiredFieldsMissingError(require_id(tracker_id, "tracker"), missing)

    def field_id_for_name(self, name: str) -> int | None:
        """Find a field ID by its rule name (case-insensitive, exact only)."""
        wanted = name.strip().lower()
        matches = [
            IDName(id=int(field_id), name=rule.name)
            for field_id, rule in self._fields.items()
            if rule.name.lower() == wanted
        ]
        if len(matches) > 1:
            raise AmbiguousError(EntityKind.CUSTOM_FIELD.value, name, matches)
        return matches[0].id if matches else None

    def validate_payload(
        self,
        fields: Mapping[str, Any],
        tracker_id: str | int | None = None,
        resolve_name: Callable[[str], int] | None = None,
    ) -> dict[int, str | list[str]]:
        """
        Validate a whole custom field payload.

        Keys may be field IDs or field names. Names are looked up in the rules
        first and then through ``resolve_name`` when given.

        Args:
            fields: Mapping of field ID or name to value (string or list)
            tracker_id: Tracker of the issue, for the required-field check
            resolve_name: Fallback lookup for names the rules do not know

        Returns:
            Mapping of field ID to the corrected value

        Raises:
            NotFoundError: If a field name cannot be resolved
            FieldValueError: If a value is not allowed
            RequiredFieldsMissingError: If a required field is absent
        """
        result: dict[int, str | list[str]] = {}
        for key, raw in fields.items():
            field_id = parse_id(key)
            if field_id is None:
                field_id = self.field_id_for_name(key)
            if field_id is None and resolve_name is not None:
                field_id = resolve_name(key)
            if field_id is None:
                raise NotFoundError(EntityKind.CUSTOM_FIELD.value, key)

            result[field_id] = plain_value(self.validate(field_id, custom_field_value(raw)))

        self.check_required_fields(tracker_id, result.keys())
        return result

    def merge(self, generated: "CustomFieldRules | None") -> "CustomFieldRules":
        """Return a new rule set where ``generated`` overrides same-ID entries."""
        return merge(self, generated)

    @classmethod
    def generate(
        cls, definitions: Iterable[RedmineCustomFieldDefinition]
    ) -> "CustomFieldRules":
        """
        Build rules from the administrator custom field listing.

        Only issue fields are kept. A field counts as required only for the
        trackers it is enabled on, and only if it is flagged required.
        """
        fields: dict[str, CustomFieldRule] = {}
        for definition in definitions:
            if definition.customized_type != ISSUE_CUSTOMIZED_TYPE:
                continue
            required_by: list[int] = []
            if definition.is_required and definition.trackers:
                required_by = [tracker.id for tracker in definition.trackers]
            fields[str(definition.id)] = CustomFieldRule(
                name=definition.name,
                values=definition.value_list,
                required_by_trackers=required_by,
            )
        return cls(fields)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustomFieldRules":
        """Build rules from file content, with or without the ``fields`` wrapper."""
        body = data.get("fields", data) if isinstance(data, Mapping) else data
        if not isinstance(body, Mapping):
            raise TypeError("custom field rules must be a JSON object")
        fields: dict[str, CustomFieldRule] = {}
        for field_id, rule in body.items():
            if parse_id(field_id) is None:
                raise TypeError(f"custom field key {field_id!r} is not a numeric ID")
            fields[str(field_id).strip()] = CustomFieldRule.model_validate(rule)
        return cls(fields)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fields": {
                field_id: self._fields[field_id].to_file_dict()
                for field_id in sorted(self._fields, key=int)
            }
        }

    @classmethod
    def load(cls, path: str | Path) -> "CustomFieldRules | None":
        """
        Load rules from a JSON file.

        Returns:
            The rules, or None if the file does not exist

        Raises:
            RuleFileError: If the file cannot be read or parsed
        """
        data = read_rule_file(path)
        if data is None:
            return None
        try:
            rules = cls.from_dict(data)
        except (PydanticValidationError, TypeError) as e:
            raise RuleFileError(str(path), str(e)) from e
        logger.info(f"Loaded {len(rules)} custom field rules from {path}")
        return rules

    def save(self, path: str | Path) -> None:
        write_rule_file(path, self.to_dict())


def merge(
    curated: CustomFieldRules | None, generated: CustomFieldRules | None
) -> CustomFieldRules:
    """
    Merge generated rules over curated ones.

    Entries from ``generated`` replace curated entries with the same field ID;
    curated-only entries are kept. Neither input is modified.
    """
    combined: dict[str, CustomFieldRule] = {}
    if curated is not None:
        combined.update(curated.fields)
    if generated is not None:
        combined.update(generated.fields)
    return CustomFieldRules(combined)


def read_rule_file(path: str | Path) -> Any:
    rule_path = Path(path)
    if not rule_path.exists():
        logger.debug(f"Rule file {rule_path} does not exist, no rules loaded")
        return None
    try:
        return json.loads(rule_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise RuleFileError(str(rule_path), str(e)) from e


def write_rule_file(path: str | Path, data: dict[str, Any]) -> None:
    rule_path = Path(path)
    rule_path.parent.mkdir(parents=True, exist_ok=True)
    rule_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    logger.info(f"Wrote rules to {rule_path}")
