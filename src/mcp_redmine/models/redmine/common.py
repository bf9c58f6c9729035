"""
Common Redmine entity models.

These models cover the small directory objects that the resolver works with:
projects, trackers, statuses, enumerations, roles, users and memberships.
"""

import logging
from typing import Any

from pydantic import Field

from ..base import UNKNOWN, ApiModel

logger = logging.getLogger(__name__)


class IDName(ApiModel):
    """
    A bare (id, name) pair.

    Redmine nests these everywhere (``issue.tracker``, ``membership.user``) and
    the resolver uses them as ambiguity candidates.
    """

    id: int = 0
    name: str = ""

    def __str__(self) -> str:
        return f"{self.name} (ID: {self.id})"

    def to_simplified_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


class RedmineProject(ApiModel):
    """Model representing a Redmine project."""

    id: int = 0
    name: str = UNKNOWN
    identifier: str = ""
    description: str | None = None
    status: int | None = None
    parent: IDName | None = None

    def to_simplified_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "identifier": self.identifier,
        }
        if self.parent:
            result["parent"] = self.parent.to_simplified_dict()
        return result


class RedmineTracker(ApiModel):
    """Model representing a Redmine tracker (issue type)."""

    id: int = 0
    name: str = UNKNOWN


class RedmineStatus(ApiModel):
    """Model representing a Redmine issue status."""

    id: int = 0
    name: str = UNKNOWN
    is_closed: bool = False


class RedmineEnumeration(ApiModel):
    """Model for enumerations such as issue priorities and time entry activities."""

    id: int = 0
    name: str = UNKNOWN
    is_default: bool = False
    active: bool = True


class RedmineRole(ApiModel):
    """Model representing a Redmine role."""

    id: int = 0
    name: str = UNKNOWN


class RedmineUser(ApiModel):
    """Model representing a Redmine user."""

    id: int = 0
    login: str | None = None
    firstname: str | None = None
    lastname: str | None = None
    mail: str | None = None
    name: str | None = None

    @property
    def display_name(self) -> str:
        """Full name, falling back to first/last name or login."""
        if self.name:
            return self.name
        full_name = " ".join(part for part in (self.firstname, self.lastname) if part)
        return full_name or self.login or UNKNOWN

    def to_simplified_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "name": self.display_name}
        if self.login:
            result["login"] = self.login
        if self.mail:
            result["mail"] = self.mail
        return result


class RedmineMembership(ApiModel):
    """
    Model representing a project membership.

    A membership belongs either to a user or to a group; only user
    memberships take part in user resolution.
    """

    id: int = 0
    project: IDName | None = None
    user: IDName | None = None
    group: IDName | None = None
    roles: list[IDName] = Field(default_factory=list)
