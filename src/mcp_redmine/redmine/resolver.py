"""
Name and ID resolution for Redmine entities.

Callers hand in what a human would type (``"bug"``, ``"In Progress"``,
``"me"``) and get back the numeric ID Redmine expects. Integers pass through
untouched. Names are matched case-insensitively, first exactly and then as a
substring; any ambiguity is reported instead of guessed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, TypeVar

from ..exceptions import (
    AmbiguousError,
    ConfigurationError,
    NotFoundError,
    RedmineAuthenticationError,
)
from ..models.redmine import (
    IDName,
    RedmineCustomFieldDefinition,
    RedmineEnumeration,
    RedmineProject,
    RedmineRole,
    RedmineStatus,
    RedmineTracker,
)
from ..utils.ids import parse_id
from .constants import (
    CURRENT_USER_KEYWORD,
    DIRECTORY_LIMIT,
    STATUS_KEYWORDS,
    EntityKind,
)

if TYPE_CHECKING:
    from . import RedmineFetcher

logger = logging.getLogger("mcp-redmine.resolver")

T = TypeVar("T")


def _candidates(
    kind: str,
    query: str,
    items: Iterable[T],
    to_ref: Callable[[T], IDName],
    exact_keys: Callable[[T], Iterable[str]],
    partial_key: Callable[[T], str],
) -> IDName:
    """Run the exact-then-substring match and return the single hit."""
    needle = query.strip().lower()
    if not needle:
        raise NotFoundError(kind, query)

    items = list(items)
    matches = _unique(
        to_ref(item)
        for item in items
        if needle in {key.lower() for key in exact_keys(item) if key}
    )
    if not matches:
        matches = _unique(
            to_ref(item) for item in items if needle in (partial_key(item) or "").lower()
        )

    if not matches:
        raise NotFoundError(kind, query)
    if len(matches) > 1:
        raise AmbiguousError(kind, query, matches)
    return matches[0]


def _unique(refs: Iterable[IDName]) -> list[IDName]:
    seen: set[int] = set()
    result = []
    for ref in refs:
        if ref.id not in seen:
            seen.add(ref.id)
            result.append(ref)
    return result


def _match_by_name(kind: EntityKind, query: str, items: Iterable[Any]) -> int:
    ref = _candidates(
        kind.value,
        query,
        items,
        to_ref=lambda item: IDName(id=item.id, name=item.name),
        exact_keys=lambda item: (item.name,),
        partial_key=lambda item: item.name,
    )
    return ref.id


class EntityResolver:
    """
    Resolves human-friendly names to Redmine IDs.

    Each directory is fetched from the data source at most once per resolver
    instance and kept for the instance's lifetime. Build one resolver per
    caller identity: what a user can see depends on their API key.
    """

    def __init__(self, fetcher: RedmineFetcher) -> None:
        self.fetcher = fetcher
        self._projects: list[RedmineProject] | None = None
        self._trackers: list[RedmineTracker] | None = None
        self._statuses: list[RedmineStatus] | None = None
        self._priorities: list[RedmineEnumeration] | None = None
        self._activities: list[RedmineEnumeration] | None = None
        self._roles: list[RedmineRole] | None = None
        self._custom_fields: list[RedmineCustomFieldDefinition] | None = None
        self._custom_fields_denied = False
        self._project_fields: dict[tuple[int, int | None], list[IDName]] = {}
        self._project_users: dict[int, list[IDName]] = {}
        self._current_user_id: int | None = None

    # Directory accessors

    def get_projects(self) -> list[RedmineProject]:
        if self._projects is None:
            self._projects = self.fetcher.list_projects(limit=DIRECTORY_LIMIT)
        return self._projects

    def get_trackers(self) -> list[RedmineTracker]:
        if self._trackers is None:
            self._trackers = self.fetcher.list_trackers()
        return self._trackers

    def get_statuses(self) -> list[RedmineStatus]:
        if self._statuses is None:
            self._statuses = self.fetcher.list_statuses()
        return self._statuses

    def get_priorities(self) -> list[RedmineEnumeration]:
        if self._priorities is None:
            self._priorities = self.fetcher.list_priorities()
        return self._priorities

    def get_activities(self) -> list[RedmineEnumeration]:
        if self._activities is None:
            self._activities = self.fetcher.list_activities()
        return self._activities

    def get_roles(self) -> list[RedmineRole]:
        if self._roles is None:
            self._roles = self.fetcher.list_roles()
        return self._roles

    def get_custom_fields(self) -> list[RedmineCustomFieldDefinition]:
        """Custom field definitions from the administrator-only listing.

        Raises:
            RedmineAuthenticationError: If the caller is not an administrator
        """
        if self._custom_fields is None:
            self._custom_fields = self.fetcher.list_all_custom_fields()
        return self._custom_fields

    def get_project_users(self, project_id: int) -> list[IDName]:
        """Users holding a membership in the project, de-duplicated by ID."""
        if project_id not in self._project_users:
            memberships = self.fetcher.list_project_memberships(
                project_id, limit=DIRECTORY_LIMIT
            )
            self._project_users[project_id] = _unique(
                m.user for m in memberships if m.user is not None
            )
        return self._project_users[project_id]

    # Resolution

    def resolve_project(self, name_or_id: str | int) -> int:
        """Resolve a project by ID, name or identifier (slug)."""
        project_id = parse_id(name_or_id)
        if project_id is not None:
            return project_id

        ref = _candidates(
            EntityKind.PROJECT.value,
            str(name_or_id),
            self.get_projects(),
            to_ref=lambda p: IDName(id=p.id, name=p.name),
            exact_keys=lambda p: (p.name, p.identifier),
            partial_key=lambda p: p.name,
        )
        return ref.id

    def resolve_tracker(self, name_or_id: str | int) -> int:
        tracker_id = parse_id(name_or_id)
        if tracker_id is not None:
            return tracker_id
        return _match_by_name(EntityKind.TRACKER, str(name_or_id), self.get_trackers())

    def resolve_status(self, name_or_id: str | int) -> str:
        """
        Resolve a status for use as an issue search filter.

        Args:
            name_or_id: Status name, ID, or one of 'open', 'closed', 'all', '*'

        Returns:
            A filter token: 'open', 'closed', '*' or a status ID as string
        """
        if isinstance(name_or_id, str):
            keyword = STATUS_KEYWORDS.get(name_or_id.strip().lower())
            if keyword is not None:
                return keyword
        return str(self.resolve_status_id(name_or_id))

    def resolve_status_id(self, name_or_id: str | int) -> int:
        """Resolve a status to its numeric ID. Filter keywords are not accepted."""
        status_id = parse_id(name_or_id)
        if status_id is not None:
            return status_id
        return _match_by_name(EntityKind.STATUS, str(name_or_id), self.get_statuses())

    def resolve_priority(self, name_or_id: str | int) -> int:
        priority_id = parse_id(name_or_id)
        if priority_id is not None:
            return priority_id
        return _match_by_name(
            EntityKind.PRIORITY, str(name_or_id), self.get_priorities()
        )

    def resolve_activity(self, name_or_id: str | int) -> int:
        activity_id = parse_id(name_or_id)
        if activity_id is not None:
            return activity_id
        return _match_by_name(
            EntityKind.ACTIVITY, str(name_or_id), self.get_activities()
        )

    def resolve_role(self, name_or_id: str | int) -> int:
        role_id = parse_id(name_or_id)
        if role_id is not None:
            return role_id
        return _match_by_name(EntityKind.ROLE, str(name_or_id), self.get_roles())

    def resolve_user(
        self, name_or_id: str | int, project_id: str | int | None = None
    ) -> int:
        """
        Resolve a user by ID, the keyword 'me', or a name.

        Listing all users requires administrator privileges, so names are
        looked up among the members of a project instead.

        Args:
            name_or_id: User ID, 'me', or (part of) a user's name
            project_id: Project whose members are searched (ID or name)

        Returns:
            The user ID

        Raises:
            ConfigurationError: If a name is given without a project
        """
        user_id = parse_id(name_or_id)
        if user_id is not None:
            return user_id

        query = str(name_or_id)
        if query.strip().lower() == CURRENT_USER_KEYWORD:
            if self._current_user_id is None:
                self._current_user_id = self.fetcher.get_current_user().id
            return self._current_user_id

        pid = self._project_context(project_id)
        if pid is None:
            raise ConfigurationError(
                "cannot search users without project context, please use a user ID"
            )

        ref = _candidates(
            EntityKind.USER.value,
            query,
            self.get_project_users(pid),
            to_ref=lambda user: user,
            exact_keys=lambda user: (user.name,),
            partial_key=lambda user: user.name,
        )
        return ref.id

    def resolve_custom_field(
        self,
        name_or_id: str | int,
        project_id: str | int | None = None,
        tracker_id: str | int | None = None,
    ) -> int:
        """
        Resolve a custom field by ID or name.

        The administrator-only field listing is used when the API key may read
        it. Otherwise the field names are taken from a sample issue of the
        given project (and tracker); the two sources are never combined.

        Raises:
            ConfigurationError: If the listing is not readable and no project is given
        """
        field_id = parse_id(name_or_id)
        if field_id is not None:
            return field_id

        query = str(name_or_id)
        definitions = self._privileged_custom_fields()
        if definitions is not None:
            return _match_by_name(EntityKind.CUSTOM_FIELD, query, definitions)

        pid = self._project_context(project_id)
        if pid is None:
            raise ConfigurationError(
                "custom field names can only be resolved with a project context "
                "when the API key cannot list custom fields; use a field ID"
            )

        tid = self.resolve_tracker(tracker_id) if tracker_id else None
        key = (pid, tid)
        if key not in self._project_fields:
            self._project_fields[key] = self.fetcher.get_project_custom_fields(pid, tid)
        return _match_by_name(EntityKind.CUSTOM_FIELD, query, self._project_fields[key])

    def _project_context(self, project_id: str | int | None) -> int | None:
        """The project ID to search in, or None when no project is given.

        Blank values and IDs of zero or less mean no project.
        """
        if project_id is None or not str(project_id).strip():
            return None
        pid = parse_id(project_id)
        if pid is not None:
            return pid if pid > 0 else None
        return self.resolve_project(project_id)

    def _privileged_custom_fields(self) -> list[RedmineCustomFieldDefinition] | None:
        if self._custom_fields_denied:
            return None
        try:
            return self.get_custom_fields()
        except RedmineAuthenticationError as e:
            logger.info(
                "Custom field listing not available to this API key "
                f"({e.status_code}); falling back to project issues"
            )
            self._custom_fields_denied = True
            return None

    def resolve(
        self,
        kind: EntityKind | str,
        name_or_id: str | int,
        project_id: str | int | None = None,
        tracker_id: str | int | None = None,
    ) -> int | str:
        """
        Resolve any supported entity kind.

        Args:
            kind: Entity kind, e.g. 'tracker' or 'custom_field'
            name_or_id: Name, ID or keyword to resolve
            project_id: Project context for users and custom fields
            tracker_id: Tracker context for custom fields

        Returns:
            The resolved ID; a filter token (str) for statuses

        Raises:
            ValueError: If the kind is not supported
        """
        entity_kind = EntityKind(kind.replace("_", " ").strip().lower())

        if entity_kind is EntityKind.USER:
            return self.resolve_user(name_or_id, project_id)
        if entity_kind is EntityKind.CUSTOM_FIELD:
            return self.resolve_custom_field(name_or_id, project_id, tracker_id)

        simple: dict[EntityKind, Callable[[str | int], int | str]] = {
            EntityKind.PROJECT: self.resolve_project,
            EntityKind.TRACKER: self.resolve_tracker,
            EntityKind.STATUS: self.resolve_status,
            EntityKind.PRIORITY: self.resolve_priority,
            EntityKind.ACTIVITY: self.resolve_activity,
            EntityKind.ROLE: self.resolve_role,
        }
        return simple[entity_kind](name_or_id)
