"""
Per-tracker status workflows.

Redmine does not publish its workflow table through the REST API. Rules are
therefore either written by hand or inferred from the status changes recorded
in issue journals. Inferred rules only contain transitions somebody actually
made, so a missing edge is not proof that the edge is forbidden.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import RuleFileError, TransitionError, UpstreamError
from ..logging_config import log_operation
from ..models.redmine import (
    IDName,
    RedmineIssue,
    RedmineJournal,
    RedmineStatus,
    WorkflowStatus,
    WorkflowTracker,
)
from ..utils.ids import parse_id, require_id
from .constants import DEFAULT_WORKFLOW_SAMPLE_SIZE, PAGE_SIZE, STATUS_WILDCARD
from .rules import read_rule_file, write_rule_file

if TYPE_CHECKING:
    from . import RedmineFetcher

logger = logging.getLogger("mcp-redmine.workflow")

MINING_SORT = "updated_on:desc"


class WorkflowRules:
    """
    Read-only transition rules keyed by tracker ID.

    Trackers that are not present are unconstrained, as are source statuses a
    known tracker has no entry for.
    """

    def __init__(
        self, trackers: Mapping[str | int, WorkflowTracker] | None = None
    ) -> None:
        self._trackers: Mapping[str, WorkflowTracker] = MappingProxyType(
            {str(tracker_id): t for tracker_id, t in (trackers or {}).items()}
        )

    @property
    def trackers(self) -> Mapping[str, WorkflowTracker]:
        return self._trackers

    def __len__(self) -> int:
        return len(self._trackers)

    def __contains__(self, tracker_id: object) -> bool:
        return str(tracker_id) in self._trackers

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorkflowRules):
            return NotImplemented
        return dict(self._trackers) == dict(other._trackers)

    def __repr__(self) -> str:
        return f"WorkflowRules({len(self._trackers)} trackers)"

    def get(self, tracker_id: str | int) -> WorkflowTracker | None:
        return self._trackers.get(str(tracker_id))

    def validate_transition(
        self,
        tracker_id: str | int,
        from_status_id: str | int,
        to_status_id: str | int,
    ) -> None:
        """
        Check that a tracker allows moving from one status to another.

        Unknown trackers and unknown source statuses pass.

        Raises:
            TransitionError: If the source status is known and the target is not
                among its allowed targets
            ValueError: If an ID is neither an integer nor an integer string
        """
        tracker_id = require_id(tracker_id, "tracker")
        from_status_id = require_id(from_status_id, "status")
        to_status_id = require_id(to_status_id, "status")
        tracker = self.get(tracker_id)
        if tracker is None:
            return
        targets = tracker.transitions.get(str(from_status_id))
        if targets is None or to_status_id in targets:
            return

        raise TransitionError(
            tracker_id,
            tracker.name,
            IDName(id=from_status_id, name=tracker.status_name(from_status_id)),
            IDName(id=to_status_id, name=tracker.status_name(to_status_id)),
            [IDName(id=t, name=tracker.status_name(t)) for t in targets],
        )

    def allowed_targets(
        self, tracker_id: str | int, from_status_id: str | int
    ) -> list[IDName] | None:
        """Statuses reachable from ``from_status_id``, or None if not known."""
        tracker = self.get(require_id(tracker_id, "tracker"))
        if tracker is None:
            return None
        targets = tracker.transitions.get(str(require_id(from_status_id, "status")))
        if targets is None:
            return None
        return [IDName(id=t, name=tracker.status_name(t)) for t in targets]

    def tracker_statuses(self, tracker_id: int) -> list[IDName] | None:
        """Every status node of a tracker, ordered by ID, or None if not known."""
        tracker = self.get(tracker_id)
        if tracker is None:
            return None
        return sorted(
            (
                IDName(id=int(status_id), name=status.name)
                for status_id, status in tracker.statuses.items()
            ),
            key=lambda status: status.id,
        )

    def merge(self, generated: WorkflowRules | None) -> WorkflowRules:
        return merge(self, generated)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WorkflowRules:
        """Build rules from file content, with or without the ``trackers`` wrapper."""
        body = data.get("trackers", data) if isinstance(data, Mapping) else data
        if not isinstance(body, Mapping):
            raise TypeError("workflow rules must be a JSON object")
        trackers: dict[str, WorkflowTracker] = {}
        for tracker_id, tracker in body.items():
            if parse_id(tracker_id) is None:
                raise TypeError(f"tracker key {tracker_id!r} is not a numeric ID")
            trackers[str(tracker_id).strip()] = WorkflowTracker.model_validate(tracker)
        return cls(trackers)

    def to_dict(self) -> dict[str, Any]:
        return {
            "trackers": {
                tracker_id: self._trackers[tracker_id].to_file_dict()
                for tracker_id in sorted(self._trackers, key=int)
            }
        }

    @classmethod
    def load(cls, path: str | Path) -> WorkflowRules | None:
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
        logger.info(f"Loaded workflow rules for {len(rules)} trackers from {path}")
        return rules

    def save(self, path: str | Path) -> None:
        write_rule_file(path, self.to_dict())


def merge(
    curated: WorkflowRules | None, generated: WorkflowRules | None
) -> WorkflowRules:
    """Merge generated trackers over curated ones; curated-only trackers are kept."""
    combined: dict[str, WorkflowTracker] = {}
    if curated is not None:
        combined.update(curated.trackers)
    if generated is not None:
        combined.update(generated.trackers)
    return WorkflowRules(combined)


@dataclass
class ObservedTransitions:
    """Status changes seen on the issues of one tracker."""

    name: str
    transitions: dict[int, list[int]] = field(default_factory=dict)

    def add(self, from_status_id: int, to_status_id: int) -> None:
        self.transitions.setdefault(from_status_id, []).append(to_status_id)


def extract_transitions(journals: Iterable[RedmineJournal]) -> list[tuple[int, int]]:
    """
    Pull (from, to) status pairs out of issue journals, in journal order.

    Details with a missing or non-integer old or new value are skipped.
    """
    pairs: list[tuple[int, int]] = []
    for journal in journals:
        for detail in journal.details:
            if not detail.is_status_change:
                continue
            old_id = parse_id(detail.old_value or "")
            new_id = parse_id(detail.new_value or "")
            if old_id is None or new_id is None:
                continue
            pairs.append((old_id, new_id))
    return pairs


def build_workflow_rules(
    statuses: Iterable[RedmineStatus],
    observed: Mapping[int, ObservedTransitions],
) -> WorkflowRules:
    """
    Turn observed transitions into workflow rules.

    Target lists are de-duplicated and sorted. Every status seen as a source
    or a target becomes a node; statuses missing from ``statuses`` get the
    name ``Unknown(<id>)``. Trackers without any transition are left out.
    """
    lookup = {status.id: status for status in statuses}
    trackers: dict[str, WorkflowTracker] = {}

    for tracker_id, data in observed.items():
        if not data.transitions:
            continue

        referenced: set[int] = set()
        transitions: dict[str, list[int]] = {}
        for from_id, targets in data.transitions.items():
            unique_targets = sorted(set(targets))
            transitions[str(from_id)] = unique_targets
            referenced.add(from_id)
            referenced.update(unique_targets)

        nodes: dict[str, WorkflowStatus] = {}
        for status_id in sorted(referenced):
            known = lookup.get(status_id)
            if known is not None:
                nodes[str(status_id)] = WorkflowStatus(
                    name=known.name, is_closed=known.is_closed
                )
            else:
                nodes[str(status_id)] = WorkflowStatus(name=f"Unknown({status_id})")

        trackers[str(tracker_id)] = WorkflowTracker(
            name=data.name, statuses=nodes, transitions=transitions
        )

    return WorkflowRules(trackers)


def _sample_issues(
    fetcher: RedmineFetcher, tracker_id: int, tracker_name: str, per_tracker: int
) -> list[RedmineIssue]:
    issues: list[RedmineIssue] = []
    remaining = per_tracker
    offset = 0
    while remaining > 0:
        limit = min(remaining, PAGE_SIZE)
        try:
            page, _ = fetcher.search_issues(
                tracker_id=tracker_id,
                status_id=STATUS_WILDCARD,
                sort=MINING_SORT,
                limit=limit,
                offset=offset,
            )
        except UpstreamError as e:
            logger.warning(f"Failed to search issues for tracker {tracker_name}: {e}")
            break
        issues.extend(page)
        if len(page) < limit:
            break
        remaining -= len(page)
        offset += len(page)
    return issues


def generate_workflow_rules(
    fetcher: RedmineFetcher,
    per_tracker: int = DEFAULT_WORKFLOW_SAMPLE_SIZE,
    progress: Callable[[str], None] | None = None,
) -> WorkflowRules:
    """
    Infer workflow rules from the journals of recently updated issues.

    For every tracker the ``per_tracker`` most recently updated issues (any
    status) are fetched with their journals, and each recorded status change
    becomes an allowed transition.

    Args:
        fetcher: Redmine data source
        per_tracker: Maximum number of issues inspected per tracker
        progress: Optional callback receiving human-readable progress lines

    Returns:
        The inferred rules

    Raises:
        UpstreamError: If trackers or statuses cannot be listed
    """
    if per_tracker <= 0:
        per_tracker = DEFAULT_WORKFLOW_SAMPLE_SIZE

    def report(message: str) -> None:
        logger.info(message)
        if progress is not None:
            progress(message)

    with log_operation(logger, "generate_workflow_rules", per_tracker=per_tracker):
        trackers = fetcher.list_trackers()
        statuses = fetcher.list_statuses()

        observed: dict[int, ObservedTransitions] = {}
        for index, tracker in enumerate(trackers, start=1):
            report(f"tracker {index}/{len(trackers)}: {tracker.name}")

            issues = _sample_issues(fetcher, tracker.id, tracker.name, per_tracker)
            if not issues:
                report("  no issues found, skipping")
                continue

            data = ObservedTransitions(name=tracker.name)
            count = 0
            for brief in issues:
                try:
                    issue = fetcher.get_issue(brief.id)
                except UpstreamError as e:
                    logger.warning(f"Failed to get issue #{brief.id}: {e}")
                    continue
                for from_id, to_id in extract_transitions(issue.journals):
                    data.add(from_id, to_id)
                    count += 1

            report(f"  {len(issues)} issues inspected, {count} transitions found")
            observed[tracker.id] = data

        return build_workflow_rules(statuses, observed)
