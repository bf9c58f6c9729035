from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp_redmine.redmine.config import RedmineConfig
    from mcp_redmine.redmine.rules import CustomFieldRules
    from mcp_redmine.redmine.workflow import WorkflowRules


@dataclass(frozen=True)
class MainAppContext:
    """Context holding the base config and the loaded rule sets (no fetchers)."""

    base_config: RedmineConfig | None = None
    field_rules: CustomFieldRules | None = None
    workflow_rules: WorkflowRules | None = None
