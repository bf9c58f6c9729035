"""Main FastMCP server setup for the Redmine integration."""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from mcp_redmine.exceptions import RuleFileError
from mcp_redmine.redmine.config import RedmineConfig
from mcp_redmine.redmine.rules import CustomFieldRules
from mcp_redmine.redmine.workflow import WorkflowRules

from .context import MainAppContext
from .redmine import redmine_mcp

logger = logging.getLogger("mcp-redmine.server.main")


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


def _load_field_rules(path: str | None) -> CustomFieldRules | None:
    if not path:
        return None
    try:
        rules = CustomFieldRules.load(path)
    except RuleFileError as e:
        logger.warning(f"{e}. Custom field values will not be checked.")
        return None
    if rules is None:
        logger.warning(f"Custom field rules file {path} not found.")
    return rules


def _load_workflow_rules(path: str | None) -> WorkflowRules | None:
    if not path:
        return None
    try:
        rules = WorkflowRules.load(path)
    except RuleFileError as e:
        logger.warning(f"{e}. Status transitions will not be checked.")
        return None
    if rules is None:
        logger.warning(f"Workflow rules file {path} not found.")
    return rules


@asynccontextmanager
async def main_lifespan(app: FastMCP[MainAppContext]) -> AsyncIterator[dict]:
    logger.info("Main Redmine MCP server lifespan starting...")

    base_config: RedmineConfig | None = None
    if os.getenv("REDMINE_URL"):
        try:
            base_config = RedmineConfig.from_env()
            logger.info(
                f"Redmine configuration loaded ({base_config.url}). "
                f"Server API key: {'set' if base_config.is_auth_configured else 'not set, per-request keys only'}."
            )
        except ValueError as e:
            logger.error(f"Failed to load Redmine configuration: {e}")
    else:
        logger.warning("REDMINE_URL is not set; Redmine tools will report a configuration error.")

    app_context = MainAppContext(
        base_config=base_config,
        field_rules=_load_field_rules(base_config.field_rules_file if base_config else None),
        workflow_rules=_load_workflow_rules(
            base_config.workflow_rules_file if base_config else None
        ),
    )

    try:
        yield {"app_lifespan_context": app_context}
    finally:
        logger.info("Main Redmine MCP server lifespan shutdown complete.")


main_mcp = FastMCP(name="Redmine MCP", lifespan=main_lifespan)
main_mcp.mount(redmine_mcp, prefix="redmine")


@main_mcp.custom_route("/healthz", methods=["GET"], include_in_schema=False)
async def _health_check_route(request: Request) -> JSONResponse:
    return await health_check(request)
