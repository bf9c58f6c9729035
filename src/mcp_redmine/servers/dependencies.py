"""Dependency provider for per-caller Redmine sessions.

Provides get_redmine_session for use in tool functions.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from cachetools import TTLCache
from fastmcp import Context
from fastmcp.server.dependencies import get_http_request
from starlette.requests import Request

from mcp_redmine.exceptions import ConfigurationError
from mcp_redmine.redmine import (
    CustomFieldRules,
    EntityResolver,
    RedmineFetcher,
    WorkflowRules,
)
from mcp_redmine.redmine.constants import API_KEY_HEADER
from mcp_redmine.servers.context import MainAppContext

logger = logging.getLogger("mcp-redmine.servers.dependencies")

SESSION_CACHE_SIZE = 100
SESSION_TTL_SECONDS = 300


@dataclass
class RedmineSession:
    """Everything a tool needs to serve one caller."""

    fetcher: RedmineFetcher
    resolver: EntityResolver
    field_rules: CustomFieldRules
    workflow_rules: WorkflowRules


# Keyed by a hash of the API key so directory caches never cross identities.
session_cache: TTLCache[str, tuple[RedmineFetcher, EntityResolver]] = TTLCache(
    maxsize=SESSION_CACHE_SIZE, ttl=SESSION_TTL_SECONDS
)


def _get_app_context(ctx: Context) -> MainAppContext | None:
    lifespan_ctx = ctx.request_context.lifespan_context  # type: ignore
    if isinstance(lifespan_ctx, MainAppContext):
        return lifespan_ctx
    if isinstance(lifespan_ctx, dict):
        return lifespan_ctx.get("app_lifespan_context")
    return None


def _request_api_key() -> str | None:
    try:
        request: Request = get_http_request()
    except RuntimeError:
        logger.debug("Not in an HTTP request context. Using the server API key.")
        return None
    api_key = (request.headers.get(API_KEY_HEADER) or "").strip()
    return api_key or None


async def get_redmine_session(ctx: Context) -> RedmineSession:
    """Returns the Redmine session for the caller of the current request.

    In HTTP transports a caller may send its own key in the
    ``X-Redmine-API-Key`` header; otherwise ``REDMINE_API_KEY`` is used.

    Raises:
        ConfigurationError: If Redmine is not configured or no API key is available
    """
    app_ctx = _get_app_context(ctx)
    if app_ctx is None or app_ctx.base_config is None:
        raise ConfigurationError(
            "Redmine is not configured. Set REDMINE_URL before starting the server."
        )

    config = app_ctx.base_config
    request_key = _request_api_key()
    if request_key:
        config = config.for_api_key(request_key)
    if not config.api_key:
        raise ConfigurationError(
            f"No Redmine API key: set REDMINE_API_KEY or send the {API_KEY_HEADER} header."
        )

    cache_key = hashlib.sha256(config.api_key.encode("utf-8")).hexdigest()
    cached = session_cache.get(cache_key)
    if cached is None:
        logger.debug(f"Creating Redmine session (key hash {cache_key[:8]})")
        fetcher = RedmineFetcher(config=config)
        cached = (fetcher, EntityResolver(fetcher))
        session_cache[cache_key] = cached

    fetcher, resolver = cached
    return RedmineSession(
        fetcher=fetcher,
        resolver=resolver,
        field_rules=app_ctx.field_rules or CustomFieldRules(),
        workflow_rules=app_ctx.workflow_rules or WorkflowRules(),
    )
