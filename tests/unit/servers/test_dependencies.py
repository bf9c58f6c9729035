"""Tests for the per-caller Redmine session provider."""

from unittest.mock import MagicMock, patch

import pytest
from fastmcp import Context

from mcp_redmine.exceptions import ConfigurationError
from mcp_redmine.models.redmine import CustomFieldRule
from mcp_redmine.redmine import CustomFieldRules, WorkflowRules
from mcp_redmine.redmine.config import RedmineConfig
from mcp_redmine.servers.context import MainAppContext
from mcp_redmine.servers.dependencies import get_redmine_session, session_cache


@pytest.fixture(autouse=True)
def clear_session_cache():
    session_cache.clear()
    yield
    session_cache.clear()


@pytest.fixture
def no_http_request():
    with patch(
        "mcp_redmine.servers.dependencies.get_http_request",
        side_effect=RuntimeError("No active HTTP request found."),
    ):
        yield


def make_context(lifespan_context):
    ctx = MagicMock(spec=Context)
    ctx.request_context = MagicMock()
    ctx.request_context.lifespan_context = lifespan_context
    return ctx


def make_request(headers):
    request = MagicMock()
    request.headers = headers
    return request


@pytest.fixture
def app_context():
    return MainAppContext(
        base_config=RedmineConfig(url="https://redmine.example.com", api_key="server-key"),
        field_rules=CustomFieldRules({"1": CustomFieldRule(name="Area", values=["A"])}),
    )


@pytest.mark.anyio
async def test_uses_server_key(app_context, no_http_request):
    ctx = make_context({"app_lifespan_context": app_context})

    session = await get_redmine_session(ctx)

    assert session.fetcher.config.api_key == "server-key"
    assert session.resolver.fetcher is session.fetcher
    assert session.field_rules is app_context.field_rules
    assert session.workflow_rules == WorkflowRules()


@pytest.mark.anyio
async def test_accepts_bare_app_context(app_context, no_http_request):
    session = await get_redmine_session(make_context(app_context))
    assert session.fetcher.config.url == "https://redmine.example.com"


@pytest.mark.anyio
async def test_session_is_cached_per_key(app_context, no_http_request):
    ctx = make_context({"app_lifespan_context": app_context})

    first = await get_redmine_session(ctx)
    second = await get_redmine_session(ctx)

    assert first.resolver is second.resolver
    assert len(session_cache) == 1
    # The raw key is never used as the cache key
    assert "server-key" not in session_cache


@pytest.mark.anyio
async def test_request_header_overrides_server_key(app_context):
    ctx = make_context({"app_lifespan_context": app_context})

    with patch(
        "mcp_redmine.servers.dependencies.get_http_request",
        return_value=make_request({"X-Redmine-API-Key": "caller-key"}),
    ):
        caller = await get_redmine_session(ctx)

    with patch(
        "mcp_redmine.servers.dependencies.get_http_request",
        return_value=make_request({}),
    ):
        server = await get_redmine_session(ctx)

    assert caller.fetcher.config.api_key == "caller-key"
    assert server.fetcher.config.api_key == "server-key"
    assert caller.resolver is not server.resolver
    assert app_context.base_config.api_key == "server-key"


@pytest.mark.anyio
async def test_per_request_key_without_server_key():
    app_context = MainAppContext(
        base_config=RedmineConfig(url="https://redmine.example.com")
    )
    ctx = make_context({"app_lifespan_context": app_context})

    with patch(
        "mcp_redmine.servers.dependencies.get_http_request",
        return_value=make_request({"X-Redmine-API-Key": " caller-key "}),
    ):
        session = await get_redmine_session(ctx)

    assert session.fetcher.config.api_key == "caller-key"


@pytest.mark.anyio
async def test_missing_key(no_http_request):
    app_context = MainAppContext(
        base_config=RedmineConfig(url="https://redmine.example.com")
    )
    with pytest.raises(ConfigurationError) as excinfo:
        await get_redmine_session(make_context({"app_lifespan_context": app_context}))
    assert "REDMINE_API_KEY" in str(excinfo.value)


@pytest.mark.anyio
@pytest.mark.parametrize(
    "lifespan_context",
    [{"app_lifespan_context": MainAppContext()}, {}, None],
)
async def test_not_configured(lifespan_context, no_http_request):
    with pytest.raises(ConfigurationError) as excinfo:
        await get_redmine_session(make_context(lifespan_context))
    assert "REDMINE_URL" in str(excinfo.value)
