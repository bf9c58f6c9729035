"""Root pytest configuration shared by all test suites."""

import pytest


@pytest.fixture
def anyio_backend():
    """Run async tests on asyncio only."""
    return "asyncio"


@pytest.fixture(autouse=True)
def clean_redmine_env(monkeypatch):
    """Keep host REDMINE_* variables from leaking into tests."""
    for name in (
        "REDMINE_URL",
        "REDMINE_API_KEY",
        "REDMINE_SSL_VERIFY",
        "REDMINE_TIMEOUT",
        "REDMINE_FIELD_RULES_FILE",
        "REDMINE_WORKFLOW_RULES_FILE",
        "REDMINE_WORKFLOW_SAMPLE_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)
