"""
Test fixtures for Redmine unit tests.

The resolver and the rule engines only talk to the data source through the
``RedmineFetcher`` interface, so most tests run against a ``MagicMock`` built on
that class with canned directory data.
"""

import pytest

from mcp_redmine.redmine.config import RedmineConfig
from tests.utils.mocks import make_mock_fetcher


@pytest.fixture
def redmine_config():
    """A minimal configuration pointing at a fake Redmine."""
    return RedmineConfig(url="https://redmine.example.com", api_key="test-key")


@pytest.fixture
def mock_fetcher():
    return make_mock_fetcher()
