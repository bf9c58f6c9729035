"""Tests for the Redmine configuration module."""

import os
from unittest.mock import patch

import pytest

from mcp_redmine.redmine.config import RedmineConfig


class TestRedmineConfig:
    """Test class for Redmine configuration."""

    def test_config_init_strips_trailing_slash(self):
        config = RedmineConfig(url="https://redmine.example.com/", api_key="k")

        assert config.url == "https://redmine.example.com"
        assert config.ssl_verify is True
        assert config.timeout == 30
        assert config.workflow_sample_size == 50
        assert config.is_auth_configured

    def test_without_api_key_is_not_authenticated(self):
        assert not RedmineConfig(url="https://redmine.example.com").is_auth_configured

    @patch.dict(
        os.environ,
        {
            "REDMINE_URL": "https://redmine.example.com/",
            "REDMINE_API_KEY": "secret",
            "REDMINE_SSL_VERIFY": "false",
            "REDMINE_TIMEOUT": "12",
            "REDMINE_FIELD_RULES_FILE": "/etc/redmine/fields.json",
            "REDMINE_WORKFLOW_RULES_FILE": "/etc/redmine/workflow.json",
            "REDMINE_WORKFLOW_SAMPLE_SIZE": "20",
        },
    )
    def test_from_env_with_all_variables(self):
        config = RedmineConfig.from_env()

        assert config.url == "https://redmine.example.com"
        assert config.api_key == "secret"
        assert config.ssl_verify is False
        assert config.timeout == 12
        assert config.field_rules_file == "/etc/redmine/fields.json"
        assert config.workflow_rules_file == "/etc/redmine/workflow.json"
        assert config.workflow_sample_size == 20

    @patch.dict(os.environ, {"REDMINE_URL": "https://redmine.example.com"})
    def test_from_env_defaults(self):
        config = RedmineConfig.from_env()

        assert config.api_key is None
        assert config.ssl_verify is True
        assert config.field_rules_file is None
        assert config.workflow_rules_file is None

    def test_from_env_missing_url(self):
        with pytest.raises(ValueError) as excinfo:
            RedmineConfig.from_env()

        assert "REDMINE_URL" in str(excinfo.value)

    @pytest.mark.parametrize("value", ["abc", "0", "-5"])
    def test_from_env_invalid_timeout(self, monkeypatch, value):
        monkeypatch.setenv("REDMINE_URL", "https://redmine.example.com")
        monkeypatch.setenv("REDMINE_TIMEOUT", value)

        with pytest.raises(ValueError) as excinfo:
            RedmineConfig.from_env()

        assert "REDMINE_TIMEOUT" in str(excinfo.value)

    def test_for_api_key(self, redmine_config):
        derived = redmine_config.for_api_key("caller-key")

        assert derived.api_key == "caller-key"
        assert derived.url == redmine_config.url
        assert redmine_config.api_key == "test-key"

    def test_for_api_key_requires_key(self, redmine_config):
        with pytest.raises(ValueError):
            redmine_config.for_api_key("")
