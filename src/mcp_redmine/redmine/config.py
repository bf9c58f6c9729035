"""Configuration module for Redmine API interactions."""

import dataclasses
import os
from dataclasses import dataclass

from ..utils.env import get_env_int, is_env_ssl_verify
from .constants import DEFAULT_TIMEOUT, DEFAULT_WORKFLOW_SAMPLE_SIZE


@dataclass
class RedmineConfig:
    """Redmine API configuration.

    Redmine authenticates every request with a per-user API key sent in the
    ``X-Redmine-API-Key`` header. In HTTP transports the key may be omitted
    here and supplied per caller instead.
    """

    url: str  # Base URL for Redmine
    api_key: str | None = None  # API key of the calling user
    ssl_verify: bool = True  # Whether to verify SSL certificates
    timeout: int = DEFAULT_TIMEOUT  # Request timeout in seconds
    field_rules_file: str | None = None  # Curated custom field rules (JSON)
    workflow_rules_file: str | None = None  # Curated workflow rules (JSON)
    workflow_sample_size: int = DEFAULT_WORKFLOW_SAMPLE_SIZE  # Issues mined per tracker

    def __post_init__(self) -> None:
        self.url = self.url.rstrip("/")

    @property
    def is_auth_configured(self) -> bool:
        """Check whether an API key is available for requests.

        Returns:
            True if an API key is set, False otherwise
        """
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "RedmineConfig":
        """Create configuration from environment variables.

        Returns:
            RedmineConfig with values from environment variables

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        url = cls.get_url()

        return cls(
            url=url,
            api_key=os.getenv("REDMINE_API_KEY") or None,
            ssl_verify=is_env_ssl_verify("REDMINE_SSL_VERIFY"),
            timeout=get_env_int("REDMINE_TIMEOUT", DEFAULT_TIMEOUT),
            field_rules_file=os.getenv("REDMINE_FIELD_RULES_FILE") or None,
            workflow_rules_file=os.getenv("REDMINE_WORKFLOW_RULES_FILE") or None,
            workflow_sample_size=get_env_int(
                "REDMINE_WORKFLOW_SAMPLE_SIZE", DEFAULT_WORKFLOW_SAMPLE_SIZE
            ),
        )

    def for_api_key(self, api_key: str) -> "RedmineConfig":
        """Derive a per-caller configuration that differs only in its API key.

        Args:
            api_key: The caller's Redmine API key

        Returns:
            A new RedmineConfig sharing every other setting with this one
        """
        if not api_key:
            raise ValueError("A per-request configuration requires an API key.")
        return dataclasses.replace(self, api_key=api_key)

    @staticmethod
    def get_url() -> str:
        """Get the Redmine URL from environment variables.

        Returns:
            The Redmine URL
        """
        url = os.getenv("REDMINE_URL")
        if not url:
            error_msg = "Missing required REDMINE_URL environment variable"
            raise ValueError(error_msg)
        return url
