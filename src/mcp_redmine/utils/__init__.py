"""
Utility functions for the MCP Redmine integration.
"""

from .decorators import handle_redmine_api_errors
from .env import get_env_int, is_env_ssl_verify
from .ids import parse_id, require_id

__all__ = [
    "get_env_int",
    "handle_redmine_api_errors",
    "is_env_ssl_verify",
    "parse_id",
    "require_id",
]
