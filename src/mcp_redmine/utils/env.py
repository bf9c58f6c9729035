"""Environment variable utility functions for MCP Redmine."""

import os


def is_env_ssl_verify(env_var_name: str, default: str = "true") -> bool:
    """Check SSL verification setting with secure defaults.

    Defaults to true unless explicitly set to false values.

    Args:
        env_var_name: Name of the environment variable to check
        default: Default value if environment variable is not set

    Returns:
        True unless explicitly set to false values
    """
    return os.getenv(env_var_name, default).lower() not in ("false", "0", "no")


def get_env_int(env_var_name: str, default: int) -> int:
    """Read a positive integer from the environment.

    Args:
        env_var_name: Name of the environment variable to read
        default: Value used when the variable is unset or empty

    Returns:
        The parsed integer

    Raises:
        ValueError: If the variable is set but is not a positive integer
    """
    raw = os.getenv(env_var_name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{env_var_name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{env_var_name} must be positive, got {value}")
    return value
