import logging
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar, cast

import requests
from requests.exceptions import HTTPError

from mcp_redmine.exceptions import RedmineAuthenticationError, UpstreamError

logger = logging.getLogger("mcp-redmine.utils.decorators")

F = TypeVar("F", bound=Callable[..., Any])


def handle_redmine_api_errors(service_name: str = "Redmine API") -> Callable[[F], F]:
    """
    Decorator mapping ``requests`` failures to the upstream error kinds.

    HTTP 401/403 become ``RedmineAuthenticationError``; any other HTTP,
    network or payload-decoding failure becomes ``UpstreamError``. Nothing is
    retried.

    Args:
        service_name: Name of the service for error messages.
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            operation_name = getattr(func, "__name__", "API operation")
            try:
                return func(self, *args, **kwargs)
            except HTTPError as http_err:
                status_code = (
                    http_err.response.status_code
                    if http_err.response is not None
                    else None
                )
                if status_code in (401, 403):
                    error_msg = (
                        f"Authentication failed for {service_name} ({status_code}) "
                        f"during {operation_name}. The API key may be invalid or "
                        "lack the required privileges."
                    )
                    logger.warning(error_msg)
                    raise RedmineAuthenticationError(error_msg, status_code) from http_err
                logger.error(f"HTTP error during {operation_name}: {http_err}")
                raise UpstreamError(
                    f"{service_name} error during {operation_name}: {http_err}",
                    status_code,
                ) from http_err
            except requests.RequestException as e:
                logger.error(f"Network error during {operation_name}: {str(e)}")
                raise UpstreamError(
                    f"{service_name} request failed during {operation_name}: {e}"
                ) from e
            except (ValueError, TypeError, KeyError) as e:
                logger.error(f"Error processing {operation_name} results: {str(e)}")
                raise UpstreamError(
                    f"Unexpected {service_name} response during {operation_name}: {e}"
                ) from e

        return cast(F, wrapper)

    return decorator
