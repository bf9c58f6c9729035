"""Base client module for Redmine API interactions."""

import logging
from typing import Any

import requests

from .config import RedmineConfig
from .constants import API_KEY_HEADER, PAGE_SIZE

logger = logging.getLogger("mcp-redmine.client")


class RedmineClient:
    """Base client for Redmine REST API interactions.

    Every call is a synchronous, blocking request. Failures surface as
    ``requests`` exceptions here; the public mixin methods translate them into
    ``UpstreamError`` through ``handle_redmine_api_errors``.
    """

    def __init__(self, config: RedmineConfig | None = None) -> None:
        """Initialize the Redmine client with a given configuration.

        Args:
            config: Redmine configuration object. If None, will be loaded from environment variables.
        """
        if config is None:
            self.config = RedmineConfig.from_env()
        else:
            self.config = config

        self.session = requests.Session()
        self.session.headers.update(
            {"Accept": "application/json", "Content-Type": "application/json"}
        )
        if self.config.api_key:
            self.session.headers[API_KEY_HEADER] = self.config.api_key
        self.session.verify = self.config.ssl_verify

        if not self.config.ssl_verify:
            logger.warning(
                f"SSL verification disabled for Redmine ({self.config.url}). "
                "This is insecure and should only be used in testing environments."
            )

    def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Perform a GET request and return the decoded JSON body.

        Args:
            path: API path starting with '/', e.g. '/trackers.json'
            params: Optional query parameters

        Returns:
            The decoded JSON object

        Raises:
            requests.HTTPError: On HTTP status >= 400
            ValueError: If the body is not a JSON object
        """
        url = f"{self.config.url}{path}"
        logger.debug(f"GET {path} params={params}")
        response = self.session.get(url, params=params, timeout=self.config.timeout)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object from {path}, got {type(data).__name__}")
        return data

    def _get_paginated(
        self,
        path: str,
        key: str,
        limit: int,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Collect up to ``limit`` items from an offset-paginated list endpoint.

        Args:
            path: API path of the list endpoint
            key: Name of the list in the response body (e.g. 'projects')
            limit: Maximum number of items to return
            params: Extra query parameters

        Returns:
            The collected raw items
        """
        items: list[dict[str, Any]] = []
        offset = 0
        while len(items) < limit:
            page_params = dict(params or {})
            page_params["limit"] = min(PAGE_SIZE, limit - len(items))
            page_params["offset"] = offset
            data = self._get(path, params=page_params)
            page = data.get(key) or []
            items.extend(page)

            total = data.get("total_count")
            if not page or (total is not None and offset + len(page) >= total):
                break
            offset += len(page)

        return items[:limit]
