"""
Shared HTTP plumbing for REST capability providers.
"""

import logging
from typing import Any

import httpx

from .errors import ProviderError, ProviderNotConfigured

logger = logging.getLogger("videodub")

USER_AGENT = "videodub/0.2"


class HttpProvider:
    """Base for providers that talk to a REST API with an API key."""

    name = "http"

    def __init__(
        self,
        api_key: str | None,
        *,
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def require_key(self) -> str:
        if not self.api_key:
            raise ProviderNotConfigured(self.name)
        return self.api_key

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, turning transport failures into ProviderError."""
        headers = {"User-Agent": USER_AGENT, **kwargs.pop("headers", {})}
        try:
            if self._client is not None:
                return self._client.request(method, url, headers=headers, **kwargs)
            with httpx.Client(follow_redirects=True, timeout=self.timeout) as client:
                return client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

    def check(self, response: httpx.Response, what: str) -> httpx.Response:
        if response.status_code != 200:
            logger.error("%s API error %d: %s", self.name, response.status_code, response.text[:300])
            raise ProviderError(
                self.name, f"{what} failed: {response.status_code}", response.status_code
            )
        return response

    def json(self, response: httpx.Response, what: str) -> dict:
        self.check(response, what)
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(self.name, f"{what} returned malformed JSON") from e
        if not isinstance(data, dict):
            raise ProviderError(self.name, f"{what} returned an unexpected payload")
        return data
