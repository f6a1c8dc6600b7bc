"""
Base API client for the metadata, indexer and debrid providers
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import requests

from .errors import ConfigurationError, ContentError, TransientProviderError
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class BaseApiClient(ABC):
    """Shared session handling and error mapping for provider clients"""

    provider_name = "provider"

    def __init__(
        self,
        url: str,
        headers: dict | None = None,
        timeout: float = 30,
        retry: RetryPolicy | None = None,
    ):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.retry = retry or RetryPolicy()
        self.session = requests.Session()
        if headers:
            self.session.headers.update(headers)

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """Perform one request and map failures onto the error taxonomy"""
        url = f"{self.url}/{endpoint.lstrip('/')}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.Timeout, requests.ConnectionError) as e:
            raise TransientProviderError(f"{self.provider_name} unreachable: {e}") from e

        status = response.status_code
        if status in (401, 403):
            raise ConfigurationError(
                f"{self.provider_name} rejected the credentials (HTTP {status})"
            )
        if status == 429 or status >= 500:
            raise TransientProviderError(
                f"{self.provider_name} answered HTTP {status}", status_code=status
            )
        if status >= 400:
            raise ContentError(f"{self.provider_name} answered HTTP {status} for {endpoint}")
        return response

    def _call(self, method: str, endpoint: str, **kwargs) -> Any:
        """Request with retries, returning the decoded JSON body (None when empty)"""
        response = self.retry.call(
            self._request,
            method,
            endpoint,
            description=f"{self.provider_name} {method} {endpoint}",
            **kwargs,
        )
        if not response.content:
            return None
        return response.json()

    def _get(self, endpoint: str, params: dict | None = None) -> Any:
        """Perform a GET request to the API"""
        return self._call("GET", endpoint, params=params)

    def _post(self, endpoint: str, data: dict | None = None) -> Any:
        """Perform a form-encoded POST request to the API"""
        return self._call("POST", endpoint, data=data)

    @abstractmethod
    def test_connection(self) -> bool:
        """Check that the provider is reachable and accepts the credentials"""
        pass
