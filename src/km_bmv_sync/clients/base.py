"""Base HTTP client for the remote services.

Both collaborators (BMV and Konzertmeister) are JSON-over-HTTP APIs. This
module holds the shared plumbing: the `httpx.AsyncClient` lifecycle, default
headers, the error types and the retry policy for idempotent reads.

## Retry Policy

Reads (`GET` requests and Konzertmeister page requests) are retried on
timeouts and network errors, 3 attempts with exponential backoff.
Login and submit requests are never retried: a submit that timed out may
still have been applied on the server, and retrying would duplicate it.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class ClientError(Exception):
    """Base exception for remote service errors."""

    def __init__(
        self,
        message: str,
        service: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.response_body = response_body


class AuthenticationError(ClientError):
    """Raised when a request needs a session that was never established."""

    pass


class ServiceClient:
    """Shared base for the remote service clients.

    Subclasses set `name` and pass their base URL. Use as an async context
    manager so the underlying connection pool is closed:

        ```python
        async with BmvClient(base_url, username, password) as bmv:
            ok = await bmv.verify_credentials()
        ```

    A custom `transport` (e.g. `httpx.MockTransport`) can be injected for
    testing.
    """

    name: str = "service"

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        auth: httpx.Auth | tuple[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._auth = auth
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ServiceClient:
        self._get_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client, if open."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                auth=self._auth,
                headers=self._get_default_headers(),
                transport=self._transport,
            )
        return self._client

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def _read(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Perform an idempotent request and return the decoded JSON body.

        Raises:
            ClientError: On HTTP error status or undecodable body
            httpx.HTTPError: On transport errors after retries
        """
        client = self._get_client()
        response = await client.request(method, path, params=params, json=json)

        if response.status_code >= 400:
            raise ClientError(
                f"{method} {path} failed: {response.status_code}",
                service=self.name,
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ClientError(
                f"Failed to parse response of {method} {path}: {e}",
                service=self.name,
                status_code=response.status_code,
                response_body=response.text,
            ) from e
