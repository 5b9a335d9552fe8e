"""HTTP transport protocol and the httpx-backed implementation.

The client never talks to the network directly: it hands a fully signed
request to a Transport and gets a TransportResponse back. Timeouts,
connection pooling, TLS and retries are all the transport's business.
"""

import logging
from collections.abc import Mapping
from typing import Protocol

import httpx

from ossclient.errors import TransportError
from ossclient.models import TransportResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class Transport(Protocol):
    """Protocol for sending one HTTP request and returning its response."""

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> TransportResponse:
        """Send a request.

        Args:
            method: HTTP method.
            url: Absolute URL including query string.
            headers: Request headers (already signed).
            body: Optional request body.

        Returns:
            The response; any HTTP status is a valid response.

        Raises:
            TransportError: If no response was received.
        """
        ...


class HttpxTransport:
    """Transport backed by a synchronous httpx.Client.

    Attributes:
        client: The underlying httpx client.
    """

    def __init__(self, client: httpx.Client | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize the transport.

        Args:
            client: An httpx.Client to reuse. One is created if omitted.
            timeout: Timeout in seconds for a created client.
        """
        self._owns_client = client is None
        self.client = client if client is not None else httpx.Client(timeout=timeout)

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> TransportResponse:
        try:
            response = self.client.request(method, url, headers=dict(headers), content=body)
        except httpx.HTTPError as exc:
            logger.debug("Transport failure for %s %s: %s", method, url, exc)
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        headers_out: dict[str, list[str]] = {}
        for name, value in response.headers.multi_items():
            headers_out.setdefault(name.lower(), []).append(value)

        return TransportResponse(
            status_code=response.status_code,
            headers=headers_out,
            body=response.content,
        )

    def close(self) -> None:
        """Close the httpx client if this transport created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "HttpxTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
