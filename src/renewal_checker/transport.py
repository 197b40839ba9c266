"""
HTTP transport for the renewal checker.

This module provides a thin async wrapper around httpx that issues exactly
one request per call and never follows redirects on its own: walking a
redirect chain (and carrying cookies along it) is the caller's job.

Transport-level failures (DNS, refused connection, reset, timeout) are raised
as TransportFailureError. A response that was fetched but is not a 2xx is not
an exception; it is returned with its ResponseKind so the caller can decide.
"""

import logging
import math
from typing import Mapping, Optional, Union

import httpx

from .enums import ResponseKind
from .exceptions import TransportFailureError
from .models import HttpResponse

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
SUCCESS_STATUSES = frozenset({304})


def is_redirect(status_code: Optional[Union[int, float]]) -> bool:
    """
    Check whether a status code is an HTTP redirect.

    Args:
        status_code: The status code, possibly None or NaN

    Returns:
        True only for 301, 302, 303, 307 and 308
    """
    if status_code is None or isinstance(status_code, bool):
        return False
    if isinstance(status_code, float):
        if math.isnan(status_code) or not status_code.is_integer():
            return False
        status_code = int(status_code)
    if not isinstance(status_code, int):
        return False
    return status_code in REDIRECT_STATUSES


def classify_status(status_code: Optional[int]) -> ResponseKind:
    """Classify a status code as success, redirect or error."""
    if is_redirect(status_code):
        return ResponseKind.REDIRECT
    if isinstance(status_code, int) and (
        200 <= status_code < 300 or status_code in SUCCESS_STATUSES
    ):
        return ResponseKind.SUCCESS
    return ResponseKind.ERROR


class Transport:
    """
    Async single-request HTTP transport.

    The underlying httpx client is created with ``follow_redirects=False``.
    A custom ``httpx.AsyncBaseTransport`` may be injected (for example
    ``httpx.MockTransport`` in tests); the scheme of each URL selects between
    plain and TLS connections.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        verify: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            timeout: Request timeout in seconds
            verify: Verify TLS certificates
            transport: Optional httpx transport to send requests through
        """
        self._timeout = timeout
        self._verify = verify
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "Transport":
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=self._verify,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=False,
                transport=self._transport,
            )
        return self._client

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[Union[str, bytes]] = None,
    ) -> HttpResponse:
        """
        Issue a single HTTP request and read the whole body.

        Args:
            method: HTTP method, sent upper-cased
            url: Absolute http(s) URL
            headers: Request headers, sent as given
            body: Optional raw request body

        Returns:
            HttpResponse with status, headers, body text and classification

        Raises:
            TransportFailureError: If the request could not be completed
        """
        client = self._ensure_client()
        request = client.build_request(
            method.upper(),
            url,
            headers=dict(headers or {}),
            content=body,
        )
        logger.debug("%s %s", request.method, url)

        try:
            response = await client.send(request, stream=True)
            try:
                await response.aread()
            finally:
                await response.aclose()
        except httpx.TransportError as e:
            raise TransportFailureError(
                f"{request.method} {url} failed: {type(e).__name__}: {e}",
                details={"method": request.method, "url": url, "error_type": type(e).__name__},
            ) from e

        logger.debug("%s %s -> %s", request.method, url, response.status_code)

        return HttpResponse(
            status_code=response.status_code,
            headers=response.headers,
            url=str(response.url),
            text=response.text if response.content else "",
            kind=classify_status(response.status_code),
        )

    async def get(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResponse:
        """Issue a GET request."""
        return await self.request("GET", url, headers=headers)

    async def post(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[Union[str, bytes]] = None,
    ) -> HttpResponse:
        """Issue a POST request with a raw body."""
        return await self.request("POST", url, headers=headers, body=body)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
