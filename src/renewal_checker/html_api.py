"""
Client facade over the login handshake and the renewals fetch.

RenewalsClient owns a single Transport for its lifetime and exposes the two
operations the expiration check needs: ``login`` and ``fetch_renewals``.
"""

from typing import Mapping, Optional

import httpx

from .login import login as login_handshake
from .models import RenewalRow, Session
from .renewals import fetch_renewals as fetch_renewal_rows
from .session_walker import DEFAULT_MAX_HOPS
from .table_extractor import DEFAULT_ID_PARAM, DEFAULT_LOCATOR_LABEL
from .transport import Transport


class RenewalsClient:
    """
    Async client for an HTML-only domain registrar account.

    Independent clients share nothing, so several accounts can be checked
    concurrently, each with its own client.
    """

    def __init__(
        self,
        user_agent: Optional[str] = None,
        timeout: float = 15.0,
        max_hops: int = DEFAULT_MAX_HOPS,
        transport: Optional[Transport] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            user_agent: User-Agent header sent with every request
            timeout: Request timeout in seconds
            max_hops: Redirect budget for reaching the login page
            transport: Transport to use instead of creating one
            http_transport: httpx transport for a newly created Transport
        """
        self._user_agent = user_agent
        self._max_hops = max_hops
        self._owns_transport = transport is None
        self._transport = transport or Transport(timeout=timeout, transport=http_transport)

    async def __aenter__(self) -> "RenewalsClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    @property
    def transport(self) -> Transport:
        return self._transport

    def _headers(self, extra: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        headers = {}
        if self._user_agent:
            headers["User-Agent"] = self._user_agent
        headers.update(extra or {})
        return headers

    async def login(self, url: str, username: str, password: str) -> Session:
        """Log in and return the authenticated session."""
        return await login_handshake(
            self._transport,
            url,
            username,
            password,
            headers=self._headers(),
            max_hops=self._max_hops,
        )

    async def fetch_renewals(
        self,
        url: str,
        session: Session,
        label: str = DEFAULT_LOCATOR_LABEL,
        id_param: str = DEFAULT_ID_PARAM,
    ) -> list[RenewalRow]:
        """Fetch the renewals table using the session cookie."""
        return await fetch_renewal_rows(
            self._transport,
            url,
            headers=self._headers({"Cookie": session.cookies}),
            label=label,
            id_param=id_param,
        )

    async def close(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self._transport.close()
