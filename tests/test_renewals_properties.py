"""
Property-based tests for the renewals fetch and the RenewalsClient facade.
"""

import asyncio
import re

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from renewal_checker.exceptions import (
    TableNotFoundError,
    UnexpectedStatusError,
    UnsupportedContentTypeError,
)
from renewal_checker.html_api import RenewalsClient
from renewal_checker.models import RenewalRecord, RowError, Session
from renewal_checker.renewals import fetch_renewals
from renewal_checker.transport import Transport


BASE_URL = "http://freenom.test"
RENEWALS_URL = BASE_URL + "/domains.php?a=renewals"
SESSION_COOKIE = "WHMCSZ=session;WHMCSUser=test"

RENEWALS_PAGE = """<!DOCTYPE html>
<html><body>
  <table>
    <thead><tr><th>Domain</th><th>Status</th><th>Days Until Expiry</th><th></th><th></th></tr></thead>
    <tbody>
      <tr><td>test1.tk</td><td>Active</td><td>14 Days</td><td>Renewable</td>
          <td><a href="domains.php?a=renewdomain&amp;domain=111">Renew This Domain</a></td></tr>
      <tr><td>test2.tk</td><td>Active</td><td>28 Days</td><td>Minimum Advance Renewal is 14 Days</td>
          <td><a href="domains.php?a=renewdomain&amp;domain=112">Renew This Domain</a></td></tr>
      <tr><td></td><td>Active</td><td>3 Days</td><td>Renewable</td>
          <td><a href="domains.php?a=renewdomain&amp;domain=113">Renew This Domain</a></td></tr>
    </tbody>
  </table>
</body></html>"""

LOGIN_FORM = """<form method="post" action="/dologin.php">
  <input type="hidden" name="token" value="t" />
  <input type="text" name="username" />
  <input type="password" name="password" />
</form>"""


def run_async(coro):
    """Helper to run async code in tests."""
    return asyncio.run(coro)


def fetch(handler, url: str = RENEWALS_URL):
    async def run():
        async with Transport(transport=httpx.MockTransport(handler)) as transport:
            return await fetch_renewals(
                transport, url, headers={"User-Agent": "Mozilla/5.0", "Cookie": SESSION_COOKIE},
            )

    return run_async(run())


def renewals_server(request: httpx.Request) -> httpx.Response:
    if request.headers.get("cookie") != SESSION_COOKIE:
        return httpx.Response(302, headers={"location": BASE_URL})
    return httpx.Response(200, html=RENEWALS_PAGE)


EXPECTED_ROWS = [
    RenewalRecord(
        id=111,
        name="test1.tk",
        status="Active",
        days_left=14,
        renew_url=BASE_URL + "/domains.php?a=renewdomain&domain=111",
    ),
    RenewalRecord(
        id=112,
        name="test2.tk",
        status="Active",
        days_left=28,
        renew_url=BASE_URL + "/domains.php?a=renewdomain&domain=112",
        min_renewal_days=14,
    ),
    RowError(error='"name" property not detected in cell 0, row 2'),
]


class TestFetchRenewalsProperty:
    """The renewals page is fetched once and parsed into rows."""

    def test_success(self) -> None:
        assert fetch(renewals_server) == EXPECTED_ROWS

    def test_redirect_means_failure(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(302, headers={"location": BASE_URL})

        with pytest.raises(UnexpectedStatusError) as exc_info:
            fetch(handler)

        assert len(calls) == 1
        assert re.search(r"request [^\s]+ failed", exc_info.value.message)
        assert exc_info.value.details["location"] == BASE_URL

    @given(status=st.sampled_from([400, 401, 403, 404, 500, 503]))
    @settings(max_examples=10)
    def test_error_status(self, status: int) -> None:
        with pytest.raises(UnexpectedStatusError) as exc_info:
            fetch(lambda request: httpx.Response(status))

        assert exc_info.value.message == (
            f"request {RENEWALS_URL} failed with status code {status}"
        )

    def test_unsupported_content_type(self) -> None:
        with pytest.raises(UnsupportedContentTypeError, match="unsupported content-type"):
            fetch(lambda request: httpx.Response(200, text="Unknown page"))

    def test_table_not_found(self) -> None:
        with pytest.raises(TableNotFoundError):
            fetch(lambda request: httpx.Response(200, html="<p>Maintenance</p>"))


class TestRenewalsClientProperty:
    """The client runs login and fetch over one transport."""

    def test_login_then_fetch(self) -> None:
        user_agents = set()

        def handler(request: httpx.Request) -> httpx.Response:
            user_agents.add(request.headers.get("user-agent"))
            if request.url.path == "/clientarea.php":
                return httpx.Response(
                    200, html=LOGIN_FORM, headers={"set-cookie": "WHMCSZ=init"},
                )
            if request.url.path == "/dologin.php":
                return httpx.Response(
                    302,
                    headers=[
                        ("location", "/clientarea.php?loggedin"),
                        ("set-cookie", "WHMCSZ=session"),
                        ("set-cookie", "WHMCSUser=test"),
                    ],
                )
            return renewals_server(request)

        async def run():
            async with RenewalsClient(
                user_agent="Mozilla/5.0",
                http_transport=httpx.MockTransport(handler),
            ) as client:
                session = await client.login(BASE_URL + "/clientarea.php", "alice", "secret")
                rows = await client.fetch_renewals(RENEWALS_URL, session)
                return session, rows

        session, rows = run_async(run())

        assert session == Session(
            address=BASE_URL + "/clientarea.php?loggedin", cookies=SESSION_COOKIE,
        )
        assert rows == EXPECTED_ROWS
        assert user_agents == {"Mozilla/5.0"}

    def test_injected_transport_is_not_closed(self) -> None:
        async def run():
            transport = Transport(transport=httpx.MockTransport(renewals_server))
            async with RenewalsClient(transport=transport) as client:
                assert client.transport is transport
            rows = await fetch_renewals(
                transport, RENEWALS_URL, headers={"Cookie": SESSION_COOKIE},
            )
            await transport.close()
            return rows

        assert run_async(run()) == EXPECTED_ROWS

    @given(count=st.integers(min_value=2, max_value=5))
    @settings(max_examples=5)
    def test_independent_clients_run_concurrently(self, count: int) -> None:
        async def one():
            async with RenewalsClient(http_transport=httpx.MockTransport(renewals_server)) as client:
                return await client.fetch_renewals(
                    RENEWALS_URL, Session(address=BASE_URL, cookies=SESSION_COOKIE),
                )

        async def run():
            return await asyncio.gather(*(one() for _ in range(count)))

        results = run_async(run())

        assert results == [EXPECTED_ROWS] * count
