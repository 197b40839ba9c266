"""
Property-based tests for the expiration check run.
"""

import asyncio
from io import StringIO
from typing import Optional

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from renewal_checker.checker import (
    ExpirationChecker,
    compose_message,
    create_notification_router,
    split_rows,
)
from renewal_checker.config import (
    AlarmerConfig,
    LoginConfig,
    NotificationConfig,
    RetryConfig,
    SystemConfig,
)
from renewal_checker.enums import LogLevel
from renewal_checker.exceptions import MissingSessionCookieError
from renewal_checker.html_api import RenewalsClient
from renewal_checker.models import RenewalRecord, RowError, Session
from renewal_checker.notifications import NotificationPayload, NotificationRouter
from renewal_checker.run_logger import RunLogger


LOGIN = LoginConfig(
    login_url="http://freenom.test/clientarea.php",
    username="alice",
    password="secret",
    renewals_url="http://freenom.test/domains.php?a=renewals",
    user_agent="Mozilla/5.0",
)


def record(name: str, days_left: int, domain_id: int = 1) -> RenewalRecord:
    return RenewalRecord(
        id=domain_id,
        name=name,
        status="Active",
        days_left=days_left,
        renew_url=f"http://freenom.test/domains.php?a=renewdomain&domain={domain_id}",
    )


def run_async(coro):
    """Helper to run async code in tests."""
    return asyncio.run(coro)


class FakeClient:
    """Client double returning fixed rows, or raising on login."""

    def __init__(self, rows=None, error: Optional[Exception] = None) -> None:
        self._rows = rows or []
        self._error = error
        self.calls: list[tuple] = []

    async def login(self, url: str, username: str, password: str) -> Session:
        self.calls.append(("login", url, username, password))
        if self._error is not None:
            raise self._error
        return Session(address="http://freenom.test/clientarea.php", cookies="S=1")

    async def fetch_renewals(self, url: str, session: Session):
        self.calls.append(("fetch_renewals", url, session.cookies))
        return list(self._rows)


class RecordingChannel:
    """Channel double recording every payload."""

    def __init__(self, name: str = "recording") -> None:
        self._name = name
        self.payloads: list[NotificationPayload] = []

    async def send(self, payload: NotificationPayload) -> bool:
        self.payloads.append(payload)
        return True

    def get_name(self) -> str:
        return self._name


def make_checker(client, min_renewal_days: int = 14, channel=None):
    config = SystemConfig(login=LOGIN, min_renewal_days=min_renewal_days)
    logger = RunLogger(output_stream=StringIO())
    router = None
    if channel is not None:
        router = NotificationRouter(RetryConfig(max_retries=0, base_delay_seconds=0.0), logger)
        router.register_channel(channel)
    return ExpirationChecker(config, client=client, router=router, logger=logger), logger


class TestExpirationReportProperty:
    """Rows are split into errors, expiring and valid domains."""

    def test_documented_run(self) -> None:
        rows = [
            record("test1.tk", 14, 111),
            record("test2.tk", 28, 112),
            RowError(error="Something went wrong"),
            record("test.ml", 3, 113),
        ]
        channel = RecordingChannel()
        checker, logger = make_checker(FakeClient(rows), channel=channel)

        report = run_async(checker.run())

        assert report.success
        assert report.errors == ["Something went wrong"]
        assert [r.name for r in report.expiring] == ["test.ml", "test1.tk"]
        assert [r.name for r in report.valid] == ["test2.tk"]
        assert report.message == (
            "#Domain errors:\n\nSomething went wrong\n\n\n"
            "#Domains are expiring soon:\n\n"
            "test.ml expires within 3 days\ntest1.tk expires within 14 days"
        )
        assert [p.text for p in channel.payloads] == [report.message]
        assert [n.success for n in report.notifications] == [True]

        by_message = {entry.message: entry for entry in logger.entries}
        assert by_message["Domain errors:"].level is LogLevel.ERROR
        assert by_message["Domain errors:"].data == {"errors": ["Something went wrong"]}
        assert by_message["Domains are expiring soon:"].level is LogLevel.WARN
        assert by_message["Domains are expiring soon:"].data == {
            "domains": ["test.ml expires within 3 days", "test1.tk expires within 14 days"],
        }
        assert by_message["Domain expiration days:"].level is LogLevel.INFO
        assert by_message["Domain expiration days:"].data == {
            "domains": ["test2.tk is valid for 28 days"],
        }

    def test_client_receives_configured_credentials(self) -> None:
        client = FakeClient([record("a.tk", 100)])
        checker, _ = make_checker(client)

        run_async(checker.run())

        assert client.calls == [
            ("login", LOGIN.login_url, "alice", "secret"),
            ("fetch_renewals", LOGIN.renewals_url, "S=1"),
        ]

    def test_nothing_to_report_sends_nothing(self) -> None:
        channel = RecordingChannel()
        checker, _ = make_checker(FakeClient([record("a.tk", 100)]), channel=channel)

        report = run_async(checker.run())

        assert report.message is None
        assert report.notifications == []
        assert channel.payloads == []

    @given(
        days=st.lists(st.integers(min_value=0, max_value=400), max_size=20),
        min_days=st.integers(min_value=0, max_value=60),
    )
    @settings(max_examples=100)
    def test_split_partitions_records(self, days: list[int], min_days: int) -> None:
        rows = [record(f"d{i}.tk", d, i + 1) for i, d in enumerate(days)]

        errors, expiring, valid = split_rows(rows, min_days)

        assert errors == []
        assert len(expiring) + len(valid) == len(rows)
        assert all(r.days_left <= min_days for r in expiring)
        assert all(r.days_left > min_days for r in valid)
        assert [r.days_left for r in expiring] == sorted(r.days_left for r in expiring)
        assert valid == [r for r in rows if r.days_left > min_days]

    @given(
        days=st.integers(min_value=0, max_value=100),
        window=st.integers(min_value=0, max_value=100),
        default=st.integers(min_value=0, max_value=100),
    )
    @settings(max_examples=100)
    def test_row_window_overrides_default(self, days: int, window: int, default: int) -> None:
        with_window = record("a.tk", days, 1)
        with_window.min_renewal_days = window
        without_window = record("b.tk", days, 2)

        _, expiring, valid = split_rows([with_window, without_window], default)

        assert (with_window in expiring) == (days <= window)
        assert (without_window in expiring) == (days <= default)
        assert len(expiring) + len(valid) == 2

    def test_documented_row_windows(self) -> None:
        rows = [record("plain.tk", 10, 1), record("windowed.tk", 28, 2)]
        rows[1].min_renewal_days = 30

        _, expiring, valid = split_rows(rows, 7)

        assert [r.name for r in expiring] == ["windowed.tk"]
        assert [r.name for r in valid] == ["plain.tk"]

    @given(errors=st.lists(st.text(min_size=1, max_size=30), min_size=1, max_size=5))
    @settings(max_examples=50)
    def test_errors_only_message(self, errors: list[str]) -> None:
        message = compose_message(errors, [])

        assert message == "#Domain errors:\n\n" + "\n".join(errors)

    def test_empty_message(self) -> None:
        assert compose_message([], []) is None


class TestFatalFailureProperty:
    """Login and fetch failures are logged at fatal level and never raised."""

    def test_login_failure(self) -> None:
        channel = RecordingChannel()
        error = MissingSessionCookieError('login failed: undefined "cookie" in the form page')
        checker, logger = make_checker(FakeClient(error=error), channel=channel)

        report = run_async(checker.run())

        assert not report.success
        assert report.fatal_error == 'login failed: undefined "cookie" in the form page'
        assert channel.payloads == []
        fatal = [e for e in logger.entries if e.level is LogLevel.FATAL]
        assert len(fatal) == 1
        assert fatal[0].data["error_code"] == "missing_session_cookie"

    def test_transport_level_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = RenewalsClient(http_transport=httpx.MockTransport(handler))
        checker, logger = make_checker(client)

        report = run_async(checker.run())

        assert not report.success
        assert "ConnectError" in report.fatal_error


class TestRouterFactoryProperty:
    def test_no_channels(self) -> None:
        assert create_notification_router(SystemConfig(login=LOGIN)) is None

    def test_alarmer_channel(self) -> None:
        config = SystemConfig(
            login=LOGIN,
            notifications=NotificationConfig(alarmer=AlarmerConfig(api_key="k")),
        )

        router = create_notification_router(config)

        assert [c.get_name() for c in router.channels] == ["alarmer"]
