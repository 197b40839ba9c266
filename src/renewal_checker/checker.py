"""
Expiration checker for the renewal checker system.

Coordinates one run: log in, fetch the renewals table, split the rows into
errors, expiring and valid domains, log each group and notify the configured
channels when anything needs attention.
"""

from typing import Optional, Union

from .config import CertificateCheckConfig, SystemConfig
from .enums import LogLevel
from .html_api import RenewalsClient
from .models import CheckReport, RenewalRecord, RenewalRow, RowError
from .notifications import (
    AlarmerChannel,
    EmailChannel,
    NotificationPayload,
    NotificationRouter,
)
from .run_logger import RunLogger

COMPONENT = "ExpirationChecker"
NOTIFICATION_SUBJECT = "Domain expiration check"

ERRORS_TITLE = "Domain errors:"
EXPIRING_TITLE = "Domains are expiring soon:"
VALID_TITLE = "Domain expiration days:"


def create_notification_router(
    config: Union[SystemConfig, CertificateCheckConfig],
    logger: Optional[RunLogger] = None,
) -> Optional[NotificationRouter]:
    """
    Create a notification router from configuration.

    Args:
        config: Configuration with notification and retry settings
        logger: Optional run logger for error logging

    Returns:
        NotificationRouter if any channels are configured, None otherwise
    """
    notifications = config.notifications
    if not notifications.has_channels:
        return None

    router = NotificationRouter(retry_config=config.retry, logger=logger)

    if notifications.email:
        router.register_channel(EmailChannel(notifications.email))

    if notifications.alarmer:
        router.register_channel(AlarmerChannel(notifications.alarmer))

    return router


def expiring_line(record: RenewalRecord) -> str:
    return f"{record.name} expires within {record.days_left} days"


def valid_line(record: RenewalRecord) -> str:
    return f"{record.name} is valid for {record.days_left} days"


def split_rows(
    rows: list[RenewalRow],
    min_renewal_days: int,
) -> tuple[list[str], list[RenewalRecord], list[RenewalRecord]]:
    """
    Split table rows into errors, expiring and valid domains.

    A domain is expiring when ``days_left`` is within the renewal window the
    row advertises, or within ``min_renewal_days`` when it advertises none.
    Expiring domains are sorted by days left, ascending; valid domains keep
    the page order.
    """
    errors = [row.error for row in rows if isinstance(row, RowError)]
    records = [row for row in rows if isinstance(row, RenewalRecord)]
    expiring = sorted(
        (record for record in records if record.is_expiring(min_renewal_days)),
        key=lambda record: record.days_left,
    )
    valid = [record for record in records if not record.is_expiring(min_renewal_days)]
    return errors, expiring, valid


def compose_message(errors: list[str], expiring: list[RenewalRecord]) -> Optional[str]:
    """
    Compose the notification text.

    Returns:
        The message, or None when there is nothing to report
    """
    sections = []
    if errors:
        sections.append(f"#{ERRORS_TITLE}\n\n" + "\n".join(errors))
    if expiring:
        sections.append(
            f"#{EXPIRING_TITLE}\n\n" + "\n".join(expiring_line(record) for record in expiring)
        )
    if not sections:
        return None
    return "\n\n\n".join(sections)


class ExpirationChecker:
    """
    Runs the domain expiration check for one registrar account.

    ``run()`` never raises: login and fetch failures are logged at fatal level
    and reported through ``CheckReport.fatal_error``.
    """

    def __init__(
        self,
        config: SystemConfig,
        client: Optional[RenewalsClient] = None,
        router: Optional[NotificationRouter] = None,
        logger: Optional[RunLogger] = None,
    ) -> None:
        """
        Initialize the checker.

        Args:
            config: System configuration
            client: Client to use; one is created per run when omitted
            router: Notification router; no notifications are sent when omitted
            logger: Optional run logger
        """
        self._config = config
        self._client = client
        self._router = router
        self._logger = logger

    @property
    def config(self) -> SystemConfig:
        """Get the system configuration."""
        return self._config

    async def run(self) -> CheckReport:
        """Run one expiration check."""
        self._log(LogLevel.INFO, "=== Check domain expiration: task start ===")

        try:
            rows = await self._fetch_rows()
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    COMPONENT,
                    "=== Check domain expiration failed ===",
                    error=e,
                    additional_data={"details": getattr(e, "details", {})},
                    level=LogLevel.FATAL,
                )
            return CheckReport(fatal_error=str(e) or type(e).__name__)

        errors, expiring, valid = split_rows(rows, self._config.min_renewal_days)

        if errors:
            self._log(LogLevel.ERROR, ERRORS_TITLE, {"errors": errors})
        if expiring:
            self._log(
                LogLevel.WARN,
                EXPIRING_TITLE,
                {"domains": [expiring_line(record) for record in expiring]},
            )
        if valid:
            self._log(
                LogLevel.INFO,
                VALID_TITLE,
                {"domains": [valid_line(record) for record in valid]},
            )

        report = CheckReport(
            expiring=expiring,
            valid=valid,
            errors=errors,
            message=compose_message(errors, expiring),
        )

        if report.message and self._router:
            report.notifications = await self._router.notify(
                NotificationPayload(subject=NOTIFICATION_SUBJECT, text=report.message)
            )
            for result in report.notifications:
                if not result.success:
                    self._log(
                        LogLevel.ERROR,
                        f"Notification via '{result.channel}' failed",
                        {"channel": result.channel, "error": result.error,
                         "attempts": result.attempts},
                    )

        self._log(LogLevel.INFO, "=== Check domain expiration: task end ===")
        return report

    async def _fetch_rows(self) -> list[RenewalRow]:
        if self._client is not None:
            return await self._login_and_fetch(self._client)

        login = self._config.login
        async with RenewalsClient(
            user_agent=login.user_agent,
            timeout=login.timeout,
            max_hops=login.max_hops,
        ) as client:
            return await self._login_and_fetch(client)

    async def _login_and_fetch(self, client: RenewalsClient) -> list[RenewalRow]:
        login = self._config.login
        session = await client.login(login.login_url, login.username, login.password)
        self._log(LogLevel.DEBUG, "Logged in", {"address": session.address})
        rows = await client.fetch_renewals(login.renewals_url, session)
        self._log(LogLevel.DEBUG, "Fetched renewals", {"rows": len(rows)})
        return rows

    def _log(self, level: LogLevel, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log(level, COMPONENT, message, data)
