"""
TLS certificate expiration check.

Connects to every configured host, reads the certificate presented during
the handshake and reports certificates that expire within
``notify_days_left`` days. The handshake does not verify the chain, so
expired and self-signed certificates are read and reported as well.
"""

import asyncio
import logging
import ssl
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional
from urllib.parse import urlsplit

from cryptography import x509
from cryptography.x509.oid import NameOID

from .checker import create_notification_router
from .config import CertificateCheckConfig
from .enums import CertificateErrorCode, LogLevel
from .exceptions import CertificateError
from .models import CertificateInfo, CertificateReport, HostError
from .notifications import NotificationPayload, NotificationRouter
from .run_logger import RunLogger

logger = logging.getLogger(__name__)

COMPONENT = "CertificateChecker"
NOTIFICATION_SUBJECT = "Certificate expiration check"
DEFAULT_PORT = 443

ERRORS_TITLE = "Host errors:"
EXPIRING_TITLE = "Certificates are expiring soon:"
VALID_TITLE = "Certificate expiration dates:"
NONE_EXPIRING = "No certificates expiring"

CertificateFetcher = Callable[[str, int, float], Awaitable[CertificateInfo]]


def split_host(value: str) -> tuple[str, int]:
    """
    Split ``host[:port]`` into host and port.

    IPv6 addresses take the bracketed form, ``[::1]:8443``.

    Raises:
        CertificateError: If the host is empty or the port is not a valid number
    """
    try:
        parts = urlsplit(f"//{value.strip()}")
        port = parts.port
    except ValueError as e:
        raise CertificateError(
            f'invalid host "{value}"', CertificateErrorCode.INVALID_HOST, {"host": value},
        ) from e
    if not parts.hostname:
        raise CertificateError(
            f'invalid host "{value}"', CertificateErrorCode.INVALID_HOST, {"host": value},
        )
    return parts.hostname, port or DEFAULT_PORT


def _first_attribute(name: x509.Name, *oids: x509.ObjectIdentifier) -> str:
    for oid in oids:
        attributes = name.get_attributes_for_oid(oid)
        if attributes:
            return str(attributes[0].value)
    return ""


def certificate_info_from_der(host: str, der: bytes) -> CertificateInfo:
    """
    Describe a DER-encoded certificate.

    Args:
        host: Host the certificate was read from
        der: The certificate bytes

    Returns:
        CertificateInfo with issuer organisation, subject common name,
        DNS alternative names and the validity period in UTC

    Raises:
        CertificateError: If the bytes are not a certificate
    """
    try:
        certificate = x509.load_der_x509_certificate(der)
    except ValueError as e:
        raise CertificateError(
            f"unreadable certificate: {e}",
            CertificateErrorCode.INVALID_CERTIFICATE,
            {"host": host},
        ) from e

    try:
        extension = certificate.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        alt_names = extension.value.get_values_for_type(x509.DNSName)
    except x509.ExtensionNotFound:
        alt_names = []

    return CertificateInfo(
        host=host,
        issuer=_first_attribute(
            certificate.issuer, NameOID.ORGANIZATION_NAME, NameOID.COMMON_NAME,
        ),
        subject=_first_attribute(
            certificate.subject, NameOID.COMMON_NAME, NameOID.ORGANIZATION_NAME,
        ),
        valid_from=certificate.not_valid_before_utc,
        valid_to=certificate.not_valid_after_utc,
        alt_names=list(alt_names),
    )


def _unverified_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


async def fetch_certificate(host: str, port: int = DEFAULT_PORT, timeout: float = 15.0) -> CertificateInfo:
    """
    Read the certificate a host presents on ``port``.

    Raises:
        CertificateError: On connection or handshake failure, or when the
            peer sends no certificate
    """
    details = {"host": host, "port": port}
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port, ssl=_unverified_context(), server_hostname=host),
            timeout,
        )
    except (OSError, asyncio.TimeoutError) as e:
        raise CertificateError(
            f"connection to {host}:{port} failed: {str(e) or type(e).__name__}",
            CertificateErrorCode.CONNECTION_FAILED,
            details,
        ) from e

    try:
        ssl_object = writer.get_extra_info("ssl_object")
        der = ssl_object.getpeercert(binary_form=True) if ssl_object is not None else None
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Closing %s:%d: %s", host, port, e)

    if not der:
        raise CertificateError(
            f"{host}:{port} presented no certificate",
            CertificateErrorCode.NO_PEER_CERTIFICATE,
            details,
        )
    return certificate_info_from_der(host, der)


def split_certificates(
    certificates: list[CertificateInfo],
    notify_days_left: int,
    now: datetime,
) -> tuple[list[CertificateInfo], list[CertificateInfo]]:
    """
    Split certificates into expiring and valid ones.

    A certificate is expiring when it is no longer valid ``notify_days_left``
    days after ``now``. Expiring certificates are sorted by expiry date;
    valid ones keep the host order.
    """
    edge = now + timedelta(days=notify_days_left)
    expiring = sorted(
        (info for info in certificates if info.valid_to <= edge),
        key=lambda info: info.valid_to,
    )
    valid = [info for info in certificates if info.valid_to > edge]
    return expiring, valid


def expiring_certificate_line(info: CertificateInfo) -> str:
    return f"{info.host} ({info.issuer}): {info.names} expires {info.valid_to:%Y-%m-%d %H:%M} UTC"


def valid_certificate_line(info: CertificateInfo) -> str:
    return f"{info.host} ({info.issuer}): {info.names} valid until {info.valid_to:%Y-%m-%d %H:%M} UTC"


def host_error_line(error: HostError) -> str:
    return f"{error.host}: {error.error}"


def compose_certificate_message(
    errors: list[HostError],
    expiring: list[CertificateInfo],
) -> Optional[str]:
    """Notification text, or None when nothing needs attention."""
    sections = []
    if errors:
        sections.append(f"#{ERRORS_TITLE}\n\n" + "\n".join(host_error_line(e) for e in errors))
    if expiring:
        sections.append(
            f"#{EXPIRING_TITLE}\n\n" + "\n".join(expiring_certificate_line(i) for i in expiring)
        )
    if not sections:
        return None
    return "\n\n\n".join(sections)


class CertificateChecker:
    """
    Checks the certificate expiry dates of the configured hosts.

    Hosts are checked one after another. A host that cannot be reached or
    read becomes a HostError in the report; ``run()`` itself never raises.
    """

    def __init__(
        self,
        config: CertificateCheckConfig,
        fetch: Optional[CertificateFetcher] = None,
        router: Optional[NotificationRouter] = None,
        logger: Optional[RunLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Args:
            config: Hosts, expiry window and notification settings
            fetch: Coroutine function ``(host, port, timeout)``; fetch_certificate by default
            router: Notification router; no notifications are sent when omitted
            logger: Optional run logger
            clock: Returns the current UTC time
        """
        self._config = config
        self._fetch = fetch or fetch_certificate
        self._router = router
        self._logger = logger
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def run(self) -> CertificateReport:
        self._log(LogLevel.INFO, "=== Check SSL certificates expiration: task start ===")
        try:
            report = await self._check()
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    COMPONENT,
                    "=== Check SSL certificates expiration failed ===",
                    error=e,
                    level=LogLevel.FATAL,
                )
            report = CertificateReport(fatal_error=str(e) or type(e).__name__)
        self._log(LogLevel.INFO, "=== Check SSL certificates expiration: task end ===")
        return report

    async def _check(self) -> CertificateReport:
        certificates: list[CertificateInfo] = []
        errors: list[HostError] = []

        for value in self._config.hosts:
            try:
                host, port = split_host(value)
                certificates.append(await self._fetch(host, port, self._config.timeout))
            except CertificateError as e:
                errors.append(HostError(host=value, error=e.message))

        expiring, valid = split_certificates(
            certificates, self._config.notify_days_left, self._clock(),
        )

        if errors:
            self._log(LogLevel.ERROR, ERRORS_TITLE, {"errors": [host_error_line(e) for e in errors]})
        if expiring:
            self._log(
                LogLevel.WARN,
                EXPIRING_TITLE,
                {"certificates": [expiring_certificate_line(i) for i in expiring]},
            )
        else:
            self._log(LogLevel.INFO, NONE_EXPIRING)
        if valid:
            self._log(
                LogLevel.DEBUG,
                VALID_TITLE,
                {"certificates": [valid_certificate_line(i) for i in valid]},
            )

        report = CertificateReport(
            expiring=expiring,
            valid=valid,
            errors=errors,
            message=compose_certificate_message(errors, expiring),
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
        return report

    def _log(self, level: LogLevel, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log(level, COMPONENT, message, data)


def create_certificate_checker(
    config: CertificateCheckConfig,
    logger: Optional[RunLogger] = None,
    notify: bool = True,
) -> CertificateChecker:
    """Checker wired with the channels the configuration names."""
    router = create_notification_router(config, logger) if notify else None
    return CertificateChecker(config, router=router, logger=logger)
