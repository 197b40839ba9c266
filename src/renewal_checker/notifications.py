"""
Delivery of expiration reports.

Two channels are supported: e-mail over SMTP and the Alarmer push service
(``GET <url>?key=<key>&message=<text>``). The router hands a report to every
registered channel, retrying each one with capped exponential backoff.
"""

import asyncio
import smtplib
import ssl
from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.mime.text import MIMEText
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable
from urllib.parse import urlencode

import httpx

from .config import AlarmerConfig, EmailConfig, RetryConfig
from .enums import LogLevel, NotificationErrorCode
from .exceptions import NotificationError

if TYPE_CHECKING:
    from .run_logger import RunLogger

SMTP_SSL_PORT = 465
ALARMER_TIMEOUT = 30.0


@dataclass
class NotificationPayload:
    """A report to deliver: e-mail subject and plain-text body."""

    subject: str
    text: str


@dataclass
class NotificationResult:
    """Outcome of delivering one payload through one channel."""

    channel: str
    success: bool
    error: Optional[str] = None
    attempts: int = 1


@dataclass
class DeliveryAttempt:
    """A failed delivery try, kept for the final error log."""

    number: int
    error: str
    at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@runtime_checkable
class NotificationChannel(Protocol):
    """Anything that can deliver a NotificationPayload."""

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> bool:
        """
        Deliver the payload.

        Returns:
            True on delivery; False or an exception means the try failed
        """
        ...

    @abstractmethod
    def get_name(self) -> str:
        """Short channel name used in results and logs."""
        ...


class EmailChannel:
    """Sends the report as a plain-text e-mail."""

    def __init__(self, config: EmailConfig) -> None:
        """
        Args:
            config: SMTP server, credentials and addresses

        Raises:
            NotificationError: Listing every empty SMTP setting
        """
        required = {
            "smtp_host": config.smtp_host,
            "smtp_port": config.smtp_port,
            "username": config.username,
            "password": config.password,
        }
        empty = [f'"{name}" is empty' for name, value in required.items() if not value]
        if empty:
            raise NotificationError(", ".join(empty), NotificationErrorCode.EMAIL_CONFIG)

        self._config = config
        self._sender = config.from_address or config.username
        self._recipients = list(config.to_addresses) or [self._sender]

    def get_name(self) -> str:
        return "email"

    def build_message(self, payload: NotificationPayload) -> MIMEText:
        message = MIMEText(payload.text, "plain", "utf-8")
        message["Subject"] = payload.subject
        message["From"] = self._sender
        message["To"] = ", ".join(self._recipients)
        return message

    async def send(self, payload: NotificationPayload) -> bool:
        # smtplib blocks, keep it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._deliver, payload)

    def _deliver(self, payload: NotificationPayload) -> bool:
        config = self._config
        message = self.build_message(payload).as_string()
        tls = ssl.create_default_context()

        if config.smtp_port == SMTP_SSL_PORT:
            smtp = smtplib.SMTP_SSL(config.smtp_host, config.smtp_port, context=tls)
        else:
            smtp = smtplib.SMTP(config.smtp_host, config.smtp_port)

        with smtp as server:
            if config.smtp_port != SMTP_SSL_PORT:
                server.starttls(context=tls)
            server.login(config.username, config.password)
            server.sendmail(self._sender, self._recipients, message)
        return True


class AlarmerChannel:
    """Sends the report text to the Alarmer push service."""

    def __init__(
        self,
        config: AlarmerConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            config: API key and service URL
            transport: httpx transport override, e.g. ``httpx.MockTransport``

        Raises:
            NotificationError: If the API key is empty
        """
        if not config.api_key:
            raise NotificationError(
                '"key" must contain the Alarmer API key and cannot be empty',
                NotificationErrorCode.ALARMER_CONFIG,
            )
        self._config = config
        self._transport = transport

    def get_name(self) -> str:
        return "alarmer"

    def build_url(self, text: str) -> str:
        """Request URL carrying the key and the message as query parameters."""
        query = urlencode({"key": self._config.api_key, "message": text})
        return f"{self._config.url}?{query}"

    async def send(self, payload: NotificationPayload) -> bool:
        async with httpx.AsyncClient(transport=self._transport, timeout=ALARMER_TIMEOUT) as client:
            response = await client.get(self.build_url(payload.text))

        if response.status_code != 200:
            raise NotificationError(
                f'{self._config.url} statusCode "{response.status_code}"',
                NotificationErrorCode.ALARMER_STATUS,
                details={"status_code": response.status_code},
            )
        return True


class NotificationRouter:
    """
    Fans a payload out to every registered channel.

    Channels are tried one after another and independently: a channel that
    keeps failing yields a failed NotificationResult and does not stop the
    others. Each channel gets ``max_retries + 1`` tries, separated by
    ``base_delay * 2**n`` seconds, capped at ``max_delay``.
    """

    def __init__(
        self,
        retry_config: RetryConfig,
        logger: Optional["RunLogger"] = None,
    ) -> None:
        self._retry = retry_config
        self._logger = logger
        self._registered: list[NotificationChannel] = []

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._registered)

    def register_channel(self, channel: NotificationChannel) -> None:
        self._registered.append(channel)

    def unregister_channel(self, channel_name: str) -> bool:
        """Remove the first channel with the given name; False if there is none."""
        for channel in self._registered:
            if channel.get_name() == channel_name:
                self._registered.remove(channel)
                return True
        return False

    def backoff_delay(self, retry: int) -> float:
        """Seconds to wait before retry number ``retry`` (0-based)."""
        return min(
            self._retry.base_delay_seconds * (2 ** retry),
            self._retry.max_delay_seconds,
        )

    async def notify(self, payload: NotificationPayload) -> list[NotificationResult]:
        """
        Deliver the payload through every channel.

        Args:
            payload: Report to deliver

        Returns:
            One NotificationResult per registered channel, in registration order
        """
        return [await self._deliver(channel, payload) for channel in self._registered]

    async def _deliver(
        self,
        channel: NotificationChannel,
        payload: NotificationPayload,
    ) -> NotificationResult:
        name = channel.get_name()
        tries = self._retry.max_retries + 1
        failures: list[DeliveryAttempt] = []

        for number in range(1, tries + 1):
            try:
                delivered = await channel.send(payload)
            except Exception as e:
                failures.append(DeliveryAttempt(number, str(e) or type(e).__name__))
            else:
                if delivered:
                    return NotificationResult(channel=name, success=True, attempts=number)
                failures.append(DeliveryAttempt(number, "Channel returned failure"))

            if number < tries:
                await asyncio.sleep(self.backoff_delay(number - 1))

        self._report_exhausted(name, failures)
        return NotificationResult(
            channel=name,
            success=False,
            error=failures[-1].error,
            attempts=tries,
        )

    def _report_exhausted(self, name: str, failures: list[DeliveryAttempt]) -> None:
        if self._logger is None:
            return
        self._logger.log(
            LogLevel.ERROR,
            "NotificationRouter",
            f"Delivery through '{name}' failed after {len(failures)} attempt(s)",
            {
                "channel": name,
                "total_attempts": len(failures),
                "attempts": [
                    {"attempt": f.number, "error": f.error, "at": f.at} for f in failures
                ],
            },
        )
