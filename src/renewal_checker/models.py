"""
Data models for the renewal checker system.

This module defines the data structures passed between the transport,
the HTML extractors, the login handshake and the expiration check.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

import httpx

from .enums import ResponseKind


@dataclass
class HttpResponse:
    """A fully read HTTP response."""

    status_code: int
    headers: httpx.Headers
    url: str
    text: str = ""
    kind: ResponseKind = ResponseKind.ERROR

    @property
    def is_redirect(self) -> bool:
        return self.kind is ResponseKind.REDIRECT

    @property
    def is_success(self) -> bool:
        return self.kind is ResponseKind.SUCCESS

    @property
    def set_cookies(self) -> list[str]:
        """All Set-Cookie header values, in the order they were received."""
        return self.headers.get_list("set-cookie")

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("location") or None

    @property
    def media_type(self) -> str:
        """Content-Type without parameters, lower-cased ('' when absent)."""
        content_type = self.headers.get("content-type", "")
        return content_type.split(";", 1)[0].strip().lower()


@dataclass
class FormInput:
    """A single <input> of a form, as the browser would resolve it."""

    name: str
    type: str
    value: str = ""


@dataclass
class LoginForm:
    """The form enclosing the password input of a login page."""

    action: str
    method: str
    inputs: list[FormInput] = field(default_factory=list)

    def to_data(self) -> dict[str, str]:
        """Map input names to values; unnamed inputs are skipped, later duplicates win."""
        data: dict[str, str] = {}
        for form_input in self.inputs:
            if form_input.name:
                data[form_input.name] = form_input.value
        return data


@dataclass
class LoginPage:
    """Terminal page reached by following the login redirect chain."""

    address: str
    cookies: str
    html: str


@dataclass
class Session:
    """Authenticated state returned by a successful login."""

    address: str
    cookies: str


@dataclass
class RenewalRecord:
    """
    A successfully parsed row of the renewals table.

    ``min_renewal_days`` is the advance-renewal window printed in the row;
    None when the row only says the domain is renewable.
    """

    id: int
    name: str
    status: str
    days_left: int
    renew_url: str
    min_renewal_days: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status.strip().lower() == "active"

    def is_expiring(self, default_min_days: int) -> bool:
        threshold = self.min_renewal_days
        if threshold is None:
            threshold = default_min_days
        return self.days_left <= threshold


@dataclass
class RowError:
    """A row of the renewals table that could not be parsed."""

    error: str


RenewalRow = Union[RenewalRecord, RowError]


@dataclass
class RenewalReport:
    """Rows of the renewals table grouped by outcome."""

    domains: list[RenewalRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class CheckReport:
    """Outcome of one expiration check run."""

    expiring: list[RenewalRecord] = field(default_factory=list)
    valid: list[RenewalRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    notifications: list = field(default_factory=list)  # list[NotificationResult]
    message: Optional[str] = None
    fatal_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.fatal_error is None


@dataclass
class CertificateInfo:
    """The certificate a host presented during the TLS handshake."""

    host: str
    issuer: str
    subject: str
    valid_from: datetime
    valid_to: datetime
    alt_names: list[str] = field(default_factory=list)

    @property
    def names(self) -> str:
        """Names the certificate covers, for reports."""
        return ", ".join(self.alt_names) or self.subject or self.host


@dataclass
class HostError:
    """A host whose certificate could not be read."""

    host: str
    error: str


@dataclass
class CertificateReport:
    """Outcome of one certificate expiration check run."""

    expiring: list[CertificateInfo] = field(default_factory=list)
    valid: list[CertificateInfo] = field(default_factory=list)
    errors: list[HostError] = field(default_factory=list)
    notifications: list = field(default_factory=list)  # list[NotificationResult]
    message: Optional[str] = None
    fatal_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.fatal_error is None
