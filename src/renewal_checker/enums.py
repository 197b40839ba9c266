"""
Enumeration types for the renewal checker system.

These enums provide type-safe constants for response classification,
error codes, and logging levels throughout the system.
"""

from enum import Enum


class ResponseKind(Enum):
    """Classification of a fetched HTTP response."""

    SUCCESS = "success"
    REDIRECT = "redirect"
    ERROR = "error"


class LogLevel(Enum):
    """Logging severity levels, lowest first."""

    ALL = "all"
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @classmethod
    def parse(cls, value: str) -> "LogLevel":
        """Parse a level name, accepting 'warning' as an alias of 'warn'."""
        normalized = (value or "").strip().lower()
        if normalized == "warning":
            normalized = "warn"
        return cls(normalized)


_SEVERITY = {level: index for index, level in enumerate(LogLevel)}


class PageErrorCode(Enum):
    """Error codes for transport and page-structure failures."""

    TRANSPORT_FAILURE = "transport_failure"
    UNEXPECTED_STATUS = "unexpected_status"
    UNSUPPORTED_CONTENT_TYPE = "unsupported_content_type"
    MAX_REQUESTS_REACHED = "max_requests_reached"
    FORM_NOT_FOUND = "form_not_found"
    TABLE_NOT_FOUND = "table_not_found"


class LoginErrorCode(Enum):
    """Error codes for login handshake failures."""

    MISSING_SESSION_COOKIE = "missing_session_cookie"
    MISSING_FORM_ACTION = "missing_form_action"
    INVALID_FORM_METHOD = "invalid_form_method"
    MISSING_REQUIRED_INPUTS = "missing_required_inputs"
    LOGIN_REQUEST_NO_REDIRECT = "login_request_no_redirect"
    LOGIN_REQUEST_NO_COOKIE = "login_request_no_cookie"


class NotificationErrorCode(Enum):
    """Error codes for notification channel failures."""

    DELIVERY_FAILED = "delivery_failed"
    EMAIL_CONFIG = "email_config"
    ALARMER_CONFIG = "alarmer_config"
    ALARMER_STATUS = "alarmer_status"


class CertificateErrorCode(Enum):
    """Error codes for TLS certificate lookups."""

    CONNECTION_FAILED = "connection_failed"
    NO_PEER_CERTIFICATE = "no_peer_certificate"
    INVALID_CERTIFICATE = "invalid_certificate"
    INVALID_HOST = "invalid_host"
