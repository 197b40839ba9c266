"""
Exception classes for the renewal checker system.

All exceptions inherit from RenewalCheckerError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional

from .enums import (
    CertificateErrorCode,
    LoginErrorCode,
    NotificationErrorCode,
    PageErrorCode,
)


class RenewalCheckerError(Exception):
    """Base exception for all renewal checker errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(RenewalCheckerError):
    """Raised when the process configuration is missing or invalid."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__("configuration_error", message, details)


class TransportFailureError(RenewalCheckerError):
    """Raised on connection-level failures (DNS, refused, reset, timeout)."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(PageErrorCode.TRANSPORT_FAILURE.value, message, details)


class PageError(RenewalCheckerError):
    """Base class for failures caused by an unexpected page or response."""

    code_value = PageErrorCode.UNEXPECTED_STATUS

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(self.code_value.value, message, details)


class UnexpectedStatusError(PageError):
    """Response status is neither a redirect nor an accepted success."""

    code_value = PageErrorCode.UNEXPECTED_STATUS


class UnsupportedContentTypeError(PageError):
    """Success status, but the body is not HTML."""

    code_value = PageErrorCode.UNSUPPORTED_CONTENT_TYPE


class MaxRequestsReachedError(PageError):
    """Redirect budget exhausted without reaching a terminal page."""

    code_value = PageErrorCode.MAX_REQUESTS_REACHED


class FormNotFoundError(PageError):
    """No password input, or no form enclosing it."""

    code_value = PageErrorCode.FORM_NOT_FOUND


class TableNotFoundError(PageError):
    """The table locator found no matching table."""

    code_value = PageErrorCode.TABLE_NOT_FOUND


class LoginError(RenewalCheckerError):
    """Base class for login handshake precondition violations."""

    code_value = LoginErrorCode.MISSING_SESSION_COOKIE

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(self.code_value.value, message, details)


class MissingSessionCookieError(LoginError):
    """The login form page did not set any cookie."""

    code_value = LoginErrorCode.MISSING_SESSION_COOKIE


class MissingFormActionError(LoginError):
    """The login form has no usable action."""

    code_value = LoginErrorCode.MISSING_FORM_ACTION


class InvalidFormMethodError(LoginError):
    """The login form does not submit with POST."""

    code_value = LoginErrorCode.INVALID_FORM_METHOD


class MissingRequiredInputsError(LoginError):
    """The login form lacks the token, username or password input."""

    code_value = LoginErrorCode.MISSING_REQUIRED_INPUTS

    def __init__(
        self,
        message: str,
        missing: list[str],
        details: Optional[dict] = None,
    ) -> None:
        self.missing = list(missing)
        details = dict(details or {})
        details.setdefault("missing", self.missing)
        super().__init__(message, details)


class LoginRequestNoRedirectError(LoginError):
    """The credentials POST was not answered with a redirect."""

    code_value = LoginErrorCode.LOGIN_REQUEST_NO_REDIRECT


class LoginRequestNoCookieError(LoginError):
    """The credentials POST redirect carried no Set-Cookie header."""

    code_value = LoginErrorCode.LOGIN_REQUEST_NO_COOKIE


class NotificationError(RenewalCheckerError):
    """Raised when a notification channel is misconfigured or delivery fails."""

    def __init__(
        self,
        message: str,
        code: NotificationErrorCode = NotificationErrorCode.DELIVERY_FAILED,
        details: Optional[dict] = None,
    ) -> None:
        super().__init__(code.value, message, details)


class CertificateError(RenewalCheckerError):
    """Raised when a host's TLS certificate cannot be read."""

    def __init__(
        self,
        message: str,
        code: CertificateErrorCode = CertificateErrorCode.CONNECTION_FAILED,
        details: Optional[dict] = None,
    ) -> None:
        super().__init__(code.value, message, details)
