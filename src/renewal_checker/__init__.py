"""
Renewal Checker - Domain expiration checker for HTML-only registrar accounts.

This package logs into a registrar account through its HTML login form,
scrapes the domain renewals table and reports domains that expire soon. It
also checks the expiry dates of the TLS certificates of a list of hosts.
"""

__version__ = "0.1.0"
__author__ = "Renewal Checker Team"

from renewal_checker.exceptions import (
    RenewalCheckerError,
    ConfigurationError,
    TransportFailureError,
    PageError,
    UnexpectedStatusError,
    UnsupportedContentTypeError,
    MaxRequestsReachedError,
    FormNotFoundError,
    TableNotFoundError,
    LoginError,
    MissingSessionCookieError,
    MissingFormActionError,
    InvalidFormMethodError,
    MissingRequiredInputsError,
    LoginRequestNoRedirectError,
    LoginRequestNoCookieError,
    NotificationError,
    CertificateError,
)
from renewal_checker.enums import (
    ResponseKind,
    LogLevel,
    PageErrorCode,
    LoginErrorCode,
    NotificationErrorCode,
    CertificateErrorCode,
)
from renewal_checker.config import (
    LoginConfig,
    RetryConfig,
    EmailConfig,
    AlarmerConfig,
    NotificationConfig,
    LoggingConfig,
    SystemConfig,
    CertificateCheckConfig,
    config_from_mapping,
    load_config_from_env,
    certificate_config_from_mapping,
    load_certificate_config_from_env,
)
from renewal_checker.models import (
    HttpResponse,
    FormInput,
    LoginForm,
    LoginPage,
    Session,
    RenewalRecord,
    RowError,
    RenewalRow,
    RenewalReport,
    CheckReport,
    CertificateInfo,
    HostError,
    CertificateReport,
)
from renewal_checker.cookies import (
    parse_set_cookie,
    serialize_cookies,
    cookie_header_from_set_cookie,
)
from renewal_checker.transport import (
    Transport,
    is_redirect,
    classify_status,
)
from renewal_checker.form_extractor import extract_login_form
from renewal_checker.table_extractor import (
    extract_renewals,
    group_rows,
)
from renewal_checker.session_walker import follow_to_terminal_page
from renewal_checker.login import (
    login,
    post_login_data,
    resolve_form_action,
    build_login_data,
)
from renewal_checker.renewals import fetch_renewals
from renewal_checker.html_api import RenewalsClient
from renewal_checker.run_logger import (
    RunLogger,
    LogEntry,
)
from renewal_checker.notifications import (
    NotificationPayload,
    NotificationResult,
    NotificationChannel,
    EmailChannel,
    AlarmerChannel,
    NotificationRouter,
)
from renewal_checker.checker import (
    ExpirationChecker,
    create_notification_router,
)
from renewal_checker.certificates import (
    CertificateChecker,
    certificate_info_from_der,
    fetch_certificate,
    split_host,
)
from renewal_checker.cli import (
    main as cli_main,
    create_parser,
)

__all__ = [
    # Exceptions
    "RenewalCheckerError",
    "ConfigurationError",
    "TransportFailureError",
    "PageError",
    "UnexpectedStatusError",
    "UnsupportedContentTypeError",
    "MaxRequestsReachedError",
    "FormNotFoundError",
    "TableNotFoundError",
    "LoginError",
    "MissingSessionCookieError",
    "MissingFormActionError",
    "InvalidFormMethodError",
    "MissingRequiredInputsError",
    "LoginRequestNoRedirectError",
    "LoginRequestNoCookieError",
    "NotificationError",
    "CertificateError",
    # Enums
    "ResponseKind",
    "LogLevel",
    "PageErrorCode",
    "LoginErrorCode",
    "NotificationErrorCode",
    "CertificateErrorCode",
    # Configuration
    "LoginConfig",
    "RetryConfig",
    "EmailConfig",
    "AlarmerConfig",
    "NotificationConfig",
    "LoggingConfig",
    "SystemConfig",
    "CertificateCheckConfig",
    "config_from_mapping",
    "load_config_from_env",
    "certificate_config_from_mapping",
    "load_certificate_config_from_env",
    # Models
    "HttpResponse",
    "FormInput",
    "LoginForm",
    "LoginPage",
    "Session",
    "RenewalRecord",
    "RowError",
    "RenewalRow",
    "RenewalReport",
    "CheckReport",
    "CertificateInfo",
    "HostError",
    "CertificateReport",
    # Cookies
    "parse_set_cookie",
    "serialize_cookies",
    "cookie_header_from_set_cookie",
    # Transport
    "Transport",
    "is_redirect",
    "classify_status",
    # Extractors
    "extract_login_form",
    "extract_renewals",
    "group_rows",
    # Login
    "follow_to_terminal_page",
    "login",
    "post_login_data",
    "resolve_form_action",
    "build_login_data",
    # Renewals
    "fetch_renewals",
    "RenewalsClient",
    # Run Logger
    "RunLogger",
    "LogEntry",
    # Notifications
    "NotificationPayload",
    "NotificationResult",
    "NotificationChannel",
    "EmailChannel",
    "AlarmerChannel",
    "NotificationRouter",
    # Checker
    "ExpirationChecker",
    "create_notification_router",
    # Certificates
    "CertificateChecker",
    "certificate_info_from_der",
    "fetch_certificate",
    "split_host",
    # CLI
    "cli_main",
    "create_parser",
]
