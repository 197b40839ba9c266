"""
Configuration dataclasses for the renewal checker system.

This module defines the configuration structures used throughout the system
(account login, certificate hosts, retry logic, notifications and logging)
and loads them from the process environment, optionally seeded from a .env
file.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import dotenv_values

from .enums import LogLevel
from .exceptions import ConfigurationError

DEFAULT_RENEWALS_URL = "https://my.freenom.com/domains.php?a=renewals"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/104.0.5112.101 Safari/537.36"
)
DEFAULT_ALARMER_URL = "https://alarmerbot.ru"
OUTPUT_FORMATS = ("text", "json", "both")
REQUIRED_VARIABLES = ("FREENOM_LOGIN_URL", "FREENOM_LOGIN", "FREENOM_PASSWORD")


@dataclass
class LoginConfig:
    """Registrar account and HTTP settings."""

    login_url: str
    username: str
    password: str
    renewals_url: str = DEFAULT_RENEWALS_URL
    user_agent: str = DEFAULT_USER_AGENT
    max_hops: int = 4
    timeout: float = 15.0


@dataclass
class RetryConfig:
    """Retry behavior configuration for notification delivery."""

    max_retries: int = 2
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0


@dataclass
class EmailConfig:
    """Email notification channel configuration."""

    smtp_host: str
    smtp_port: int
    username: str
    password: str
    from_address: str
    to_addresses: list[str] = field(default_factory=list)


@dataclass
class AlarmerConfig:
    """Alarmer push notification channel configuration."""

    api_key: str
    url: str = DEFAULT_ALARMER_URL


@dataclass
class NotificationConfig:
    """Notification channels configuration."""

    email: Optional[EmailConfig] = None
    alarmer: Optional[AlarmerConfig] = None

    @property
    def has_channels(self) -> bool:
        return self.email is not None or self.alarmer is not None


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "all"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    login: LoginConfig
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    min_renewal_days: int = 14


@dataclass
class CertificateCheckConfig:
    """Hosts whose TLS certificates are checked, and where to report."""

    hosts: list[str]
    notify_days_left: int = 1
    timeout: float = 15.0
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _split_addresses(value: str) -> list[str]:
    raw = [part.strip() for chunk in value.replace(";", ",").split(",") for part in chunk.split()]
    return [address for address in raw if address]


def _split_hosts(value: str) -> list[str]:
    return [host for chunk in value.split(",") for host in chunk.split()]


class _EnvReader:
    """Reads variables from a mapping and collects every problem it meets."""

    def __init__(self, env: Mapping[str, Optional[str]]) -> None:
        self._env = env
        self.missing: list[str] = []
        self.invalid: list[str] = []

    def get(self, name: str, default: str = "") -> str:
        value = self._env.get(name)
        if value is None:
            return default
        value = value.strip()
        return value if value else default

    def required(self, name: str) -> str:
        value = self.get(name)
        if not value:
            self.missing.append(name)
        return value

    def integer(self, name: str, default: int, minimum: int = 0) -> int:
        raw = self.get(name)
        if not raw:
            return default
        try:
            value = int(raw)
        except ValueError:
            self.invalid.append(f'invalid "{name}" value "{raw}", should be an integer')
            return default
        if value < minimum:
            self.invalid.append(f'invalid "{name}" value "{raw}", should be at least {minimum}')
            return default
        return value

    def number(self, name: str, default: float) -> float:
        raw = self.get(name)
        if not raw:
            return default
        try:
            value = float(raw)
        except ValueError:
            self.invalid.append(f'invalid "{name}" value "{raw}", should be a number')
            return default
        if value <= 0:
            self.invalid.append(f'invalid "{name}" value "{raw}", should be a positive number')
            return default
        return value


def _email_config(reader: _EnvReader) -> Optional[EmailConfig]:
    keys = ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASS")
    present = [key for key in keys if reader.get(key)]
    if not present:
        return None
    empty = [key for key in keys if key not in present]
    if empty:
        reader.invalid.append(", ".join(f'"{key}" is empty' for key in empty))
        return None

    port = reader.integer("SMTP_PORT", 587, minimum=1)
    user = reader.get("SMTP_USER")
    from_address = reader.get("EMAIL_FROM", user)
    to_addresses = _split_addresses(reader.get("EMAIL_TO", from_address))
    return EmailConfig(
        smtp_host=reader.get("SMTP_HOST"),
        smtp_port=port,
        username=user,
        password=reader.get("SMTP_PASS"),
        from_address=from_address,
        to_addresses=to_addresses,
    )


def _notification_config(reader: _EnvReader) -> NotificationConfig:
    alarmer_key = reader.get("ALARMER_API_KEY")
    return NotificationConfig(
        email=_email_config(reader),
        alarmer=AlarmerConfig(
            api_key=alarmer_key,
            url=reader.get("ALARMER_URL", DEFAULT_ALARMER_URL),
        ) if alarmer_key else None,
    )


def _logging_config(reader: _EnvReader) -> LoggingConfig:
    level = reader.get("LOGLEVEL", "all")
    try:
        level = LogLevel.parse(level).value
    except ValueError:
        reader.invalid.append(
            f'invalid "LOGLEVEL" value "{level}", should be one of '
            + ", ".join(lvl.value for lvl in LogLevel)
        )
        level = LogLevel.ALL.value

    output_format = reader.get("LOG_FORMAT", "text").lower()
    if output_format not in OUTPUT_FORMATS:
        reader.invalid.append(
            f'invalid "LOG_FORMAT" value "{output_format}", should be one of '
            + ", ".join(OUTPUT_FORMATS)
        )
        output_format = "text"

    return LoggingConfig(level=level, output_format=output_format)


def _raise_problems(reader: _EnvReader) -> None:
    problems = []
    if reader.missing:
        problems.append(
            "Environment variables are missing: "
            + ", ".join(f'"{name}"' for name in reader.missing)
        )
    problems.extend(reader.invalid)
    if problems:
        raise ConfigurationError(
            "; ".join(problems),
            details={"missing": reader.missing, "invalid": reader.invalid},
        )


def config_from_mapping(env: Mapping[str, Optional[str]]) -> SystemConfig:
    """
    Build the system configuration from environment-style variables.

    Args:
        env: Mapping of variable name to value

    Returns:
        SystemConfig

    Raises:
        ConfigurationError: Listing every missing or invalid variable
    """
    reader = _EnvReader(env)

    login = LoginConfig(
        login_url=reader.required("FREENOM_LOGIN_URL"),
        username=reader.required("FREENOM_LOGIN"),
        password=reader.required("FREENOM_PASSWORD"),
        renewals_url=reader.get("FREENOM_RENEWALS_URL", DEFAULT_RENEWALS_URL),
        user_agent=reader.get("USER_AGENT", DEFAULT_USER_AGENT),
        max_hops=reader.integer("MAX_HOPS", 4, minimum=1),
        timeout=reader.number("HTTP_TIMEOUT", 15.0),
    )

    config = SystemConfig(
        login=login,
        notifications=_notification_config(reader),
        retry=RetryConfig(max_retries=reader.integer("NOTIFY_RETRIES", 2)),
        logging=_logging_config(reader),
        min_renewal_days=reader.integer("MIN_RENEWAL_DAYS", 14),
    )
    _raise_problems(reader)
    return config


def certificate_config_from_mapping(env: Mapping[str, Optional[str]]) -> CertificateCheckConfig:
    """
    Build the certificate check configuration from environment-style variables.

    ``HOSTS`` is a comma or whitespace separated list of ``host[:port]``.

    Raises:
        ConfigurationError: Listing every missing or invalid variable
    """
    reader = _EnvReader(env)

    hosts = _split_hosts(reader.required("HOSTS"))
    config = CertificateCheckConfig(
        hosts=hosts,
        notify_days_left=reader.integer("NOTIFY_DAYS_LEFT", 1, minimum=1),
        timeout=reader.number("HTTP_TIMEOUT", 15.0),
        notifications=_notification_config(reader),
        retry=RetryConfig(max_retries=reader.integer("NOTIFY_RETRIES", 2)),
        logging=_logging_config(reader),
    )
    _raise_problems(reader)
    return config


def _read_environment(
    env_file: Optional[Union[str, Path]],
    environ: Optional[Mapping[str, str]],
) -> dict[str, Optional[str]]:
    if env_file is not None and not Path(env_file).is_file():
        raise ConfigurationError(
            f"Environment file not found: {env_file}",
            details={"env_file": str(env_file)},
        )

    path = Path(env_file) if env_file is not None else Path(".env")
    values: dict[str, Optional[str]] = dict(dotenv_values(path)) if path.is_file() else {}
    values.update(os.environ if environ is None else environ)
    return values


def load_config_from_env(
    env_file: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> SystemConfig:
    """
    Load the configuration from a .env file and the process environment.

    Variables set in the process environment take precedence over the file.

    Args:
        env_file: Path of a .env file; defaults to ``.env`` in the working directory
        environ: Environment mapping; defaults to ``os.environ``

    Returns:
        SystemConfig

    Raises:
        ConfigurationError: If the env file is missing or variables are invalid
    """
    return config_from_mapping(_read_environment(env_file, environ))


def load_certificate_config_from_env(
    env_file: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> CertificateCheckConfig:
    """Same as load_config_from_env, for the certificate check."""
    return certificate_config_from_mapping(_read_environment(env_file, environ))
