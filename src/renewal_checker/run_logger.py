"""
Structured run log.

Each entry is written as a JSON object, a single text line, or both. Entries
under the configured level are dropped. Values stored under secret-looking
keys (passwords, cookies, API keys) are replaced before anything is written.
"""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TextIO, Union

from .enums import LogLevel

OUTPUT_FORMATS = ("json", "text", "both")


@dataclass
class LogEntry:
    """One written log record."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "message": self.message,
            "data": self.data,
        }


class RunLogger:
    """
    Logger used by the checker, the notification router and the CLI.

    Written entries are also kept in memory and exposed through ``entries``.
    """

    # Substrings matched case-insensitively against data keys
    SENSITIVE_KEYS = frozenset({
        "password", "pass", "cookie", "cookies", "token", "secret",
        "api_key", "authorization", "credential", "credentials",
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        level: Union[LogLevel, str] = LogLevel.ALL,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
    ):
        """
        Args:
            level: Lowest level written; a LogLevel or a name like ``"warning"``
            output_format: ``json``, ``text`` or ``both``
            output_stream: Destination, stderr when omitted

        Raises:
            ValueError: On an unknown output format
        """
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Invalid output_format: {output_format}")

        self._level = LogLevel.parse(level) if isinstance(level, str) else level
        self._format = output_format
        self._stream = output_stream or sys.stderr
        self._written: list[LogEntry] = []

    @property
    def level(self) -> LogLevel:
        return self._level

    @property
    def output_format(self) -> str:
        return self._format

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._written)

    def clear_entries(self) -> None:
        self._written.clear()

    def is_enabled(self, level: LogLevel) -> bool:
        return level.severity >= self._level.severity

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Write one entry.

        Returns:
            The written entry, or None if ``level`` is under the threshold
        """
        if not self.is_enabled(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
        )
        self._written.append(entry)

        lines = []
        if self._format != "text":
            lines.append(self.get_json_output(entry))
        if self._format != "json":
            lines.append(self.get_text_output(entry))
        for line in lines:
            self._stream.write(line + "\n")
        self._stream.flush()
        return entry

    def trace(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.TRACE, component, message, data)

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, component, message, data)

    def error(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, component, message, data)

    def fatal(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.FATAL, component, message, data)

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        request_url: Optional[str] = None,
        response_status_code: Optional[int] = None,
        additional_data: Optional[dict] = None,
        level: LogLevel = LogLevel.ERROR,
    ) -> Optional[LogEntry]:
        """
        Write a failure together with what is known about it.

        The exception contributes ``error_message``, ``error_type`` and, for
        RenewalCheckerError subclasses, ``error_code``.
        """
        data = dict(additional_data or {})

        if error is not None:
            data["error_message"] = str(error)
            data["error_type"] = type(error).__name__
            if getattr(error, "code", None):
                data["error_code"] = error.code
        if request_url is not None:
            data["request_url"] = request_url
        if response_status_code is not None:
            data["response_status_code"] = response_status_code

        return self.log(level, component, message, data)

    def mask_sensitive_data(self, data: Any) -> Any:
        """Copy of ``data`` with secret values replaced, walking nested dicts and lists."""
        if not isinstance(data, dict):
            return data
        return {key: self._mask_value(key, value) for key, value in data.items()}

    def _mask_value(self, key: Any, value: Any) -> Any:
        lowered = str(key).lower()
        if any(marker in lowered for marker in self.SENSITIVE_KEYS):
            return self.MASK_VALUE
        if isinstance(value, dict):
            return self.mask_sensitive_data(value)
        if isinstance(value, list):
            return [self.mask_sensitive_data(item) for item in value]
        return value

    def get_json_output(self, entry: LogEntry) -> str:
        return json.dumps(entry.as_dict(), ensure_ascii=False, default=str)

    def get_text_output(self, entry: LogEntry) -> str:
        # [timestamp] LEVEL [component] message {data}
        line = (
            f"[{entry.timestamp}] {entry.level.value.upper():<5} "
            f"[{entry.component}] {entry.message}"
        )
        if entry.data:
            line += " " + json.dumps(entry.data, ensure_ascii=False, default=str)
        return line
