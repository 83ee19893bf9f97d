"""
Audit Logger module for the listing monitor.

Provides structured logging with dual-format output (JSON and human-readable
text), minimum-level filtering, and sensitive data masking.
"""

import json
import sys
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, TextIO

from listing_monitor.enums import LogLevel


@dataclass
class LogEntry:
    """Represents a single log entry with all metadata."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)


class AuditLogger:
    """
    Structured logger with dual-format output.

    Supports:
    - JSON and human-readable text output formats
    - Minimum level filtering
    - Automatic masking of sensitive data (API tokens, cookies, credentials)
    - Full error context logging
    """

    # Keys that should be masked in log output
    SENSITIVE_KEYS = frozenset({
        'token', 'secret', 'password', 'api_key', 'auth', 'authorization',
        'credential', 'credentials', 'private_key', 'access_token',
        'cookie', 'set-cookie', 'proxy_password', 'proxy_auth',
        'x-chatworktoken',
    })

    MASK_VALUE = "***MASKED***"

    # Only the newest entries are kept in memory
    RETAINED_ENTRIES = 1000

    def __init__(
        self,
        output_format: str = "both",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.DEBUG,
    ):
        """
        Initialize the audit logger.

        Args:
            output_format: Output format - 'json', 'text', or 'both'
            output_stream: Output stream for log entries (defaults to sys.stderr)
            min_level: Entries below this level are dropped
        """
        if output_format not in ("json", "text", "both"):
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._output_stream = output_stream or sys.stderr
        self._min_level = min_level
        self._entries: deque[LogEntry] = deque(maxlen=self.RETAINED_ENTRIES)

    @classmethod
    def from_config(cls, level: str, output_format: str, output_stream: Optional[TextIO] = None) -> "AuditLogger":
        """Build a logger from ``LoggingConfig`` values."""
        try:
            min_level = LogLevel(level.lower())
        except ValueError:
            raise ValueError(f"Invalid log level: {level}")
        return cls(output_format=output_format, output_stream=output_stream, min_level=min_level)

    @property
    def output_format(self) -> str:
        """Get the current output format."""
        return self._output_format

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    @property
    def entries(self) -> list[LogEntry]:
        """Get the most recent logged entries (for testing)."""
        return list(self._entries)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level.rank >= self._min_level.rank

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log an entry in the configured format(s).

        Args:
            level: Log severity level
            component: Component name generating the log
            message: Human-readable log message
            data: Optional additional data to include

        Returns:
            The created LogEntry object, or None if the level is filtered out
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
        )

        self._entries.append(entry)
        self._output_entry(entry)

        return entry

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, component, message, data)

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        request_url: Optional[str] = None,
        response_status_code: Optional[int] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log an error with full context.

        Args:
            component: Component name generating the log
            message: Human-readable error message
            error: Optional exception object
            request_url: Optional URL of the failed request
            response_status_code: Optional HTTP status code
            additional_data: Optional additional context data

        Returns:
            The created LogEntry object
        """
        data = additional_data.copy() if additional_data else {}

        if error is not None:
            data["error_message"] = str(error)
            data["error_type"] = type(error).__name__
            code = getattr(error, "code", None)
            if isinstance(code, str):
                data["error_code"] = code

        if request_url is not None:
            data["request_url"] = request_url

        if response_status_code is not None:
            data["response_status_code"] = response_status_code

        return self.log(LogLevel.ERROR, component, message, data)

    def mask_sensitive_data(self, data: dict) -> dict:
        """
        Recursively mask sensitive data in a dictionary.

        Args:
            data: Dictionary potentially containing sensitive data

        Returns:
            New dictionary with sensitive values masked
        """
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            key_lower = str(key).lower()

            is_sensitive = any(
                sensitive_key in key_lower
                for sensitive_key in self.SENSITIVE_KEYS
            )

            if is_sensitive:
                masked[key] = self.MASK_VALUE
            elif isinstance(value, dict):
                masked[key] = self.mask_sensitive_data(value)
            elif isinstance(value, list):
                masked[key] = [
                    self.mask_sensitive_data(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                masked[key] = value

        return masked

    def _output_entry(self, entry: LogEntry) -> None:
        if self._output_format in ("json", "both"):
            self._output_stream.write(self._format_json(entry) + "\n")

        if self._output_format in ("text", "both"):
            self._output_stream.write(self._format_text(entry) + "\n")

        self._output_stream.flush()

    def _format_json(self, entry: LogEntry) -> str:
        obj = {
            "timestamp": entry.timestamp,
            "level": entry.level.value,
            "component": entry.component,
            "message": entry.message,
            "data": entry.data,
        }
        return json.dumps(obj, ensure_ascii=False, default=str)

    def _format_text(self, entry: LogEntry) -> str:
        # Format: [TIMESTAMP] LEVEL [COMPONENT] MESSAGE {data}
        parts = [
            f"[{entry.timestamp}]",
            entry.level.value.upper(),
            f"[{entry.component}]",
            entry.message,
        ]

        if entry.data:
            parts.append(json.dumps(entry.data, ensure_ascii=False, default=str))

        return " ".join(parts)

    def get_json_output(self, entry: LogEntry) -> str:
        """Get JSON output for an entry (for testing)."""
        return self._format_json(entry)

    def get_text_output(self, entry: LogEntry) -> str:
        """Get text output for an entry (for testing)."""
        return self._format_text(entry)

    def clear_entries(self) -> None:
        """Clear all stored log entries (for testing)."""
        self._entries.clear()
