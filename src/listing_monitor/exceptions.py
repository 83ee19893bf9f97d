"""
Exception classes for the listing monitor.

All exceptions inherit from ListingMonitorError and provide structured
error information with codes, messages, and optional details. They are
raised inside a component and converted into typed results (see
``FailureCode``) at the next component boundary.
"""

from typing import Optional


class ListingMonitorError(Exception):
    """Base exception for all listing monitor errors."""

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


class ConfigError(ListingMonitorError):
    """Raised when configuration cannot be loaded or is invalid."""

    pass


class RenderError(ListingMonitorError):
    """Raised when the renderer fails to navigate or read a page."""

    pass


class AccessDeniedError(RenderError):
    """Raised when the renderer reports a block/deny response (HTTP 403)."""

    def __init__(self, url: str, status_code: int = 403) -> None:
        super().__init__(
            code="access_denied",
            message=f"Access denied for {url} (HTTP {status_code})",
            details={"url": url, "status_code": status_code},
        )


class DomNotStableError(ListingMonitorError):
    """Raised when rendered content keeps mutating across all stability rounds."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            code="dom_not_stable",
            message=f"Rendered content did not stabilize after {attempts} rounds",
            details={"attempts": attempts},
        )


class PersistenceError(ListingMonitorError):
    """Raised when persistence operations fail (file I/O, malformed JSON)."""

    pass


class NotificationError(ListingMonitorError):
    """Raised when notification delivery fails."""

    pass
