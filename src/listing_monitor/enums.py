"""
Enumeration types for the listing monitor.

These enums provide type-safe constants for log levels, failure codes,
and scheduling tiers throughout the system.
"""

from enum import Enum


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def rank(self) -> int:
        """Numeric severity used for level filtering."""
        return _LEVEL_RANKS[self]


_LEVEL_RANKS = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}


class FailureCode(Enum):
    """Why a target produced no trusted observation."""

    ACCESS_DENIED = "access_denied"
    DOM_NOT_STABLE = "dom_not_stable"
    EXTRACTION_EMPTY = "extraction_empty"
    VERIFICATION_INCONSISTENT = "verification_inconsistent"
    NOTIFY_FAILED = "notify_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    CYCLE_FATAL = "cycle_fatal"
    HTTP_ERROR = "http_error"
    SELECTOR_MISSING = "selector_missing"
    RENDER_FAILED = "render_failed"


class ActivityTier(Enum):
    """Polling tier chosen by the adaptive scheduler."""

    ACTIVE = "active"
    MODERATE = "moderate"
    LOW_FREQUENCY = "low-frequency"


class TargetOutcome(Enum):
    """What happened to a target during one cycle."""

    BASELINE = "baseline"
    UNCHANGED = "unchanged"
    CHANGED = "changed"
    SKIPPED = "skipped"
