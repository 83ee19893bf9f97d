"""
Data models for the listing monitor.

This module defines the value types that flow through one poll cycle:
listed records, per-target snapshot entries, activity statistics, and the
typed results returned at each component boundary.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional

from .enums import ActivityTier, FailureCode, TargetOutcome

HOURS_PER_DAY = 24

Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Current wall-clock time in the local timezone, timezone-aware."""
    return datetime.now().astimezone()


@dataclass(frozen=True)
class Record:
    """One listed item, as extracted from a listing page."""

    name: str
    price: int = 0


# Records in page order; index 0 is the top (most recent) listing.
Sample = list[Record]


@dataclass(frozen=True)
class SnapshotEntry:
    """Last trusted top record for one target."""

    fingerprint: str
    record_name: str
    record_price: int
    last_observed_at: str


@dataclass(frozen=True)
class StatsState:
    """Long-run activity statistics driving the adaptive scheduler."""

    hourly_new_item_counts: tuple[int, ...] = (0,) * HOURS_PER_DAY
    total_checks: int = 0
    total_new_items: int = 0
    last_new_item_at: Optional[str] = None
    error_count: int = 0
    last_error_at: Optional[str] = None

    def with_new_items(self, hour: int, count: int, timestamp: str) -> "StatsState":
        """Return the state after one completed cycle found ``count`` new items."""
        counts = list(self.hourly_new_item_counts)
        counts[hour] += count
        return replace(
            self,
            hourly_new_item_counts=tuple(counts),
            total_checks=self.total_checks + 1,
            total_new_items=self.total_new_items + count,
            last_new_item_at=timestamp if count > 0 else self.last_new_item_at,
        )

    def with_error(self, timestamp: str) -> "StatsState":
        """Return the state after one cycle-level failure."""
        return replace(
            self,
            error_count=self.error_count + 1,
            last_error_at=timestamp,
        )

    def top_hours(self, limit: int = 3) -> list[tuple[int, int]]:
        """Busiest hours of the day as ``(hour, count)``, highest first."""
        ranked = sorted(
            enumerate(self.hourly_new_item_counts),
            key=lambda pair: (-pair[1], pair[0]),
        )
        return ranked[:limit]


@dataclass(frozen=True)
class IntervalDecision:
    """Delay chosen by the adaptive scheduler before the next cycle."""

    interval_seconds: int
    tier: ActivityTier
    nearby_count: int
    minutes_since_last: float

    @property
    def reason(self) -> str:
        return self.tier.value


@dataclass
class AttemptResult:
    """Outcome of a single extraction attempt against one target."""

    records: Sample = field(default_factory=list)
    failure: Optional[FailureCode] = None
    status_code: Optional[int] = None
    error: Optional[str] = None


@dataclass
class VerificationResult:
    """Outcome of the consistency check for one target."""

    records: Sample = field(default_factory=list)
    failure: Optional[FailureCode] = None
    attempts: int = 0

    @property
    def verified(self) -> bool:
        return self.failure is None and bool(self.records)


@dataclass
class TargetResult:
    """What the orchestrator did with one target during a cycle."""

    target_key: str
    outcome: TargetOutcome
    new_records: Sample = field(default_factory=list)
    failure: Optional[FailureCode] = None
    notification_sent: bool = False


@dataclass
class CycleResult:
    """Summary of one full pass over all configured targets."""

    started_at: str
    finished_at: Optional[str] = None
    new_item_count: int = 0
    target_results: list[TargetResult] = field(default_factory=list)
    fatal_error: Optional[str] = None
    interrupted: bool = False

    @property
    def failed(self) -> bool:
        return self.fatal_error is not None
