"""
Adaptive Scheduler for the listing monitor.

Chooses the delay before the next poll cycle from historical activity:
the number of new items seen in the hours around the current hour, and
how long ago the last new item was seen. During the nightly sleep window
no interval is produced and the caller polls for wake-up instead.
"""

from datetime import datetime
from typing import Optional

from .config import IntervalConfig
from .enums import ActivityTier
from .models import HOURS_PER_DAY, Clock, IntervalDecision, StatsState, local_now

# Minutes reported when no new item has ever been seen.
NEVER_SEEN_MINUTES = 999.0


def _as_aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.astimezone()


class AdaptiveScheduler:
    """
    Statistics-driven polling interval decisions.

    Tier selection, first match wins:
    - ``nearby >= active_nearby_threshold`` or recent activity within
      ``active_recency_minutes`` selects the base interval ("active")
    - ``nearby >= moderate_nearby_threshold`` or activity within
      ``moderate_recency_minutes`` selects the mid interval ("moderate")
    - otherwise the slow interval ("low-frequency")
    """

    def __init__(
        self,
        config: Optional[IntervalConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config or IntervalConfig()
        self._clock = clock or local_now

    @property
    def config(self) -> IntervalConfig:
        return self._config

    def is_sleep_hour(self, hour: int) -> bool:
        """
        Check whether ``hour`` falls inside the sleep window.

        The window is ``[sleep_start_hour, sleep_end_hour)``; a start later
        than the end wraps past midnight.
        """
        start = self._config.sleep_start_hour
        end = self._config.sleep_end_hour
        if start == end:
            return False
        if start < end:
            return start <= hour < end
        return hour >= start or hour < end

    def is_sleeping(self, now: Optional[datetime] = None) -> bool:
        now = now or self._clock()
        return self.is_sleep_hour(now.hour)

    @staticmethod
    def nearby_count(counts: tuple[int, ...], hour: int) -> int:
        """Sum of the previous, current and next hour buckets (wrapping)."""
        return (
            counts[(hour - 1) % HOURS_PER_DAY]
            + counts[hour % HOURS_PER_DAY]
            + counts[(hour + 1) % HOURS_PER_DAY]
        )

    @staticmethod
    def minutes_since(timestamp: Optional[str], now: datetime) -> float:
        """Minutes elapsed since an ISO timestamp, or 999 if unknown."""
        if not timestamp:
            return NEVER_SEEN_MINUTES
        try:
            then = datetime.fromisoformat(timestamp)
        except ValueError:
            return NEVER_SEEN_MINUTES
        elapsed = (_as_aware(now) - _as_aware(then)).total_seconds() / 60
        return max(0.0, elapsed)

    def select_tier(
        self, nearby: int, minutes_since_last: float
    ) -> tuple[ActivityTier, int]:
        """Map activity signals onto a tier and its interval in seconds."""
        config = self._config
        if (
            nearby >= config.active_nearby_threshold
            or minutes_since_last < config.active_recency_minutes
        ):
            return ActivityTier.ACTIVE, config.base_seconds
        if (
            nearby >= config.moderate_nearby_threshold
            or minutes_since_last < config.moderate_recency_minutes
        ):
            return ActivityTier.MODERATE, config.mid_seconds
        return ActivityTier.LOW_FREQUENCY, config.slow_seconds

    def next_interval(
        self, stats: StatsState, now: Optional[datetime] = None
    ) -> Optional[IntervalDecision]:
        """
        Decide the delay before the next cycle.

        Args:
            stats: Current activity statistics
            now: Evaluation time (defaults to the scheduler clock)

        Returns:
            The interval decision, or None during the sleep window
        """
        now = now or self._clock()
        if self.is_sleep_hour(now.hour):
            return None

        nearby = self.nearby_count(stats.hourly_new_item_counts, now.hour)
        minutes = self.minutes_since(stats.last_new_item_at, now)
        tier, seconds = self.select_tier(nearby, minutes)

        return IntervalDecision(
            interval_seconds=seconds,
            tier=tier,
            nearby_count=nearby,
            minutes_since_last=minutes,
        )
