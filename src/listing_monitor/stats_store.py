"""
Stats Store for long-run activity statistics.

Owns the ``StatsState`` consulted by the adaptive scheduler: a 24-bucket
histogram of new items per hour of day, check and item totals, and error
counters. The histogram is cumulative across all days and never decays.
"""

from typing import Optional

from .audit_logger import AuditLogger
from .enums import FailureCode, LogLevel
from .exceptions import PersistenceError
from .json_store import JsonFileStore
from .models import HOURS_PER_DAY, Clock, StatsState, local_now


class StatsStore:
    """
    Owner of the persisted ``StatsState``.

    Each mutation returns the new state and is written through to disk
    before returning.
    """

    VERSION = 1
    COMPONENT = "StatsStore"

    def __init__(
        self,
        store: JsonFileStore,
        clock: Optional[Clock] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._store = store
        self._clock = clock or local_now
        self._logger = logger
        self._state = StatsState()
        self._loaded = False

    @property
    def state(self) -> StatsState:
        """Current statistics."""
        self._ensure_loaded()
        return self._state

    def load(self) -> StatsState:
        """
        Load persisted statistics, falling back to zeroed defaults.

        Returns:
            The loaded (or default) state
        """
        self._state = StatsState()
        self._loaded = True

        try:
            raw_data = self._store.load()
        except PersistenceError as e:
            self._log(
                LogLevel.ERROR,
                f"Failed to load stats, starting empty: {e.message}",
                {"failure": FailureCode.PERSISTENCE_FAILED.value, "error": e.to_dict()},
            )
            return self._state

        if raw_data is None:
            return self._state

        self._state = self._parse_state(raw_data)
        return self._state

    def _parse_state(self, raw_data: dict) -> StatsState:
        counts = raw_data.get("hourly_new_item_counts")
        if (
            not isinstance(counts, list)
            or len(counts) != HOURS_PER_DAY
            or not all(isinstance(c, int) and c >= 0 for c in counts)
        ):
            if counts is not None:
                self._log(
                    LogLevel.WARN,
                    "Malformed hourly counts in stats file, resetting histogram",
                    {"found": repr(counts)[:100]},
                )
            counts = [0] * HOURS_PER_DAY

        def _int(name: str) -> int:
            value = raw_data.get(name, 0)
            return value if isinstance(value, int) and value >= 0 else 0

        def _text(name: str) -> Optional[str]:
            value = raw_data.get(name)
            return value if isinstance(value, str) and value else None

        return StatsState(
            hourly_new_item_counts=tuple(counts),
            total_checks=_int("total_checks"),
            total_new_items=_int("total_new_items"),
            last_new_item_at=_text("last_new_item_at"),
            error_count=_int("error_count"),
            last_error_at=_text("last_error_at"),
        )

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def update(self, new_item_count: int) -> StatsState:
        """
        Record one completed cycle.

        Adds ``new_item_count`` to the current hour's bucket, increments
        the check count, and refreshes the last-new-item time when any item
        was found.
        """
        if new_item_count < 0:
            raise ValueError("new_item_count must be non-negative")

        self._ensure_loaded()
        now = self._clock()
        self._state = self._state.with_new_items(
            hour=now.hour,
            count=new_item_count,
            timestamp=now.isoformat(),
        )
        self._persist()
        return self._state

    def record_error(self) -> StatsState:
        """Record one cycle-level failure."""
        self._ensure_loaded()
        self._state = self._state.with_error(self._clock().isoformat())
        self._persist()
        return self._state

    def summary(self, top: int = 3) -> dict:
        """Operator-facing summary of the statistics."""
        state = self.state
        return {
            "total_checks": state.total_checks,
            "total_new_items": state.total_new_items,
            "error_count": state.error_count,
            "last_new_item_at": state.last_new_item_at,
            "last_error_at": state.last_error_at,
            "top_hours": [
                {"hour": hour, "count": count}
                for hour, count in state.top_hours(top)
            ],
        }

    def to_dict(self) -> dict:
        """Serialize the state into its on-disk shape."""
        return {
            "version": self.VERSION,
            "hourly_new_item_counts": list(self._state.hourly_new_item_counts),
            "total_checks": self._state.total_checks,
            "total_new_items": self._state.total_new_items,
            "last_new_item_at": self._state.last_new_item_at,
            "error_count": self._state.error_count,
            "last_error_at": self._state.last_error_at,
        }

    def _persist(self) -> bool:
        try:
            self._store.save(self.to_dict())
        except PersistenceError as e:
            self._log(
                LogLevel.ERROR,
                f"Failed to save stats: {e.message}",
                {"failure": FailureCode.PERSISTENCE_FAILED.value, "error": e.to_dict()},
            )
            return False
        return True

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)
