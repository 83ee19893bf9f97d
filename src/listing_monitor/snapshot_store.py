"""
Snapshot Store for per-target change detection.

Holds the last trusted top record for every monitored target, keyed by
``"{display_name}_{category}"``, and decides whether a verified sample
represents a new top listing. Every mutation is written through to disk
before ``detect_change`` returns, so a restart never re-reports a change
that was already detected.
"""

from typing import Optional

from .audit_logger import AuditLogger
from .enums import FailureCode, LogLevel
from .exceptions import PersistenceError
from .fingerprint import fingerprint
from .json_store import JsonFileStore
from .models import Clock, Record, Sample, SnapshotEntry, local_now


class SnapshotStore:
    """
    Owner of the persisted per-target baselines.

    No other component mutates snapshot entries; callers go through
    ``detect_change``.
    """

    VERSION = 1
    COMPONENT = "SnapshotStore"

    def __init__(
        self,
        store: JsonFileStore,
        clock: Optional[Clock] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the snapshot store.

        Args:
            store: Durable JSON document backing the snapshots
            clock: Source of the current time (defaults to local wall clock)
            logger: Optional audit logger
        """
        self._store = store
        self._clock = clock or local_now
        self._logger = logger
        self._entries: dict[str, SnapshotEntry] = {}
        self._last_updated: Optional[str] = None
        self._loaded = False

    def load(self) -> dict[str, SnapshotEntry]:
        """
        Load persisted snapshots, falling back to an empty store.

        A missing file is a normal first run. An unreadable or malformed
        file is logged and treated as empty; malformed individual entries
        are dropped.
        """
        self._entries = {}
        self._last_updated = None
        self._loaded = True

        try:
            raw_data = self._store.load()
        except PersistenceError as e:
            self._log(
                LogLevel.ERROR,
                f"Failed to load snapshots, starting empty: {e.message}",
                {"failure": FailureCode.PERSISTENCE_FAILED.value, "error": e.to_dict()},
            )
            return self.entries

        if raw_data is None:
            return self.entries

        targets = raw_data.get("targets", {})
        if not isinstance(targets, dict):
            targets = {}

        for key, entry_data in targets.items():
            entry = self._parse_entry(entry_data)
            if entry is None:
                self._log(
                    LogLevel.WARN,
                    f"Dropping malformed snapshot entry: {key}",
                    {"target_key": key},
                )
                continue
            self._entries[key] = entry

        self._last_updated = raw_data.get("last_updated")
        return self.entries

    @staticmethod
    def _parse_entry(entry_data) -> Optional[SnapshotEntry]:
        if not isinstance(entry_data, dict):
            return None
        try:
            entry = SnapshotEntry(
                fingerprint=str(entry_data["fingerprint"]),
                record_name=str(entry_data["record_name"]),
                record_price=int(entry_data.get("record_price", 0)),
                last_observed_at=str(entry_data["last_observed_at"]),
            )
        except (KeyError, TypeError, ValueError):
            return None
        if not entry.fingerprint:
            return None
        return entry

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def get_entry(self, target_key: str) -> Optional[SnapshotEntry]:
        """Stored baseline for a target, or None if it has never been observed."""
        self._ensure_loaded()
        return self._entries.get(target_key)

    @property
    def entries(self) -> dict[str, SnapshotEntry]:
        """Copy of all stored baselines."""
        return dict(self._entries)

    @property
    def last_updated(self) -> Optional[str]:
        return self._last_updated

    def detect_change(self, target_key: str, sample: Sample) -> list[Record]:
        """
        Compare a verified sample against the stored baseline.

        Args:
            target_key: Target key (``"{display_name}_{category}"``)
            sample: Verified records in page order

        Returns:
            ``[sample[0]]`` when the top record differs from the baseline,
            otherwise an empty list. The first observation of a target only
            stores the baseline.
        """
        self._ensure_loaded()

        if not sample:
            self._log(
                LogLevel.WARN,
                f"Empty sample for {target_key}, nothing to compare",
                {"target_key": target_key},
            )
            return []

        top = sample[0]
        top_fingerprint = fingerprint(top)
        now = self._clock().isoformat()
        previous = self._entries.get(target_key)

        if previous is None:
            self._entries[target_key] = self._entry_for(top, top_fingerprint, now)
            self._persist()
            self._log(
                LogLevel.INFO,
                f"Baseline stored for {target_key}: {top.name}",
                {"target_key": target_key, "fingerprint": top_fingerprint},
            )
            return []

        if previous.fingerprint == top_fingerprint:
            self._entries[target_key] = SnapshotEntry(
                fingerprint=previous.fingerprint,
                record_name=previous.record_name,
                record_price=previous.record_price,
                last_observed_at=now,
            )
            self._persist()
            return []

        self._entries[target_key] = self._entry_for(top, top_fingerprint, now)
        self._persist()
        self._log(
            LogLevel.INFO,
            f"New top listing for {target_key}: {top.name}",
            {
                "target_key": target_key,
                "previous_fingerprint": previous.fingerprint,
                "fingerprint": top_fingerprint,
                "price": top.price,
            },
        )
        return [top]

    @staticmethod
    def _entry_for(record: Record, record_fingerprint: str, observed_at: str) -> SnapshotEntry:
        return SnapshotEntry(
            fingerprint=record_fingerprint,
            record_name=record.name,
            record_price=record.price,
            last_observed_at=observed_at,
        )

    def to_dict(self) -> dict:
        """Serialize the store into its on-disk shape."""
        return {
            "version": self.VERSION,
            "targets": {
                key: {
                    "fingerprint": entry.fingerprint,
                    "record_name": entry.record_name,
                    "record_price": entry.record_price,
                    "last_observed_at": entry.last_observed_at,
                }
                for key, entry in self._entries.items()
            },
            "last_updated": self._last_updated,
        }

    def _persist(self) -> bool:
        """Write the store through to disk. Failures keep the in-memory state."""
        self._last_updated = self._clock().isoformat()
        try:
            self._store.save(self.to_dict())
        except PersistenceError as e:
            self._log(
                LogLevel.ERROR,
                f"Failed to save snapshots: {e.message}",
                {"failure": FailureCode.PERSISTENCE_FAILED.value, "error": e.to_dict()},
            )
            return False
        return True

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)
