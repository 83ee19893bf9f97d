"""
Run Orchestrator for the listing monitor.

Drives one poll cycle: opens a fresh renderer session, then for each
configured target in order runs the consistency-checked extraction,
compares the verified top record against the stored baseline, and
notifies on change. Targets are processed strictly one after another with
a randomized pause between them. The cycle's new-item total is reported
to the stats store exactly once, whether or not the cycle failed.
"""

import asyncio
from typing import Optional

from .audit_logger import AuditLogger
from .config import MonitorConfig, TargetConfig
from .consistency import ConsistencyVerifier
from .enums import FailureCode, LogLevel, TargetOutcome
from .models import Clock, CycleResult, TargetResult, local_now
from .notifications import ListingNotifier
from .pacing import Pacer
from .renderer import PageSession, Renderer
from .scraper import ListingScraper
from .snapshot_store import SnapshotStore
from .stats_store import StatsStore


class RunOrchestrator:
    """
    Coordinates one cycle across all targets.

    The orchestrator holds only per-cycle state; baselines and statistics
    are owned by their stores.
    """

    COMPONENT = "RunOrchestrator"

    def __init__(
        self,
        config: MonitorConfig,
        renderer: Renderer,
        scraper: ListingScraper,
        verifier: ConsistencyVerifier,
        snapshots: SnapshotStore,
        stats: StatsStore,
        notifier: ListingNotifier,
        pacer: Optional[Pacer] = None,
        clock: Optional[Clock] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._config = config
        self._renderer = renderer
        self._scraper = scraper
        self._verifier = verifier
        self._snapshots = snapshots
        self._stats = stats
        self._notifier = notifier
        self._pacer = pacer or Pacer()
        self._clock = clock or local_now
        self._logger = logger

    @property
    def config(self) -> MonitorConfig:
        return self._config

    async def run_cycle(self, stop_event: Optional[asyncio.Event] = None) -> CycleResult:
        """
        Run one full pass over all targets.

        Args:
            stop_event: When set, the cycle ends after the current target

        Returns:
            The cycle summary. Unexpected errors are recorded as a fatal
            cycle rather than raised.
        """
        result = CycleResult(started_at=self._clock().isoformat())
        self._log(
            LogLevel.INFO,
            "Cycle started",
            {"targets": len(self._config.targets), "started_at": result.started_at},
        )

        try:
            async with self._renderer.session() as session:
                for index, target in enumerate(self._config.targets):
                    if stop_event is not None and stop_event.is_set():
                        result.interrupted = True
                        self._log(LogLevel.INFO, "Stop requested, ending cycle early", {})
                        break

                    target_result = await self._process_target(session, target)
                    result.target_results.append(target_result)
                    result.new_item_count += len(target_result.new_records)

                    if index < len(self._config.targets) - 1:
                        await self._pacer.pause(self._config.pacing.inter_target)
        except Exception as e:
            result.fatal_error = f"{type(e).__name__}: {e}"
            if self._logger:
                self._logger.log_error(
                    self.COMPONENT,
                    "Cycle failed",
                    error=e,
                    additional_data={
                        "failure": FailureCode.CYCLE_FATAL.value,
                        "new_items_before_failure": result.new_item_count,
                    },
                )
            self._stats.record_error()
        finally:
            self._stats.update(result.new_item_count)

        result.finished_at = self._clock().isoformat()
        self._log(
            LogLevel.INFO,
            "Cycle finished",
            {
                "new_items": result.new_item_count,
                "fatal": result.failed,
                "interrupted": result.interrupted,
                "finished_at": result.finished_at,
            },
        )
        return result

    async def _process_target(self, session: PageSession, target: TargetConfig) -> TargetResult:
        key = target.key

        async def attempt():
            return await self._scraper.attempt(session, target)

        verification = await self._verifier.verify(attempt, label=key)

        if not verification.verified:
            failure = verification.failure or FailureCode.EXTRACTION_EMPTY
            if failure == FailureCode.ACCESS_DENIED:
                rotated = self._renderer.rotate_proxy()
                self._log(
                    LogLevel.WARN,
                    f"Access denied, skipping {key} this cycle",
                    {"target_key": key, "proxy_rotated": rotated is not None},
                )
            self._log_outcome(key, TargetOutcome.SKIPPED, failure)
            return TargetResult(target_key=key, outcome=TargetOutcome.SKIPPED, failure=failure)

        is_baseline = self._snapshots.get_entry(key) is None
        new_records = self._snapshots.detect_change(key, verification.records)

        if not new_records:
            outcome = TargetOutcome.BASELINE if is_baseline else TargetOutcome.UNCHANGED
            self._log_outcome(key, outcome)
            return TargetResult(target_key=key, outcome=outcome)

        sent = await self._notifier.notify(
            channel_id=target.channel_id,
            display_name=target.display_name,
            category=target.category,
            url=target.url,
            records=new_records,
        )
        failure = None if sent else FailureCode.NOTIFY_FAILED
        self._log_outcome(key, TargetOutcome.CHANGED, failure, new_records[0].name)
        return TargetResult(
            target_key=key,
            outcome=TargetOutcome.CHANGED,
            new_records=new_records,
            failure=failure,
            notification_sent=sent,
        )

    def _log_outcome(
        self,
        key: str,
        outcome: TargetOutcome,
        failure: Optional[FailureCode] = None,
        top_name: Optional[str] = None,
    ) -> None:
        data: dict = {"target_key": key, "outcome": outcome.value}
        if failure is not None:
            data["failure"] = failure.value
        if top_name is not None:
            data["top"] = top_name
        level = LogLevel.WARN if outcome == TargetOutcome.SKIPPED else LogLevel.INFO
        self._log(level, f"{key}: {outcome.value}", data)

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)
