"""
Long-running monitor loop.

Repeats poll cycles until an interrupt arrives: waits out the nightly
sleep window, runs a cycle, logs a statistics summary every few cycles,
and sleeps for the interval chosen by the adaptive scheduler. Every wait
returns early when the stop event is set. Nothing raised inside a cycle
ends the loop.
"""

import asyncio
import signal
from datetime import timedelta
from typing import Awaitable, Callable, Optional

from .audit_logger import AuditLogger
from .config import MonitorConfig
from .enums import FailureCode, LogLevel
from .models import Clock, CycleResult, local_now
from .orchestrator import RunOrchestrator
from .scheduler import AdaptiveScheduler
from .stats_store import StatsStore

WaitFunc = Callable[[asyncio.Event, float], Awaitable[bool]]


async def wait_or_stop(stop_event: asyncio.Event, seconds: float) -> bool:
    """
    Wait up to ``seconds`` for ``stop_event``.

    Returns:
        True if the stop event was set before the timeout
    """
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True


class MonitorService:
    """
    The monitor's main loop around ``RunOrchestrator``.

    Cycles never overlap: the next cycle's delay starts only after the
    previous cycle, including its stats update, has finished.
    """

    COMPONENT = "MonitorService"

    def __init__(
        self,
        config: MonitorConfig,
        orchestrator: RunOrchestrator,
        scheduler: AdaptiveScheduler,
        stats: StatsStore,
        clock: Optional[Clock] = None,
        logger: Optional[AuditLogger] = None,
        wait: Optional[WaitFunc] = None,
    ) -> None:
        self._config = config
        self._orchestrator = orchestrator
        self._scheduler = scheduler
        self._stats = stats
        self._clock = clock or local_now
        self._logger = logger
        self._wait = wait or wait_or_stop
        self._check_count = 0

    @property
    def check_count(self) -> int:
        """Cycles completed since this service started."""
        return self._check_count

    async def run(
        self,
        stop_event: Optional[asyncio.Event] = None,
        max_cycles: Optional[int] = None,
        install_signal_handlers: bool = True,
    ) -> int:
        """
        Run cycles until stopped.

        Args:
            stop_event: Event that ends the loop when set
            max_cycles: Return after this many cycles (None runs forever)
            install_signal_handlers: Set the stop event on SIGINT/SIGTERM

        Returns:
            Number of cycles run
        """
        stop_event = stop_event or asyncio.Event()
        installed = self._install_signal_handlers(stop_event) if install_signal_handlers else []

        try:
            self._log_start_banner()
            await self._loop(stop_event, max_cycles)
        finally:
            self._remove_signal_handlers(installed)

        self._log(LogLevel.INFO, "Monitor stopped", {"cycles": self._check_count})
        return self._check_count

    async def _loop(self, stop_event: asyncio.Event, max_cycles: Optional[int]) -> None:
        intervals = self._config.intervals

        while not stop_event.is_set():
            now = self._clock()
            if self._scheduler.is_sleep_hour(now.hour):
                self._log(
                    LogLevel.INFO,
                    "Inside sleep window, waiting",
                    {
                        "hour": now.hour,
                        "sleep_start_hour": intervals.sleep_start_hour,
                        "sleep_end_hour": intervals.sleep_end_hour,
                        "poll_seconds": intervals.sleep_poll_seconds,
                    },
                )
                await self._wait(stop_event, intervals.sleep_poll_seconds)
                continue

            result = await self._run_cycle(stop_event)
            self._check_count += 1

            total_checks = self._stats.state.total_checks
            if total_checks and total_checks % intervals.stats_summary_every == 0:
                self._log_stats_summary()

            if max_cycles is not None and self._check_count >= max_cycles:
                break
            if stop_event.is_set():
                break

            if result is None or result.failed:
                self._log(
                    LogLevel.WARN,
                    "Cooling down after cycle failure",
                    {"seconds": intervals.error_cooldown_seconds},
                )
                await self._wait(stop_event, intervals.error_cooldown_seconds)
                continue

            decision = self._scheduler.next_interval(self._stats.state)
            if decision is None:
                # The sleep window began during the cycle
                continue

            next_run = self._clock() + timedelta(seconds=decision.interval_seconds)
            self._log(
                LogLevel.INFO,
                f"Next check in {decision.interval_seconds // 60} min ({decision.reason})",
                {
                    "interval_seconds": decision.interval_seconds,
                    "tier": decision.tier.value,
                    "nearby_count": decision.nearby_count,
                    "minutes_since_last": round(decision.minutes_since_last, 1),
                    "next_run_at": next_run.isoformat(),
                },
            )
            await self._wait(stop_event, decision.interval_seconds)

    async def _run_cycle(self, stop_event: asyncio.Event) -> Optional[CycleResult]:
        try:
            return await self._orchestrator.run_cycle(stop_event)
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    self.COMPONENT,
                    "Unhandled error in cycle",
                    error=e,
                    additional_data={"failure": FailureCode.CYCLE_FATAL.value},
                )
            self._stats.record_error()
            return None

    def _install_signal_handlers(self, stop_event: asyncio.Event) -> list[signal.Signals]:
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig, stop_event)
            except (NotImplementedError, RuntimeError, ValueError):
                continue
            installed.append(sig)
        return installed

    def _remove_signal_handlers(self, installed: list[signal.Signals]) -> None:
        if not installed:
            return
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)

    def _on_signal(self, sig: signal.Signals, stop_event: asyncio.Event) -> None:
        self._log(LogLevel.INFO, f"Received {sig.name}, shutting down", {"signal": sig.name})
        stop_event.set()

    def _log_start_banner(self) -> None:
        config = self._config
        intervals = config.intervals
        self._log(
            LogLevel.INFO,
            "Listing monitor started",
            {
                "targets": [target.key for target in config.targets],
                "interval_seconds": {
                    "base": intervals.base_seconds,
                    "mid": intervals.mid_seconds,
                    "slow": intervals.slow_seconds,
                },
                "sleep_window": f"{intervals.sleep_start_hour:02d}:00-{intervals.sleep_end_hour:02d}:00",
                "consistency_retries": config.verification.consistency_retries,
                "proxy_enabled": config.proxy.enabled,
                "simulation_mode": config.simulation_mode,
                "snapshot_file": str(config.persistence.snapshot_file),
                "stats_file": str(config.persistence.stats_file),
            },
        )

    def _log_stats_summary(self) -> None:
        self._log(LogLevel.INFO, "Statistics summary", self._stats.summary(top=3))

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)
