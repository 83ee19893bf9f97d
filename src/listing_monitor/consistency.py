"""
Consistency Verifier: require two agreeing reads before trusting a sample.

A single read can show a transient reordering or a half-rendered list.
Since a notification cannot be un-sent, a sample is only accepted once two
consecutive non-empty attempts agree on the fingerprint of the top record.
"""

from typing import Awaitable, Callable, Optional

from .audit_logger import AuditLogger
from .config import PacingConfig, VerificationConfig
from .enums import FailureCode, LogLevel
from .exceptions import AccessDeniedError, ListingMonitorError
from .fingerprint import fingerprint
from .models import AttemptResult, Sample, VerificationResult
from .pacing import Pacer

AttemptFunc = Callable[[], Awaitable[AttemptResult]]


class ConsistencyVerifier:
    """
    Runs up to ``consistency_retries`` attempts and returns the first
    sample whose top record matches the previous non-empty sample's.

    - An empty attempt consumes a retry and backs off ``empty_backoff``.
    - A non-empty attempt that does not agree backs off ``empty_backoff``.
    - An attempt raising ``ListingMonitorError`` consumes a retry and backs
      off ``error_backoff``.
    - ``ACCESS_DENIED``, reported or raised as ``AccessDeniedError``, stops
      the loop at once.
    - Other exceptions propagate.
    """

    COMPONENT = "ConsistencyVerifier"

    def __init__(
        self,
        config: Optional[VerificationConfig] = None,
        pacing: Optional[PacingConfig] = None,
        pacer: Optional[Pacer] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._config = config or VerificationConfig()
        self._pacing = pacing or PacingConfig()
        self._pacer = pacer or Pacer()
        self._logger = logger

    async def verify(self, attempt: AttemptFunc, label: str = "") -> VerificationResult:
        """
        Verify a target by repeated extraction.

        Args:
            attempt: Performs one extraction attempt
            label: Target key used in log messages

        Returns:
            The agreed sample, or an empty result with the failure code
        """
        retries = self._config.consistency_retries
        results: list[Sample] = []

        for attempt_number in range(1, retries + 1):
            try:
                outcome = await attempt()
            except AccessDeniedError as e:
                self._log(LogLevel.WARN, f"Access denied for {label}, aborting retries", {"error": e.to_dict()})
                return VerificationResult(
                    failure=FailureCode.ACCESS_DENIED,
                    attempts=attempt_number,
                )
            except ListingMonitorError as e:
                self._log(
                    LogLevel.WARN,
                    f"Attempt {attempt_number}/{retries} failed for {label}",
                    {"error": e.to_dict()},
                )
                await self._pacer.pause(self._pacing.error_backoff)
                continue

            if outcome.failure == FailureCode.ACCESS_DENIED:
                return VerificationResult(
                    failure=FailureCode.ACCESS_DENIED,
                    attempts=attempt_number,
                )

            if not outcome.records:
                self._log(
                    LogLevel.INFO,
                    f"Attempt {attempt_number}/{retries} returned no records for {label}",
                    {"failure": outcome.failure.value if outcome.failure else None},
                )
                await self._pacer.pause(self._pacing.empty_backoff)
                continue

            results.append(outcome.records)

            if len(results) >= 2:
                previous_top = fingerprint(results[-2][0])
                current_top = fingerprint(results[-1][0])
                if previous_top == current_top:
                    self._log(
                        LogLevel.INFO,
                        f"Top record confirmed on attempt {attempt_number} for {label}",
                        {"fingerprint": current_top, "name": results[-1][0].name[:50]},
                    )
                    return VerificationResult(records=results[-1], attempts=attempt_number)
                self._log(
                    LogLevel.DEBUG,
                    f"Top record disagreed on attempt {attempt_number} for {label}",
                    {"previous": previous_top, "current": current_top},
                )

            await self._pacer.pause(self._pacing.empty_backoff)

        failure = (
            FailureCode.VERIFICATION_INCONSISTENT if results else FailureCode.EXTRACTION_EMPTY
        )
        self._log(
            LogLevel.WARN,
            f"Could not confirm top record for {label}, skipping notification",
            {"failure": failure.value, "non_empty_attempts": len(results)},
        )
        return VerificationResult(failure=failure, attempts=retries)

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)
