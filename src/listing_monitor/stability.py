"""
Stability Verifier: wait for rendered content to stop mutating.

Listing pages keep rearranging themselves for a while after load (lazy
images, late-arriving recommendations, client-side sorting). Extraction is
only trusted once consecutive captures of the full page content are
byte-for-byte identical.
"""

from typing import Optional

from .audit_logger import AuditLogger
from .config import PacingConfig, VerificationConfig
from .enums import LogLevel
from .exceptions import DomNotStableError
from .pacing import Pacer
from .renderer import PageSession


class StabilityVerifier:
    """
    Captures page content round by round until it stops changing.

    Each round waits for the network to settle (a timeout is not an
    error), pauses, and captures the content. A capture identical to the
    previous round's increments the match count; any difference resets it.
    Once the count reaches ``stability_required_matches`` the capture is
    returned. Every round that does not return ends with a further pause.
    """

    COMPONENT = "StabilityVerifier"

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

    async def wait_for_stable_content(self, session: PageSession) -> str:
        """
        Return the page content once it has stabilized.

        Raises:
            DomNotStableError: If ``stability_max_attempts`` rounds pass
                without enough consecutive identical captures
        """
        max_attempts = self._config.stability_max_attempts
        required = self._config.stability_required_matches
        previous: Optional[str] = None
        stable_count = 0

        for attempt in range(1, max_attempts + 1):
            settled = await session.wait_for_network_idle(self._config.settle_timeout_ms)
            if not settled:
                self._log(
                    LogLevel.DEBUG,
                    "Network idle wait timed out, capturing anyway",
                    {"attempt": attempt},
                )

            await self._pacer.pause(self._pacing.stability_settle)
            current = await session.content()

            if previous is not None and current == previous:
                stable_count += 1
                self._log(
                    LogLevel.DEBUG,
                    f"Content unchanged ({stable_count}/{required})",
                    {"attempt": attempt},
                )
                if stable_count >= required:
                    return current
            else:
                if previous is not None:
                    self._log(LogLevel.DEBUG, "Content changed, re-checking", {"attempt": attempt})
                stable_count = 0

            previous = current
            await self._pacer.pause(self._pacing.stability_round)

        self._log(LogLevel.WARN, "Content did not stabilize", {"attempts": max_attempts})
        raise DomNotStableError(max_attempts)

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)
