"""
One extraction attempt against a target.

Runs warm-up, navigation, the listing-selector wait, the stability check
and parsing, and folds every expected failure into a typed
``AttemptResult``. An access-denied response is reported as
``FailureCode.ACCESS_DENIED`` so the caller can stop retrying.
"""

from typing import Optional

from .audit_logger import AuditLogger
from .config import RendererConfig, TargetConfig, VerificationConfig
from .enums import FailureCode, LogLevel
from .exceptions import AccessDeniedError, DomNotStableError, RenderError
from .extraction import CardListingParser, ListingParser
from .models import AttemptResult
from .renderer import PageSession, RenderOptions
from .stability import StabilityVerifier


class ListingScraper:
    """Produces one ``AttemptResult`` per call to ``attempt``."""

    COMPONENT = "ListingScraper"

    def __init__(
        self,
        stability: StabilityVerifier,
        parser: Optional[ListingParser] = None,
        verification: Optional[VerificationConfig] = None,
        renderer_config: Optional[RendererConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._stability = stability
        self._parser = parser or CardListingParser()
        self._verification = verification or VerificationConfig()
        self._renderer_config = renderer_config or RendererConfig()
        self._logger = logger

    async def attempt(self, session: PageSession, target: TargetConfig) -> AttemptResult:
        """
        Scrape ``target`` once through ``session``.

        Returns:
            Records in page order, or an empty result carrying the failure
            code. Unexpected exceptions propagate.
        """
        await session.warm_up()

        try:
            rendered = await session.render(
                target.url,
                RenderOptions(
                    timeout_ms=self._verification.navigation_timeout_ms,
                    wait_until="load",
                ),
            )
        except AccessDeniedError as e:
            self._log(
                LogLevel.WARN,
                f"Access denied for {target.key}",
                {"url": target.url, "status_code": e.details.get("status_code")},
            )
            return AttemptResult(
                failure=FailureCode.ACCESS_DENIED,
                status_code=e.details.get("status_code"),
                error=e.message,
            )
        except RenderError as e:
            self._log(LogLevel.WARN, f"Navigation failed for {target.key}", {"url": target.url, "error": e.message})
            return AttemptResult(failure=FailureCode.RENDER_FAILED, error=e.message)

        if not rendered.ok:
            self._log(
                LogLevel.WARN,
                f"Unexpected HTTP status for {target.key}",
                {"url": target.url, "status_code": rendered.status_code},
            )
            return AttemptResult(
                failure=FailureCode.HTTP_ERROR,
                status_code=rendered.status_code,
            )

        selector = self._renderer_config.listing_selector
        found = await session.wait_for_selector(selector, self._verification.selector_timeout_ms)
        if not found:
            self._log(LogLevel.WARN, f"Listing selector not found for {target.key}", {"selector": selector})
            return AttemptResult(
                failure=FailureCode.SELECTOR_MISSING,
                status_code=rendered.status_code,
            )

        try:
            content = await self._stability.wait_for_stable_content(session)
        except DomNotStableError as e:
            return AttemptResult(
                failure=FailureCode.DOM_NOT_STABLE,
                status_code=rendered.status_code,
                error=e.message,
            )
        except RenderError as e:
            return AttemptResult(
                failure=FailureCode.RENDER_FAILED,
                status_code=rendered.status_code,
                error=e.message,
            )

        records = self._parser.parse(content)
        if not records:
            self._log(LogLevel.WARN, f"No records extracted for {target.key}", {"url": target.url})
            return AttemptResult(
                failure=FailureCode.EXTRACTION_EMPTY,
                status_code=rendered.status_code,
            )

        self._log(
            LogLevel.INFO,
            f"Extracted {len(records)} records for {target.key}",
            {"count": len(records), "top": records[0].name},
        )
        return AttemptResult(records=records, status_code=rendered.status_code)

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)
