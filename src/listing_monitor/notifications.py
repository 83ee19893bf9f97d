"""
Notification delivery for new listings.

Provides the ChatWork channel, the listing message format, and a notifier
that delivers one message per detected change with retry and exponential
backoff. A failed delivery is logged and reported as False; it never
rolls back the snapshot change that triggered it.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Protocol, runtime_checkable

import httpx

from .audit_logger import AuditLogger
from .config import ChatworkConfig, NotificationConfig
from .enums import FailureCode, LogLevel
from .exceptions import NotificationError
from .i18n import get_message
from .models import Record

SEPARATOR = "━━━━━━━━━━━━━━━━━"
FOOTER = "ーーーーーーーーーーー[/info]"


@dataclass
class ListingPayload:
    """Content of one new-listing notification."""

    display_name: str
    category: str
    url: str
    records: list[Record] = field(default_factory=list)
    language: str = "ja"


def format_listing_message(payload: ListingPayload, max_records: int = 20) -> str:
    """
    Render a payload as a ChatWork ``[info]`` block.

    At most ``max_records`` records are listed; any remainder is summarized
    by an overflow line.
    """
    language = payload.language
    lines = [
        "[info]",
        SEPARATOR,
        get_message(
            "notification.target",
            language,
            display_name=payload.display_name,
            category=payload.category,
        ),
        SEPARATOR,
        get_message("notification.link", language, url=payload.url),
        SEPARATOR,
        "",
    ]
    message = "\n".join(lines) + "\n"

    for record in payload.records[:max_records]:
        message += get_message(
            "notification.record", language, name=record.name, price=record.price
        ) + "\n\n"

    overflow = len(payload.records) - max_records
    if overflow > 0:
        message += get_message("notification.overflow", language, count=overflow) + "\n"

    return message + FOOTER


@dataclass
class NotificationResult:
    """Result of a notification delivery attempt."""

    channel: str
    success: bool
    error: Optional[str] = None
    attempts: int = 1


@runtime_checkable
class NotificationChannel(Protocol):
    """Protocol defining the interface for notification channels."""

    async def send(self, channel_id: str, message: str) -> bool:
        """
        Send a message to a room or channel.

        Returns:
            True if delivery was successful, False otherwise

        Raises:
            NotificationError: If the request could not be made at all
        """
        ...

    def get_name(self) -> str:
        ...


class ChatworkChannel:
    """ChatWork notification channel using the v2 REST API."""

    def __init__(
        self,
        config: Optional[ChatworkConfig] = None,
        simulation_mode: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize ChatWork channel.

        Args:
            config: ChatWork configuration with API token and base URL
            simulation_mode: If True, no real network requests are made
            transport: Optional httpx transport (used by tests)
        """
        config = config or ChatworkConfig()
        self._api_token = config.api_token
        self._base_url = config.base_url.rstrip("/")
        self._timeout = config.timeout_seconds
        self._simulation_mode = simulation_mode
        self._transport = transport

    @property
    def simulation_mode(self) -> bool:
        return self._simulation_mode

    def message_url(self, channel_id: str) -> str:
        return f"{self._base_url}/rooms/{channel_id}/messages"

    async def send(self, channel_id: str, message: str) -> bool:
        """Post ``message`` to a ChatWork room. Success iff HTTP 200."""
        if self._simulation_mode:
            # In simulation mode, return success without making network request
            return True

        if not self._api_token:
            raise NotificationError(
                code="missing_token",
                message="ChatWork API token is not configured",
                details={"channel_id": channel_id},
            )

        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            try:
                response = await client.post(
                    self.message_url(channel_id),
                    data={"body": message},
                    headers={"X-ChatWorkToken": self._api_token},
                )
            except httpx.HTTPError as e:
                raise NotificationError(
                    code="request_failed",
                    message=f"ChatWork request failed: {e}",
                    details={"channel_id": channel_id, "error_type": type(e).__name__},
                )

        if response.status_code != 200:
            raise NotificationError(
                code="http_error",
                message=f"ChatWork returned HTTP {response.status_code}",
                details={"channel_id": channel_id, "status_code": response.status_code},
            )
        return True

    def get_name(self) -> str:
        """Return channel name."""
        return "chatwork"


@dataclass
class RetryAttempt:
    """Record of a single retry attempt."""

    attempt_number: int
    error: str
    timestamp: str


class ListingNotifier:
    """
    Sends new-listing notifications with retry logic.

    Implements:
    - No notification for an empty record list or missing channel id
    - Payload truncation to ``max_records`` with an overflow line
    - Retry with exponential backoff per ``RetryConfig``
    - Error logging with every attempt's error when all retries fail
    """

    COMPONENT = "ListingNotifier"

    def __init__(
        self,
        channel: NotificationChannel,
        config: Optional[NotificationConfig] = None,
        logger: Optional[AuditLogger] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        """
        Initialize the notifier.

        Args:
            channel: Delivery channel
            config: Notification configuration (retry, truncation, language)
            logger: Optional audit logger
            sleep: Backoff sleep function (defaults to asyncio.sleep)
        """
        self._channel = channel
        self._config = config or NotificationConfig()
        self._logger = logger
        self._sleep = sleep or asyncio.sleep

    @property
    def channel(self) -> NotificationChannel:
        return self._channel

    async def notify(
        self,
        channel_id: str,
        display_name: str,
        category: str,
        url: str,
        records: list[Record],
    ) -> bool:
        """
        Notify a channel about newly detected records.

        Returns:
            True if the message was delivered
        """
        if not records or not channel_id:
            return False

        payload = ListingPayload(
            display_name=display_name,
            category=category,
            url=url,
            records=list(records),
            language=self._config.language,
        )
        message = format_listing_message(payload, self._config.max_records)
        result = await self._send_with_retry(channel_id, message, payload)

        if result.success:
            self._log(
                LogLevel.INFO,
                f"Notification sent to {self._channel.get_name()} room {channel_id}",
                {
                    "channel_id": channel_id,
                    "record_count": len(records),
                    "attempts": result.attempts,
                },
            )
        return result.success

    async def _send_with_retry(
        self,
        channel_id: str,
        message: str,
        payload: ListingPayload,
    ) -> NotificationResult:
        channel_name = self._channel.get_name()
        max_attempts = self._config.retry.max_retries + 1
        attempts = 0
        retry_attempts: list[RetryAttempt] = []
        last_error: Optional[str] = None

        while attempts < max_attempts:
            attempts += 1
            try:
                if await self._channel.send(channel_id, message):
                    return NotificationResult(
                        channel=channel_name,
                        success=True,
                        attempts=attempts,
                    )
                last_error = "Channel returned failure"
            except NotificationError as e:
                last_error = e.message

            retry_attempts.append(
                RetryAttempt(
                    attempt_number=attempts,
                    error=last_error,
                    timestamp=datetime.now(timezone.utc).isoformat(),
                )
            )

            # Don't delay after the last attempt
            if attempts < max_attempts:
                await self._sleep(self._calculate_delay(attempts - 1))

        self._log_all_retries_failed(channel_name, channel_id, payload, retry_attempts)

        return NotificationResult(
            channel=channel_name,
            success=False,
            error=last_error,
            attempts=attempts,
        )

    def _calculate_delay(self, attempt: int) -> float:
        """Exponential backoff for a 0-indexed attempt, capped at ``max_delay_seconds``."""
        retry = self._config.retry
        delay = retry.base_delay_seconds * (2 ** attempt)
        return min(delay, retry.max_delay_seconds)

    def _log_all_retries_failed(
        self,
        channel_name: str,
        channel_id: str,
        payload: ListingPayload,
        retry_attempts: list[RetryAttempt],
    ) -> None:
        if self._logger is None:
            return

        self._logger.log(
            level=LogLevel.ERROR,
            component=self.COMPONENT,
            message=f"All notification retries failed for channel '{channel_name}'",
            data={
                "failure": FailureCode.NOTIFY_FAILED.value,
                "channel": channel_name,
                "channel_id": channel_id,
                "display_name": payload.display_name,
                "category": payload.category,
                "record_count": len(payload.records),
                "total_attempts": len(retry_attempts),
                "attempts": [
                    {
                        "attempt": attempt.attempt_number,
                        "error": attempt.error,
                        "timestamp": attempt.timestamp,
                    }
                    for attempt in retry_attempts
                ],
            },
        )

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)
