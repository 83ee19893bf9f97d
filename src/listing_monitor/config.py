"""
Configuration dataclasses for the listing monitor.

This module defines all configuration structures used throughout the system:
monitored targets, polling intervals and sleep window, verification
thresholds, randomized pacing, the page renderer, listing extraction,
notifications, persistence, and logging. A ``MonitorConfig`` is built once
at startup and handed to each component; nothing reads ambient globals.
"""

import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Mapping, Optional

from .enums import LogLevel
from .exceptions import ConfigError


@dataclass(frozen=True)
class TargetConfig:
    """A monitored listing page."""

    url: str
    display_name: str
    category: str
    channel_id: str

    @property
    def key(self) -> str:
        """Key under which this target's baseline is tracked."""
        return f"{self.display_name}_{self.category}"


@dataclass(frozen=True)
class DelayRange:
    """Inclusive range for a randomized delay, in milliseconds."""

    min_ms: int
    max_ms: int


@dataclass(frozen=True)
class IntervalConfig:
    """Adaptive polling intervals and the nightly sleep window."""

    base_seconds: int = 300
    mid_seconds: int = 900
    slow_seconds: int = 1800
    active_nearby_threshold: int = 5
    moderate_nearby_threshold: int = 2
    active_recency_minutes: float = 30.0
    moderate_recency_minutes: float = 120.0
    sleep_start_hour: int = 1
    sleep_end_hour: int = 8
    sleep_poll_seconds: int = 60
    error_cooldown_seconds: int = 60
    stats_summary_every: int = 10


@dataclass(frozen=True)
class VerificationConfig:
    """Stability and consistency verification thresholds."""

    consistency_retries: int = 3
    stability_max_attempts: int = 3
    stability_required_matches: int = 2
    settle_timeout_ms: int = 15000
    selector_timeout_ms: int = 10000
    navigation_timeout_ms: int = 60000


@dataclass(frozen=True)
class PacingConfig:
    """Randomized delays inserted between page interactions."""

    stability_settle: DelayRange = DelayRange(2000, 3000)
    stability_round: DelayRange = DelayRange(1000, 2000)
    empty_backoff: DelayRange = DelayRange(3000, 5000)
    error_backoff: DelayRange = DelayRange(5000, 8000)
    inter_target: DelayRange = DelayRange(5000, 8000)
    warm_up: DelayRange = DelayRange(2000, 4000)
    warm_up_scroll: DelayRange = DelayRange(1000, 2000)
    warm_up_click: DelayRange = DelayRange(3000, 5000)


@dataclass(frozen=True)
class ProxyConfig:
    """Proxy rotation settings. Disabled unless proxies are configured."""

    enabled: bool = False
    servers: tuple[str, ...] = ()


@dataclass(frozen=True)
class RendererConfig:
    """Headless browser settings for the page renderer."""

    headless: Optional[bool] = None  # None: auto-detect from DISPLAY
    warm_up_url: Optional[str] = "https://www.2ndstreet.jp/"
    listing_selector: str = ".itemCard"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )
    locale: str = "ja-JP"
    timezone_id: str = "Asia/Tokyo"
    viewport_width: int = 1920
    viewport_height: int = 1080
    geolocation: Optional[tuple[float, float]] = (35.6762, 139.6503)
    accept_language: str = "ja,en-US;q=0.9,en;q=0.8"
    warm_up_timeout_ms: int = 45000
    click_timeout_ms: int = 15000


@dataclass(frozen=True)
class ExtractionConfig:
    """CSS selectors and parsing rules for listing cards."""

    card_selector: str = ".itemCard"
    name_selector: str = ".itemCard_name"
    price_selector: str = ".itemCard_price"
    price_pattern: str = r"¥\s*([\d,]+)"
    min_name_length: int = 3


@dataclass(frozen=True)
class RetryConfig:
    """Retry behavior for notification delivery."""

    max_retries: int = 1
    base_delay_seconds: float = 2.0
    max_delay_seconds: float = 30.0


@dataclass(frozen=True)
class ChatworkConfig:
    """ChatWork API settings."""

    api_token: str = ""
    base_url: str = "https://api.chatwork.com/v2"
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class NotificationConfig:
    """Notification settings."""

    chatwork: ChatworkConfig = ChatworkConfig()
    retry: RetryConfig = RetryConfig()
    max_records: int = 20
    language: str = "ja"


@dataclass(frozen=True)
class PersistenceConfig:
    """Locations of the durable snapshot and stats files."""

    snapshot_file: Path = Path("2st_snapshot.json")
    stats_file: Path = Path("2st_stats.json")


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


DEFAULT_TARGETS: tuple[TargetConfig, ...] = (
    TargetConfig(
        url="https://www.2ndstreet.jp/search?category=121001&sortBy=arrival",
        display_name="セカンドストリート",
        category="カメラ",
        channel_id="385402385",
    ),
    TargetConfig(
        url="https://www.2ndstreet.jp/search?category=931010&sortBy=arrival",
        display_name="セカンドストリート",
        category="時計",
        channel_id="408715054",
    ),
)


@dataclass(frozen=True)
class MonitorConfig:
    """Main system configuration combining all sub-configurations."""

    targets: tuple[TargetConfig, ...] = DEFAULT_TARGETS
    intervals: IntervalConfig = IntervalConfig()
    verification: VerificationConfig = VerificationConfig()
    pacing: PacingConfig = PacingConfig()
    renderer: RendererConfig = RendererConfig()
    extraction: ExtractionConfig = ExtractionConfig()
    notifications: NotificationConfig = NotificationConfig()
    persistence: PersistenceConfig = PersistenceConfig()
    logging: LoggingConfig = LoggingConfig()
    proxy: ProxyConfig = ProxyConfig()
    simulation_mode: bool = False


def validate_config(config: MonitorConfig) -> list[str]:
    """
    Check a configuration for values the monitor cannot work with.

    Args:
        config: The configuration to check

    Returns:
        List of human-readable problems; empty when the config is usable
    """
    problems: list[str] = []

    if not config.targets:
        problems.append("No targets configured")

    seen_keys: set[str] = set()
    for index, target in enumerate(config.targets):
        if not target.url.startswith(("http://", "https://")):
            problems.append(f"Target {index}: url must be http(s): {target.url!r}")
        if not target.display_name or not target.category:
            problems.append(f"Target {index}: display_name and category are required")
        if not target.channel_id:
            problems.append(f"Target {index}: channel_id is required")
        if target.key in seen_keys:
            problems.append(f"Target {index}: duplicate target key {target.key!r}")
        seen_keys.add(target.key)

    intervals = config.intervals
    for name in ("base_seconds", "mid_seconds", "slow_seconds", "sleep_poll_seconds"):
        if getattr(intervals, name) <= 0:
            problems.append(f"intervals.{name} must be positive")
    for name in ("sleep_start_hour", "sleep_end_hour"):
        if not 0 <= getattr(intervals, name) <= 23:
            problems.append(f"intervals.{name} must be within 0-23")
    if intervals.stats_summary_every < 1:
        problems.append("intervals.stats_summary_every must be >= 1")

    verification = config.verification
    if verification.consistency_retries < 2:
        problems.append(
            "verification.consistency_retries must be >= 2 for two reads to agree"
        )
    if verification.stability_required_matches < 1:
        problems.append("verification.stability_required_matches must be >= 1")
    if verification.stability_max_attempts <= verification.stability_required_matches:
        problems.append(
            "verification.stability_max_attempts must exceed stability_required_matches"
        )

    for name, delay in vars(config.pacing).items():
        if delay.min_ms < 0 or delay.max_ms < delay.min_ms:
            problems.append(f"pacing.{name} must satisfy 0 <= min_ms <= max_ms")

    if config.notifications.max_records < 1:
        problems.append("notifications.max_records must be >= 1")
    if config.logging.level.lower() not in {level.value for level in LogLevel}:
        problems.append(f"logging.level is invalid: {config.logging.level!r}")
    if config.logging.output_format not in ("json", "text", "both"):
        problems.append(f"logging.output_format is invalid: {config.logging.output_format!r}")
    if config.proxy.enabled and not config.proxy.servers:
        problems.append("proxy.enabled requires at least one server")

    return problems


CHATWORK_TOKEN_ENV = "CHATWORK_TOKEN"


def _build(cls, data, name: str, **converted):
    """Instantiate a config dataclass from a JSON object, keeping defaults for absent keys."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            code="invalid_section",
            message=f"Section '{name}' must be an object",
            details={"section": name, "found_type": type(data).__name__},
        )

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(
            code="unknown_keys",
            message=f"Unknown keys in '{name}': {', '.join(unknown)}",
            details={"section": name, "keys": unknown},
        )

    kwargs = {key: value for key, value in data.items() if key not in converted}
    kwargs.update({key: value for key, value in converted.items() if key in data})
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigError(
            code="invalid_section",
            message=f"Invalid section '{name}': {e}",
            details={"section": name},
        )


def _delay_range(value, name: str) -> DelayRange:
    if isinstance(value, dict):
        return _build(DelayRange, value, name)
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return DelayRange(min_ms=int(value[0]), max_ms=int(value[1]))
    raise ConfigError(
        code="invalid_delay",
        message=f"'{name}' must be {{min_ms, max_ms}} or [min, max]",
        details={"section": name},
    )


def config_from_dict(data: dict) -> MonitorConfig:
    """
    Build a ``MonitorConfig`` from its JSON form.

    Absent sections and keys keep their defaults; an absent or empty
    ``targets`` list keeps the default targets.

    Raises:
        ConfigError: On unknown keys or wrongly shaped sections
    """
    if not isinstance(data, dict):
        raise ConfigError(code="invalid_config", message="Configuration must be a JSON object")

    targets_data = data.get("targets") or []
    if not isinstance(targets_data, (list, tuple)):
        raise ConfigError(code="invalid_section", message="'targets' must be a list")
    targets = tuple(
        _build(TargetConfig, target, f"targets[{index}]")
        for index, target in enumerate(targets_data)
    ) or DEFAULT_TARGETS

    pacing_data = data.get("pacing") or {}
    if not isinstance(pacing_data, dict):
        raise ConfigError(code="invalid_section", message="Section 'pacing' must be an object")
    pacing = _build(
        PacingConfig,
        pacing_data,
        "pacing",
        **{
            key: _delay_range(value, f"pacing.{key}")
            for key, value in pacing_data.items()
        },
    )

    renderer_data = data.get("renderer") or {}
    geolocation = renderer_data.get("geolocation") if isinstance(renderer_data, dict) else None
    renderer = _build(
        RendererConfig,
        renderer_data,
        "renderer",
        geolocation=tuple(geolocation) if geolocation is not None else None,
    )

    notifications_data = data.get("notifications") or {}
    if not isinstance(notifications_data, dict):
        raise ConfigError(code="invalid_section", message="Section 'notifications' must be an object")
    notifications = _build(
        NotificationConfig,
        notifications_data,
        "notifications",
        chatwork=_build(ChatworkConfig, notifications_data.get("chatwork"), "notifications.chatwork"),
        retry=_build(RetryConfig, notifications_data.get("retry"), "notifications.retry"),
    )

    persistence_data = data.get("persistence") or {}
    persistence = _build(
        PersistenceConfig,
        persistence_data,
        "persistence",
        **{
            key: Path(value)
            for key, value in (persistence_data.items() if isinstance(persistence_data, dict) else [])
        },
    )

    proxy_data = data.get("proxy") or {}
    servers = proxy_data.get("servers") if isinstance(proxy_data, dict) else None
    proxy = _build(
        ProxyConfig,
        proxy_data,
        "proxy",
        servers=tuple(servers) if servers is not None else None,
    )

    known_sections = {f.name for f in fields(MonitorConfig)}
    unknown = sorted(set(data) - known_sections)
    if unknown:
        raise ConfigError(
            code="unknown_keys",
            message=f"Unknown configuration sections: {', '.join(unknown)}",
            details={"keys": unknown},
        )

    return MonitorConfig(
        targets=targets,
        intervals=_build(IntervalConfig, data.get("intervals"), "intervals"),
        verification=_build(VerificationConfig, data.get("verification"), "verification"),
        pacing=pacing,
        renderer=renderer,
        extraction=_build(ExtractionConfig, data.get("extraction"), "extraction"),
        notifications=notifications,
        persistence=persistence,
        logging=_build(LoggingConfig, data.get("logging"), "logging"),
        proxy=proxy,
        simulation_mode=bool(data.get("simulation_mode", False)),
    )


def config_to_dict(config: MonitorConfig) -> dict:
    """Serialize a ``MonitorConfig`` into its JSON form."""
    data = asdict(config)
    data["persistence"] = {
        key: str(value) for key, value in data["persistence"].items()
    }
    return data


def with_environment_overrides(
    config: MonitorConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> MonitorConfig:
    """Apply secrets from the environment: ``CHATWORK_TOKEN`` replaces the configured token."""
    environ = os.environ if environ is None else environ
    token = environ.get(CHATWORK_TOKEN_ENV)
    if not token:
        return config

    chatwork = replace(config.notifications.chatwork, api_token=token)
    notifications = replace(config.notifications, chatwork=chatwork)
    return replace(config, notifications=notifications)
