"""
Listing Monitor - new-arrival watcher for rendered listing pages.

This package polls listing pages through a headless browser, accepts an
observation only after the page has settled and two extraction passes
agree, notifies ChatWork rooms when the top listing changes, and adapts
its polling interval to historical activity.
"""

__version__ = "0.1.0"
__author__ = "Listing Monitor Team"

from listing_monitor.exceptions import (
    ListingMonitorError,
    ConfigError,
    RenderError,
    AccessDeniedError,
    DomNotStableError,
    PersistenceError,
    NotificationError,
)
from listing_monitor.enums import (
    ActivityTier,
    FailureCode,
    LogLevel,
    TargetOutcome,
)
from listing_monitor.config import (
    TargetConfig,
    DelayRange,
    IntervalConfig,
    VerificationConfig,
    PacingConfig,
    ProxyConfig,
    RendererConfig,
    ExtractionConfig,
    RetryConfig,
    ChatworkConfig,
    NotificationConfig,
    PersistenceConfig,
    LoggingConfig,
    MonitorConfig,
    DEFAULT_TARGETS,
    validate_config,
    config_from_dict,
    config_to_dict,
    with_environment_overrides,
)
from listing_monitor.models import (
    Record,
    SnapshotEntry,
    StatsState,
    IntervalDecision,
    AttemptResult,
    VerificationResult,
    TargetResult,
    CycleResult,
)
from listing_monitor.fingerprint import fingerprint
from listing_monitor.pacing import Pacer, instant_pacer
from listing_monitor.json_store import JsonFileStore
from listing_monitor.snapshot_store import SnapshotStore
from listing_monitor.stats_store import StatsStore
from listing_monitor.scheduler import AdaptiveScheduler
from listing_monitor.audit_logger import AuditLogger, LogEntry
from listing_monitor.renderer import (
    PageSession,
    Renderer,
    RenderOptions,
    RenderResult,
    PlaywrightPageSession,
    PlaywrightRenderer,
)
from listing_monitor.extraction import CardListingParser, ListingParser
from listing_monitor.stability import StabilityVerifier
from listing_monitor.scraper import ListingScraper
from listing_monitor.consistency import ConsistencyVerifier
from listing_monitor.notifications import (
    ListingPayload,
    NotificationResult,
    NotificationChannel,
    ChatworkChannel,
    ListingNotifier,
    format_listing_message,
)
from listing_monitor.i18n import (
    get_message,
    get_all_message_keys,
    has_translation,
    get_missing_translations,
    validate_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from listing_monitor.orchestrator import RunOrchestrator
from listing_monitor.service import MonitorService
from listing_monitor.cli import (
    main as cli_main,
    create_parser,
    create_monitor_service,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "ListingMonitorError",
    "ConfigError",
    "RenderError",
    "AccessDeniedError",
    "DomNotStableError",
    "PersistenceError",
    "NotificationError",
    # Enums
    "ActivityTier",
    "FailureCode",
    "LogLevel",
    "TargetOutcome",
    # Config
    "TargetConfig",
    "DelayRange",
    "IntervalConfig",
    "VerificationConfig",
    "PacingConfig",
    "ProxyConfig",
    "RendererConfig",
    "ExtractionConfig",
    "RetryConfig",
    "ChatworkConfig",
    "NotificationConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "MonitorConfig",
    "DEFAULT_TARGETS",
    "validate_config",
    "config_from_dict",
    "config_to_dict",
    "with_environment_overrides",
    # Models
    "Record",
    "SnapshotEntry",
    "StatsState",
    "IntervalDecision",
    "AttemptResult",
    "VerificationResult",
    "TargetResult",
    "CycleResult",
    # Core
    "fingerprint",
    "Pacer",
    "instant_pacer",
    "JsonFileStore",
    "SnapshotStore",
    "StatsStore",
    "AdaptiveScheduler",
    "StabilityVerifier",
    "ListingScraper",
    "ConsistencyVerifier",
    "RunOrchestrator",
    "MonitorService",
    # Renderer
    "PageSession",
    "Renderer",
    "RenderOptions",
    "RenderResult",
    "PlaywrightPageSession",
    "PlaywrightRenderer",
    # Extraction
    "CardListingParser",
    "ListingParser",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Notifications
    "ListingPayload",
    "NotificationResult",
    "NotificationChannel",
    "ChatworkChannel",
    "ListingNotifier",
    "format_listing_message",
    # I18n
    "get_message",
    "get_all_message_keys",
    "has_translation",
    "get_missing_translations",
    "validate_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # CLI
    "cli_main",
    "create_parser",
    "create_monitor_service",
    "load_config_from_file",
    "save_config_to_file",
]
