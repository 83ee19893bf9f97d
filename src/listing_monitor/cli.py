"""
Command-line interface for the listing monitor.

This module provides the main CLI entry point with commands for:
- run: Start the monitor loop (or a single cycle with --once)
- stats: Show activity statistics and the current interval decision
- snapshot: Show the stored baseline per target
- config: Configuration management
"""

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .audit_logger import AuditLogger
from .config import (
    MonitorConfig,
    config_from_dict,
    config_to_dict,
    validate_config,
    with_environment_overrides,
)
from .consistency import ConsistencyVerifier
from .exceptions import ConfigError
from .extraction import CardListingParser
from .i18n import get_message
from .json_store import JsonFileStore
from .notifications import ChatworkChannel, ListingNotifier
from .orchestrator import RunOrchestrator
from .pacing import Pacer
from .renderer import PlaywrightRenderer
from .scheduler import AdaptiveScheduler
from .scraper import ListingScraper
from .service import MonitorService
from .snapshot_store import SnapshotStore
from .stability import StabilityVerifier
from .stats_store import StatsStore

DEFAULT_CONFIG_PATH = Path.home() / ".listing_monitor" / "config.json"


def load_config_from_file(config_path: Path) -> Optional[MonitorConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        MonitorConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return config_from_dict(data)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, OSError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except ConfigError as e:
        print(f"Error loading config: {e.message}", file=sys.stderr)
        return None


def save_config_to_file(config: MonitorConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: MonitorConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
        return True
    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def create_logger(config: MonitorConfig) -> AuditLogger:
    """Create the process-wide logger from the logging section."""
    return AuditLogger.from_config(
        level=config.logging.level,
        output_format=config.logging.output_format,
    )


def create_monitor_service(
    config: MonitorConfig,
    logger: Optional[AuditLogger] = None,
    pacer: Optional[Pacer] = None,
) -> MonitorService:
    """
    Wire all components for a monitor run.

    Args:
        config: Validated configuration
        logger: Optional audit logger shared by every component
        pacer: Optional pacer (defaults to real randomized delays)

    Returns:
        A ready-to-run MonitorService
    """
    pacer = pacer or Pacer()

    snapshots = SnapshotStore(JsonFileStore(config.persistence.snapshot_file), logger=logger)
    stats = StatsStore(JsonFileStore(config.persistence.stats_file), logger=logger)
    snapshots.load()
    stats.load()

    renderer = PlaywrightRenderer(
        config=config.renderer,
        pacing=config.pacing,
        proxy=config.proxy,
        pacer=pacer,
        logger=logger,
    )
    stability = StabilityVerifier(config.verification, config.pacing, pacer, logger)
    scraper = ListingScraper(
        stability=stability,
        parser=CardListingParser(config.extraction),
        verification=config.verification,
        renderer_config=config.renderer,
        logger=logger,
    )
    verifier = ConsistencyVerifier(config.verification, config.pacing, pacer, logger)
    notifier = ListingNotifier(
        ChatworkChannel(config.notifications.chatwork, simulation_mode=config.simulation_mode),
        config=config.notifications,
        logger=logger,
    )
    orchestrator = RunOrchestrator(
        config=config,
        renderer=renderer,
        scraper=scraper,
        verifier=verifier,
        snapshots=snapshots,
        stats=stats,
        notifier=notifier,
        pacer=pacer,
        logger=logger,
    )
    return MonitorService(
        config=config,
        orchestrator=orchestrator,
        scheduler=AdaptiveScheduler(config.intervals),
        stats=stats,
        logger=logger,
    )


def _resolve_config(args: argparse.Namespace) -> Optional[MonitorConfig]:
    """Load ``--config`` (or defaults) and apply environment secrets."""
    config: Optional[MonitorConfig] = MonitorConfig()
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
            return None
    return with_environment_overrides(config)


async def run_monitor(config: MonitorConfig, once: bool = False) -> int:
    """
    Run the monitor until interrupted.

    Args:
        config: Configuration to run with
        once: Run a single cycle and exit

    Returns:
        Exit code
    """
    language = config.notifications.language
    logger = create_logger(config)

    if config.simulation_mode:
        print(get_message("cli.dry_run", language))
    elif not config.notifications.chatwork.api_token:
        print(get_message("cli.missing_token", language), file=sys.stderr)

    print(get_message("cli.monitor_start", language, count=len(config.targets)))
    service = create_monitor_service(config, logger)
    await service.run(max_cycles=1 if once else None)
    print(get_message("cli.monitor_stopped", language))
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Handle the 'run' command."""
    config = _resolve_config(args)
    if config is None:
        return 1

    if args.dry_run:
        config = replace(config, simulation_mode=True)

    problems = validate_config(config)
    if problems:
        print(get_message("cli.config_invalid", config.notifications.language), file=sys.stderr)
        for problem in problems:
            print(f"  - {problem}", file=sys.stderr)
        return 1

    return asyncio.run(run_monitor(config, once=args.once))


def cmd_stats(args: argparse.Namespace) -> int:
    """Handle the 'stats' command."""
    config = _resolve_config(args)
    if config is None:
        return 1

    language = config.notifications.language
    stats = StatsStore(JsonFileStore(config.persistence.stats_file))
    summary = stats.summary(top=3)

    print(get_message("stats.header", language))
    print(get_message("stats.total_checks", language, count=summary["total_checks"]))
    print(get_message("stats.total_new_items", language, count=summary["total_new_items"]))
    print(get_message("stats.error_count", language, count=summary["error_count"]))
    print(get_message(
        "stats.last_new_item",
        language,
        timestamp=summary["last_new_item_at"] or get_message("stats.never", language),
    ))
    print(get_message("stats.top_hours", language))
    for entry in summary["top_hours"]:
        print(get_message("stats.hour_line", language, hour=entry["hour"], count=entry["count"]))

    scheduler = AdaptiveScheduler(config.intervals)
    decision = scheduler.next_interval(stats.state)
    if decision is None:
        print(get_message(
            "stats.sleeping",
            language,
            start=config.intervals.sleep_start_hour,
            end=config.intervals.sleep_end_hour,
        ))
    else:
        print(get_message(
            "stats.next_interval",
            language,
            minutes=decision.interval_seconds // 60,
            tier=get_message(f"tier.{decision.tier.value}", language),
        ))
    return 0


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Handle the 'snapshot' command."""
    config = _resolve_config(args)
    if config is None:
        return 1

    language = config.notifications.language
    snapshots = SnapshotStore(JsonFileStore(config.persistence.snapshot_file))
    entries = snapshots.load()

    if not entries:
        print(get_message("snapshot.empty", language))
        return 0

    for target in config.targets:
        entry = entries.get(target.key)
        if entry is None:
            print(get_message("snapshot.untracked", language, target=target.key))
            continue
        print(get_message(
            "snapshot.entry",
            language,
            target=target.key,
            name=entry.record_name,
            price=entry.record_price,
            fingerprint=entry.fingerprint,
            observed_at=entry.last_observed_at,
        ))
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        for target in config.targets:
            print(f"  Target: {target.key} -> room {target.channel_id}")
            print(f"    {target.url}")
        intervals = config.intervals
        print(f"  Intervals: {intervals.base_seconds}/{intervals.mid_seconds}/{intervals.slow_seconds}s")
        print(f"  Sleep window: {intervals.sleep_start_hour:02d}:00-{intervals.sleep_end_hour:02d}:00")
        print(f"  Consistency retries: {config.verification.consistency_retries}")
        print(f"  Snapshot file: {config.persistence.snapshot_file}")
        print(f"  Stats file: {config.persistence.stats_file}")
        print(f"  Proxy rotation: {config.proxy.enabled}")
        print(f"  Simulation mode: {config.simulation_mode}")
        print(f"  Log level: {config.logging.level}")
        return 0

    elif args.action == "init":
        language = args.language
        if config_path.exists() and not args.force:
            print(get_message("cli.config_exists", language, path=config_path))
            return 1

        config = MonitorConfig()
        config = replace(config, notifications=replace(config.notifications, language=language))
        if save_config_to_file(config, config_path):
            print(get_message("cli.config_written", language, path=config_path))
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1

        language = config.notifications.language
        problems = validate_config(config)
        if problems:
            print(get_message("cli.config_invalid", language), file=sys.stderr)
            for problem in problems:
                print(f"  - {problem}", file=sys.stderr)
            return 1

        print(get_message("cli.config_valid", language))
        return 0

    return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="listing-monitor",
        description="New-arrival monitor for rendered listing pages with ChatWork alerts",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'run' command
    run_parser = subparsers.add_parser(
        "run",
        help="Start monitoring",
    )
    run_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode - notifications are not sent",
    )
    run_parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit",
    )
    run_parser.set_defaults(func=cmd_run)

    # 'stats' command
    stats_parser = subparsers.add_parser(
        "stats",
        help="Show activity statistics and the next interval",
    )
    stats_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    stats_parser.set_defaults(func=cmd_stats)

    # 'snapshot' command
    snapshot_parser = subparsers.add_parser(
        "snapshot",
        help="Show the stored top listing per target",
    )
    snapshot_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    snapshot_parser.set_defaults(func=cmd_snapshot)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=["ja", "en"],
        default="ja",
        help="Notification language for new configuration (default: ja)",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
