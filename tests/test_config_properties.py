"""
Property-based tests for configuration loading and validation.

Uses Hypothesis for property-based testing to verify correctness properties
defined in the design document.
"""

import json
import tempfile
from dataclasses import replace
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from listing_monitor.cli import load_config_from_file, save_config_to_file
from listing_monitor.config import (
    DEFAULT_TARGETS,
    DelayRange,
    IntervalConfig,
    LoggingConfig,
    MonitorConfig,
    PacingConfig,
    ProxyConfig,
    TargetConfig,
    VerificationConfig,
    config_from_dict,
    config_to_dict,
    validate_config,
    with_environment_overrides,
)
from listing_monitor.exceptions import ConfigError


@st.composite
def target_strategy(draw, index: int = 0) -> TargetConfig:
    slug = draw(st.text(alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz"), min_size=1, max_size=10))
    return TargetConfig(
        url=f"https://shop.example/search?category={slug}",
        display_name=draw(st.sampled_from(["セカンドストリート", "shop"])),
        category=f"{slug}{index}",
        channel_id=str(draw(st.integers(min_value=1, max_value=999999999))),
    )


@st.composite
def monitor_config_strategy(draw) -> MonitorConfig:
    count = draw(st.integers(min_value=1, max_value=3))
    targets = tuple(draw(target_strategy(index=i)) for i in range(count))
    base = draw(st.integers(min_value=60, max_value=600))
    low = draw(st.integers(min_value=0, max_value=5000))
    return MonitorConfig(
        targets=targets,
        intervals=IntervalConfig(
            base_seconds=base,
            mid_seconds=base * 3,
            slow_seconds=base * 6,
            sleep_start_hour=draw(st.integers(min_value=0, max_value=23)),
            sleep_end_hour=draw(st.integers(min_value=0, max_value=23)),
        ),
        verification=VerificationConfig(consistency_retries=draw(st.integers(min_value=2, max_value=6))),
        pacing=PacingConfig(inter_target=DelayRange(low, low + draw(st.integers(min_value=0, max_value=5000)))),
        proxy=ProxyConfig(enabled=False, servers=("http://proxy.example:8080",)),
        simulation_mode=draw(st.booleans()),
    )


class TestConfigRoundTripProperty:
    """
    Property-based tests for configuration serialization.

    **Feature: listing-monitor, Property 37: Configuration survives a JSON round trip**
    """

    @given(config=monitor_config_strategy())
    @settings(max_examples=50)
    def test_json_round_trip(self, config: MonitorConfig) -> None:
        """
        Property 37: Configuration survives a JSON round trip.

        *For any* valid configuration, serializing to JSON and loading it
        back SHALL produce an equal configuration.
        """
        data = json.loads(json.dumps(config_to_dict(config), ensure_ascii=False))

        assert config_from_dict(data) == config

    @given(config=monitor_config_strategy())
    @settings(max_examples=20)
    def test_file_round_trip(self, config: MonitorConfig) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "sub" / "config.json"

            assert save_config_to_file(config, path)
            assert load_config_from_file(path) == config

    def test_empty_document_is_default_config(self) -> None:
        assert config_from_dict({}) == MonitorConfig()
        assert config_from_dict({"targets": []}).targets == DEFAULT_TARGETS

    def test_partial_sections_keep_defaults(self) -> None:
        config = config_from_dict({
            "intervals": {"base_seconds": 120},
            "pacing": {"inter_target": [1000, 2000]},
            "notifications": {"language": "en", "retry": {"max_retries": 3}},
            "persistence": {"snapshot_file": "/var/lib/monitor/snapshot.json"},
            "renderer": {"geolocation": None},
        })

        assert config.intervals.base_seconds == 120
        assert config.intervals.mid_seconds == 900
        assert config.pacing.inter_target == DelayRange(1000, 2000)
        assert config.pacing.empty_backoff == PacingConfig().empty_backoff
        assert config.notifications.language == "en"
        assert config.notifications.retry.max_retries == 3
        assert config.notifications.chatwork.base_url == "https://api.chatwork.com/v2"
        assert config.persistence.snapshot_file == Path("/var/lib/monitor/snapshot.json")
        assert config.renderer.geolocation is None


class TestConfigRejectionProperty:
    """
    Tests for malformed configuration documents.

    **Feature: listing-monitor, Property 38: Malformed configuration raises ConfigError**
    """

    @pytest.mark.parametrize("document", [
        {"unknown_section": {}},
        {"intervals": {"base_secs": 60}},
        {"intervals": [1, 2]},
        {"targets": [{"url": "https://x.example"}]},
        {"targets": "https://x.example"},
        {"pacing": {"inter_target": [1]}},
        {"notifications": {"chatwork": {"token": "x"}}},
    ])
    def test_malformed_documents(self, document: dict) -> None:
        with pytest.raises(ConfigError):
            config_from_dict(document)

    def test_unreadable_file_loads_as_none(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text("{not json", encoding="utf-8")

            assert load_config_from_file(path) is None
            assert load_config_from_file(Path(tmpdir) / "absent.json") is None


class TestConfigValidationProperty:
    """
    Property-based tests for semantic validation.

    **Feature: listing-monitor, Property 39: Unusable settings are reported**
    """

    @given(config=monitor_config_strategy())
    @settings(max_examples=50)
    def test_generated_configs_are_valid(self, config: MonitorConfig) -> None:
        """
        Property 39: Unusable settings are reported.

        *For any* generated configuration within the documented ranges,
        validation SHALL report no problems.
        """
        assert validate_config(config) == []

    def test_default_config_is_valid(self) -> None:
        assert validate_config(MonitorConfig()) == []

    @pytest.mark.parametrize("config, fragment", [
        (MonitorConfig(targets=()), "No targets"),
        (MonitorConfig(targets=(replace(DEFAULT_TARGETS[0], url="ftp://x"),)), "url must be http"),
        (MonitorConfig(targets=(replace(DEFAULT_TARGETS[0], channel_id=""),)), "channel_id"),
        (MonitorConfig(targets=(DEFAULT_TARGETS[0], DEFAULT_TARGETS[0])), "duplicate target key"),
        (MonitorConfig(intervals=IntervalConfig(base_seconds=0)), "base_seconds"),
        (MonitorConfig(intervals=IntervalConfig(sleep_end_hour=24)), "sleep_end_hour"),
        (MonitorConfig(verification=VerificationConfig(consistency_retries=1)), "consistency_retries"),
        (MonitorConfig(pacing=PacingConfig(inter_target=DelayRange(8000, 5000))), "pacing.inter_target"),
        (MonitorConfig(proxy=ProxyConfig(enabled=True)), "proxy"),
        (MonitorConfig(logging=LoggingConfig(level="verbose")), "logging.level"),
        (MonitorConfig(logging=LoggingConfig(output_format="xml")), "logging.output_format"),
    ])
    def test_problems_reported(self, config: MonitorConfig, fragment: str) -> None:
        problems = validate_config(config)

        assert any(fragment in problem for problem in problems)


class TestEnvironmentOverrideProperty:
    """
    Tests for secrets taken from the environment.

    **Feature: listing-monitor, Property 40: The ChatWork token comes from the environment**
    """

    @given(token=st.text(alphabet=st.sampled_from("0123456789abcdef"), min_size=1, max_size=40))
    @settings(max_examples=30)
    def test_token_override(self, token: str) -> None:
        config = with_environment_overrides(MonitorConfig(), {"CHATWORK_TOKEN": token})

        assert config.notifications.chatwork.api_token == token
        assert config.notifications.max_records == 20

    def test_absent_token_leaves_config_unchanged(self) -> None:
        config = MonitorConfig()

        assert with_environment_overrides(config, {}) is config
        assert with_environment_overrides(config, {"CHATWORK_TOKEN": ""}) is config
