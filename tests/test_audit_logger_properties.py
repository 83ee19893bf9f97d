"""
Property-based tests for Audit Logger module.

Uses Hypothesis for property-based testing to verify correctness properties
defined in the design document.
"""

import json
from io import StringIO

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from listing_monitor.audit_logger import AuditLogger
from listing_monitor.enums import LogLevel
from listing_monitor.exceptions import NotificationError


component_names = st.sampled_from([
    "RunOrchestrator", "SnapshotStore", "StatsStore", "ListingNotifier", "Renderer",
])
messages = st.text(min_size=1, max_size=80)
safe_values = st.one_of(
    st.integers(),
    st.text(max_size=30),
    st.booleans(),
    st.none(),
)
safe_keys = st.sampled_from(["target_key", "url", "count", "fingerprint", "status_code", "attempt"])
sensitive_keys = st.sampled_from([
    "token", "api_token", "X-ChatWorkToken", "password", "proxy_password",
    "Authorization", "cookie", "secret", "credentials",
])


class TestSensitiveDataMaskingProperty:
    """
    Property-based tests for sensitive data masking.

    **Feature: listing-monitor, Property 34: Sensitive data is masked in logs**
    """

    @given(
        key=sensitive_keys,
        value=st.text(min_size=1, max_size=40),
        component=component_names,
        message=messages,
    )
    @settings(max_examples=100)
    def test_sensitive_values_never_reach_output(
        self, key: str, value: str, component: str, message: str
    ) -> None:
        """
        Property 34: Sensitive data is masked in logs.

        *For any* sensitive key, the logged entry SHALL carry the mask
        instead of the value, at any nesting depth.
        """
        stream = StringIO()
        logger = AuditLogger(output_format="json", output_stream=stream)

        entry = logger.log(
            LogLevel.INFO,
            component,
            message,
            {key: value, "nested": {key: value}, "items": [{key: value}]},
        )

        assert entry.data[key] == AuditLogger.MASK_VALUE
        assert entry.data["nested"][key] == AuditLogger.MASK_VALUE
        assert entry.data["items"][0][key] == AuditLogger.MASK_VALUE

    @given(data=st.dictionaries(safe_keys, safe_values, max_size=5))
    @settings(max_examples=100)
    def test_non_sensitive_values_are_kept(self, data: dict) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.log(LogLevel.INFO, "SnapshotStore", "message", data)

        assert entry.data == data


class TestLevelFilteringProperty:
    """
    Property-based tests for minimum-level filtering.

    **Feature: listing-monitor, Property 35: Entries below the minimum level are dropped**
    """

    @given(
        min_level=st.sampled_from(list(LogLevel)),
        level=st.sampled_from(list(LogLevel)),
    )
    @settings(max_examples=50)
    def test_filtering_by_rank(self, min_level: LogLevel, level: LogLevel) -> None:
        """
        Property 35: Entries below the minimum level are dropped.

        *For any* minimum level, an entry SHALL be written iff its level
        ranks at or above the minimum.
        """
        stream = StringIO()
        logger = AuditLogger(output_format="text", output_stream=stream, min_level=min_level)

        entry = logger.log(level, "Renderer", "message")

        if level.rank >= min_level.rank:
            assert entry is not None
            assert stream.getvalue().count("\n") == 1
        else:
            assert entry is None
            assert stream.getvalue() == ""
            assert logger.entries == []

    def test_from_config(self) -> None:
        logger = AuditLogger.from_config("WARN", "json", StringIO())

        assert logger.min_level == LogLevel.WARN
        assert logger.info("Renderer", "dropped") is None
        assert logger.warn("Renderer", "kept") is not None

    def test_from_config_rejects_unknown_level(self) -> None:
        with pytest.raises(ValueError):
            AuditLogger.from_config("verbose", "json")

    def test_rejects_unknown_format(self) -> None:
        with pytest.raises(ValueError):
            AuditLogger(output_format="xml")


class TestOutputFormatProperty:
    """
    Property-based tests for dual-format output.

    **Feature: listing-monitor, Property 36: Every entry is valid JSON and readable text**
    """

    @given(component=component_names, message=messages, data=st.dictionaries(safe_keys, safe_values, max_size=4))
    @settings(max_examples=100)
    def test_json_output_round_trips(self, component: str, message: str, data: dict) -> None:
        """
        Property 36: Every entry is valid JSON and readable text.
        """
        stream = StringIO()
        logger = AuditLogger(output_format="both", output_stream=stream)

        entry = logger.log(LogLevel.WARN, component, message, data)
        parsed = json.loads(logger.get_json_output(entry))

        assert parsed["level"] == "warn"
        assert parsed["component"] == component
        assert parsed["message"] == message
        assert parsed["data"] == data
        assert f"WARN [{component}]" in logger.get_text_output(entry)

    def test_log_error_carries_error_context(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        error = NotificationError(code="http_error", message="ChatWork returned HTTP 500")

        entry = logger.log_error(
            "ListingNotifier",
            "Delivery failed",
            error=error,
            request_url="https://api.chatwork.com/v2/rooms/1/messages",
            response_status_code=500,
            additional_data={"failure": "notify_failed"},
        )

        assert entry.level == LogLevel.ERROR
        assert entry.data["error_type"] == "NotificationError"
        assert entry.data["error_code"] == "http_error"
        assert entry.data["response_status_code"] == 500
        assert entry.data["failure"] == "notify_failed"

    def test_non_serializable_values_are_stringified(self) -> None:
        stream = StringIO()
        logger = AuditLogger(output_format="json", output_stream=stream)

        logger.info("Renderer", "Launching", {"path": object()})

        assert json.loads(stream.getvalue())["data"]["path"].startswith("<object")

    def test_retained_entries_are_bounded(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        for index in range(AuditLogger.RETAINED_ENTRIES + 250):
            logger.info("RunOrchestrator", f"entry {index}")

        entries = logger.entries
        assert len(entries) == AuditLogger.RETAINED_ENTRIES
        assert entries[0].message == "entry 250"
        assert entries[-1].message == f"entry {AuditLogger.RETAINED_ENTRIES + 249}"

    def test_clear_entries(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        logger.debug("Renderer", "one")

        logger.clear_entries()

        assert logger.entries == []
