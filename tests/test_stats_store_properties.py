"""
Property-based tests for the Stats Store.

Uses Hypothesis for property-based testing to verify correctness properties
defined in the design document.
"""

import json
import tempfile
from datetime import datetime, timezone
from io import StringIO
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from listing_monitor.audit_logger import AuditLogger
from listing_monitor.enums import LogLevel
from listing_monitor.json_store import JsonFileStore
from listing_monitor.models import HOURS_PER_DAY, StatsState
from listing_monitor.stats_store import StatsStore


def clock_at(hour: int):
    moment = datetime(2024, 5, 1, hour, 15, tzinfo=timezone.utc)
    return lambda: moment


def make_store(tmpdir: str, hour: int = 12, logger=None) -> StatsStore:
    return StatsStore(
        JsonFileStore(Path(tmpdir) / "stats.json"),
        clock=clock_at(hour),
        logger=logger,
    )


class TestStatsUpdateProperty:
    """
    Property-based tests for per-cycle updates.

    **Feature: listing-monitor, Property 10: A cycle update lands in the current hour's bucket**
    """

    @given(
        hour=st.integers(min_value=0, max_value=23),
        counts=st.lists(st.integers(min_value=0, max_value=50), min_size=1, max_size=10),
    )
    @settings(max_examples=50)
    def test_updates_accumulate_in_current_hour(self, hour: int, counts: list) -> None:
        """
        Property 10: A cycle update lands in the current hour's bucket.

        *For any* sequence of cycle results at one hour, that hour's bucket
        SHALL equal their sum, every other bucket SHALL stay zero, and
        total_checks SHALL equal the number of updates.
        """
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir, hour)
            for count in counts:
                store.update(count)

            state = store.state
            assert state.hourly_new_item_counts[hour] == sum(counts)
            assert sum(state.hourly_new_item_counts) == sum(counts)
            assert state.total_checks == len(counts)
            assert state.total_new_items == sum(counts)

    @given(count=st.integers(min_value=0, max_value=20))
    @settings(max_examples=30)
    def test_last_new_item_only_set_when_items_found(self, count: int) -> None:
        """
        Property 10b: The last-new-item time SHALL only change when the
        cycle found at least one item.
        """
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir, 9)
            state = store.update(count)

            if count > 0:
                assert state.last_new_item_at == "2024-05-01T09:15:00+00:00"
            else:
                assert state.last_new_item_at is None

    def test_negative_count_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir)

            with pytest.raises(ValueError):
                store.update(-1)
            assert store.state.total_checks == 0

    def test_record_error_is_independent_of_checks(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir, 14)
            store.record_error()
            state = store.record_error()

            assert state.error_count == 2
            assert state.last_error_at == "2024-05-01T14:15:00+00:00"
            assert state.total_checks == 0


class TestStatsPersistenceProperty:
    """
    Property-based tests for stats persistence.

    **Feature: listing-monitor, Property 11: Statistics survive a restart**
    """

    @given(
        updates=st.lists(
            st.tuples(st.integers(min_value=0, max_value=23), st.integers(min_value=0, max_value=9)),
            min_size=1,
            max_size=8,
        ),
        errors=st.integers(min_value=0, max_value=3),
    )
    @settings(max_examples=30)
    def test_reload_restores_state(self, updates: list, errors: int) -> None:
        """
        Property 11: Statistics survive a restart.

        *For any* sequence of updates, a fresh store loaded from the same
        file SHALL hold an equal state.
        """
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "stats.json"
            store = None
            for hour, count in updates:
                store = StatsStore(JsonFileStore(path), clock=clock_at(hour))
                store.load()
                store.update(count)
            for _ in range(errors):
                store.record_error()

            restored = StatsStore(JsonFileStore(path), clock=clock_at(0))

            assert restored.load() == store.state

    def test_malformed_histogram_is_reset(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "stats.json").write_text(json.dumps({
                "hourly_new_item_counts": [1, 2, 3],
                "total_checks": 7,
                "total_new_items": "many",
            }), encoding="utf-8")
            logger = AuditLogger(output_format="json", output_stream=StringIO())
            store = make_store(tmpdir, logger=logger)

            state = store.load()

            assert state.hourly_new_item_counts == (0,) * HOURS_PER_DAY
            assert state.total_checks == 7
            assert state.total_new_items == 0
            assert any(e.level == LogLevel.WARN for e in logger.entries)

    def test_corrupt_file_starts_from_zero(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "stats.json").write_text("[]", encoding="utf-8")
            store = make_store(tmpdir)

            assert store.load() == StatsState()


class TestStatsSummaryProperty:
    """
    Tests for the operator-facing summary.

    **Feature: listing-monitor, Property 12: Busiest hours are ranked by count**
    """

    def test_top_hours_ranked_by_count_then_hour(self) -> None:
        counts = [0] * HOURS_PER_DAY
        counts[10] = 5
        counts[20] = 5
        counts[3] = 2
        counts[15] = 9
        state = StatsState(hourly_new_item_counts=tuple(counts))

        assert state.top_hours(3) == [(15, 9), (10, 5), (20, 5)]

    def test_summary_shape(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = make_store(tmpdir, 21)
            store.update(4)

            summary = store.summary(top=2)

            assert summary["total_checks"] == 1
            assert summary["total_new_items"] == 4
            assert summary["error_count"] == 0
            assert summary["top_hours"][0] == {"hour": 21, "count": 4}
            assert len(summary["top_hours"]) == 2
