"""
Tests for PerformanceMonitor.
"""

import asyncio
from unittest.mock import Mock

import pytest
from fakes import FakeLocator, FakeTracking, HooklessModule, PlainModule

from lazypage.config import MonitorConfig
from lazypage.monitor import PerformanceMonitor


class TestMarksAndMeasures:
    """Tests for marks and measures."""

    def test_measure_between_marks(self):
        """Test a measure records a non-negative duration."""
        monitor = PerformanceMonitor(MonitorConfig())
        monitor.mark("start")
        monitor.mark("end")

        duration = monitor.measure("span", "start", "end")

        assert duration is not None and duration >= 0
        assert monitor.get_entries("span")[0].entry_type == "measure"

    def test_measure_missing_mark(self):
        """Test measuring against an unknown mark returns None."""
        monitor = PerformanceMonitor(MonitorConfig())
        monitor.mark("start")

        assert monitor.measure("span", "start", "missing") is None
        assert monitor.get_entries(entry_type="measure") == []


class TestReporting:
    """Tests for timed reports."""

    def test_start_without_debug_creates_no_timers(self):
        """Test reporting is fully disabled when debug is off."""
        monitor = PerformanceMonitor(MonitorConfig(debug=False))

        monitor.start()

        assert monitor.running is False
        assert monitor.timer_count == 0

    @pytest.mark.asyncio
    async def test_initial_and_recurring_reports(self):
        """Test the delayed report, performance tracking and the interval report."""
        tracking = FakeTracking()
        locator = FakeLocator({"tracking": tracking})
        monitor = PerformanceMonitor(
            MonitorConfig(debug=True, initial_report_delay=0.01, report_interval=0.03), locator=locator
        )

        monitor.start()
        await asyncio.sleep(0.1)
        monitor.stop()
        reports = monitor.reports
        await asyncio.sleep(0.05)

        assert tracking.performance_calls == 1
        assert tracking.cache_calls == 1
        assert reports >= 3
        assert monitor.reports == reports
        assert monitor.timer_count == 0

    def test_report_collects_module_stats(self):
        """Test reports include stats of stats-providing modules."""
        locator = FakeLocator({"cache": PlainModule("cache"), "config": HooklessModule("config")})
        monitor = PerformanceMonitor(MonitorConfig(), locator=locator)

        report = monitor.report()

        assert report["modules"] == {"cache": {"init_calls": 0}, "config": None}

    def test_report_includes_cache_tables(self):
        """Test per-cache rows from the cache module are reported separately."""

        class CacheModule(PlainModule):
            def get_stats(self):
                return {
                    "product_cache": {"hits": 8, "misses": 2},
                    "image_cache": {"hits": 3, "misses": 1},
                    "entries": 14,
                }

        locator = FakeLocator({"cache": CacheModule("cache")})
        monitor = PerformanceMonitor(MonitorConfig(), locator=locator)

        report = monitor.report()

        assert report["cache"] == {
            "product_cache": {"hits": 8, "misses": 2},
            "image_cache": {"hits": 3, "misses": 1},
        }

    def test_initial_report_survives_tracking_failure(self):
        """Test a failing performance tracker does not skip cache tracking."""
        tracking = FakeTracking()
        tracking.track_performance = Mock(side_effect=RuntimeError("offline"))
        monitor = PerformanceMonitor(MonitorConfig(), locator=FakeLocator({"tracking": tracking}))

        monitor._initial_report()

        assert tracking.cache_calls == 1
