"""
Tests for the teardown hook.
"""

from unittest.mock import Mock

from fakes import FakeLocator, HooklessModule, PlainModule

from lazypage.dom import Document
from lazypage.lifecycle import TeardownHook


class ExplodingModule(PlainModule):
    def cleanup(self) -> None:
        super().cleanup()
        raise RuntimeError("cleanup failed")


class TestTeardownHook:
    """Tests for TeardownHook."""

    def setup_method(self):
        """Set up test fixtures."""
        self.cache = PlainModule("cache")
        self.gallery = PlainModule("gallery")
        self.locator = FakeLocator({"cache": self.cache, "config": HooklessModule("config"), "gallery": self.gallery})
        self.scheduler = Mock()
        self.monitor = Mock()
        self.hook = TeardownHook(self.locator, scheduler=self.scheduler, monitor=self.monitor)

    def test_cleanup_called_once_across_runs(self):
        """Test repeated teardown never raises and cleans each module once."""
        first = self.hook.teardown()
        second = self.hook.teardown()

        assert first == ["cache", "gallery"]
        assert second == []
        assert self.cache.cleanup_calls == 1
        assert self.gallery.cleanup_calls == 1

    def test_stops_scheduler_and_monitor(self):
        """Test teardown disconnects the observer and clears timers."""
        self.hook.teardown()

        self.scheduler.stop.assert_called_once()
        self.monitor.stop.assert_called_once()

    def test_cleanup_error_does_not_stop_others(self):
        """Test one failing cleanup does not prevent the rest."""
        bad = ExplodingModule("bad")
        self.locator.modules = {"bad": bad, "cache": self.cache}

        cleaned = self.hook.teardown()
        self.hook.teardown()

        assert cleaned == ["cache"]
        assert bad.cleanup_calls == 1
        assert self.cache.cleanup_calls == 1

    def test_registered_once_on_unload(self):
        """Test the hook attaches a single unload listener and runs on unload."""
        document = Document()

        self.hook.register(document)
        self.hook.register(document)
        document.unload()
        document.unload()

        assert document.listener_count("beforeunload") == 1
        assert self.hook.runs == 2
        assert self.cache.cleanup_calls == 1

    def test_stop_failure_is_swallowed(self):
        """Test teardown survives a component failing to stop."""
        self.scheduler.stop.side_effect = RuntimeError("already gone")

        self.hook.teardown()

        self.monitor.stop.assert_called_once()
