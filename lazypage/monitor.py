"""
Performance monitor: named marks and measures plus periodic debug reports.

Purely observational. Nothing in the orchestrator waits on or branches on
what the monitor records.
"""

import asyncio
import logging
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .capabilities import StatsProvider, TrackingCapability, as_capability
from .config import MonitorConfig

log = logging.getLogger("lazypage.monitor")

CACHE_MODULE = "cache"


@dataclass
class PerformanceEntry:
    """A mark (duration 0) or a measure between two marks."""

    name: str
    entry_type: str
    start_time: float
    duration: float = 0.0


def get_memory_info() -> Optional[Dict[str, float]]:
    """Peak resident set size of this process, where the platform reports it."""
    if sys.platform.startswith("win"):
        return None
    import resource

    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports KiB, macOS reports bytes
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return {"peak_rss_mb": round(peak / divisor, 2)}


def cache_tables(stats: Any) -> Dict[str, Dict[str, Any]]:
    """Per-cache rows (e.g. product and image caches) from the cache module's stats."""
    if not isinstance(stats, dict):
        return {}
    return {name: row for name, row in stats.items() if isinstance(row, dict)}


class PerformanceMonitor:
    """Records marks/measures and, in debug mode, reports on a timer."""

    def __init__(self, config: Optional[MonitorConfig] = None, locator=None):
        self.config = config or MonitorConfig()
        self.locator = locator
        self._marks: Dict[str, float] = {}
        self._entries: List[PerformanceEntry] = []
        self._timers: List[asyncio.TimerHandle] = []
        self._running = False
        self.reports = 0

    # Marks and measures

    def mark(self, name: str) -> float:
        now = time.perf_counter()
        self._marks[name] = now
        self._entries.append(PerformanceEntry(name, "mark", now))
        return now

    def measure(self, name: str, start_mark: str, end_mark: str) -> Optional[float]:
        """Record the duration between two marks in milliseconds."""
        start = self._marks.get(start_mark)
        end = self._marks.get(end_mark)
        if start is None or end is None:
            log.debug("Cannot measure %s: missing mark %s", name, start_mark if start is None else end_mark)
            return None
        duration_ms = (end - start) * 1000.0
        self._entries.append(PerformanceEntry(name, "measure", start, duration_ms))
        if self.config.debug:
            log.debug("%s: %.2fms", name, duration_ms)
        return duration_ms

    def get_entries(self, name: Optional[str] = None, entry_type: Optional[str] = None) -> List[PerformanceEntry]:
        return [
            entry
            for entry in self._entries
            if (name is None or entry.name == name) and (entry_type is None or entry.entry_type == entry_type)
        ]

    # Reporting

    @property
    def running(self) -> bool:
        return self._running

    @property
    def timer_count(self) -> int:
        return len([timer for timer in self._timers if not timer.cancelled()])

    def start(self) -> None:
        """Schedule the initial and recurring reports; no-op unless debug is on."""
        if not self.config.debug or self._running:
            return
        loop = asyncio.get_running_loop()
        self._running = True
        self._timers.append(loop.call_later(self.config.initial_report_delay, self._initial_report))
        self._timers.append(loop.call_later(self.config.report_interval, self._recurring_report))
        log.debug(
            "Performance reporting every %.0fs (first after %.0fs)",
            self.config.report_interval,
            self.config.initial_report_delay,
        )

    def stop(self) -> None:
        """Cancel every owned timer."""
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        self._running = False

    def _initial_report(self) -> None:
        self.report()
        tracking = self.locator.find_capability(TrackingCapability) if self.locator else None
        if tracking is None:
            return
        for hook in (tracking.track_performance, tracking.track_cache_performance):
            try:
                hook()
            except Exception as e:
                log.warning("Performance tracking failed: %s", e)

    def _recurring_report(self) -> None:
        if not self._running:
            return
        self.report()
        self._timers = [timer for timer in self._timers if not timer.cancelled()]
        loop = asyncio.get_running_loop()
        self._timers.append(loop.call_later(self.config.report_interval, self._recurring_report))

    def collect_module_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {}
        if self.locator is None:
            return stats
        for name, handle in self.locator.loaded_modules().items():
            provider = as_capability(handle, StatsProvider)
            if provider is None:
                stats[name] = None
                continue
            try:
                stats[name] = provider.get_stats()
            except Exception as e:
                log.warning("Stats for %s unavailable: %s", name, e)
                stats[name] = None
        return stats

    def report(self) -> Dict[str, Any]:
        """Log a performance report and return what was logged."""
        self.reports += 1
        modules = self.collect_module_stats()
        report = {
            "memory": get_memory_info(),
            "cache": cache_tables(modules.get(CACHE_MODULE)),
            "modules": modules,
            "entries": len(self._entries),
        }
        log.info("=== PERFORMANCE REPORT ===")
        if report["memory"]:
            log.info("Memory: peak %sMB", report["memory"]["peak_rss_mb"])
        for table, row in report["cache"].items():
            log.info("  %-16s %s", table, "  ".join(f"{key}={value}" for key, value in row.items()))
        log.info("Module status: %s", report["modules"])
        log.info("Performance entries: %d", report["entries"])
        return report
