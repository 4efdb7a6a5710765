"""
Page teardown hook.

Registered once on the document's ``beforeunload`` event. Cleans up loaded
modules, the intersection observer and the monitor's timers without waiting
for in-flight async work. Safe to run any number of times.
"""

import logging
from typing import List, Optional, Set

from .capabilities import Disposable, as_capability
from .dom import Document, Event

UNLOAD_EVENT = "beforeunload"

log = logging.getLogger("lazypage.lifecycle")


class TeardownHook:
    """Best-effort synchronous cleanup of everything the runtime owns."""

    def __init__(self, locator, scheduler=None, monitor=None, notices=None):
        self.locator = locator
        self.scheduler = scheduler
        self.monitor = monitor
        self.notices = notices
        self.document: Optional[Document] = None
        self.runs = 0
        self._cleaned: Set[str] = set()

    def register(self, document: Document) -> None:
        """Attach to ``document`` once; repeated calls are ignored."""
        if self.document is not None:
            return
        self.document = document
        document.add_event_listener(UNLOAD_EVENT, self._on_unload)

    def _on_unload(self, event: Event) -> None:
        self.teardown()

    def teardown(self) -> List[str]:
        """Run cleanup; returns the modules cleaned up by this call."""
        self.runs += 1
        if self.runs == 1:
            log.info("Performing system cleanup...")
        cleaned: List[str] = []
        for name, handle in self.locator.loaded_modules(include_failed=True).items():
            if name in self._cleaned:
                continue
            self._cleaned.add(name)
            disposable = as_capability(handle, Disposable)
            if disposable is None:
                continue
            try:
                disposable.cleanup()
                cleaned.append(name)
            except Exception as e:
                log.error("Cleanup of %s failed: %s", name, e)

        for label, component in (("scheduler", self.scheduler), ("monitor", self.monitor)):
            if component is None:
                continue
            try:
                component.stop()
            except Exception as e:
                log.error("Stopping %s failed: %s", label, e)

        if self.notices is not None:
            self.notices.clear()
        return cleaned
