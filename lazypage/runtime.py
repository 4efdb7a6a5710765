"""
Page runtime: wires the loader, dispatcher, scheduler, monitor and teardown
hook to one document.

Only the loader runs before the ready signal. Everything else is switched on
by the ``lazypage:ready`` event, so a failed startup leaves the page inert.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from .config import AppConfig, InitOptions
from .dispatcher import CapabilityDispatcher
from .dom import Document, Event
from .fetcher import ModuleSourceFetcher
from .lifecycle import TeardownHook
from .loader import READY_EVENT, ModuleLoader
from .module_registry import ModuleRegistry
from .monitor import PerformanceMonitor
from .notices import NoticeCenter
from .scheduler import LazyBatchScheduler

log = logging.getLogger("lazypage.runtime")


class PageRuntime:
    """Owns every orchestrator component for one page lifetime."""

    def __init__(
        self,
        document: Optional[Document] = None,
        config: Optional[AppConfig] = None,
        fetcher: Optional[ModuleSourceFetcher] = None,
        registry: Optional[ModuleRegistry] = None,
    ):
        self.config = config or AppConfig.create_default()
        self.document = document or Document()
        self.monitor = PerformanceMonitor(self.config.monitor)
        self.loader = ModuleLoader(
            registry=registry,
            fetcher=fetcher,
            config=self.config,
            document=self.document,
            monitor=self.monitor,
        )
        self.notices = NoticeCenter(self.config.dispatcher.notice_duration)
        self.dispatcher = CapabilityDispatcher(self.loader, self.config.dispatcher, self.notices)
        self.scheduler = LazyBatchScheduler(
            self.loader,
            document=self.document,
            config=self.config.lazy_load,
            viewport_config=self.config.viewport,
        )
        self.teardown_hook = TeardownHook(self.loader, self.scheduler, self.monitor, self.notices)
        self.document.add_event_listener(READY_EVENT, self._on_ready)

    def init(self, options: Union[InitOptions, Mapping[str, Any], None] = None):
        """Start (or join) the startup sequence; resolves to True when the page is ready."""
        return self.loader.init(options)

    def _on_ready(self, event: Event) -> None:
        self.dispatcher.attach(self.document)
        self.teardown_hook.register(self.document)
        self.monitor.start()
        self.scheduler.start()
        self.scheduler.check_viewport()
        log.debug("Runtime active with modules: %s", event.detail.get("loaded_modules"))

    def on_scroll(self, viewport_height: Optional[float] = None):
        """Re-run intersection detection after the layout or scroll position changed."""
        return self.scheduler.check_viewport(viewport_height)

    def teardown(self):
        return self.teardown_hook.teardown()

    def get_status(self) -> Dict[str, Any]:
        status = self.loader.get_status()
        status["lazy_load"] = self.scheduler.get_stats()
        status["notices"] = len(self.notices.active())
        status["monitoring"] = self.monitor.running
        return status
