"""
Capability dispatcher: one delegated listener per input event type.

Clicks are classified through an ordered routing table; the first route whose
predicate matches the target (or one of its ancestors) handles the event.
Every route resolves the owning container first and checks that the module
capability it needs is present before using it.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Type

from .capabilities import GalleryCapability, OrderCapability, TrackingCapability
from .config import DispatcherConfig
from .dom import Document, Element, Event
from .notices import NoticeCenter

log = logging.getLogger("lazypage.dispatcher")


@dataclass(frozen=True)
class Route:
    """Maps a target predicate to the handler that serves it."""

    name: str
    matches: Callable[[Element], bool]
    capability: Type
    handler: Callable[[Event, Element, str, Any], Optional[Awaitable[None]]]
    prevent_default: bool = False


class CapabilityDispatcher:
    """Routes document-level clicks and key presses to module capabilities."""

    def __init__(self, locator, config: Optional[DispatcherConfig] = None, notices: Optional[NoticeCenter] = None):
        self.locator = locator
        self.config = config or DispatcherConfig()
        self.notices = notices or NoticeCenter(self.config.notice_duration)
        self.document: Optional[Document] = None
        self.routes: List[Route] = self._build_routes()

    def _build_routes(self) -> List[Route]:
        role = self.config.role_attribute
        gallery_roles = set(self.config.gallery_roles)
        order_role = self.config.order_role
        return [
            Route(
                "gallery-trigger",
                lambda el: el.get_attribute(role) in gallery_roles,
                GalleryCapability,
                self._open_gallery,
                prevent_default=True,
            ),
            Route(
                "order-trigger",
                lambda el: el.get_attribute(role) == order_role,
                OrderCapability,
                self._open_order,
                prevent_default=True,
            ),
            Route(
                "link",
                lambda el: el.tag == "a" and el.has_attribute("href"),
                TrackingCapability,
                self._track_link,
            ),
        ]

    # Attachment

    def attach(self, document: Document) -> None:
        """Register the click and keydown listeners once."""
        if self.document is not None:
            return
        self.document = document
        document.add_event_listener("click", self.handle_click)
        document.add_event_listener("keydown", self.handle_keydown)
        log.info("Global event handlers active")

    def detach(self) -> None:
        if self.document is None:
            return
        self.document.remove_event_listener("click", self.handle_click)
        self.document.remove_event_listener("keydown", self.handle_keydown)
        self.document = None

    # Classification

    def classify(self, target: Element):
        """First route matching the target or an ancestor, with the matched element."""
        for route in self.routes:
            matched = target.closest(route.matches)
            if matched is not None:
                return route, matched
        return None, None

    def find_container_id(self, element: Element) -> Optional[str]:
        attribute = self.config.container_attribute
        container = element.closest(lambda el: bool(el.get_attribute(attribute)))
        return container.get_attribute(attribute) if container else None

    # Event handlers

    def handle_click(self, event: Event) -> Optional[Awaitable[None]]:
        """Route a click; returns the pending capability call, if any, for the document to schedule."""
        if event.target is None:
            return None
        route, matched = self.classify(event.target)
        if route is None:
            return None
        container_id = self.find_container_id(matched)
        if not container_id:
            log.debug("No container for %s click on %r; ignored", route.name, matched)
            return None
        if route.prevent_default:
            event.prevent_default()

        capability = self.locator.find_capability(route.capability)
        log.debug("%s clicked: %s", route.name, container_id)
        try:
            result = route.handler(event, matched, container_id, capability)
        except Exception as e:
            self._report_failure(route, container_id, e)
            return None
        if inspect.isawaitable(result):
            return self._complete(route, container_id, result)
        return None

    async def _complete(self, route: Route, container_id: str, pending: Awaitable[None]) -> None:
        try:
            await pending
        except Exception as e:
            self._report_failure(route, container_id, e)

    def _report_failure(self, route: Route, container_id: str, error: Exception) -> None:
        log.error("%s failed for %s: %s", route.name, container_id, error)
        self.notices.show("Something went wrong. Please try again.")

    def handle_keydown(self, event: Event) -> None:
        if event.key != self.config.dismiss_key:
            return
        gallery = self.locator.find_capability(GalleryCapability)
        if gallery is None:
            return
        try:
            gallery.close_gallery()
        except Exception as e:
            log.error("Closing gallery failed: %s", e)

    # Route handlers

    async def _open_gallery(self, event: Event, element: Element, container_id: str, gallery) -> None:
        if gallery is None:
            log.warning("Gallery module not available")
            return
        await gallery.open_gallery(element, container_id)

    async def _open_order(self, event: Event, element: Element, container_id: str, forms) -> None:
        if forms is not None:
            await forms.open_order(element, container_id)
            return
        # No order module: fall back to a direct link if the element carries one
        url = element.get_attribute(self.config.order_fallback_attribute) or element.get_attribute("href")
        if url and self.document is not None:
            self.document.navigate(url)
        else:
            log.warning("Order module not available and no fallback link for %s", container_id)

    def _track_link(self, event: Event, element: Element, container_id: str, tracking) -> None:
        if tracking is not None:
            tracking.track_link(element, container_id)
