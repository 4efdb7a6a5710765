"""
Minimal in-memory document model.

Just enough of a page for the orchestrator to work against: elements with
attributes, a parent chain and a layout rectangle, plus document-level event
listeners. Listeners may be plain callables or coroutine functions; returned
awaitables are scheduled on the running loop and tracked until they finish.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

log = logging.getLogger("lazypage.dom")


@dataclass
class Rect:
    """Vertical layout box relative to the top of the viewport."""

    top: float = 0.0
    height: float = 0.0

    @property
    def bottom(self) -> float:
        return self.top + self.height


class Element:
    """A node in the document tree."""

    def __init__(self, tag: str, attributes: Optional[Dict[str, str]] = None, rect: Optional[Rect] = None):
        self.tag = tag.lower()
        self.attributes: Dict[str, str] = dict(attributes or {})
        self.rect = rect or Rect()
        self.parent: Optional["Element"] = None
        self.children: List["Element"] = []

    def append(self, child: "Element") -> "Element":
        """Append a child element and return it."""
        child.parent = self
        self.children.append(child)
        return child

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def set_attribute(self, name: str, value: str) -> None:
        self.attributes[name] = value

    def ancestors_and_self(self) -> Iterator["Element"]:
        node: Optional[Element] = self
        while node is not None:
            yield node
            node = node.parent

    def closest(self, predicate: Callable[["Element"], bool]) -> Optional["Element"]:
        """Nearest ancestor-or-self matching ``predicate``."""
        for node in self.ancestors_and_self():
            if predicate(node):
                return node
        return None

    def iter(self) -> Iterator["Element"]:
        """Depth-first traversal in document order, self included."""
        yield self
        for child in self.children:
            yield from child.iter()

    def __repr__(self) -> str:
        attrs = " ".join(f'{k}="{v}"' for k, v in self.attributes.items())
        return f"<{self.tag}{' ' + attrs if attrs else ''}>"


@dataclass
class Event:
    """A dispatched event."""

    type: str
    target: Optional[Element] = None
    key: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    default_prevented: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True


class Document:
    """The page: element tree, document-level listeners and page flags."""

    def __init__(self, viewport_height: float = 800.0):
        self.root = Element("html")
        self.body = self.root.append(Element("body"))
        self.viewport_height = viewport_height
        self.ready = False
        self.navigations: List[str] = []
        self._listeners: Dict[str, List[Callable[[Event], Any]]] = {}
        self._pending: Set[asyncio.Future] = set()

    def add_event_listener(self, event_type: str, listener: Callable[[Event], Any]) -> None:
        listeners = self._listeners.setdefault(event_type, [])
        if listener not in listeners:
            listeners.append(listener)

    def remove_event_listener(self, event_type: str, listener: Callable[[Event], Any]) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, []))

    def dispatch_event(self, event: Event) -> Event:
        """Call every listener for ``event.type``; listener errors are logged, not raised."""
        for listener in list(self._listeners.get(event.type, [])):
            try:
                result = listener(event)
            except Exception as e:
                log.error("Listener for %s failed: %s", event.type, e)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
        return event

    async def settle(self) -> None:
        """Wait for async listener work scheduled by earlier dispatches."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def click(self, target: Element) -> Event:
        return self.dispatch_event(Event("click", target=target))

    def press_key(self, key: str, target: Optional[Element] = None) -> Event:
        return self.dispatch_event(Event("keydown", target=target or self.body, key=key))

    def unload(self) -> Event:
        return self.dispatch_event(Event("beforeunload", target=self.root))

    def navigate(self, url: str) -> None:
        log.info("Navigating to %s", url)
        self.navigations.append(url)

    def query_all(self, predicate: Callable[[Element], bool]) -> List[Element]:
        """All elements matching ``predicate`` in document order."""
        return [node for node in self.root.iter() if predicate(node)]
