"""
Intersection detection against the document viewport.

``IntersectionObserver.check()`` compares each observed element's rect with
the viewport (grown by ``root_margin`` on both edges) and reports elements
whose visibility changed since the previous check.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .dom import Element, Rect

log = logging.getLogger("lazypage.viewport")


@dataclass
class IntersectionRecord:
    """Visibility change for one observed element."""

    element: Element
    is_intersecting: bool
    rect: Rect
    ratio: float
    viewport_height: float = 0.0


def distance_from_viewport(rect: Rect, viewport_height: float) -> float:
    """0 inside the viewport, pixels below its bottom edge, or pixels above its top edge."""
    if rect.top >= viewport_height:
        return rect.top - viewport_height
    if rect.bottom <= 0:
        return abs(rect.bottom)
    return 0.0


def visible_ratio(rect: Rect, top: float, bottom: float) -> float:
    overlap = min(rect.bottom, bottom) - max(rect.top, top)
    if overlap < 0:
        return 0.0
    if rect.height <= 0:
        # Zero-height boxes count as fully visible when they sit inside the window
        return 1.0 if top <= rect.top <= bottom else 0.0
    return min(1.0, overlap / rect.height)


class IntersectionObserver:
    """Polls observed elements and reports visibility transitions."""

    def __init__(
        self,
        callback: Callable[[List[IntersectionRecord]], object],
        root_margin: float = 0.0,
        threshold: float = 0.0,
    ):
        self.callback = callback
        self.root_margin = root_margin
        self.threshold = threshold
        self._observed: Dict[int, Element] = {}
        self._visible: Dict[int, bool] = {}
        self.connected = True

    def observe(self, element: Element) -> None:
        if not self.connected:
            return
        key = id(element)
        if key not in self._observed:
            self._observed[key] = element
            self._visible[key] = False

    def unobserve(self, element: Element) -> None:
        key = id(element)
        self._observed.pop(key, None)
        self._visible.pop(key, None)

    def disconnect(self) -> None:
        self._observed.clear()
        self._visible.clear()
        self.connected = False

    @property
    def observed(self) -> List[Element]:
        return list(self._observed.values())

    def _is_intersecting(self, rect: Rect, viewport_height: float) -> Tuple[bool, float]:
        top = -self.root_margin
        bottom = viewport_height + self.root_margin
        ratio = visible_ratio(rect, top, bottom)
        if ratio <= 0:
            return False, 0.0
        return ratio >= self.threshold, ratio

    def check(self, viewport_height: float) -> Optional[object]:
        """Invoke the callback with changed records, in observation order; returns its result."""
        if not self.connected:
            return None
        records: List[IntersectionRecord] = []
        for key, element in list(self._observed.items()):
            intersecting, ratio = self._is_intersecting(element.rect, viewport_height)
            if intersecting != self._visible.get(key, False):
                self._visible[key] = intersecting
                records.append(IntersectionRecord(element, intersecting, element.rect, ratio, viewport_height))
        if not records:
            return None
        return self.callback(records)
