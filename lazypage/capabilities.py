"""
Capability interfaces that feature modules implement.

A loaded module handle is any object; what the orchestrator may do with it is
decided only by which of these interfaces it implements. A capability that no
loaded module provides is represented by ``None``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type, TypeVar

from .dom import Element

C = TypeVar("C")


class FeatureModule:
    """Convenience base for module handles."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"lazypage.module.{name}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class Initializable(ABC):
    """Module with an async init hook run once during startup."""

    @abstractmethod
    async def init(self) -> None:
        """Prepare the module; raising marks it as failed to initialize."""


class Disposable(ABC):
    """Module with a teardown hook."""

    @abstractmethod
    def cleanup(self) -> None:
        """Release resources; called at most once on page teardown."""


class StatsProvider(ABC):
    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        """Counters for status snapshots and performance reports."""


class GalleryCapability(ABC):
    """Media gallery overlay."""

    @abstractmethod
    async def open_gallery(self, element: Element, container_id: str) -> None:
        """Open the gallery for a container."""

    @abstractmethod
    def close_gallery(self) -> None:
        """Close the gallery if open."""


class OrderCapability(ABC):
    """Order form flow."""

    @abstractmethod
    async def open_order(self, element: Element, container_id: str) -> None:
        """Open the order flow for a container."""


class TrackingCapability(ABC):
    """Analytics collaborator."""

    @abstractmethod
    def track_link(self, element: Element, container_id: str) -> None:
        """Record an outbound link activation."""

    def track_performance(self) -> None:
        """Record a performance snapshot; optional."""

    def track_cache_performance(self) -> None:
        """Record cache hit/miss counters; optional."""


class DataStoreCapability(ABC):
    """Remote data store client used by the lazy batch scheduler."""

    @abstractmethod
    async def fetch_batch(self, container_ids: List[str]) -> Any:
        """Fetch data for a group of containers as one request."""


def as_capability(handle: Any, capability: Type[C]) -> Optional[C]:
    """Return ``handle`` if it implements ``capability``, else None."""
    if handle is not None and isinstance(handle, capability):
        return handle
    return None
