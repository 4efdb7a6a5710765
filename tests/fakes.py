"""
Fake feature modules shared by the test suite.
"""

import asyncio
from typing import Dict, List, Optional

from lazypage.capabilities import (
    DataStoreCapability,
    Disposable,
    FeatureModule,
    GalleryCapability,
    Initializable,
    OrderCapability,
    StatsProvider,
    TrackingCapability,
)
from lazypage.fetcher import StaticFetcher
from lazypage.module_registry import ModuleDescriptor


class PlainModule(FeatureModule, Initializable, Disposable, StatsProvider):
    """Module with init/cleanup hooks that records what happened to it."""

    def __init__(self, name: str, fail_init: bool = False, init_log: Optional[List[str]] = None):
        super().__init__(name)
        self.fail_init = fail_init
        self.init_calls = 0
        self.cleanup_calls = 0
        self.init_log = init_log

    async def init(self) -> None:
        self.init_calls += 1
        await asyncio.sleep(0)
        if self.init_log is not None:
            self.init_log.append(self.name)
        if self.fail_init:
            raise RuntimeError(f"{self.name} init exploded")

    def cleanup(self) -> None:
        self.cleanup_calls += 1

    def get_stats(self) -> Dict[str, int]:
        return {"init_calls": self.init_calls}


class HooklessModule(FeatureModule):
    """Module without any lifecycle hooks."""


class FakeGallery(PlainModule, GalleryCapability):
    def __init__(self, name: str = "gallery", fail_open: bool = False):
        super().__init__(name)
        self.opened: List[str] = []
        self.closed = 0
        self.fail_open = fail_open

    async def open_gallery(self, element, container_id: str) -> None:
        if self.fail_open:
            raise RuntimeError("gallery backend down")
        self.opened.append(container_id)

    def close_gallery(self) -> None:
        self.closed += 1


class FakeForms(PlainModule, OrderCapability):
    def __init__(self, name: str = "forms"):
        super().__init__(name)
        self.orders: List[str] = []

    async def open_order(self, element, container_id: str) -> None:
        self.orders.append(container_id)


class FakeTracking(PlainModule, TrackingCapability):
    def __init__(self, name: str = "tracking"):
        super().__init__(name)
        self.links: List[str] = []
        self.performance_calls = 0
        self.cache_calls = 0

    def track_link(self, element, container_id: str) -> None:
        self.links.append(container_id)

    def track_performance(self) -> None:
        self.performance_calls += 1

    def track_cache_performance(self) -> None:
        self.cache_calls += 1


class FakeDataStore(PlainModule, DataStoreCapability):
    """Data store that records batches and can fail selected ones."""

    def __init__(self, name: str = "firebase", fail_batches=(), delay: float = 0.0):
        super().__init__(name)
        self.batches: List[List[str]] = []
        self.fail_batches = set(fail_batches)
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_batch(self, container_ids):
        index = len(self.batches)
        self.batches.append(list(container_ids))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if index in self.fail_batches:
                raise ConnectionError(f"batch {index} failed")
            return {cid: {"loaded": True} for cid in container_ids}
        finally:
            self.in_flight -= 1


class FakeLocator:
    """Minimal locator serving fixed handles."""

    def __init__(self, modules=None):
        self.modules = dict(modules or {})

    def loaded_modules(self, include_failed: bool = False):
        return dict(self.modules)

    def find_capability(self, capability):
        for handle in self.modules.values():
            if isinstance(handle, capability):
                return handle
        return None


def default_handles(**overrides):
    """Handles for the built-in module set, keyed by name."""
    handles = {
        "config": PlainModule("config"),
        "cache": PlainModule("cache"),
        "firebase": FakeDataStore("firebase"),
        "tracking": FakeTracking("tracking"),
        "gallery": FakeGallery("gallery"),
        "forms": FakeForms("forms"),
        "lazy": PlainModule("lazy"),
    }
    handles.update(overrides)
    return handles


def fetcher_for(handles) -> StaticFetcher:
    """StaticFetcher returning the given handles; a None handle fails to fetch."""
    fetcher = StaticFetcher()
    for name, handle in handles.items():
        if handle is not None:
            fetcher.add(name, lambda h=handle: h)
    return fetcher


def descriptor(name, priority, required=False, depends_on=()):
    return ModuleDescriptor(name, f"{name}.min.py", required=required, priority=priority, depends_on=depends_on)
