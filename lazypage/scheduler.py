"""
Viewport lazy-load batch scheduler.

Turns visibility transitions of content containers into remote-data fetches.
Each intersection callback collects the newly visible containers that have
never been processed, orders them closest-to-viewport first and hands them to
the data store in size-bounded batches, one batch at a time.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from .capabilities import DataStoreCapability
from .config import LazyLoadConfig, ViewportConfig
from .dom import Document, Element
from .viewport import IntersectionObserver, IntersectionRecord, distance_from_viewport

log = logging.getLogger("lazypage.scheduler")


@dataclass
class ViewportEntry:
    """A visible container waiting to be fetched."""

    container_id: str
    element: Element
    distance: float
    order: int


def make_batches(entries: List[ViewportEntry], batch_size: int) -> List[List[ViewportEntry]]:
    """Split entries into consecutive batches of at most ``batch_size``."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [entries[i : i + batch_size] for i in range(0, len(entries), batch_size)]


class LazyBatchScheduler:
    """Observes containers and dispatches prioritized fetch batches."""

    def __init__(
        self,
        locator,
        document: Optional[Document] = None,
        config: Optional[LazyLoadConfig] = None,
        viewport_config: Optional[ViewportConfig] = None,
    ):
        self.locator = locator
        self.document = document
        self.config = config or LazyLoadConfig()
        self.viewport_config = viewport_config or ViewportConfig()
        self.observer: Optional[IntersectionObserver] = None

        # Container ids enter once and are never removed
        self.processed: Set[str] = set()
        self._queued: Set[str] = set()
        self._order: Dict[int, int] = {}
        self._lock: Optional[asyncio.Lock] = None
        self._tasks: Set[asyncio.Future] = set()
        self._stopped = False

        self.batches_dispatched = 0
        self.batches_failed = 0
        self.batches_skipped = 0

    # Observation

    def start(self, containers: Optional[Iterable[Element]] = None) -> None:
        """Begin observing containers (default: every element with the container attribute)."""
        if self.observer is not None and self.observer.connected:
            return
        if containers is None:
            if self.document is None:
                raise ValueError("No containers given and no document to search")
            attribute = self.config.container_attribute
            containers = self.document.query_all(lambda el: el.has_attribute(attribute))

        self._stopped = False
        self.observer = IntersectionObserver(
            self._on_intersection,
            root_margin=self.viewport_config.root_margin,
            threshold=self.viewport_config.threshold,
        )
        count = 0
        for element in containers:
            self._order.setdefault(id(element), len(self._order))
            self.observer.observe(element)
            count += 1
        log.info("Lazy loading observing %d containers", count)

    def stop(self) -> None:
        """Disconnect the observer; the batch in flight finishes, later batches are dropped."""
        self._stopped = True
        if self.observer is not None:
            self.observer.disconnect()
            log.debug("Intersection observer disconnected")

    @property
    def active(self) -> bool:
        return self.observer is not None and self.observer.connected

    def check_viewport(self, viewport_height: Optional[float] = None) -> Optional[asyncio.Future]:
        """Run intersection detection now (e.g. after a scroll); returns the cycle task, if any."""
        if not self.active:
            return None
        if viewport_height is None:
            viewport_height = self.document.viewport_height if self.document else 0.0
        return self.observer.check(viewport_height)

    def _on_intersection(self, records: List[IntersectionRecord]) -> Optional[asyncio.Future]:
        entries = self.collect(records)
        if not entries:
            return None
        task = asyncio.get_running_loop().create_task(self.process(entries))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # Batch construction

    def collect(self, records: Iterable[IntersectionRecord]) -> List[ViewportEntry]:
        """Newly visible, never-processed containers, closest first."""
        attribute = self.config.container_attribute
        entries: List[ViewportEntry] = []
        seen: Set[str] = set()
        for record in records:
            if not record.is_intersecting:
                continue
            container_id = record.element.get_attribute(attribute)
            if not container_id or container_id in seen:
                continue
            if container_id in self.processed or container_id in self._queued:
                continue
            seen.add(container_id)
            entries.append(
                ViewportEntry(
                    container_id=container_id,
                    element=record.element,
                    distance=distance_from_viewport(record.rect, record.viewport_height),
                    order=self._order.get(id(record.element), len(self._order)),
                )
            )
        entries.sort(key=lambda entry: (entry.distance, entry.order))
        self._queued.update(entry.container_id for entry in entries)
        return entries

    # Dispatch

    async def process(self, entries: List[ViewportEntry]) -> None:
        """Dispatch the entries' batches strictly one after another."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            for batch in make_batches(entries, self.config.batch_size):
                if self._stopped:
                    self._queued.difference_update(entry.container_id for entry in batch)
                    log.debug("Scheduler stopped; dropping batch of %d containers", len(batch))
                    continue
                await self._dispatch(batch)

    async def _dispatch(self, batch: List[ViewportEntry]) -> None:
        container_ids = [entry.container_id for entry in batch]
        store = self.locator.find_capability(DataStoreCapability)
        if store is None:
            log.warning("Data store unavailable; %d containers left for a later pass", len(batch))
            self.batches_skipped += 1
            self._queued.difference_update(container_ids)
            if self.active:
                # Re-arm so the next check reports them again
                for entry in batch:
                    self.observer.unobserve(entry.element)
                    self.observer.observe(entry.element)
            return

        self.processed.update(container_ids)
        self._queued.difference_update(container_ids)
        if self.observer is not None:
            for entry in batch:
                self.observer.unobserve(entry.element)

        self.batches_dispatched += 1
        log.debug("Dispatching batch %d: %s", self.batches_dispatched, container_ids)
        try:
            await store.fetch_batch(container_ids)
        except Exception as e:
            self.batches_failed += 1
            log.error("Batch fetch failed for %d containers: %s", len(container_ids), e)

    async def settle(self) -> None:
        """Wait for every scheduled cycle to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "processed": len(self.processed),
            "queued": len(self._queued),
            "observing": len(self.observer.observed) if self.observer else 0,
            "batches_dispatched": self.batches_dispatched,
            "batches_failed": self.batches_failed,
            "batches_skipped": self.batches_skipped,
        }
