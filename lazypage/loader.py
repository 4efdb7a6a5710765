"""
Dependency-ordered module loader.

Loads every registered module in ascending priority order, refusing to fetch a
module whose dependencies have not loaded, then initializes the loaded modules
in a fixed canonical order. The whole startup sequence runs at most once per
page; every ``init()`` caller shares the same future.

Required modules are fatal on failure (no ready signal, ``init()`` resolves to
False). Optional modules are logged and left absent.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Type, TypeVar, Union

from .capabilities import Initializable, StatsProvider, as_capability
from .config import AppConfig, InitOptions
from .dom import Document, Event
from .errors import (
    DependencyUnmet,
    FailureKind,
    ModuleError,
    ModuleFailure,
    ModuleFetchFailed,
    ModuleInitFailed,
    StartupAborted,
)
from .fetcher import HttpSourceFetcher, ModuleSourceFetcher
from .module_registry import ModuleDescriptor, ModuleRegistry, default_descriptors
from .monitor import PerformanceMonitor

READY_EVENT = "lazypage:ready"

C = TypeVar("C")

log = logging.getLogger("lazypage.loader")


@dataclass
class LoaderState:
    """Mutable loader bookkeeping."""

    attempted: List[str] = field(default_factory=list)
    loaded: Set[str] = field(default_factory=set)
    initialized: Set[str] = field(default_factory=set)
    failures: Dict[str, ModuleFailure] = field(default_factory=dict)
    startup_task: Optional["asyncio.Future[bool]"] = None


@dataclass(frozen=True)
class ReadySignal:
    """Payload of the one-time ready notification."""

    loaded_modules: List[str]
    timestamp: float
    version: str


class ModuleLoader:
    """Fetches, initializes and hands out feature modules."""

    def __init__(
        self,
        registry: Optional[ModuleRegistry] = None,
        fetcher: Optional[ModuleSourceFetcher] = None,
        config: Optional[AppConfig] = None,
        document: Optional[Document] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ):
        self.registry = registry if registry is not None else ModuleRegistry(default_descriptors())
        self.fetcher = fetcher or HttpSourceFetcher()
        self.config = config or AppConfig.create_default()
        self.document = document
        self.monitor = monitor or PerformanceMonitor(self.config.monitor)
        if self.monitor.locator is None:
            self.monitor.locator = self
        self.state = LoaderState()
        self.ready_signal: Optional[ReadySignal] = None
        self._handles: Dict[str, Any] = {}
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}
        self._init_tasks: Dict[str, "asyncio.Future[None]"] = {}
        self._init_phase_done = False

    # Registration

    def register(self, descriptors: Iterable[ModuleDescriptor]) -> None:
        """Replace or add registry entries; only allowed before ``init()``."""
        if self.state.startup_task is not None:
            raise RuntimeError("Modules must be registered before init()")
        self.registry.register(descriptors)

    # Startup sequence

    def init(self, options: Union[InitOptions, Mapping[str, Any], None] = None) -> "asyncio.Future[bool]":
        """Start the startup sequence once; later calls return the same future."""
        if self.state.startup_task is not None:
            if options:
                log.debug("init() already started; ignoring new options")
            return self.state.startup_task
        loop = asyncio.get_running_loop()
        self.state.startup_task = loop.create_task(self._perform_init(options))
        return self.state.startup_task

    async def _perform_init(self, options) -> bool:
        try:
            log.info("=== LAZYPAGE RUNTIME v%s ===", self.config.loader.version)
            self._apply_options(options)
            self.monitor.mark("lazypage-init-start")

            await self._load_modules()
            await self._initialize_modules()
            self._verify_required()

            self.monitor.mark("lazypage-init-end")
            self.monitor.measure("lazypage-total-init", "lazypage-init-start", "lazypage-init-end")
            log.info("=== LAZYPAGE READY (%d modules) ===", len(self.state.loaded))
            self._fire_ready()
            return True
        except StartupAborted as e:
            log.error("Initialization failed: %s", e)
            return False
        except Exception as e:
            log.exception("Initialization failed: %s", e)
            return False

    def _apply_options(self, options) -> None:
        if options is None:
            return
        if not isinstance(options, InitOptions):
            options = InitOptions.from_dict(options)
        if options.modules:
            self.registry.apply_overrides(options.modules)
        options.apply_to(self.config)

    async def _load_modules(self) -> None:
        log.info("Loading modules...")
        for descriptor in self.registry.sorted_by_priority():
            self.state.attempted.append(descriptor.name)
            try:
                self._check_dependencies(descriptor)
                await self._fetch(descriptor)
            except ModuleError as e:
                self._record_failure(e)
                if descriptor.required:
                    raise StartupAborted(e) from e
                log.warning("Optional module %s skipped: %s", descriptor.name, e.message)

    def _check_dependencies(self, descriptor: ModuleDescriptor) -> None:
        missing = descriptor.depends_on - self.state.loaded
        if missing:
            raise DependencyUnmet(descriptor.name, missing)

    async def _fetch(self, descriptor: ModuleDescriptor) -> Any:
        """Fetch a module, sharing one in-flight fetch per name."""
        name = descriptor.name
        if name in self._handles:
            return self._handles[name]
        pending = self._inflight.get(name)
        if pending is None:
            pending = asyncio.get_running_loop().create_task(self._fetch_unit(descriptor))
            self._inflight[name] = pending
            pending.add_done_callback(lambda _task, key=name: self._inflight.pop(key, None))
        return await pending

    async def _fetch_unit(self, descriptor: ModuleDescriptor) -> Any:
        name = descriptor.name
        location = self.config.loader.resolve_source(descriptor.source_ref)
        self.monitor.mark(f"module-{name}-start")
        try:
            handle = await self.fetcher.fetch(descriptor, location)
        except ModuleFetchFailed:
            raise
        except Exception as e:
            raise ModuleFetchFailed(name, f"failed to load {location}: {e}") from e
        self.monitor.mark(f"module-{name}-end")
        self.monitor.measure(f"module-{name}", f"module-{name}-start", f"module-{name}-end")

        self._handles[name] = handle
        self.state.loaded.add(name)
        self.state.failures.pop(name, None)
        log.info("Module loaded: %s", name)
        return handle

    def init_sequence(self) -> List[str]:
        """Loaded modules in canonical init order, then the rest by priority."""
        ordered = [name for name in self.config.loader.init_order if name in self.state.loaded]
        for descriptor in self.registry.sorted_by_priority():
            if descriptor.name in self.state.loaded and descriptor.name not in ordered:
                ordered.append(descriptor.name)
        for name in self._handles:
            if name not in ordered:
                ordered.append(name)
        return ordered

    async def _initialize_modules(self) -> None:
        log.info("Initializing modules...")
        for name in self.init_sequence():
            try:
                await self._initialize(name)
            except ModuleInitFailed as e:
                self._record_failure(e)
                if self.registry.is_required(name):
                    raise StartupAborted(e) from e
                log.warning("Optional module %s failed to initialize: %s", name, e.message)
        self._init_phase_done = True

    async def _initialize(self, name: str) -> None:
        if name in self.state.initialized:
            return
        pending = self._init_tasks.get(name)
        if pending is None:
            pending = asyncio.get_running_loop().create_task(self._run_init_hook(name))
            self._init_tasks[name] = pending
        await pending

    async def _run_init_hook(self, name: str) -> None:
        hook = as_capability(self._handles[name], Initializable)
        if hook is not None:
            self.monitor.mark(f"init-{name}-start")
            try:
                await hook.init()
            except Exception as e:
                raise ModuleInitFailed(name, str(e) or type(e).__name__) from e
            self.monitor.mark(f"init-{name}-end")
            self.monitor.measure(f"init-{name}", f"init-{name}-start", f"init-{name}-end")
            log.info("Module initialized: %s", name)
        self.state.initialized.add(name)

    def _verify_required(self) -> None:
        for name in sorted(self.registry.get_required_names()):
            if name not in self.state.loaded:
                raise StartupAborted(ModuleFetchFailed(name, "required module not loaded"))
            if name not in self.state.initialized:
                raise StartupAborted(ModuleInitFailed(name, "required module not initialized"))

    def _record_failure(self, error: ModuleError) -> None:
        self.state.failures[error.module_name] = error.to_failure()
        log.error("Module %s failed (%s): %s", error.module_name, error.kind, error.message)

    def _fire_ready(self) -> None:
        if self.ready_signal is not None:
            return
        self.ready_signal = ReadySignal(
            loaded_modules=self.init_sequence(),
            timestamp=time.time(),
            version=self.config.loader.version,
        )
        if self.document is not None:
            self.document.ready = True
            self.document.dispatch_event(Event(READY_EVENT, target=self.document.root, detail=asdict(self.ready_signal)))

    # On-demand loading

    async def load_module(self, name: str) -> Optional[Any]:
        """Fetch one module outside the startup sequence; None if it cannot be provided."""
        descriptor = self.registry.get(name)
        if descriptor is None and name not in self._handles:
            log.warning("Unknown module requested: %s", name)
            return None
        try:
            if name not in self._handles:
                self._check_dependencies(descriptor)
                await self._fetch(descriptor)
            if self._init_phase_done:
                await self._initialize(name)
        except ModuleError as e:
            self._record_failure(e)
            return None
        return self._handles[name]

    # Locator

    @property
    def ready(self) -> bool:
        return self.ready_signal is not None

    def get_module(self, name: str) -> Optional[Any]:
        """Handle of a usable module, or None."""
        if not self._is_usable(name):
            return None
        return self._handles[name]

    def loaded_modules(self, include_failed: bool = False) -> Dict[str, Any]:
        """Loaded handles in init order; init failures are excluded unless asked for."""
        return {
            name: self._handles[name]
            for name in self.init_sequence()
            if include_failed or self._is_usable(name)
        }

    def find_capability(self, capability: Type[C]) -> Optional[C]:
        """First usable module implementing ``capability``, in init order."""
        for handle in self.loaded_modules().values():
            found = as_capability(handle, capability)
            if found is not None:
                return found
        return None

    def _is_usable(self, name: str) -> bool:
        if name not in self._handles:
            return False
        failure = self.state.failures.get(name)
        return not (failure and failure.kind is FailureKind.INIT_FAILED)

    # Status

    def get_status(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {}
        for name, handle in self.loaded_modules().items():
            provider = as_capability(handle, StatsProvider)
            if provider is None:
                continue
            try:
                stats[name] = provider.get_stats()
            except Exception as e:
                log.warning("Stats for %s unavailable: %s", name, e)
        return {
            "loaded": sorted(self.state.loaded),
            "initialized": sorted(self.state.initialized),
            "ready": self.ready,
            "version": self.config.loader.version,
            "failures": {name: str(failure.kind) for name, failure in self.state.failures.items()},
            "stats": stats,
        }
