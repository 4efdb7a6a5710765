"""
Module source fetchers.

A fetcher retrieves a module's code unit by reference and turns it into a
module handle. The loader only sees the ``ModuleSourceFetcher`` interface, so
the transport can change without touching orchestration logic.

Code units are Python sources (or importable modules) that expose a
``create_module()`` factory returning the handle.
"""

import asyncio
import importlib
import importlib.abc
import importlib.util
import inspect
import logging
import types
import urllib.request
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from .errors import ModuleFetchFailed
from .module_registry import ModuleDescriptor

MODULE_FACTORY = "create_module"

log = logging.getLogger("lazypage.fetcher")


class ModuleSourceFetcher(ABC):
    """Retrieves a code unit and returns the handle it registers."""

    @abstractmethod
    async def fetch(self, descriptor: ModuleDescriptor, location: str) -> Any:
        """Fetch ``descriptor`` from ``location``; raise ModuleFetchFailed on any failure."""


async def _call_factory(name: str, factory: Callable[[], Any]) -> Any:
    handle = factory()
    if inspect.isawaitable(handle):
        handle = await handle
    if handle is None:
        raise ModuleFetchFailed(name, f"{MODULE_FACTORY}() returned nothing")
    return handle


class _SourceLoader(importlib.abc.Loader):
    """Import-system loader for source text that was fetched rather than found on disk."""

    def __init__(self, source: str, origin: str):
        self._source = source
        self._origin = origin

    def create_module(self, spec):
        return None

    def exec_module(self, module: types.ModuleType) -> None:
        code = compile(self._source, self._origin, "exec")
        exec(code, module.__dict__)  # noqa: S102


def execute_source(name: str, source: str, origin: str) -> types.ModuleType:
    """Execute module source in a fresh, isolated namespace."""
    spec = importlib.util.spec_from_loader(f"lazypage.remote.{name}", _SourceLoader(source, origin), origin=origin)
    module = importlib.util.module_from_spec(spec)
    module.__file__ = origin
    spec.loader.exec_module(module)
    return module


class HttpSourceFetcher(ModuleSourceFetcher):
    """Downloads Python source over HTTP(S) and executes it."""

    def __init__(self, max_workers: int = 2, socket_timeout: Optional[float] = None,
                 user_agent: str = "lazypage/2.0"):
        """Initialize with a small worker pool for blocking downloads."""
        self._executor = ThreadPoolExecutor(max_workers=max_workers)
        self._socket_timeout = socket_timeout
        self._user_agent = user_agent

    def _download_sync(self, url: str) -> str:
        """Perform the blocking download for thread pool execution."""
        req = urllib.request.Request(url, headers={"User-Agent": self._user_agent})
        with urllib.request.urlopen(req, timeout=self._socket_timeout) as response:
            return response.read().decode("utf-8")

    async def fetch(self, descriptor: ModuleDescriptor, location: str) -> Any:
        loop = asyncio.get_running_loop()
        try:
            source = await loop.run_in_executor(self._executor, self._download_sync, location)
        except Exception as e:
            raise ModuleFetchFailed(descriptor.name, f"failed to load {location}: {e}") from e

        try:
            module = execute_source(descriptor.name, source, location)
        except Exception as e:
            raise ModuleFetchFailed(descriptor.name, f"failed to execute {location}: {e}") from e

        factory = getattr(module, MODULE_FACTORY, None)
        if not callable(factory):
            raise ModuleFetchFailed(descriptor.name, f"{location} does not define {MODULE_FACTORY}()")
        try:
            return await _call_factory(descriptor.name, factory)
        except ModuleFetchFailed:
            raise
        except Exception as e:
            raise ModuleFetchFailed(descriptor.name, f"{MODULE_FACTORY}() failed: {e}") from e

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


class ImportFetcher(ModuleSourceFetcher):
    """Resolves ``package.module`` or ``package.module:factory`` references via import."""

    async def fetch(self, descriptor: ModuleDescriptor, location: str) -> Any:
        ref = descriptor.source_ref
        module_path, _, factory_name = ref.partition(":")
        try:
            module = importlib.import_module(module_path)
        except Exception as e:
            raise ModuleFetchFailed(descriptor.name, f"cannot import {module_path}: {e}") from e

        factory = getattr(module, factory_name or MODULE_FACTORY, None)
        if not callable(factory):
            raise ModuleFetchFailed(descriptor.name, f"{ref} has no callable {factory_name or MODULE_FACTORY}")
        try:
            return await _call_factory(descriptor.name, factory)
        except ModuleFetchFailed:
            raise
        except Exception as e:
            raise ModuleFetchFailed(descriptor.name, f"factory failed: {e}") from e


class StaticFetcher(ModuleSourceFetcher):
    """Serves handles from in-process factories keyed by module name."""

    def __init__(self, factories: Optional[Dict[str, Callable[[], Any]]] = None):
        self.factories: Dict[str, Callable[[], Any]] = dict(factories or {})
        self.requested: List[str] = []

    def add(self, name: str, factory: Callable[[], Any]) -> None:
        self.factories[name] = factory

    async def fetch(self, descriptor: ModuleDescriptor, location: str) -> Any:
        self.requested.append(descriptor.name)
        factory = self.factories.get(descriptor.name)
        if factory is None:
            raise ModuleFetchFailed(descriptor.name, f"no source at {location}")
        try:
            return await _call_factory(descriptor.name, factory)
        except ModuleFetchFailed:
            raise
        except Exception as e:
            raise ModuleFetchFailed(descriptor.name, f"failed to load {location}: {e}") from e
