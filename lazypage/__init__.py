"""
lazypage: dependency-ordered feature module loading and viewport-driven
lazy data loading for content pages.
"""

from .capabilities import (
    DataStoreCapability,
    Disposable,
    FeatureModule,
    GalleryCapability,
    Initializable,
    OrderCapability,
    StatsProvider,
    TrackingCapability,
)
from .config import AppConfig, InitOptions
from .dom import Document, Element, Event, Rect
from .errors import DependencyUnmet, FailureKind, ModuleFetchFailed, ModuleInitFailed, StartupAborted
from .fetcher import HttpSourceFetcher, ImportFetcher, ModuleSourceFetcher, StaticFetcher
from .loader import READY_EVENT, ModuleLoader, ReadySignal
from .module_registry import ModuleDescriptor, ModuleRegistry, default_descriptors
from .runtime import PageRuntime

__version__ = "2.0.0"

__all__ = [
    # Runtime
    "PageRuntime",
    "ModuleLoader",
    "ReadySignal",
    "READY_EVENT",
    # Registry
    "ModuleDescriptor",
    "ModuleRegistry",
    "default_descriptors",
    # Fetchers
    "ModuleSourceFetcher",
    "HttpSourceFetcher",
    "ImportFetcher",
    "StaticFetcher",
    # Capabilities
    "FeatureModule",
    "Initializable",
    "Disposable",
    "StatsProvider",
    "GalleryCapability",
    "OrderCapability",
    "TrackingCapability",
    "DataStoreCapability",
    # Config
    "AppConfig",
    "InitOptions",
    # Document
    "Document",
    "Element",
    "Event",
    "Rect",
    # Errors
    "DependencyUnmet",
    "FailureKind",
    "ModuleFetchFailed",
    "ModuleInitFailed",
    "StartupAborted",
]
