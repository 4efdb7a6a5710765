"""
Configuration management for the lazypage runtime.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

DEFAULT_INIT_ORDER = ["config", "cache", "firebase", "tracking", "gallery", "forms", "lazy"]


@dataclass
class LoaderConfig:
    """Configuration for the dependency-ordered module loader."""

    source_base: str = "https://raw.githubusercontent.com/lazypage/modules/main/"

    # Modules are initialized in this order; loaded modules missing from it follow by priority
    init_order: List[str] = field(default_factory=lambda: list(DEFAULT_INIT_ORDER))

    # Reported in the ready signal and status snapshot
    version: str = "2.0"

    def resolve_source(self, source_ref: str) -> str:
        """Join a module's source reference onto the source base."""
        if "://" in source_ref or not self.source_base:
            return source_ref
        return self.source_base.rstrip("/") + "/" + source_ref.lstrip("/")


@dataclass
class ViewportConfig:
    """Configuration for intersection detection."""

    # Pixels added above and below the viewport before testing intersection
    root_margin: float = 200.0
    # Minimum visible ratio (0.0 = any overlap)
    threshold: float = 0.0


@dataclass
class LazyLoadConfig:
    """Configuration for the lazy batch scheduler."""

    batch_size: int = 20
    container_attribute: str = "data-container-id"


@dataclass
class DispatcherConfig:
    """Configuration for the capability dispatcher."""

    container_attribute: str = "data-container-id"
    role_attribute: str = "data-field"
    gallery_roles: tuple = ("img_main", "see_more")
    order_role: str = "order"
    order_fallback_attribute: str = "data-order-href"
    dismiss_key: str = "Escape"
    notice_duration: float = 4.0


@dataclass
class MonitorConfig:
    """Configuration for performance reporting."""

    debug: bool = False
    initial_report_delay: float = 10.0
    report_interval: float = 300.0


@dataclass
class AppConfig:
    """Main runtime configuration container."""

    loader: LoaderConfig = field(default_factory=LoaderConfig)
    viewport: ViewportConfig = field(default_factory=ViewportConfig)
    lazy_load: LazyLoadConfig = field(default_factory=LazyLoadConfig)
    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)

    # Global settings
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def create_default(cls) -> "AppConfig":
        """Create a default configuration instance."""
        return cls()

    @classmethod
    def create_for_testing(cls) -> "AppConfig":
        """Create a configuration suitable for testing."""
        config = cls()
        config.loader.source_base = "memory://"
        config.monitor.initial_report_delay = 0.01
        config.monitor.report_interval = 0.05
        config.lazy_load.batch_size = 2
        config.debug = True
        config.monitor.debug = True
        config.log_level = "DEBUG"
        return config


@dataclass
class InitOptions:
    """Per-call options accepted by ``ModuleLoader.init``; unset fields keep the configured values."""

    source_base: Optional[str] = None
    # name -> partial descriptor fields (source_ref, required, priority, depends_on)
    modules: Dict[str, Mapping[str, Any]] = field(default_factory=dict)
    init_order: Optional[List[str]] = None
    root_margin: Optional[float] = None
    threshold: Optional[float] = None
    batch_size: Optional[int] = None
    debug: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "InitOptions":
        if not data:
            return cls()
        return cls(**dict(data))

    def apply_to(self, config: AppConfig) -> AppConfig:
        """Write the set fields onto ``config`` and return it."""
        if self.source_base is not None:
            config.loader.source_base = self.source_base
        if self.init_order is not None:
            config.loader.init_order = list(self.init_order)
        if self.root_margin is not None:
            config.viewport.root_margin = self.root_margin
        if self.threshold is not None:
            config.viewport.threshold = self.threshold
        if self.batch_size is not None:
            if self.batch_size < 1:
                raise ValueError("batch_size must be at least 1")
            config.lazy_load.batch_size = self.batch_size
        if self.debug is not None:
            config.debug = self.debug
            config.monitor.debug = self.debug
        return config
