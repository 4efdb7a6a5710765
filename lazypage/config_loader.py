"""
Configuration loader for the lazypage runtime.

Supports loading configuration from YAML files with environment variable overrides.
"""

import copy
import logging
import os
from typing import Any, Dict, Optional

import yaml

from .config import AppConfig, DispatcherConfig, LazyLoadConfig, LoaderConfig, MonitorConfig, ViewportConfig

log = logging.getLogger("lazypage.config")

_SECTIONS = {
    "loader": LoaderConfig,
    "viewport": ViewportConfig,
    "lazy_load": LazyLoadConfig,
    "dispatcher": DispatcherConfig,
    "monitor": MonitorConfig,
}


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. Defaults to "lazypage.yaml"

    Returns:
        AppConfig instance with loaded settings
    """
    config = AppConfig.create_default()

    config_path = config_path or "lazypage.yaml"
    if os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
            if config_data is not None and not isinstance(config_data, dict):
                log.warning("Ignoring config in %s: expected a mapping, got %s", config_path, type(config_data).__name__)
            elif config_data:
                # A bad section must leave the defaults untouched
                loaded = copy.deepcopy(config)
                apply_config_data(loaded, config_data)
                config = loaded
        except (OSError, yaml.YAMLError, TypeError, ValueError) as e:
            # Log error but continue with defaults
            log.warning("Could not load config from %s: %s", config_path, e)

    apply_env_overrides(config)
    return config


def apply_config_data(config: AppConfig, config_data: Dict[str, Any]) -> None:
    """Apply a parsed config mapping section by section."""
    for section, section_cls in _SECTIONS.items():
        values = config_data.get(section)
        if not values:
            continue
        current = getattr(config, section)
        merged = {**current.__dict__, **values}
        if "gallery_roles" in merged:
            merged["gallery_roles"] = tuple(merged["gallery_roles"])
        setattr(config, section, section_cls(**merged))

    config.debug = bool(config_data.get("debug", config.debug))
    config.log_level = str(config_data.get("log_level", config.log_level)).upper()
    if config.debug:
        config.monitor.debug = True


def apply_env_overrides(config: AppConfig) -> None:
    """Apply environment variable overrides to configuration."""
    if os.getenv("LAZYPAGE_SOURCE_BASE"):
        config.loader.source_base = os.getenv("LAZYPAGE_SOURCE_BASE")

    batch_size = os.getenv("LAZYPAGE_BATCH_SIZE")
    if batch_size:
        try:
            config.lazy_load.batch_size = max(1, int(batch_size))
        except ValueError:
            log.warning("Ignoring invalid LAZYPAGE_BATCH_SIZE: %r", batch_size)

    # Global settings
    if os.getenv("DEBUG"):
        config.debug = os.getenv("DEBUG").lower() in ("true", "1", "yes")
        config.monitor.debug = config.debug

    if os.getenv("LOG_LEVEL"):
        config.log_level = os.getenv("LOG_LEVEL").upper()


def setup_logging(config: AppConfig) -> None:
    """Configure root logging from the application config."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
