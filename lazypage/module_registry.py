"""
Module registry describing every loadable feature module.

Descriptors are plain immutable data: where the code unit lives, whether the
page can run without it, when to load it, and which modules it needs first.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set

OVERRIDABLE_FIELDS = ("source_ref", "required", "priority", "depends_on")


@dataclass(frozen=True)
class ModuleDescriptor:
    """Static description of one loadable module."""

    name: str
    source_ref: str
    required: bool = False
    priority: int = 100
    depends_on: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        # Accept any iterable for depends_on but store it frozen
        if not isinstance(self.depends_on, frozenset):
            object.__setattr__(self, "depends_on", frozenset(self.depends_on))

    @property
    def logger_name(self) -> str:
        return f"lazypage.module.{self.name}"

    def with_overrides(self, overrides: Mapping[str, Any]) -> "ModuleDescriptor":
        """Return a copy with the given fields replaced."""
        unknown = set(overrides) - set(OVERRIDABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown descriptor fields for {self.name}: {sorted(unknown)}")
        return replace(self, **dict(overrides))


def default_descriptors() -> List[ModuleDescriptor]:
    """Built-in module set for a product listing page."""
    return [
        ModuleDescriptor("config", "config.min.py", required=True, priority=1),
        ModuleDescriptor("cache", "cache.min.py", required=True, priority=2, depends_on={"config"}),
        ModuleDescriptor("firebase", "firebase.min.py", required=True, priority=3, depends_on={"config", "cache"}),
        ModuleDescriptor("tracking", "tracking.min.py", priority=4, depends_on={"config"}),
        ModuleDescriptor("gallery", "gallery.min.py", priority=5, depends_on={"config", "cache", "firebase"}),
        ModuleDescriptor("forms", "forms.min.py", priority=6, depends_on={"config"}),
        ModuleDescriptor("lazy", "lazy.min.py", priority=7, depends_on={"config", "firebase"}),
    ]


class ModuleRegistry:
    """Registry of module descriptors, keyed by name, in registration order."""

    def __init__(self, descriptors: Optional[Iterable[ModuleDescriptor]] = None):
        """Initialize the registry, optionally with an initial descriptor set."""
        self._modules: Dict[str, dict] = {}
        if descriptors:
            self.register(descriptors)

    def register(self, descriptors: Iterable[ModuleDescriptor]) -> None:
        """Register descriptors, replacing any existing entry of the same name."""
        for descriptor in descriptors:
            entry = self._modules.get(descriptor.name)
            if entry is not None:
                # Keep the original registration slot so priority ties stay stable
                entry["descriptor"] = descriptor
                continue
            self._modules[descriptor.name] = {
                "descriptor": descriptor,
                "logger": logging.getLogger(descriptor.logger_name),
                "order": len(self._modules),
            }

    def apply_overrides(self, overrides: Mapping[str, Mapping[str, Any]]) -> None:
        """Merge partial descriptor overrides; unknown names become new descriptors."""
        for name, fields in overrides.items():
            if isinstance(fields, ModuleDescriptor):
                self.register([fields])
                continue
            current = self.get(name)
            if current is None:
                if "source_ref" not in fields:
                    raise ValueError(f"New module {name} needs a source_ref")
                self.register([ModuleDescriptor(name=name, **dict(fields))])
            else:
                self.register([current.with_overrides(fields)])

    def get(self, name: str) -> Optional[ModuleDescriptor]:
        """Get the descriptor for a module, or None."""
        entry = self._modules.get(name)
        return entry["descriptor"] if entry else None

    def get_logger(self, name: str) -> logging.Logger:
        entry = self._modules.get(name)
        return entry["logger"] if entry else logging.getLogger(f"lazypage.module.{name}")

    def is_required(self, name: str) -> bool:
        descriptor = self.get(name)
        return bool(descriptor and descriptor.required)

    def sorted_by_priority(self) -> List[ModuleDescriptor]:
        """Descriptors by ascending priority; ties keep registration order."""
        entries = sorted(self._modules.values(), key=lambda e: (e["descriptor"].priority, e["order"]))
        return [entry["descriptor"] for entry in entries]

    def get_module_names(self) -> Set[str]:
        """Get all module names."""
        return set(self._modules.keys())

    def get_required_names(self) -> Set[str]:
        return {name for name, entry in self._modules.items() if entry["descriptor"].required}

    def get_all_modules(self) -> Dict[str, ModuleDescriptor]:
        """Get all registered descriptors."""
        return {name: entry["descriptor"] for name, entry in self._modules.items()}

    def __contains__(self, name: str) -> bool:
        return name in self._modules

    def __len__(self) -> int:
        return len(self._modules)
