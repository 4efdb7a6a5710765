"""
Error types raised while loading and initializing feature modules.
"""

from dataclasses import dataclass
from enum import Enum


class FailureKind(Enum):
    """Why a module did not make it into the loaded/initialized sets."""

    DEPENDENCY_UNMET = "dependency_unmet"
    FETCH_FAILED = "fetch_failed"
    INIT_FAILED = "init_failed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ModuleFailure:
    """Recorded failure for a single module."""

    name: str
    kind: FailureKind
    message: str


class LazyPageError(Exception):
    """Base class for orchestrator errors."""


class ModuleError(LazyPageError):
    """Error tied to one named module."""

    kind: FailureKind

    def __init__(self, module_name: str, message: str):
        super().__init__(f"{module_name}: {message}")
        self.module_name = module_name
        self.message = message

    def to_failure(self) -> ModuleFailure:
        return ModuleFailure(self.module_name, self.kind, self.message)


class DependencyUnmet(ModuleError):
    """A dependency of the module never loaded successfully."""

    kind = FailureKind.DEPENDENCY_UNMET

    def __init__(self, module_name: str, missing):
        self.missing = sorted(missing)
        super().__init__(module_name, "dependencies not loaded: " + ", ".join(self.missing))


class ModuleFetchFailed(ModuleError):
    """The module's code unit could not be retrieved or executed."""

    kind = FailureKind.FETCH_FAILED


class ModuleInitFailed(ModuleError):
    """The module loaded but its init hook raised."""

    kind = FailureKind.INIT_FAILED


class StartupAborted(LazyPageError):
    """A required module failed; the startup sequence stops."""

    def __init__(self, cause: ModuleError):
        super().__init__(f"required module {cause.module_name} failed: {cause.message}")
        self.cause = cause
