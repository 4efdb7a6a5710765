"""
Tests for ModuleRegistry.

This module tests the module registry system including:
- Descriptor registration and replacement
- Priority ordering with stable ties
- Partial overrides
- The built-in module set
"""

import logging

import pytest

from lazypage.module_registry import ModuleDescriptor, ModuleRegistry, default_descriptors


class TestModuleDescriptor:
    """Tests for ModuleDescriptor."""

    def test_depends_on_frozen(self):
        """Test dependency sets are stored as frozensets."""
        descriptor = ModuleDescriptor("cache", "cache.min.py", depends_on=["config"])

        assert descriptor.depends_on == frozenset({"config"})

    def test_immutable(self):
        """Test descriptors cannot be mutated."""
        descriptor = ModuleDescriptor("cache", "cache.min.py")

        with pytest.raises(AttributeError):
            descriptor.priority = 5

    def test_with_overrides(self):
        """Test overrides return a new descriptor."""
        descriptor = ModuleDescriptor("cache", "cache.min.py", required=True, priority=2)

        updated = descriptor.with_overrides({"required": False, "depends_on": {"config"}})

        assert updated.required is False
        assert updated.depends_on == frozenset({"config"})
        assert descriptor.required is True

    def test_with_unknown_override(self):
        """Test unknown override fields are rejected."""
        with pytest.raises(ValueError):
            ModuleDescriptor("cache", "cache.min.py").with_overrides({"color": "red"})


class TestModuleRegistry:
    """Tests for ModuleRegistry."""

    def setup_method(self):
        """Set up test fixtures."""
        self.registry = ModuleRegistry()

    def test_registry_initialization(self):
        """Test registry initialization."""
        assert len(self.registry) == 0
        assert self.registry.sorted_by_priority() == []

    def test_register_and_get(self):
        """Test registering a module."""
        self.registry.register([ModuleDescriptor("config", "config.min.py", required=True, priority=1)])

        assert "config" in self.registry
        assert self.registry.get("config").required is True
        assert self.registry.get("missing") is None
        assert isinstance(self.registry.get_logger("config"), logging.Logger)
        assert self.registry.get_logger("config").name == "lazypage.module.config"

    def test_register_replaces_keeping_slot(self):
        """Test re-registering keeps the original registration order."""
        self.registry.register(
            [
                ModuleDescriptor("a", "a.py", priority=1),
                ModuleDescriptor("b", "b.py", priority=1),
            ]
        )

        self.registry.register([ModuleDescriptor("a", "a2.py", priority=1)])

        assert [d.name for d in self.registry.sorted_by_priority()] == ["a", "b"]
        assert self.registry.get("a").source_ref == "a2.py"

    def test_sorted_by_priority_stable(self):
        """Test ascending priority with ties in registration order."""
        self.registry.register(
            [
                ModuleDescriptor("z", "z.py", priority=5),
                ModuleDescriptor("y", "y.py", priority=1),
                ModuleDescriptor("x", "x.py", priority=5),
            ]
        )

        assert [d.name for d in self.registry.sorted_by_priority()] == ["y", "z", "x"]

    def test_apply_overrides(self):
        """Test partial overrides merge and new names are added."""
        self.registry.register(default_descriptors())

        self.registry.apply_overrides(
            {
                "firebase": {"required": False},
                "reviews": {"source_ref": "reviews.min.py", "priority": 8, "depends_on": ["config"]},
            }
        )

        assert self.registry.get("firebase").required is False
        assert self.registry.get("firebase").priority == 3
        assert self.registry.get("reviews").depends_on == frozenset({"config"})
        assert self.registry.sorted_by_priority()[-1].name == "reviews"

    def test_apply_override_new_without_source(self):
        """Test a new module override without a source is rejected."""
        with pytest.raises(ValueError):
            self.registry.apply_overrides({"ghost": {"priority": 1}})

    def test_required_names(self):
        """Test required module names."""
        self.registry.register(default_descriptors())

        assert self.registry.get_required_names() == {"config", "cache", "firebase"}
        assert self.registry.is_required("gallery") is False


def test_default_descriptors_dependencies_precede():
    """Test every built-in dependency loads at a lower priority."""
    descriptors = {d.name: d for d in default_descriptors()}

    for descriptor in descriptors.values():
        for dep in descriptor.depends_on:
            assert descriptors[dep].priority < descriptor.priority
