"""Unit tests for the resource registry."""

from unittest.mock import MagicMock, patch

import pytest

from plugins.base import Attribute, AttributeType
from plugins.reconcilers.base import ResourceReconciler
from plugins.registry import (
    ENTRY_POINT_GROUP,
    ResourceRegistry,
    get_registry,
    register_builtin_resources,
    reset_registry,
)
from plugins.sentinel.ml_behavior_analytics import (
    RESOURCE_TYPE,
    MLBehaviorAnalyticsAlertRuleReconciler,
)

# ==================== Test Helpers ====================


class DummyReconciler(ResourceReconciler):
    """Concrete reconciler for testing."""

    @property
    def type_name(self) -> str:
        return "dummy_resource"

    @property
    def schema(self):
        return {"name": Attribute(type=AttributeType.STRING, required=True)}

    async def create(self, data, ctx):
        data.set_id("dummy-id")
        return data

    async def read(self, data, ctx):
        return data

    async def update(self, data, ctx):
        return data

    async def delete(self, data, ctx):
        pass


class ClashingReconciler(DummyReconciler):
    """Claims the same type name as DummyReconciler."""


# ==================== Registry Tests ====================


class TestResourceRegistry:
    """Tests for ResourceRegistry class."""

    def test_register_and_get(self):
        registry = ResourceRegistry()
        registry.register(DummyReconciler)

        assert registry.has_resource_type("dummy_resource")
        reconciler = registry.get_reconciler("dummy_resource")
        assert isinstance(reconciler, DummyReconciler)
        assert registry.get_reconciler("dummy_resource") is reconciler

    def test_register_same_class_twice(self):
        registry = ResourceRegistry()
        registry.register(DummyReconciler)
        registry.register(DummyReconciler)
        assert registry.list_resource_types() == ["dummy_resource"]

    def test_register_conflicting_type(self):
        registry = ResourceRegistry()
        registry.register(DummyReconciler)
        with pytest.raises(ValueError) as exc_info:
            registry.register(ClashingReconciler)
        assert "already claimed by DummyReconciler" in str(exc_info.value)

    def test_get_unknown_type(self):
        registry = ResourceRegistry()
        registry.register(DummyReconciler)
        with pytest.raises(ValueError) as exc_info:
            registry.get_reconciler("nope")
        assert "Unknown resource type: nope" in str(exc_info.value)
        assert "dummy_resource" in str(exc_info.value)

    def test_list_resource_types(self):
        registry = ResourceRegistry()
        registry.register(MLBehaviorAnalyticsAlertRuleReconciler)
        registry.register(DummyReconciler)
        assert registry.list_resource_types() == ["dummy_resource", RESOURCE_TYPE]

    def test_get_resource_type_info(self):
        registry = ResourceRegistry()
        registry.register(MLBehaviorAnalyticsAlertRuleReconciler)

        info = registry.get_resource_type_info(RESOURCE_TYPE)
        assert info["name"] == RESOURCE_TYPE
        assert info["attributes"]["enabled"]["default"] is True
        assert info["attributes"]["enabled"]["type"] == "boolean"
        assert info["attributes"]["name"]["force_new"] is True
        assert set(info["force_new"]) == {
            "name",
            "log_analytics_workspace_id",
            "alert_rule_template_guid",
        }
        assert registry.get_resource_type_info("nope") is None


class TestGlobalRegistry:
    """Tests for the registry singleton."""

    def test_singleton(self):
        assert get_registry() is get_registry()

    def test_reset(self):
        registry = get_registry()
        reset_registry()
        assert get_registry() is not registry


class TestRegisterBuiltinResources:
    """Tests for register_builtin_resources function."""

    def test_registers_ml_behavior_analytics(self):
        with patch("plugins.registry.entry_points", return_value=[]):
            registry = register_builtin_resources()
        assert registry is get_registry()
        assert registry.has_resource_type(RESOURCE_TYPE)

    def test_discovers_entry_points(self):
        ep = MagicMock()
        ep.name = "dummy"
        ep.load.return_value = DummyReconciler

        with patch("plugins.registry.entry_points", return_value=[ep]) as mock_eps:
            registry = register_builtin_resources()

        mock_eps.assert_called_once_with(group=ENTRY_POINT_GROUP)
        assert registry.has_resource_type("dummy_resource")

    def test_broken_entry_point_is_skipped(self):
        ep = MagicMock()
        ep.name = "broken"
        ep.load.side_effect = ImportError("no module named broken")

        with patch("plugins.registry.entry_points", return_value=[ep]):
            registry = register_builtin_resources()

        assert registry.list_resource_types() == [RESOURCE_TYPE]
