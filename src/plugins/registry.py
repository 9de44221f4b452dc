"""
Plugin Registry - Discovery and registration of resource reconcilers.

This module provides the central registry mapping resource type names to
their reconcilers, handling discovery, registration, and instantiation.
"""

import logging
from importlib.metadata import entry_points
from typing import Any, Dict, List, Optional, Type

from plugins.reconcilers.base import ResourceReconciler
from validation import build_json_schema, validate_json_schema

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "sentinelctl.resources"


class ResourceRegistry:
    """
    Central registry for resource reconcilers.

    Handles discovery, registration, and instantiation of reconcilers,
    keyed by the resource type name they manage.
    """

    def __init__(self):
        # Registered reconciler classes (not instantiated)
        self._reconcilers: Dict[str, Type[ResourceReconciler]] = {}

        # Instantiated reconcilers
        self._instances: Dict[str, ResourceReconciler] = {}

    def register(self, reconciler_class: Type[ResourceReconciler]) -> None:
        """
        Register a reconciler class.

        Args:
            reconciler_class: The ResourceReconciler subclass to register

        Raises:
            ValueError: If the resource type is already claimed by another
                reconciler, or if its schema is not a valid JSON Schema
        """
        # Create temporary instance to get type name and schema
        temp_instance = reconciler_class()
        type_name = temp_instance.type_name

        existing = self._reconcilers.get(type_name)
        if existing is not None and existing is not reconciler_class:
            raise ValueError(
                f"Resource type '{type_name}' is already claimed by "
                f"{existing.__name__}. Cannot register {reconciler_class.__name__}."
            )

        is_valid, error = validate_json_schema(build_json_schema(temp_instance.schema))
        if not is_valid:
            raise ValueError(f"Resource type '{type_name}' has an invalid schema: {error}")

        self._reconcilers[type_name] = reconciler_class
        logger.debug(f"Registered resource type: {type_name}")

    def get_reconciler(self, type_name: str) -> ResourceReconciler:
        """
        Get the reconciler instance for a resource type.

        Args:
            type_name: The resource type name

        Returns:
            A ResourceReconciler instance

        Raises:
            ValueError: If the resource type is not registered
        """
        if type_name not in self._reconcilers:
            available = ", ".join(sorted(self._reconcilers)) or "none"
            raise ValueError(
                f"Unknown resource type: {type_name}. Available types: {available}"
            )

        if type_name not in self._instances:
            self._instances[type_name] = self._reconcilers[type_name]()
        return self._instances[type_name]

    def has_resource_type(self, type_name: str) -> bool:
        """Check if a resource type is registered."""
        return type_name in self._reconcilers

    def list_resource_types(self) -> List[str]:
        """List all registered resource type names."""
        return sorted(self._reconcilers)

    def get_resource_type_info(self, type_name: str) -> Optional[Dict[str, Any]]:
        """
        Get information about a registered resource type.

        Args:
            type_name: The resource type name

        Returns:
            Dictionary with 'name', 'attributes' and 'force_new', or None if
            not found
        """
        if type_name not in self._reconcilers:
            return None
        reconciler = self.get_reconciler(type_name)
        return {
            "name": type_name,
            "attributes": {
                name: {
                    "type": attr.type.value,
                    "required": attr.required,
                    "force_new": attr.force_new,
                    "default": attr.default,
                    "description": attr.description,
                }
                for name, attr in reconciler.schema.items()
            },
            "force_new": reconciler.force_new_attributes(),
        }


# Global registry instance
_registry: Optional[ResourceRegistry] = None


def get_registry() -> ResourceRegistry:
    """Get the global resource registry singleton."""
    global _registry
    if _registry is None:
        _registry = ResourceRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_resources() -> ResourceRegistry:
    """
    Register the built-in reconcilers and discover additional ones
    via entry points.
    """
    registry = get_registry()

    from plugins.sentinel.ml_behavior_analytics import (
        MLBehaviorAnalyticsAlertRuleReconciler,
    )

    registry.register(MLBehaviorAnalyticsAlertRuleReconciler)

    # Discover and register reconcilers via entry points
    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            reconciler_class = ep.load()
            registry.register(reconciler_class)
        except Exception as e:
            logger.warning(f"Could not load resource reconciler {ep.name}: {e}")

    return registry
