"""
Plugin system for sentinelctl.

This package provides the resource reconcilers and their shared types.
"""

from plugins.base import (
    Attribute,
    AttributeType,
    ChangeAction,
    ReconcileResult,
    ResourceSpec,
)

__all__ = [
    "Attribute",
    "AttributeType",
    "ChangeAction",
    "ReconcileResult",
    "ResourceSpec",
]
