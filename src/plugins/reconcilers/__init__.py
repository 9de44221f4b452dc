"""
Reconciler plugins package.

Reconcilers own the CRUD binding for one resource type each.
They are discovered via Python entry points (group: 'sentinelctl.resources').
"""

from plugins.reconcilers.base import (
    ResourceReconciler,
    ReconcilerContext,
)

__all__ = ["ResourceReconciler", "ReconcilerContext"]
