"""
Reconciler Base - Abstract interface for resource reconcilers.

A reconciler owns the CRUD binding between one declarative resource type and
its remote API. Reconcilers are registered with the plugin registry and are
discovered via Python entry points (group: 'sentinelctl.resources').
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from config import Config, get_config
from errors import ValidationError
from plugins.base import Attribute
from plugins.sentinel.client import AlertRulesClient
from state import ResourceData
from timeouts import ResourceTimeouts
from validation import apply_defaults, validate_attributes

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], AlertRulesClient]


class ReconcilerContext:
    """
    Context provided to reconcilers by the controller.

    Gives reconcilers access to configuration and to API clients, one per
    subscription, sharing a single credential.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.config = config or get_config()
        self._client_factory = client_factory
        self._clients: Dict[str, AlertRulesClient] = {}
        self._credential: Optional[Any] = None

    def alert_rules_client(self, subscription_id: str) -> AlertRulesClient:
        """
        Get the alert rules client for a subscription.

        Args:
            subscription_id: The subscription the rule lives in.

        Returns:
            A cached AlertRulesClient instance.
        """
        if subscription_id not in self._clients:
            if self._client_factory is not None:
                client = self._client_factory(subscription_id)
            else:
                client = self._build_client(subscription_id)
            self._clients[subscription_id] = client
        return self._clients[subscription_id]

    async def close(self) -> None:
        """Release the shared credential."""
        if self._credential is not None:
            await self._credential.close()
            self._credential = None
        self._clients.clear()

    def _build_client(self, subscription_id: str) -> AlertRulesClient:
        azure = self.config.azure
        if self._credential is None:
            self._credential = azure.credentials()
        return AlertRulesClient(
            subscription_id=subscription_id,
            endpoint=azure.resource_manager_endpoint,
            api_version=azure.api_version,
            credential=self._credential,
            access_token=azure.access_token or None,
            token_scope=azure.token_scope,
        )


class ResourceReconciler(ABC):
    """
    Abstract base class for resource reconcilers.

    Subclasses declare a schema and implement create, read, update and
    delete against the remote API. Read clears the ID of the data it is
    given when the remote resource no longer exists.
    """

    timeouts: ResourceTimeouts = ResourceTimeouts()

    @property
    @abstractmethod
    def type_name(self) -> str:
        """Unique resource type name (e.g. 'sentinel_alert_rule_fusion')."""
        pass

    @property
    @abstractmethod
    def schema(self) -> Dict[str, Attribute]:
        """Attribute definitions keyed by attribute name."""
        pass

    @abstractmethod
    async def create(self, data: ResourceData, ctx: ReconcilerContext) -> ResourceData:
        """Create the remote resource and return its refreshed state."""
        pass

    @abstractmethod
    async def read(self, data: ResourceData, ctx: ReconcilerContext) -> ResourceData:
        """Refresh state from the remote resource."""
        pass

    @abstractmethod
    async def update(self, data: ResourceData, ctx: ReconcilerContext) -> ResourceData:
        """Update mutable attributes of the remote resource."""
        pass

    @abstractmethod
    async def delete(self, data: ResourceData, ctx: ReconcilerContext) -> None:
        """Delete the remote resource."""
        pass

    def validate_import_id(self, resource_id: str) -> None:
        """Check the shape of an ID before importing; raise to reject it."""

    async def importer(self, data: ResourceData, ctx: ReconcilerContext) -> None:
        """Check the remote resource may be adopted; raise to reject it."""

    async def import_state(
        self,
        resource_id: str,
        ctx: ReconcilerContext,
        timeouts: Optional[ResourceTimeouts] = None,
    ) -> ResourceData:
        """
        Adopt an existing remote resource into state.

        Args:
            resource_id: The remote ID to import.
            ctx: The reconciler context.
            timeouts: Deadlines to use, defaults to the reconciler's.

        Returns:
            The refreshed state of the imported resource.
        """
        self.validate_import_id(resource_id)
        data = ResourceData(id=resource_id, timeouts=timeouts or self.timeouts)
        await self.importer(data, ctx)
        return await self.read(data, ctx)

    def validate(self, spec: Dict[str, Any], address: str) -> None:
        """
        Validate a declarative spec.

        Raises:
            ValidationError: If the spec does not match the schema.
        """
        errors = validate_attributes(spec, self.schema)
        if errors:
            raise ValidationError(address, errors)

    def with_defaults(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        return apply_defaults(spec, self.schema)

    def force_new_attributes(self) -> List[str]:
        return [name for name, attr in self.schema.items() if attr.force_new]
