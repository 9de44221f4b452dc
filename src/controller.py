"""
Controller - Plans and applies declared resources against remote state.

Similar to a Terraform run: refresh state from the remote APIs, diff it with
the declared resources, then create, update, replace or delete to converge.
Each resource is reconciled independently; a failure is recorded in its
result and does not stop the others.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import yaml

from config import ControllerConfig
from errors import SentinelError, ValidationError
from plugins.base import ChangeAction, ReconcileResult, ResourceSpec
from plugins.reconcilers.base import ReconcilerContext, ResourceReconciler
from plugins.registry import ResourceRegistry, get_registry
from state import ResourceData, StateStore
from timeouts import ResourceTimeouts

logger = logging.getLogger(__name__)


@dataclass
class PlannedChange:
    """A change the controller intends to make to one resource."""

    address: str
    type_name: str
    name: str
    action: ChangeAction
    spec: Optional[Dict[str, Any]] = None
    prior: Optional[ResourceData] = None
    timeouts: Optional[Dict[str, str]] = None
    changed_attributes: List[str] = field(default_factory=list)


def load_resource_specs(filename: str) -> List[ResourceSpec]:
    """
    Load declared resources from a YAML or JSON file.

    The file holds a top-level `resources` list; each entry has `name`,
    `type`, `spec` and optionally `timeouts`.

    Raises:
        SentinelError: If the file cannot be read or is malformed.
    """
    try:
        with open(filename, "r") as f:
            if filename.endswith(".yaml") or filename.endswith(".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise SentinelError(f"Failed to load {filename}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("resources"), list):
        raise SentinelError(f"{filename} must contain a top-level 'resources' list")

    specs: List[ResourceSpec] = []
    seen = set()
    for index, entry in enumerate(data["resources"]):
        if not isinstance(entry, dict):
            raise SentinelError(f"resources[{index}] must be a mapping")
        missing = [key for key in ("name", "type", "spec") if key not in entry]
        if missing:
            raise SentinelError(
                f"resources[{index}] must contain fields: {', '.join(missing)}"
            )
        if not isinstance(entry["spec"], dict):
            raise SentinelError(f"resources[{index}].spec must be a mapping")

        spec = ResourceSpec(
            name=str(entry["name"]),
            type=str(entry["type"]),
            spec=entry["spec"],
            timeouts=entry.get("timeouts"),
        )
        if spec.address in seen:
            raise SentinelError(f"Duplicate resource address: {spec.address}")
        seen.add(spec.address)
        specs.append(spec)

    return specs


class Controller:
    """
    Reconciles declared resources with the state file and remote APIs.

    Dispatches each resource to the reconciler registered for its type and
    records the outcome in state after every change.
    """

    def __init__(
        self,
        state: StateStore,
        ctx: ReconcilerContext,
        registry: Optional[ResourceRegistry] = None,
        config: Optional[ControllerConfig] = None,
    ):
        self.state = state
        self.ctx = ctx
        self.registry = registry or get_registry()
        self.config = config or ControllerConfig()
        self.semaphore = asyncio.Semaphore(self.config.parallelism)

    # Validation

    def validate(self, specs: Iterable[ResourceSpec]) -> List[str]:
        """
        Validate declared resources against their schemas.

        Returns:
            List of error messages, empty if everything is valid.
        """
        errors: List[str] = []
        for spec in specs:
            if not self.registry.has_resource_type(spec.type):
                errors.append(f"{spec.address}: unknown resource type {spec.type!r}")
                continue
            reconciler = self.registry.get_reconciler(spec.type)
            try:
                reconciler.validate(spec.spec, spec.address)
                self._timeouts_for(reconciler, spec.timeouts)
            except ValidationError as e:
                errors.append(str(e))
            except SentinelError as e:
                errors.append(f"{spec.address}: {e}")
        return errors

    # Refresh

    async def refresh(
        self, timeouts: Optional[Dict[str, Dict[str, str]]] = None
    ) -> List[ReconcileResult]:
        """Read every managed resource, dropping those that no longer exist."""
        timeouts = timeouts or {}
        tasks = [
            self._refresh_resource(address, timeouts.get(address))
            for address in self.state.addresses()
        ]
        return list(await asyncio.gather(*tasks))

    async def _refresh_resource(
        self, address: str, timeouts: Optional[Dict[str, str]]
    ) -> ReconcileResult:
        async with self.semaphore:
            entry = self.state.get(address)
            result = ReconcileResult(
                address=address, action=ChangeAction.READ, resource_id=entry["id"]
            )
            try:
                reconciler = self.registry.get_reconciler(entry["type"])
                data = self.state.get_data(
                    address, self._timeouts_for(reconciler, timeouts)
                )
                data = await reconciler.read(data, self.ctx)

                if data.exists():
                    self.state.put(address, entry["type"], entry["name"], data)
                    result.message = "Refreshed"
                else:
                    self.state.remove(address)
                    result.message = "Remote resource no longer exists, removed from state"
                    logger.info(f"{address}: {result.message}")
                self.state.save()
                result.success = True

            except Exception as e:
                logger.error(f"Error refreshing {address}: {e}", exc_info=True)
                result.message = str(e)

            return result

    # Plan

    async def plan(
        self, specs: List[ResourceSpec], refresh: bool = True
    ) -> List[PlannedChange]:
        """
        Determine the changes needed to converge on the declared resources.

        Raises:
            SentinelError: If validation or the refresh fails.
        """
        errors = self.validate(specs)
        if errors:
            raise SentinelError("Invalid configuration: " + "; ".join(errors))

        declared = {spec.address: spec for spec in specs}

        if refresh:
            results = await self.refresh(
                {address: spec.timeouts for address, spec in declared.items() if spec.timeouts}
            )
            failed = [r for r in results if not r.success]
            if failed:
                raise SentinelError(
                    "Refresh failed: "
                    + "; ".join(f"{r.address}: {r.message}" for r in failed)
                )

        changes: List[PlannedChange] = []

        for address, spec in declared.items():
            reconciler = self.registry.get_reconciler(spec.type)
            desired = reconciler.with_defaults(spec.spec)
            prior = self.state.get_data(address)

            change = PlannedChange(
                address=address,
                type_name=spec.type,
                name=spec.name,
                action=ChangeAction.NOOP,
                spec=desired,
                prior=prior,
                timeouts=spec.timeouts,
            )

            if prior is None:
                change.action = ChangeAction.CREATE
            else:
                change.changed_attributes = sorted(
                    key for key, value in desired.items() if prior.get(key) != value
                )
                force_new = set(reconciler.force_new_attributes())
                if force_new.intersection(change.changed_attributes):
                    change.action = ChangeAction.REPLACE
                elif change.changed_attributes:
                    change.action = ChangeAction.UPDATE

            changes.append(change)

        for address in self.state.addresses():
            if address not in declared:
                entry = self.state.get(address)
                changes.append(
                    PlannedChange(
                        address=address,
                        type_name=entry["type"],
                        name=entry["name"],
                        action=ChangeAction.DELETE,
                        prior=self.state.get_data(address),
                    )
                )

        return changes

    # Apply

    async def apply(
        self,
        specs: List[ResourceSpec],
        changes: Optional[List[PlannedChange]] = None,
    ) -> List[ReconcileResult]:
        """
        Apply the declared resources.

        Args:
            specs: The declared resources.
            changes: A plan from plan(); computed when omitted.

        Returns:
            One ReconcileResult per resource that needed a change.
        """
        if changes is None:
            changes = await self.plan(specs)

        pending = [c for c in changes if c.action != ChangeAction.NOOP]
        if not pending:
            logger.info("No changes. Resources match the configuration.")
            return []

        tasks = [self._apply_change(change) for change in pending]
        return list(await asyncio.gather(*tasks))

    async def _apply_change(self, change: PlannedChange) -> ReconcileResult:
        async with self.semaphore:
            result = ReconcileResult(
                address=change.address,
                action=change.action,
                changed_attributes=change.changed_attributes,
            )
            reconciler = self.registry.get_reconciler(change.type_name)
            timeouts = self._timeouts_for(reconciler, change.timeouts)

            try:
                logger.info(f"{change.address}: {change.action.value} starting")

                if change.action in (ChangeAction.DELETE, ChangeAction.REPLACE):
                    await self._delete(reconciler, change.address, change.prior, timeouts)

                if change.action in (ChangeAction.CREATE, ChangeAction.REPLACE):
                    data = ResourceData(
                        attributes=change.spec, is_new=True, timeouts=timeouts
                    )
                    await self._persist(change, data, reconciler.create(data, self.ctx))
                    result.resource_id = data.id

                if change.action == ChangeAction.UPDATE:
                    data = ResourceData(
                        attributes=change.spec,
                        id=change.prior.id,
                        timeouts=timeouts,
                    )
                    await self._persist(change, data, reconciler.update(data, self.ctx))
                    result.resource_id = data.id

                result.success = True
                result.message = f"{change.action.value} complete"
                logger.info(f"{change.address}: {result.message}")

            except Exception as e:
                logger.error(
                    f"Failed to {change.action.value} {change.address}: {e}",
                    exc_info=True,
                )
                result.message = str(e)

            return result

    async def _persist(self, change: PlannedChange, data: ResourceData, operation) -> None:
        """Run a create/update and record its outcome in state."""
        try:
            await operation
        except Exception:
            # A create that recorded an ID before failing stays in state
            if change.action != ChangeAction.UPDATE and data.exists():
                self.state.put(change.address, change.type_name, change.name, data)
                self.state.save()
            raise

        self.state.put(change.address, change.type_name, change.name, data)
        self.state.save()

    async def _delete(
        self,
        reconciler: ResourceReconciler,
        address: str,
        prior: ResourceData,
        timeouts: ResourceTimeouts,
    ) -> None:
        prior.timeouts = timeouts
        await reconciler.delete(prior, self.ctx)
        self.state.remove(address)
        self.state.save()

    # Import

    async def import_resource(
        self, type_name: str, name: str, resource_id: str
    ) -> ReconcileResult:
        """
        Adopt an existing remote resource under the address `type_name.name`.

        Raises:
            SentinelError: If the address is already managed or the remote
                resource does not exist.
        """
        address = f"{type_name}.{name}"
        if self.state.get(address) is not None:
            raise SentinelError(
                f"Resource already managed: {address}. Remove it from state "
                f"before importing a different object."
            )

        reconciler = self.registry.get_reconciler(type_name)
        data = await reconciler.import_state(resource_id, self.ctx, reconciler.timeouts)
        if not data.exists():
            raise SentinelError(
                f"Cannot import non-existent remote object {resource_id!r}"
            )

        self.state.put(address, type_name, name, data)
        self.state.save()
        logger.info(f"Imported {resource_id} as {address}")
        return ReconcileResult(
            address=address,
            action=ChangeAction.IMPORT,
            success=True,
            message="Import successful",
            resource_id=data.id,
        )

    # Destroy

    async def destroy(
        self, addresses: Optional[List[str]] = None
    ) -> List[ReconcileResult]:
        """Delete every managed resource, or only the given addresses."""
        managed = self.state.addresses()
        targets = managed if addresses is None else addresses

        changes: List[PlannedChange] = []
        results: List[ReconcileResult] = []
        for address in targets:
            entry = self.state.get(address)
            if entry is None:
                results.append(
                    ReconcileResult(
                        address=address,
                        action=ChangeAction.DELETE,
                        message=f"Resource not in state: {address}",
                    )
                )
                continue
            changes.append(
                PlannedChange(
                    address=address,
                    type_name=entry["type"],
                    name=entry["name"],
                    action=ChangeAction.DELETE,
                    prior=self.state.get_data(address),
                )
            )

        results.extend(
            await asyncio.gather(*(self._apply_change(change) for change in changes))
        )
        return results

    @staticmethod
    def _timeouts_for(
        reconciler: ResourceReconciler, overrides: Optional[Dict[str, str]]
    ) -> ResourceTimeouts:
        return reconciler.timeouts.with_overrides(overrides)
