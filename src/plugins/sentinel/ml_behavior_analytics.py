"""
Reconciler for Sentinel Machine Learning Behavior Analytics alert rules.

The rule is created from a built-in template; only `enabled` can change
after creation. Updates send back the etag from a fresh read so the service
rejects the write if the rule changed remotely in the meantime.
"""

import logging
from typing import Dict

from errors import ResourceAlreadyExistsError, ResourceOperationError
from ids import (
    AlertRuleID,
    LogAnalyticsWorkspaceID,
    validate_log_analytics_workspace_id,
)
from plugins.base import Attribute, AttributeType
from plugins.reconcilers.base import ReconcilerContext, ResourceReconciler
from plugins.sentinel.alert_rule import (
    alert_rule_id,
    assert_alert_rule_kind,
    import_sentinel_alert_rule,
)
from plugins.sentinel.client import (
    OPERATIONAL_INSIGHTS_RESOURCE_PROVIDER,
    response_was_not_found,
)
from plugins.sentinel.models import (
    AlertRuleKind,
    MLBehaviorAnalyticsAlertRule,
    TemplatedAlertRuleProperties,
)
from state import ResourceData
from timeouts import deadline
from validation import validate_is_uuid, validate_string_is_not_empty

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "sentinel_alert_rule_machine_learning_behavior_analytics"
KIND = AlertRuleKind.ML_BEHAVIOR_ANALYTICS


class MLBehaviorAnalyticsAlertRuleReconciler(ResourceReconciler):
    """Reconciles `sentinel_alert_rule_machine_learning_behavior_analytics`."""

    @property
    def type_name(self) -> str:
        return RESOURCE_TYPE

    @property
    def schema(self) -> Dict[str, Attribute]:
        return {
            "name": Attribute(
                type=AttributeType.STRING,
                required=True,
                force_new=True,
                validate_func=validate_string_is_not_empty,
                description="Name of the alert rule.",
            ),
            "log_analytics_workspace_id": Attribute(
                type=AttributeType.STRING,
                required=True,
                force_new=True,
                validate_func=validate_log_analytics_workspace_id,
                description="ID of the Log Analytics workspace hosting Sentinel.",
            ),
            "alert_rule_template_guid": Attribute(
                type=AttributeType.STRING,
                required=True,
                force_new=True,
                validate_func=validate_is_uuid,
                description="GUID of the alert rule template the rule is built from.",
            ),
            "enabled": Attribute(
                type=AttributeType.BOOLEAN,
                optional=True,
                default=True,
                description="Whether the alert rule is enabled.",
            ),
        }

    async def create(self, data: ResourceData, ctx: ReconcilerContext) -> ResourceData:
        async with deadline(data.timeout("create"), f"creating {RESOURCE_TYPE}"):
            await self._create_update(data, ctx)
        return await self.read(data, ctx)

    async def update(self, data: ResourceData, ctx: ReconcilerContext) -> ResourceData:
        async with deadline(data.timeout("update"), f"updating {RESOURCE_TYPE}"):
            await self._create_update(data, ctx)
        return await self.read(data, ctx)

    async def _create_update(self, data: ResourceData, ctx: ReconcilerContext) -> None:
        name = data.get("name")
        workspace_id = LogAnalyticsWorkspaceID.parse(data.get("log_analytics_workspace_id"))
        rule_id = AlertRuleID(
            workspace_id.subscription_id,
            workspace_id.resource_group,
            workspace_id.workspace_name,
            name,
        )
        client = ctx.alert_rules_client(workspace_id.subscription_id)

        if data.is_new_resource():
            existing = None
            try:
                existing = await client.get(
                    workspace_id.resource_group,
                    OPERATIONAL_INSIGHTS_RESOURCE_PROVIDER,
                    workspace_id.workspace_name,
                    name,
                )
            except Exception as e:
                if not response_was_not_found(e):
                    raise ResourceOperationError(
                        "checking for existing Sentinel Alert Rule MLBehaviorAnalytics",
                        rule_id.id(),
                        e,
                    ) from e

            existing_id = alert_rule_id(existing)
            if existing_id:
                raise ResourceAlreadyExistsError(RESOURCE_TYPE, existing_id)

        params = MLBehaviorAnalyticsAlertRule(
            properties=TemplatedAlertRuleProperties(
                alert_rule_template_name=data.get("alert_rule_template_guid"),
                enabled=data.get("enabled"),
            ),
        )

        # The service rejects the write unless the etag matches the rule's
        # current version.
        if not data.is_new_resource():
            try:
                current = await client.get(
                    workspace_id.resource_group,
                    OPERATIONAL_INSIGHTS_RESOURCE_PROVIDER,
                    workspace_id.workspace_name,
                    name,
                )
            except Exception as e:
                raise ResourceOperationError(
                    "retrieving Sentinel Alert Rule MLBehaviorAnalytics",
                    rule_id.id(),
                    e,
                ) from e

            assert_alert_rule_kind(current, KIND, rule_id.id())
            params.etag = current.etag

        try:
            await client.create_or_update(
                workspace_id.resource_group,
                OPERATIONAL_INSIGHTS_RESOURCE_PROVIDER,
                workspace_id.workspace_name,
                name,
                params,
            )
        except Exception as e:
            raise ResourceOperationError(
                "creating Sentinel Alert Rule MLBehaviorAnalytics", rule_id.id(), e
            ) from e

        data.set_id(rule_id.id())

    async def read(self, data: ResourceData, ctx: ReconcilerContext) -> ResourceData:
        async with deadline(data.timeout("read"), f"reading {RESOURCE_TYPE}"):
            rule_id = AlertRuleID.parse(data.id)
            client = ctx.alert_rules_client(rule_id.subscription_id)

            try:
                rule = await client.get(
                    rule_id.resource_group,
                    OPERATIONAL_INSIGHTS_RESOURCE_PROVIDER,
                    rule_id.workspace_name,
                    rule_id.name,
                )
            except Exception as e:
                if response_was_not_found(e):
                    logger.debug(
                        f"Sentinel Alert Rule MLBehaviorAnalytics {rule_id.id()!r} "
                        f"was not found - removing from state!"
                    )
                    data.set_id("")
                    return data
                raise ResourceOperationError(
                    "retrieving Sentinel Alert Rule MLBehaviorAnalytics", rule_id.id(), e
                ) from e

        assert_alert_rule_kind(rule, KIND, rule_id.id())

        data.set("name", rule_id.name)
        data.set("log_analytics_workspace_id", rule_id.workspace_id().id())

        if rule.properties is not None:
            data.set("enabled", rule.properties.enabled)
            data.set("alert_rule_template_guid", rule.properties.alert_rule_template_name)

        return data

    async def delete(self, data: ResourceData, ctx: ReconcilerContext) -> None:
        async with deadline(data.timeout("delete"), f"deleting {RESOURCE_TYPE}"):
            rule_id = AlertRuleID.parse(data.id)
            client = ctx.alert_rules_client(rule_id.subscription_id)

            try:
                await client.delete(
                    rule_id.resource_group,
                    OPERATIONAL_INSIGHTS_RESOURCE_PROVIDER,
                    rule_id.workspace_name,
                    rule_id.name,
                )
            except Exception as e:
                raise ResourceOperationError(
                    "deleting Sentinel Alert Rule MLBehaviorAnalytics", rule_id.id(), e
                ) from e

    def validate_import_id(self, resource_id: str) -> None:
        AlertRuleID.parse(resource_id)

    async def importer(self, data: ResourceData, ctx: ReconcilerContext) -> None:
        async with deadline(data.timeout("read"), f"importing {RESOURCE_TYPE}"):
            await _import_ml_behavior_analytics(data, ctx)


_import_ml_behavior_analytics = import_sentinel_alert_rule(KIND)
