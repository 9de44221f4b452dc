"""
Helpers shared by the Sentinel alert rule resources.

Every alert rule resource manages one variant of the same polymorphic
collection, so each must check the remote `kind` before touching the
variant's fields.
"""

import logging
from typing import Awaitable, Callable, Optional

from errors import KindMismatchError, ResourceOperationError
from ids import AlertRuleID
from plugins.sentinel.client import OPERATIONAL_INSIGHTS_RESOURCE_PROVIDER
from plugins.sentinel.models import AlertRule, AlertRuleKind

logger = logging.getLogger(__name__)


def alert_rule_id(rule: Optional[AlertRule]) -> Optional[str]:
    """Return the remote ID of a rule of any kind, if there is one."""
    if rule is None:
        return None
    return rule.id


def assert_alert_rule_kind(
    rule: AlertRule,
    expected_kind: AlertRuleKind,
    resource_id: Optional[str] = None,
) -> None:
    """
    Check a remote rule's discriminant.

    Raises:
        KindMismatchError: If the rule is not of `expected_kind`.
    """
    if rule.kind != expected_kind.value:
        raise KindMismatchError(expected_kind.value, rule.kind, resource_id)


def import_sentinel_alert_rule(
    expected_kind: AlertRuleKind,
) -> Callable[..., Awaitable[None]]:
    """
    Build an importer that only adopts rules of `expected_kind`.

    The returned coroutine function takes (data, ctx), where data.id holds
    the alert rule ID being imported.
    """

    async def importer(data, ctx) -> None:
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
            raise ResourceOperationError(
                "retrieving Sentinel Alert Rule", rule_id.id(), e
            ) from e

        assert_alert_rule_kind(rule, expected_kind, rule_id.id())
        logger.info(f"Importing Sentinel Alert Rule {rule_id.id()} ({rule.kind})")

    return importer
