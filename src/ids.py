"""
Resource IDs - Parsing and formatting of Azure resource identifiers.

Covers the two IDs the alert rule resources need: the Log Analytics
workspace that hosts Sentinel, and an alert rule nested inside it.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from errors import InvalidResourceIDError

OPERATIONAL_INSIGHTS_PROVIDER = "Microsoft.OperationalInsights"
SECURITY_INSIGHTS_PROVIDER = "Microsoft.SecurityInsights"


@dataclass
class _ParsedID:
    subscription_id: str
    resource_group: str
    providers: List[str]
    path: Dict[str, str]

    def pop_segment(self, key: str) -> str:
        value = self.path.pop(key, None)
        if value is None:
            raise InvalidResourceIDError(f"ID was missing the `{key}` element")
        return value

    def ensure_consumed(self, value: str) -> None:
        if self.path:
            extra = ", ".join(sorted(self.path))
            raise InvalidResourceIDError(
                f"ID {value!r} contained unexpected segments: {extra}"
            )


def _parse_resource_id(value: str) -> _ParsedID:
    """Split an ARM ID into its key/value segments."""
    if not isinstance(value, str) or not value:
        raise InvalidResourceIDError("ID cannot be empty")

    components = value.strip("/").split("/")
    if len(components) % 2 != 0:
        raise InvalidResourceIDError(
            f"The number of path segments is not divisible by 2 in {value!r}"
        )

    subscription_id: Optional[str] = None
    resource_group: Optional[str] = None
    providers: List[str] = []
    path: Dict[str, str] = {}

    for key, segment in zip(components[::2], components[1::2]):
        if not key or not segment:
            raise InvalidResourceIDError(f"Key/Value cannot be empty strings in {value!r}")
        if key == "subscriptions":
            subscription_id = segment
        elif key.lower() == "resourcegroups":
            resource_group = segment
        elif key == "providers":
            providers.append(segment)
        else:
            path[key] = segment

    if subscription_id is None:
        raise InvalidResourceIDError(f"No subscription ID found in {value!r}")
    if resource_group is None:
        raise InvalidResourceIDError(f"No resource group name found in {value!r}")

    return _ParsedID(subscription_id, resource_group, providers, path)


def _expect_providers(parsed: _ParsedID, expected: Tuple[str, ...], value: str) -> None:
    if tuple(p.lower() for p in parsed.providers) != tuple(p.lower() for p in expected):
        raise InvalidResourceIDError(
            f"ID {value!r} has providers {parsed.providers}, expected {list(expected)}"
        )


@dataclass(frozen=True)
class LogAnalyticsWorkspaceID:
    """ID of a Log Analytics workspace."""

    subscription_id: str
    resource_group: str
    workspace_name: str

    def id(self) -> str:
        return (
            f"/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{self.resource_group}"
            f"/providers/{OPERATIONAL_INSIGHTS_PROVIDER}"
            f"/workspaces/{self.workspace_name}"
        )

    def __str__(self) -> str:
        return self.id()

    @classmethod
    def parse(cls, value: str) -> "LogAnalyticsWorkspaceID":
        parsed = _parse_resource_id(value)
        _expect_providers(parsed, (OPERATIONAL_INSIGHTS_PROVIDER,), value)
        workspace_name = parsed.pop_segment("workspaces")
        parsed.ensure_consumed(value)
        return cls(parsed.subscription_id, parsed.resource_group, workspace_name)


@dataclass(frozen=True)
class AlertRuleID:
    """ID of a Sentinel alert rule, nested in a Log Analytics workspace."""

    subscription_id: str
    resource_group: str
    workspace_name: str
    name: str

    def workspace_id(self) -> LogAnalyticsWorkspaceID:
        return LogAnalyticsWorkspaceID(
            self.subscription_id, self.resource_group, self.workspace_name
        )

    def id(self) -> str:
        return (
            f"{self.workspace_id().id()}"
            f"/providers/{SECURITY_INSIGHTS_PROVIDER}/alertRules/{self.name}"
        )

    def __str__(self) -> str:
        return self.id()

    @classmethod
    def parse(cls, value: str) -> "AlertRuleID":
        parsed = _parse_resource_id(value)
        _expect_providers(
            parsed, (OPERATIONAL_INSIGHTS_PROVIDER, SECURITY_INSIGHTS_PROVIDER), value
        )
        workspace_name = parsed.pop_segment("workspaces")
        name = parsed.pop_segment("alertRules")
        parsed.ensure_consumed(value)
        return cls(parsed.subscription_id, parsed.resource_group, workspace_name, name)


def validate_log_analytics_workspace_id(value, key: str) -> List[str]:
    """Validate func for schema attributes holding a workspace ID."""
    if not isinstance(value, str):
        return [f"expected {key!r} to be a string"]
    try:
        workspace_id = LogAnalyticsWorkspaceID.parse(value)
    except InvalidResourceIDError as e:
        return [f"{key!r} is not a valid Log Analytics Workspace ID: {e}"]

    # Read reports the canonical form
    if workspace_id.id() != value:
        return [
            f"{key!r} must be a Log Analytics Workspace ID in canonical form, "
            f"expected {workspace_id.id()!r}, got {value!r}"
        ]
    return []


def validate_alert_rule_id(value, key: str) -> List[str]:
    """Validate func for attributes or import arguments holding an alert rule ID."""
    if not isinstance(value, str):
        return [f"expected {key!r} to be a string"]
    try:
        AlertRuleID.parse(value)
    except InvalidResourceIDError as e:
        return [f"{key!r} is not a valid Sentinel Alert Rule ID: {e}"]
    return []
