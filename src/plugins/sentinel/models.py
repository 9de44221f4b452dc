"""
Alert Rule Models - Pydantic models for the polymorphic alertRules collection.

Security Insights stores every alert rule in one collection per workspace and
tells variants apart with the `kind` discriminant. Only the kinds this
project reconciles get typed properties; every other kind is kept as an
opaque mapping so the discriminant can still be checked.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field


class AlertRuleKind(str, Enum):
    """Known values of the alert rule `kind` discriminant."""

    FUSION = "Fusion"
    MICROSOFT_SECURITY_INCIDENT_CREATION = "MicrosoftSecurityIncidentCreation"
    SCHEDULED = "Scheduled"
    ML_BEHAVIOR_ANALYTICS = "MLBehaviorAnalytics"
    THREAT_INTELLIGENCE = "ThreatIntelligence"
    NRT = "NRT"


class AlertRule(BaseModel):
    """Fields common to every alert rule variant."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    etag: Optional[str] = None
    kind: str

    def to_payload(self) -> Dict[str, Any]:
        """Build the request body for a PUT; read-only fields are dropped."""
        return self.model_dump(
            by_alias=True, exclude_none=True, exclude={"id", "name", "type"}
        )


class TemplatedAlertRuleProperties(BaseModel):
    """Properties of rules created from a built-in alert rule template."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    alert_rule_template_name: Optional[str] = Field(None, alias="alertRuleTemplateName")
    enabled: Optional[bool] = None

    # Read-only, filled in by the service from the template
    description: Optional[str] = Field(None, exclude=True)
    display_name: Optional[str] = Field(None, alias="displayName", exclude=True)
    severity: Optional[str] = Field(None, exclude=True)
    tactics: Optional[List[str]] = Field(None, exclude=True)
    last_modified_utc: Optional[datetime] = Field(
        None, alias="lastModifiedUtc", exclude=True
    )


class MLBehaviorAnalyticsAlertRule(AlertRule):
    """Machine Learning Behavior Analytics alert rule."""

    kind: Literal["MLBehaviorAnalytics"] = AlertRuleKind.ML_BEHAVIOR_ANALYTICS.value
    properties: Optional[TemplatedAlertRuleProperties] = None


class FusionAlertRule(AlertRule):
    """Fusion alert rule."""

    kind: Literal["Fusion"] = AlertRuleKind.FUSION.value
    properties: Optional[TemplatedAlertRuleProperties] = None


class GenericAlertRule(AlertRule):
    """Any alert rule kind without a dedicated model."""

    properties: Dict[str, Any] = Field(default_factory=dict)


ALERT_RULE_MODELS: Dict[str, Type[AlertRule]] = {
    AlertRuleKind.ML_BEHAVIOR_ANALYTICS.value: MLBehaviorAnalyticsAlertRule,
    AlertRuleKind.FUSION.value: FusionAlertRule,
}


def parse_alert_rule(payload: Dict[str, Any]) -> AlertRule:
    """
    Decode an alert rule response body into the model for its kind.

    Args:
        payload: Decoded JSON body from the alertRules API.

    Returns:
        The typed model for known kinds, GenericAlertRule otherwise.
    """
    kind = payload.get("kind") or ""
    model = ALERT_RULE_MODELS.get(kind, GenericAlertRule)
    return model.model_validate({**payload, "kind": kind})
