"""
Security Insights client - Async REST client for Sentinel alert rules.

Talks to the `Microsoft.SecurityInsights/alertRules` collection of a Log
Analytics workspace through Azure Resource Manager.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import aiohttp
from azure.core.exceptions import AzureError
from pydantic import ValidationError

from config import DEFAULT_RESOURCE_MANAGER_ENDPOINT, DEFAULT_SECURITY_INSIGHTS_API_VERSION
from errors import AzureAPIError, ResourceNotFoundError
from plugins.sentinel.models import AlertRule, parse_alert_rule

logger = logging.getLogger(__name__)

OPERATIONAL_INSIGHTS_RESOURCE_PROVIDER = "Microsoft.OperationalInsights"

NO_TIMEOUT = aiohttp.ClientTimeout(total=None)


def response_was_not_found(error: BaseException) -> bool:
    """Whether an error is Azure Resource Manager reporting a missing resource."""
    return isinstance(error, ResourceNotFoundError)


class AlertRulesClient:
    """
    Client for the alertRules collection of one subscription.

    Authenticates with a static bearer token when one is configured,
    otherwise with tokens from an azure-identity async credential.
    """

    def __init__(
        self,
        subscription_id: str,
        endpoint: str = DEFAULT_RESOURCE_MANAGER_ENDPOINT,
        api_version: str = DEFAULT_SECURITY_INSIGHTS_API_VERSION,
        credential: Optional[Any] = None,
        access_token: Optional[str] = None,
        token_scope: Optional[str] = None,
    ):
        self.subscription_id = subscription_id
        self.endpoint = endpoint.rstrip("/")
        self.api_version = api_version
        self._credential = credential
        self._access_token = access_token
        self._token_scope = token_scope or f"{self.endpoint}/.default"

        if not access_token and credential is None:
            logger.warning(
                "No Azure credential configured. Set AZURE_ACCESS_TOKEN or "
                "configure the default Azure credential chain."
            )

    async def get(
        self,
        resource_group: str,
        operational_insights_resource_provider: str,
        workspace_name: str,
        rule_id: str,
    ) -> AlertRule:
        """
        Get an alert rule.

        Raises:
            ResourceNotFoundError: If the rule does not exist.
            AzureAPIError: For any other unsuccessful response.
        """
        url = self._rule_url(
            resource_group, operational_insights_resource_provider, workspace_name, rule_id
        )
        body = await self._request("GET", url, expected=(200,))
        return self._decode_rule(body, url)

    async def create_or_update(
        self,
        resource_group: str,
        operational_insights_resource_provider: str,
        workspace_name: str,
        rule_id: str,
        alert_rule: AlertRule,
    ) -> AlertRule:
        """Create or replace an alert rule; the rule's etag is sent as given."""
        url = self._rule_url(
            resource_group, operational_insights_resource_provider, workspace_name, rule_id
        )
        body = await self._request(
            "PUT", url, payload=alert_rule.to_payload(), expected=(200, 201)
        )
        return self._decode_rule(body, url)

    async def delete(
        self,
        resource_group: str,
        operational_insights_resource_provider: str,
        workspace_name: str,
        rule_id: str,
    ) -> None:
        """Delete an alert rule."""
        url = self._rule_url(
            resource_group, operational_insights_resource_provider, workspace_name, rule_id
        )
        await self._request("DELETE", url, expected=(200, 204))

    # Private helper methods

    def _rule_url(
        self,
        resource_group: str,
        provider: str,
        workspace_name: str,
        rule_id: str,
    ) -> str:
        return (
            f"{self.endpoint}/subscriptions/{quote(self.subscription_id, safe='')}"
            f"/resourceGroups/{quote(resource_group, safe='')}"
            f"/providers/{provider}/workspaces/{quote(workspace_name, safe='')}"
            f"/providers/Microsoft.SecurityInsights/alertRules/{quote(rule_id, safe='')}"
        )

    async def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for Azure Resource Manager requests."""
        headers = {"Accept": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        elif self._credential is not None:
            try:
                token = await self._credential.get_token(self._token_scope)
            except AzureError as e:
                raise AzureAPIError(
                    status=0, code="AuthenticationFailed", message=str(e)
                ) from e
            headers["Authorization"] = f"Bearer {token.token}"
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        expected: Tuple[int, ...],
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        headers = await self._get_headers()
        logger.debug(f"{method} {url}")

        # Operation deadlines are the only time limit
        try:
            async with aiohttp.ClientSession(timeout=NO_TIMEOUT) as session:
                async with session.request(
                    method,
                    url,
                    headers=headers,
                    params={"api-version": self.api_version},
                    json=payload,
                ) as response:
                    status = response.status
                    text = await response.text()
        except aiohttp.ClientError as e:
            logger.debug(f"Request to {url} failed: {e!r}")
            raise AzureAPIError(
                status=0, code=type(e).__name__, message=str(e), url=url
            ) from e

        if status not in expected:
            raise self._error_from_response(status, text, url)
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise AzureAPIError(
                status=status,
                code="InvalidResponseBody",
                message=f"response was not valid JSON: {e}",
                url=url,
            ) from e

    @staticmethod
    def _decode_rule(body: Optional[Dict[str, Any]], url: str) -> AlertRule:
        try:
            return parse_alert_rule(body or {})
        except (ValidationError, AttributeError) as e:
            raise AzureAPIError(
                status=0,
                code="InvalidResponseBody",
                message=f"unexpected alert rule body: {e}",
                url=url,
            ) from e

    @staticmethod
    def _error_from_response(status: int, text: str, url: str) -> AzureAPIError:
        """Build an error from an ARM error body ({"error": {"code", "message"}})."""
        code = None
        message = text
        try:
            error = json.loads(text).get("error", {}) if text else {}
            if isinstance(error, dict) and error:
                code = error.get("code")
                message = error.get("message", "")
        except (ValueError, AttributeError):
            pass

        error_class = ResourceNotFoundError if status == 404 else AzureAPIError
        logger.debug(f"Request to {url} failed: {status} {code} {message}")
        return error_class(status=status, code=code, message=message, url=url)
