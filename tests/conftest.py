"""Pytest configuration and fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestServer

import config as config_module
from config import AzureConfig, Config, ControllerConfig, LoggingConfig
from fakes import (
    FakeSecurityInsights,
    RULE_NAME,
    TEMPLATE_GUID,
    WORKSPACE_ID,
)
from plugins.reconcilers.base import ReconcilerContext
from plugins.registry import reset_registry


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset the config and registry singletons around every test."""
    config_module.reset_config()
    reset_registry()
    yield
    config_module.reset_config()
    reset_registry()


@pytest.fixture
def app_config(tmp_path):
    """Configuration using a static token and a temporary state file."""
    return Config(
        azure=AzureConfig(access_token="test-token"),
        controller=ControllerConfig(
            state_path=str(tmp_path / "sentinel.tfstate.json"), parallelism=4
        ),
        logging=LoggingConfig(log_level="DEBUG"),
    )


@pytest.fixture
def mock_client():
    """Create a mock AlertRulesClient."""
    client = MagicMock()
    client.get = AsyncMock()
    client.create_or_update = AsyncMock()
    client.delete = AsyncMock()
    return client


@pytest.fixture
def mock_ctx(mock_client, app_config):
    """Reconciler context handing out the mock client for every subscription."""
    return ReconcilerContext(config=app_config, client_factory=lambda sub: mock_client)


@pytest_asyncio.fixture
async def arm():
    """Run the fake alertRules API on a local port."""
    fake = FakeSecurityInsights()
    server = TestServer(fake.app)
    await server.start_server()
    fake.endpoint = str(server.make_url("/")).rstrip("/")
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def arm_ctx(arm, app_config):
    """Reconciler context whose clients talk to the fake API."""
    app_config.azure.resource_manager_endpoint = arm.endpoint
    ctx = ReconcilerContext(config=app_config)
    yield ctx
    await ctx.close()


@pytest.fixture
def sample_spec():
    """Declarative spec for an ML Behavior Analytics rule."""
    return {
        "name": RULE_NAME,
        "log_analytics_workspace_id": WORKSPACE_ID,
        "alert_rule_template_guid": TEMPLATE_GUID,
        "enabled": True,
    }
