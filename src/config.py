"""
Configuration module for sentinelctl.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Union

from azure.identity.aio import ClientSecretCredential, DefaultAzureCredential

AzureCredentials = Union[DefaultAzureCredential, ClientSecretCredential]

DEFAULT_RESOURCE_MANAGER_ENDPOINT = "https://management.azure.com"
DEFAULT_SECURITY_INSIGHTS_API_VERSION = "2019-01-01-preview"


@dataclass
class AzureConfig:
    """Azure Resource Manager access configuration."""

    resource_manager_endpoint: str = DEFAULT_RESOURCE_MANAGER_ENDPOINT
    api_version: str = DEFAULT_SECURITY_INSIGHTS_API_VERSION
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = field(default="", repr=False)  # Never log secrets
    access_token: str = field(default="", repr=False)

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            resource_manager_endpoint=os.getenv(
                "AZURE_RESOURCE_MANAGER_ENDPOINT", DEFAULT_RESOURCE_MANAGER_ENDPOINT
            ).rstrip("/"),
            api_version=os.getenv(
                "SENTINEL_API_VERSION", DEFAULT_SECURITY_INSIGHTS_API_VERSION
            ),
            tenant_id=os.getenv("AZURE_TENANT_ID", ""),
            client_id=os.getenv("AZURE_CLIENT_ID", ""),
            client_secret=os.getenv("AZURE_CLIENT_SECRET", ""),
            access_token=os.getenv("AZURE_ACCESS_TOKEN", ""),
        )

    @property
    def token_scope(self) -> str:
        return f"{self.resource_manager_endpoint}/.default"

    def credentials(self) -> Optional[AzureCredentials]:
        """
        Build the credential used to obtain ARM tokens.

        A static access token needs no credential. A complete client secret
        configuration uses it directly, otherwise the default credential
        chain is used.
        """
        if self.access_token:
            return None
        if self.tenant_id and self.client_id and self.client_secret:
            return ClientSecretCredential(
                tenant_id=self.tenant_id,
                client_id=self.client_id,
                client_secret=self.client_secret,
            )
        return DefaultAzureCredential()


@dataclass
class ControllerConfig:
    """Plan/apply configuration."""

    state_path: str = "sentinel.tfstate.json"
    parallelism: int = 10

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            state_path=os.getenv("SENTINELCTL_STATE", "sentinel.tfstate.json"),
            parallelism=int(os.getenv("SENTINELCTL_PARALLELISM", "10")),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(log_level=os.getenv("LOG_LEVEL", "INFO").upper())


@dataclass
class Config:
    """Main configuration object."""

    azure: AzureConfig
    controller: ControllerConfig
    logging: LoggingConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            azure=AzureConfig.from_env(),
            controller=ControllerConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            azure=AzureConfig(),
            controller=ControllerConfig(),
            logging=LoggingConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
