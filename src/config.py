"""Operator configuration loaded from environment variables.

The network offering name, default API port and tag names live here so
every component receives them at construction time.
"""

import os
from dataclasses import dataclass

from constants import (
    DEFAULT_API_PORT,
    DEFAULT_CLIENT_CONFIG_MAP,
    DEFAULT_CLIENT_CONFIG_NAMESPACE,
    DEFAULT_CLUSTER_TAG_PREFIX,
    DEFAULT_CREATED_BY_TAG,
    DEFAULT_ERROR_RETRY_DELAY_SECONDS,
    DEFAULT_NETWORK_OFFERING,
    DEFAULT_REQUEUE_DELAY_SECONDS,
)
from models import ConfigurationError


@dataclass(frozen=True)
class OperatorConfig:
    """Settings shared by all reconcile components.

    All fields are validated at construction time; invalid values raise
    ConfigurationError.
    """

    network_offering: str = DEFAULT_NETWORK_OFFERING
    default_api_port: int = DEFAULT_API_PORT
    cluster_tag_prefix: str = DEFAULT_CLUSTER_TAG_PREFIX
    created_by_tag: str = DEFAULT_CREATED_BY_TAG
    client_config_map: str = DEFAULT_CLIENT_CONFIG_MAP
    client_config_namespace: str = DEFAULT_CLIENT_CONFIG_NAMESPACE
    requeue_delay_seconds: float = DEFAULT_REQUEUE_DELAY_SECONDS
    error_retry_delay_seconds: float = DEFAULT_ERROR_RETRY_DELAY_SECONDS
    watch_namespace: str = ""
    metrics_port: int = 9090

    def __post_init__(self) -> None:
        if not self.network_offering:
            raise ConfigurationError("CAPC_NETWORK_OFFERING must not be empty")
        if not 0 < self.default_api_port < 65536:
            raise ConfigurationError(
                f"CAPC_DEFAULT_API_PORT must be a valid port, got {self.default_api_port}"
            )
        if not self.cluster_tag_prefix:
            raise ConfigurationError("CAPC_CLUSTER_TAG_PREFIX must not be empty")
        if not self.created_by_tag:
            raise ConfigurationError("CAPC_CREATED_BY_TAG must not be empty")
        # The created-by tag must never be counted as an ownership tag
        if self.created_by_tag.startswith(self.cluster_tag_prefix):
            raise ConfigurationError(
                "CAPC_CREATED_BY_TAG must not start with CAPC_CLUSTER_TAG_PREFIX"
            )
        if self.requeue_delay_seconds <= 0 or self.error_retry_delay_seconds <= 0:
            raise ConfigurationError("Requeue and retry delays must be positive")

    @classmethod
    def from_env(cls) -> "OperatorConfig":
        """Build configuration from the process environment."""
        try:
            return cls(
                network_offering=os.environ.get(
                    "CAPC_NETWORK_OFFERING", DEFAULT_NETWORK_OFFERING
                ),
                default_api_port=int(
                    os.environ.get("CAPC_DEFAULT_API_PORT", str(DEFAULT_API_PORT))
                ),
                cluster_tag_prefix=os.environ.get(
                    "CAPC_CLUSTER_TAG_PREFIX", DEFAULT_CLUSTER_TAG_PREFIX
                ),
                created_by_tag=os.environ.get(
                    "CAPC_CREATED_BY_TAG", DEFAULT_CREATED_BY_TAG
                ),
                client_config_map=os.environ.get(
                    "CAPC_CLIENT_CONFIG_MAP", DEFAULT_CLIENT_CONFIG_MAP
                ),
                client_config_namespace=os.environ.get(
                    "CAPC_CLIENT_CONFIG_NAMESPACE", DEFAULT_CLIENT_CONFIG_NAMESPACE
                ),
                requeue_delay_seconds=float(
                    os.environ.get(
                        "CAPC_REQUEUE_DELAY_SECONDS", str(DEFAULT_REQUEUE_DELAY_SECONDS)
                    )
                ),
                error_retry_delay_seconds=float(
                    os.environ.get(
                        "CAPC_ERROR_RETRY_DELAY_SECONDS",
                        str(DEFAULT_ERROR_RETRY_DELAY_SECONDS),
                    )
                ),
                watch_namespace=os.environ.get("WATCH_NAMESPACE", ""),
                metrics_port=int(os.environ.get("METRICS_PORT", "9090")),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e
