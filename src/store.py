"""Access to Kubernetes objects used during reconciliation.

Thin layer over the Kubernetes API clients offering the get/list/create/
delete operations the reconcile logic needs. Kubernetes ApiException is
propagated unchanged so callers can classify it.
"""

import base64
import logging
from typing import Any

from kubernetes.client import CoreV1Api, CustomObjectsApi

from constants import API_GROUP, API_VERSION

logger = logging.getLogger(__name__)


def _label_selector(labels: dict[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


class KubeStore:
    """Namespaced access to custom resources, Secrets and ConfigMaps."""

    def __init__(self, custom_api: CustomObjectsApi, core_api: CoreV1Api) -> None:
        self._custom_api = custom_api
        self._core_api = core_api

    def get(self, plural: str, namespace: str, name: str) -> dict[str, Any]:
        """Get a custom object by name."""
        return self._custom_api.get_namespaced_custom_object(
            API_GROUP, API_VERSION, namespace, plural, name
        )

    def list(
        self, plural: str, namespace: str, labels: dict[str, str] | None = None
    ) -> list[dict[str, Any]]:
        """List custom objects in a namespace, optionally filtered by labels."""
        kwargs: dict[str, str] = {}
        if labels:
            kwargs["label_selector"] = _label_selector(labels)
        result = self._custom_api.list_namespaced_custom_object(
            API_GROUP, API_VERSION, namespace, plural, **kwargs
        )
        return list(result.get("items", []))

    def create(self, plural: str, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        """Create a custom object."""
        logger.debug(
            "Creating %s %s/%s", plural, namespace, body.get("metadata", {}).get("name")
        )
        return self._custom_api.create_namespaced_custom_object(
            API_GROUP, API_VERSION, namespace, plural, body
        )

    def delete(self, plural: str, namespace: str, name: str) -> None:
        """Delete a custom object."""
        logger.debug("Deleting %s %s/%s", plural, namespace, name)
        self._custom_api.delete_namespaced_custom_object(
            API_GROUP, API_VERSION, namespace, plural, name
        )

    def get_secret(self, namespace: str, name: str) -> dict[str, str]:
        """Get the decoded data of a Secret."""
        secret = self._core_api.read_namespaced_secret(name, namespace)
        return {
            key: base64.b64decode(value).decode()
            for key, value in (secret.data or {}).items()
        }

    def get_config_map(self, namespace: str, name: str) -> dict[str, str]:
        """Get the data of a ConfigMap."""
        cm = self._core_api.read_namespaced_config_map(name, namespace)
        return cm.data or {}
