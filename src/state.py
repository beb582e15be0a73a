"""Shared operator state - thread-safe singleton for configuration and Kubernetes clients."""

import threading
from dataclasses import dataclass, field

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from config import OperatorConfig
from store import KubeStore


@dataclass
class OperatorState:
    """Thread-safe operator state container.

    Holds what outlives a single reconcile: the operator configuration,
    the Kubernetes API clients and the store built on them. CloudStack
    clients are per failure domain and are built on each reconcile.
    """

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _config: OperatorConfig | None = field(default=None, repr=False)
    _store: KubeStore | None = field(default=None, repr=False)
    _k8s_core_api: k8s_client.CoreV1Api | None = field(default=None, repr=False)
    _k8s_custom_api: k8s_client.CustomObjectsApi | None = field(default=None, repr=False)
    _k8s_configured: bool = field(default=False, repr=False)

    def _ensure_k8s_config(self) -> None:
        """Ensure Kubernetes configuration is loaded (must hold lock)."""
        if not self._k8s_configured:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._k8s_configured = True

    def get_config(self) -> OperatorConfig:
        """Get the operator configuration, reading the environment once."""
        with self._lock:
            if self._config is None:
                self._config = OperatorConfig.from_env()
            return self._config

    def get_k8s_core_api(self) -> k8s_client.CoreV1Api:
        with self._lock:
            self._ensure_k8s_config()
            if self._k8s_core_api is None:
                self._k8s_core_api = k8s_client.CoreV1Api()
            return self._k8s_core_api

    def get_k8s_custom_api(self) -> k8s_client.CustomObjectsApi:
        with self._lock:
            self._ensure_k8s_config()
            if self._k8s_custom_api is None:
                self._k8s_custom_api = k8s_client.CustomObjectsApi()
            return self._k8s_custom_api

    def get_store(self) -> KubeStore:
        """Get the store over the shared Kubernetes clients."""
        core_api = self.get_k8s_core_api()
        custom_api = self.get_k8s_custom_api()
        with self._lock:
            if self._store is None:
                self._store = KubeStore(custom_api, core_api)
            return self._store

    def close(self) -> None:
        """Drop cached clients."""
        with self._lock:
            self._store = None
            self._k8s_core_api = None
            self._k8s_custom_api = None


# Global operator state singleton
state = OperatorState()


def get_config() -> OperatorConfig:
    return state.get_config()


def get_store() -> KubeStore:
    return state.get_store()
