"""Per-request reconcile context and step sequencing.

A reconcile pass is a sequence of steps. Each step is a callable returning
a Result (or None, meaning "carry on"); errors are raised as exceptions.
run_steps stops at the first result that asks the caller to return, which
is how a step signals "requeue later" without it being a failure.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from config import OperatorConfig
from constants import CLUSTER_NAME_LABEL
from models import CloudStackCluster
from store import KubeStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Result:
    """Outcome of a reconcile step that did not fail."""

    requeue: bool = False
    requeue_after: float = 0.0
    message: str = ""

    @property
    def should_return(self) -> bool:
        """True if the sequence must stop and hand this result back."""
        return self.requeue or self.requeue_after > 0


Step = Callable[[], Result | None]


def run_steps(*steps: Step) -> Result:
    """Run steps in order, stopping at the first one that should return."""
    for step in steps:
        result = step()
        if result is not None and result.should_return:
            return result
    return Result()


class RunnerExtension(Protocol):
    """An add-on that needs access to the runner it works for."""

    def register_extension(self, runner: "ReconciliationRunner") -> "RunnerExtension":
        ...


class ReconciliationRunner:
    """Working state of one reconcile invocation.

    Holds only request-scoped fields: the request namespace and name, the
    target cluster, the object store, configuration and the logger to use.
    Cloud clients are held by a registered extension, not by the runner.
    """

    def __init__(
        self,
        namespace: str,
        name: str,
        cluster: CloudStackCluster,
        store: KubeStore,
        config: OperatorConfig,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.namespace = namespace
        self.name = name
        self.cluster = cluster
        self.store = store
        self.config = config
        self.log = log or logger
        self.extensions: list[RunnerExtension] = []

    def register(self, extension: RunnerExtension) -> Any:
        """Attach an extension to this runner and return it."""
        self.extensions.append(extension)
        return extension.register_extension(self)

    def requeue_with_message(self, message: str, delay: float | None = None) -> Result:
        """Log a message and ask to be called again after a short delay."""
        self.log.info(message)
        return Result(
            requeue=True,
            requeue_after=delay if delay is not None else self.config.requeue_delay_seconds,
            message=message,
        )

    def new_child_object_meta(self, name: str) -> dict[str, Any]:
        """Metadata for an object owned by the target cluster."""
        cluster = self.cluster
        return {
            "name": name,
            "namespace": self.namespace,
            "labels": {CLUSTER_NAME_LABEL: cluster.capi_cluster_name},
            "ownerReferences": [
                {
                    "apiVersion": cluster.api_version,
                    "kind": cluster.kind,
                    "name": cluster.name,
                    "uid": cluster.uid,
                }
            ],
        }
