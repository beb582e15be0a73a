"""CloudStackFailureDomain child objects of a cluster."""

from collections.abc import Callable
from typing import Any

from kubernetes.client import ApiException

from constants import (
    API_GROUP,
    API_VERSION,
    CLUSTER_NAME_LABEL,
    FAILURE_DOMAIN_KIND,
    FAILURE_DOMAIN_PLURAL,
)
from metrics import FAILURE_DOMAINS_PRUNED
from models import ErrorKind, FailureDomainSpec, OperatorError, ResourceNotFoundError
from runner import ReconciliationRunner, Result
from utils import classify_error, failure_domain_hashed_name

NameFn = Callable[[], str]


class FailureDomainManager:
    """Creates, lists and prunes the failure domains owned by a cluster."""

    def __init__(self, runner: ReconciliationRunner) -> None:
        self.runner = runner
        self.store = runner.store
        self.log = runner.log

    def _hashed_name(self, fd_name: str) -> str:
        return failure_domain_hashed_name(fd_name, self.runner.cluster.capi_cluster_name)

    def create_failure_domain(self, fd_spec: FailureDomainSpec) -> bool:
        """Create the CloudStackFailureDomain object of one failure domain.

        Returns:
            True if created, False if it already existed
        """
        name = self._hashed_name(fd_spec.name)
        body: dict[str, Any] = {
            "apiVersion": f"{API_GROUP}/{API_VERSION}",
            "kind": FAILURE_DOMAIN_KIND,
            "metadata": self.runner.new_child_object_meta(name),
            "spec": fd_spec.to_dict(),
        }
        try:
            self.store.create(FAILURE_DOMAIN_PLURAL, self.runner.namespace, body)
        except ApiException as e:
            if classify_error(e) == ErrorKind.ALREADY_EXISTS:
                return False
            raise OperatorError(
                f"creating failure domain {fd_spec.name} ({name}): {e.reason}"
            ) from e
        self.log.info("Created failure domain %s as %s", fd_spec.name, name)
        return True

    def create_failure_domains(self, specs: list[FailureDomainSpec]) -> Result:
        for fd_spec in specs:
            self.create_failure_domain(fd_spec)
        return Result()

    def get_failure_domains(self) -> list[dict[str, Any]]:
        """List the failure domains labelled with this cluster's name."""
        try:
            return self.store.list(
                FAILURE_DOMAIN_PLURAL,
                self.runner.namespace,
                labels={CLUSTER_NAME_LABEL: self.runner.cluster.capi_cluster_name},
            )
        except ApiException as e:
            raise OperatorError(f"listing failure domains: {e.reason}") from e

    def get_failure_domains_and_requeue_if_missing(
        self,
    ) -> tuple[list[dict[str, Any]], Result]:
        """List failure domains, asking for a requeue when there are none yet."""
        items = self.get_failure_domains()
        if not items:
            return items, self.runner.requeue_with_message(
                "no failure domains found, requeueing"
            )
        return items, Result()

    def get_failure_domain_by_name(self, name_fn: NameFn) -> dict[str, Any]:
        """Get a failure domain by its unhashed name.

        Raises:
            ResourceNotFoundError: if no such failure domain exists
        """
        fd_name = name_fn()
        try:
            return self.store.get(
                FAILURE_DOMAIN_PLURAL, self.runner.namespace, self._hashed_name(fd_name)
            )
        except ApiException as e:
            if classify_error(e) == ErrorKind.NOT_FOUND:
                raise ResourceNotFoundError(
                    f"failure domain {fd_name} not found"
                ) from e
            raise OperatorError(f"getting failure domain {fd_name}: {e.reason}") from e

    def remove_extraneous_failure_domains(self, items: list[dict[str, Any]]) -> list[str]:
        """Delete listed failure domains no longer named in the cluster spec.

        Returns:
            Object names of the deleted failure domains
        """
        wanted = {fd.name for fd in self.runner.cluster.spec.failure_domains}
        deleted: list[str] = []
        for item in items:
            fd_name = (item.get("spec") or {}).get("name", "")
            if fd_name in wanted:
                continue
            obj_name = item.get("metadata", {}).get("name", "")
            self.log.info(
                "Deleting failure domain %s (%s): removed from cluster spec",
                fd_name,
                obj_name,
            )
            try:
                self.store.delete(FAILURE_DOMAIN_PLURAL, self.runner.namespace, obj_name)
            except ApiException as e:
                raise OperatorError(
                    f"deleting failure domain {fd_name} ({obj_name}): {e.reason}"
                ) from e
            FAILURE_DOMAINS_PRUNED.inc()
            deleted.append(obj_name)
        return deleted
