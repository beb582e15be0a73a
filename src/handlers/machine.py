"""Kopf handlers for control-plane CloudStackMachines.

A control-plane machine that has an instance is added to the load balancer
rule of its cluster, using the credentials of the machine's failure domain.
"""

import logging
import time
from typing import Any

import kopf

from constants import (
    API_GROUP,
    API_VERSION,
    CLUSTER_NAME_LABEL,
    CLUSTER_PLURAL,
    CONTROL_PLANE_LABEL,
    MACHINE_PLURAL,
)
from handlers.cluster import new_reconciliation
from metrics import RECONCILE_DURATION, RECONCILE_IN_PROGRESS, RECONCILE_TOTAL
from models import AmbiguousMatchError, ResourceNotFoundError
from state import get_config, get_store

RESOURCE = "CloudStackMachine"


def _has_instance(spec: dict[str, Any], **_: Any) -> bool:
    return bool(spec.get("instanceID"))


def find_cluster_body(namespace: str, cluster_name: str) -> dict[str, Any]:
    """Get the CloudStackCluster labelled with a Cluster API cluster name."""
    items = get_store().list(
        CLUSTER_PLURAL, namespace, labels={CLUSTER_NAME_LABEL: cluster_name}
    )
    if not items:
        raise ResourceNotFoundError(
            f"no CloudStackCluster found for cluster {namespace}/{cluster_name}"
        )
    if len(items) > 1:
        raise AmbiguousMatchError(
            f"Expected 1 CloudStackCluster for cluster {namespace}/{cluster_name}, "
            f"but got {len(items)}"
        )
    return items[0]


@kopf.on.resume(
    API_GROUP, API_VERSION, MACHINE_PLURAL,
    labels={CONTROL_PLANE_LABEL: kopf.PRESENT}, when=_has_instance,
)
@kopf.on.create(
    API_GROUP, API_VERSION, MACHINE_PLURAL,
    labels={CONTROL_PLANE_LABEL: kopf.PRESENT}, when=_has_instance,
)
@kopf.on.update(
    API_GROUP, API_VERSION, MACHINE_PLURAL,
    labels={CONTROL_PLANE_LABEL: kopf.PRESENT}, when=_has_instance,
)
def assign_control_plane_machine(
    body: kopf.Body,
    spec: dict[str, Any],
    labels: dict[str, str],
    namespace: str,
    name: str,
    logger: logging.Logger | logging.LoggerAdapter,
    **_: Any,
) -> None:
    """Add a control-plane machine's instance to its cluster's load balancer rule."""
    start_time = time.monotonic()
    RECONCILE_IN_PROGRESS.labels(resource=RESOURCE).inc()
    config = get_config()
    instance_id = spec["instanceID"]

    try:
        cluster_name = labels.get(CLUSTER_NAME_LABEL, "")
        if not cluster_name:
            raise kopf.PermanentError(f"label {CLUSTER_NAME_LABEL} is required")
        cluster_body = find_cluster_body(namespace, cluster_name)
        result = new_reconciliation(cluster_body, logger).assign_instance(
            instance_id, spec.get("failureDomainName", "")
        )
    except kopf.PermanentError:
        RECONCILE_TOTAL.labels(resource=RESOURCE, operation="reconcile", status="error").inc()
        raise
    except Exception as e:
        logger.error(f"Failed to assign instance {instance_id} of {namespace}/{name}: {e}")
        RECONCILE_TOTAL.labels(resource=RESOURCE, operation="reconcile", status="error").inc()
        kopf.warn(body, reason="AssignFailed", message=str(e)[:200])
        raise kopf.TemporaryError(
            f"Assignment failed: {e}", delay=config.error_retry_delay_seconds
        )
    finally:
        RECONCILE_IN_PROGRESS.labels(resource=RESOURCE).dec()

    if result.should_return:
        RECONCILE_TOTAL.labels(resource=RESOURCE, operation="reconcile", status="requeue").inc()
        raise kopf.TemporaryError(
            result.message, delay=result.requeue_after or config.requeue_delay_seconds
        )

    RECONCILE_TOTAL.labels(resource=RESOURCE, operation="reconcile", status="success").inc()
    RECONCILE_DURATION.labels(resource=RESOURCE, operation="reconcile").observe(
        time.monotonic() - start_time
    )
    logger.info(f"Instance {instance_id} is a member of the control-plane load balancer")
