"""Kopf handlers for the CloudStackCluster CRD."""

import logging
import time
from typing import Any

import kopf

from cluster_reconciler import ClusterReconciliation
from constants import API_GROUP, API_VERSION, CLUSTER_PLURAL, RESYNC_INTERVAL_SECONDS
from credentials import CloudClientExtension
from metrics import (
    RECONCILE_DURATION,
    RECONCILE_IN_PROGRESS,
    RECONCILE_REQUEUES,
    RECONCILE_TOTAL,
)
from models import CloudStackCluster, Phase
from runner import ReconciliationRunner
from state import get_config, get_store
from utils import set_condition


RESOURCE = "CloudStackCluster"


def new_reconciliation(
    body: dict[str, Any], log: logging.Logger | logging.LoggerAdapter
) -> ClusterReconciliation:
    """Build the reconcile context of one cluster from its kopf body."""
    cluster = CloudStackCluster.from_body(body)
    runner = ReconciliationRunner(
        cluster.namespace,
        cluster.name,
        cluster,
        get_store(),
        get_config(),
        log=log,
    )
    return ClusterReconciliation(runner, CloudClientExtension())


def _write_status(
    patch: kopf.Patch,
    status: dict[str, Any],
    cluster: CloudStackCluster,
    ready: str,
    reason: str,
    message: str = "",
) -> None:
    """Write the cluster status and its Ready condition into the patch."""
    new_status: dict[str, Any] = cluster.status.to_dict()
    new_status["conditions"] = [dict(c) for c in status.get("conditions", [])]
    set_condition(new_status, "Ready", ready, reason, message)
    for key, value in new_status.items():
        patch.status[key] = value


def _write_endpoint(patch: kopf.Patch, spec: dict[str, Any], cluster: CloudStackCluster) -> None:
    endpoint = cluster.spec.control_plane_endpoint
    if not endpoint.host:
        return
    if (spec.get("controlPlaneEndpoint") or {}) != endpoint.to_dict():
        patch.spec["controlPlaneEndpoint"] = endpoint.to_dict()


def _reconcile(
    operation: str,
    body: dict[str, Any],
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch | None,
    log: logging.Logger | logging.LoggerAdapter,
) -> None:
    """Run one reconcile or delete pass and map its outcome to kopf."""
    start_time = time.monotonic()
    RECONCILE_IN_PROGRESS.labels(resource=RESOURCE).inc()
    reconciliation: ClusterReconciliation | None = None
    config = get_config()

    try:
        reconciliation = new_reconciliation(body, log)
        if operation == "delete":
            result = reconciliation.reconcile_delete()
        else:
            result = reconciliation.reconcile()
    except Exception as e:
        log.error(f"Failed to {operation} {RESOURCE}: {e}")
        RECONCILE_TOTAL.labels(resource=RESOURCE, operation=operation, status="error").inc()
        if patch is not None and reconciliation is not None:
            cluster = reconciliation.cluster
            cluster.status.phase = Phase.ERROR
            _write_status(patch, status, cluster, "False", "Error", str(e)[:200])
            _write_endpoint(patch, spec, cluster)
        kopf.warn(body, reason=f"{operation.capitalize()}Failed", message=str(e)[:200])
        raise kopf.TemporaryError(
            f"{operation.capitalize()} failed: {e}", delay=config.error_retry_delay_seconds
        )
    finally:
        RECONCILE_IN_PROGRESS.labels(resource=RESOURCE).dec()

    cluster = reconciliation.cluster
    if result.should_return:
        RECONCILE_TOTAL.labels(resource=RESOURCE, operation=operation, status="requeue").inc()
        RECONCILE_REQUEUES.labels(resource=RESOURCE).inc()
        if patch is not None:
            _write_status(patch, status, cluster, "False", "Requeued", result.message)
            _write_endpoint(patch, spec, cluster)
        raise kopf.TemporaryError(
            result.message or "requeued",
            delay=result.requeue_after or config.requeue_delay_seconds,
        )

    if patch is not None:
        _write_status(patch, status, cluster, "True", "Reconciled")
        _write_endpoint(patch, spec, cluster)

    RECONCILE_TOTAL.labels(resource=RESOURCE, operation=operation, status="success").inc()
    RECONCILE_DURATION.labels(resource=RESOURCE, operation=operation).observe(
        time.monotonic() - start_time
    )
    log.info(f"Successfully completed {operation} of {RESOURCE} {cluster.namespace}/{cluster.name}")


@kopf.on.resume(API_GROUP, API_VERSION, CLUSTER_PLURAL)
@kopf.on.create(API_GROUP, API_VERSION, CLUSTER_PLURAL)
@kopf.on.update(API_GROUP, API_VERSION, CLUSTER_PLURAL)
def reconcile_cluster(
    body: kopf.Body,
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    logger: logging.Logger | logging.LoggerAdapter,
    **_: Any,
) -> None:
    """Handle CloudStackCluster creation, updates and operator restarts."""
    logger.info("Reconciling CloudStackCluster")
    _reconcile("reconcile", body, spec, status, patch, logger)


@kopf.on.delete(API_GROUP, API_VERSION, CLUSTER_PLURAL)
def delete_cluster(
    body: kopf.Body,
    spec: dict[str, Any],
    status: dict[str, Any],
    logger: logging.Logger | logging.LoggerAdapter,
    **_: Any,
) -> None:
    """Handle CloudStackCluster deletion."""
    logger.info("Deleting CloudStackCluster")
    _reconcile("delete", body, spec, status, None, logger)


@kopf.timer(API_GROUP, API_VERSION, CLUSTER_PLURAL, interval=RESYNC_INTERVAL_SECONDS, idle=60)
def resync_cluster(
    body: kopf.Body,
    spec: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    logger: logging.Logger | logging.LoggerAdapter,
    **_: Any,
) -> None:
    """Periodic reconciliation to detect and repair drift."""
    if status.get("phase") != Phase.READY.value:
        logger.debug(f"Skipping resync: phase is {status.get('phase')}")
        return
    _reconcile("reconcile", body, spec, status, patch, logger)
