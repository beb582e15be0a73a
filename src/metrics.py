"""Prometheus metrics for the CloudStack cluster operator."""

from prometheus_client import Counter, Histogram, Gauge, Info

# Reconciliation metrics
RECONCILE_TOTAL = Counter(
    "capc_operator_reconcile_total",
    "Total number of reconciliations",
    ["resource", "operation", "status"],
)

RECONCILE_DURATION = Histogram(
    "capc_operator_reconcile_duration_seconds",
    "Time spent in reconciliation",
    ["resource", "operation"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

RECONCILE_IN_PROGRESS = Gauge(
    "capc_operator_reconcile_in_progress",
    "Number of reconciliations currently in progress",
    ["resource"],
)

RECONCILE_REQUEUES = Counter(
    "capc_operator_reconcile_requeues_total",
    "Total number of reconciliations that asked to be requeued",
    ["resource"],
)

# CloudStack API metrics
CLOUDSTACK_API_CALLS = Counter(
    "capc_operator_cloudstack_api_calls_total",
    "Total number of CloudStack API calls",
    ["command", "status"],
)

CLOUDSTACK_API_DURATION = Histogram(
    "capc_operator_cloudstack_api_duration_seconds",
    "Time spent in CloudStack API calls",
    ["command"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Garbage collection metrics
NETWORKS_DESTROYED = Counter(
    "capc_operator_networks_destroyed_total",
    "Total number of controller-created networks destroyed after their last owner left",
)

FAILURE_DOMAINS_PRUNED = Counter(
    "capc_operator_failure_domains_pruned_total",
    "Total number of failure domains deleted because they left the cluster spec",
)

# Operator info
OPERATOR_INFO = Info(
    "capc_operator",
    "Information about the CloudStack cluster operator",
)


def set_operator_info(version: str, api_group: str) -> None:
    """Set operator info labels."""
    OPERATOR_INFO.info({"version": version, "api_group": api_group})


def init_metrics() -> None:
    """Initialize all metrics with zero values.

    Prometheus metrics with labels don't appear until used.
    This ensures all metrics are visible immediately at startup.
    """
    resources = ["CloudStackCluster", "CloudStackMachine"]
    operations = ["reconcile", "delete"]
    statuses = ["success", "requeue", "error"]

    for resource in resources:
        RECONCILE_IN_PROGRESS.labels(resource=resource).set(0)
        RECONCILE_REQUEUES.labels(resource=resource)
        for operation in operations:
            RECONCILE_DURATION.labels(resource=resource, operation=operation)
            for status in statuses:
                RECONCILE_TOTAL.labels(
                    resource=resource, operation=operation, status=status
                )
