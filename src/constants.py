"""Constants used across the operator."""

# Custom resource coordinates
API_GROUP = "infrastructure.cluster.x-k8s.io"
API_VERSION = "v1beta2"
CLUSTER_KIND = "CloudStackCluster"
CLUSTER_PLURAL = "cloudstackclusters"
FAILURE_DOMAIN_KIND = "CloudStackFailureDomain"
FAILURE_DOMAIN_PLURAL = "cloudstackfailuredomains"
MACHINE_PLURAL = "cloudstackmachines"

# Labels set by Cluster API
CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
CONTROL_PLANE_LABEL = "cluster.x-k8s.io/control-plane"

# Defaults for OperatorConfig
DEFAULT_NETWORK_OFFERING = "DefaultIsolatedNetworkOfferingWithSourceNatService"
DEFAULT_API_PORT = 6443
DEFAULT_CLUSTER_TAG_PREFIX = "CAPC_cluster_"
DEFAULT_CREATED_BY_TAG = "created_by_CAPC"
DEFAULT_CLIENT_CONFIG_MAP = "capc-client-config"
DEFAULT_CLIENT_CONFIG_NAMESPACE = "capc-system"
DEFAULT_REQUEUE_DELAY_SECONDS = 5.0
DEFAULT_ERROR_RETRY_DELAY_SECONDS = 60.0

# CloudStack vocabulary
NETWORK_TYPE_ISOLATED = "Isolated"
NETWORK_TYPE_SHARED = "Shared"
PROTOCOL_TCP = "tcp"
LB_ALGORITHM = "roundrobin"
LB_RULE_NAME = "Kubernetes_API_Server"
RESOURCE_TYPE_NETWORK = "Network"
RESOURCE_TYPE_IP_ADDRESS = "PublicIpAddress"

# Key of the YAML document inside the shared client config map
CLIENT_CONFIG_KEY = "client-config"

# Finalizer kopf puts on watched clusters
FINALIZER = "cloudstackcluster.infrastructure.cluster.x-k8s.io"

# Seconds between drift-repair passes of a Ready cluster
RESYNC_INTERVAL_SECONDS = 300
