"""Domain models for the CloudStack cluster operator.

This module defines typed data structures for the CloudStackCluster custom
resource, the CloudStack resources the operator reconciles, and the
exceptions raised along the way.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypedDict, NotRequired

from constants import CLUSTER_NAME_LABEL, NETWORK_TYPE_ISOLATED


# =============================================================================
# Enums for constrained values
# =============================================================================


class Phase(Enum):
    """Cluster infrastructure lifecycle phase."""

    PENDING = "Pending"
    PROVISIONING = "Provisioning"
    READY = "Ready"
    ERROR = "Error"
    DELETING = "Deleting"


class ErrorKind(Enum):
    """Outcome of classifying a failed call."""

    ALREADY_EXISTS = "AlreadyExists"
    NOT_FOUND = "NotFound"
    AMBIGUOUS = "Ambiguous"
    FATAL = "Fatal"


# =============================================================================
# TypedDicts for CRD spec (external data from Kubernetes)
# =============================================================================


class NetworkSpec(TypedDict, total=False):
    """Network reference from CRD."""

    name: str
    id: str
    type: str


class ZoneSpec(TypedDict, total=False):
    """Zone specification from CRD."""

    name: str
    id: str
    network: NetworkSpec


class SecretRefSpec(TypedDict):
    """Reference to the secret holding CloudStack endpoint credentials."""

    name: str
    namespace: str


class FailureDomainSpecDict(TypedDict):
    """Failure domain specification from CRD."""

    name: str
    zone: ZoneSpec
    acsEndpoint: SecretRefSpec
    account: NotRequired[str]
    domain: NotRequired[str]


# =============================================================================
# Dataclasses for internal state and status
# =============================================================================


@dataclass
class Network:
    """A CloudStack network, resolved or only named."""

    name: str
    id: str = ""
    type: str = ""

    @property
    def is_resolved(self) -> bool:
        """True once name, id and type have all been filled in."""
        return bool(self.name and self.id and self.type)

    @property
    def is_isolated(self) -> bool:
        return self.type == NETWORK_TYPE_ISOLATED

    def to_dict(self) -> dict[str, str]:
        """Convert to dict for Kubernetes status."""
        result = {"name": self.name}
        if self.id:
            result["id"] = self.id
        if self.type:
            result["type"] = self.type
        return result

    @classmethod
    def from_dict(cls, data: NetworkSpec | None) -> "Network":
        """Create from Kubernetes spec or status dict."""
        data = data or {}
        return cls(
            name=data.get("name", ""),
            id=data.get("id", ""),
            type=data.get("type", ""),
        )


@dataclass
class Zone:
    """A CloudStack zone and the network used in it."""

    name: str
    id: str = ""
    network: Network = field(default_factory=lambda: Network(name=""))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for Kubernetes status."""
        result: dict[str, Any] = {"name": self.name, "network": self.network.to_dict()}
        if self.id:
            result["id"] = self.id
        return result

    @classmethod
    def from_dict(cls, data: ZoneSpec | None) -> "Zone":
        """Create from Kubernetes spec or status dict."""
        data = data or {}
        return cls(
            name=data.get("name", ""),
            id=data.get("id", ""),
            network=Network.from_dict(data.get("network")),
        )


@dataclass(frozen=True)
class SecretRef:
    """Namespaced reference to a Secret."""

    name: str
    namespace: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class FailureDomainSpec:
    """A named, zone-scoped credential and account context."""

    name: str
    zone: Zone
    acs_endpoint: SecretRef
    account: str = ""
    domain: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for the CloudStackFailureDomain spec."""
        result: dict[str, Any] = {
            "name": self.name,
            "zone": self.zone.to_dict(),
            "acsEndpoint": {
                "name": self.acs_endpoint.name,
                "namespace": self.acs_endpoint.namespace,
            },
        }
        if self.account:
            result["account"] = self.account
        if self.domain:
            result["domain"] = self.domain
        return result

    @classmethod
    def from_dict(
        cls, data: FailureDomainSpecDict, default_namespace: str = ""
    ) -> "FailureDomainSpec":
        """Create from a failure domain spec dict."""
        endpoint = data.get("acsEndpoint") or {}
        return cls(
            name=data.get("name", ""),
            zone=Zone.from_dict(data.get("zone")),
            acs_endpoint=SecretRef(
                name=endpoint.get("name", ""),
                namespace=endpoint.get("namespace") or default_namespace,
            ),
            account=data.get("account", ""),
            domain=data.get("domain", ""),
        )


@dataclass
class ControlPlaneEndpoint:
    """Host and port of the cluster's API server endpoint."""

    host: str = ""
    port: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"host": self.host, "port": self.port}


@dataclass
class ClusterSpec:
    """Spec of a CloudStackCluster."""

    zones: list[Zone] = field(default_factory=list)
    failure_domains: list[FailureDomainSpec] = field(default_factory=list)
    account: str = ""
    domain: str = ""
    control_plane_endpoint: ControlPlaneEndpoint = field(
        default_factory=ControlPlaneEndpoint
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any], namespace: str = "") -> "ClusterSpec":
        """Create from Kubernetes spec dict.

        Zones fall back to the zones of the failure domains when the spec
        lists none of its own.
        """
        failure_domains = [
            FailureDomainSpec.from_dict(fd, namespace)
            for fd in data.get("failureDomains", []) or []
        ]
        zones = [Zone.from_dict(z) for z in data.get("zones", []) or []]
        if not zones:
            seen: set[str] = set()
            for fd in failure_domains:
                # Failure domains may share a zone; keep the first
                if fd.zone.name in seen:
                    continue
                seen.add(fd.zone.name)
                zones.append(
                    Zone(fd.zone.name, fd.zone.id, Network.from_dict(fd.zone.network.to_dict()))
                )
        endpoint = data.get("controlPlaneEndpoint") or {}
        return cls(
            zones=zones,
            failure_domains=failure_domains,
            account=data.get("account", ""),
            domain=data.get("domain", ""),
            control_plane_endpoint=ControlPlaneEndpoint(
                host=endpoint.get("host", ""),
                port=int(endpoint.get("port", 0) or 0),
            ),
        )


@dataclass
class ClusterStatus:
    """Status of a CloudStackCluster.

    These fields are the durable record of convergence and are read back
    on the next reconcile pass.
    """

    phase: Phase = Phase.PENDING
    zones: dict[str, Zone] = field(default_factory=dict)
    public_ip_id: str = ""
    public_ip_network_id: str = ""
    lb_rule_id: str = ""
    domain_id: str = ""
    last_sync_time: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Convert to dict for Kubernetes status."""
        result: dict[str, object] = {"phase": self.phase.value}
        if self.zones:
            result["zones"] = {name: z.to_dict() for name, z in self.zones.items()}
        if self.public_ip_id:
            result["publicIPID"] = self.public_ip_id
        if self.public_ip_network_id:
            result["publicIPNetworkId"] = self.public_ip_network_id
        if self.lb_rule_id:
            result["lbRuleID"] = self.lb_rule_id
        if self.domain_id:
            result["domainID"] = self.domain_id
        if self.last_sync_time:
            result["lastSyncTime"] = self.last_sync_time
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ClusterStatus":
        """Create from Kubernetes status dict."""
        data = data or {}
        try:
            phase = Phase(data.get("phase", "Pending"))
        except ValueError:
            phase = Phase.PENDING

        zones = {
            name: Zone.from_dict(zone)
            for name, zone in (data.get("zones") or {}).items()
        }
        return cls(
            phase=phase,
            zones=zones,
            public_ip_id=data.get("publicIPID", ""),
            public_ip_network_id=data.get("publicIPNetworkId", ""),
            lb_rule_id=data.get("lbRuleID", ""),
            domain_id=data.get("domainID", ""),
            last_sync_time=data.get("lastSyncTime"),
        )


@dataclass
class CloudStackCluster:
    """The target of a reconcile: a CloudStackCluster object."""

    name: str
    namespace: str
    uid: str
    spec: ClusterSpec = field(default_factory=ClusterSpec)
    status: ClusterStatus = field(default_factory=ClusterStatus)
    labels: dict[str, str] = field(default_factory=dict)
    api_version: str = ""
    kind: str = ""

    @property
    def capi_cluster_name(self) -> str:
        """Name of the owning Cluster API cluster, from its label."""
        return self.labels.get(CLUSTER_NAME_LABEL) or self.name

    @property
    def account(self) -> str:
        """Account used for scoping, falling back to the first failure domain."""
        if self.spec.account:
            return self.spec.account
        if self.spec.failure_domains:
            return self.spec.failure_domains[0].account
        return ""

    def failure_domain(self, name: str) -> FailureDomainSpec | None:
        for fd in self.spec.failure_domains:
            if fd.name == name:
                return fd
        return None

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "CloudStackCluster":
        """Create from a full Kubernetes object (kopf body or API dict)."""
        meta = body.get("metadata", {})
        namespace = meta.get("namespace", "")
        return cls(
            name=meta.get("name", ""),
            namespace=namespace,
            uid=meta.get("uid", ""),
            spec=ClusterSpec.from_dict(body.get("spec") or {}, namespace),
            status=ClusterStatus.from_dict(body.get("status")),
            labels=dict(meta.get("labels") or {}),
            api_version=body.get("apiVersion", ""),
            kind=body.get("kind", ""),
        )


@dataclass(frozen=True)
class PublicIpAddress:
    """A CloudStack public IP address.

    ``allocated`` is the allocation timestamp reported by CloudStack; an
    empty string means the address is free.
    """

    id: str
    address: str
    allocated: str = ""
    network_id: str = ""
    associated_network_id: str = ""

    @property
    def is_allocated(self) -> bool:
        return bool(self.allocated)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PublicIpAddress":
        """Create from a listPublicIpAddresses/associateIpAddress item."""
        return cls(
            id=data.get("id", ""),
            address=data.get("ipaddress", ""),
            allocated=data.get("allocated", ""),
            network_id=data.get("networkid", ""),
            associated_network_id=data.get("associatednetworkid", ""),
        )


@dataclass(frozen=True)
class LoadBalancerRule:
    """A CloudStack load balancer rule."""

    id: str
    public_port: str
    protocol: str = ""
    network_id: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "LoadBalancerRule":
        """Create from a listLoadBalancerRules/createLoadBalancerRule item."""
        return cls(
            id=data.get("id", ""),
            public_port=str(data.get("publicport", "")),
            protocol=data.get("protocol", ""),
            network_id=data.get("networkid", ""),
        )


# =============================================================================
# Exceptions
# =============================================================================


class OperatorError(Exception):
    """Base exception for operator errors."""

    pass


class ResourceNotFoundError(OperatorError):
    """A required resource was not found."""

    pass


class NoMatchError(ResourceNotFoundError):
    """A by-name lookup in CloudStack matched nothing."""

    pass


class NoLoadBalancerRuleError(ResourceNotFoundError):
    """No load balancer rule exists for the endpoint port."""

    def __init__(self, message: str = "no load balancer rule found") -> None:
        super().__init__(message)


class AmbiguousMatchError(OperatorError):
    """A lookup matched more than one resource."""

    pass


class AllocationError(OperatorError):
    """No usable public IP address could be found."""

    pass


class NetworkResolutionError(OperatorError):
    """One or more sub-steps of network resolution failed."""

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors))


class CredentialError(OperatorError):
    """Credentials of a failure domain could not be loaded or scoped."""

    def __init__(self, failure_domain: str, message: str) -> None:
        self.failure_domain = failure_domain
        super().__init__(f"failure domain {failure_domain}: {message}")


class ConfigurationError(OperatorError):
    """Invalid or missing configuration."""

    pass


class CloudStackAPIError(OperatorError):
    """Error communicating with the CloudStack API."""

    pass
