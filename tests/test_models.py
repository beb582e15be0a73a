"""Tests for data models."""

from fakes import make_cluster, make_cluster_body
from models import (
    CloudStackCluster,
    ClusterSpec,
    ClusterStatus,
    CredentialError,
    FailureDomainSpec,
    LoadBalancerRule,
    Network,
    NetworkResolutionError,
    NoLoadBalancerRuleError,
    NoMatchError,
    Phase,
    PublicIpAddress,
    Zone,
)


class TestNetwork:
    """Tests for Network dataclass."""

    def test_is_resolved_needs_all_fields(self):
        assert Network(name="n", id="1", type="Isolated").is_resolved
        assert not Network(name="n", id="1").is_resolved
        assert not Network(name="n", type="Isolated").is_resolved

    def test_is_isolated(self):
        assert Network(name="n", type="Isolated").is_isolated
        assert not Network(name="n", type="Shared").is_isolated
        assert not Network(name="n").is_isolated

    def test_to_dict_minimal(self):
        assert Network(name="n").to_dict() == {"name": "n"}

    def test_from_dict(self):
        net = Network.from_dict({"name": "n", "id": "1", "type": "Shared"})
        assert net == Network(name="n", id="1", type="Shared")

    def test_from_none(self):
        assert Network.from_dict(None) == Network(name="")


class TestFailureDomainSpec:
    """Tests for FailureDomainSpec dataclass."""

    def test_from_dict_defaults_secret_namespace(self):
        fd = FailureDomainSpec.from_dict(
            {"name": "fd-a", "zone": {"name": "z"}, "acsEndpoint": {"name": "s"}},
            default_namespace="ns",
        )
        assert fd.acs_endpoint.namespace == "ns"
        assert str(fd.acs_endpoint) == "ns/s"

    def test_to_dict_omits_empty_account(self):
        fd = FailureDomainSpec.from_dict(
            {"name": "fd-a", "zone": {"name": "z"}, "acsEndpoint": {"name": "s", "namespace": "ns"}}
        )
        result = fd.to_dict()
        assert "account" not in result
        assert result["acsEndpoint"] == {"name": "s", "namespace": "ns"}

    def test_to_dict_with_account(self):
        fd = FailureDomainSpec.from_dict(
            {
                "name": "fd-a",
                "zone": {"name": "z"},
                "acsEndpoint": {"name": "s", "namespace": "ns"},
                "account": "acct",
                "domain": "ROOT/sub",
            }
        )
        result = fd.to_dict()
        assert result["account"] == "acct"
        assert result["domain"] == "ROOT/sub"


class TestClusterSpec:
    """Tests for ClusterSpec dataclass."""

    def test_zones_fall_back_to_failure_domains(self):
        spec = ClusterSpec.from_dict(
            {
                "failureDomains": [
                    {
                        "name": "fd-a",
                        "zone": {"name": "zone-a", "network": {"name": "net-a"}},
                        "acsEndpoint": {"name": "s"},
                    }
                ]
            }
        )
        assert [z.name for z in spec.zones] == ["zone-a"]
        assert spec.zones[0].network.name == "net-a"

    def test_zones_shared_by_failure_domains_listed_once(self):
        zone_a = {"name": "zone-a", "network": {"name": "net-a"}}
        spec = ClusterSpec.from_dict(
            {
                "failureDomains": [
                    {"name": "fd-a", "zone": zone_a, "acsEndpoint": {"name": "s"}},
                    {"name": "fd-b", "zone": zone_a, "acsEndpoint": {"name": "s"}},
                    {
                        "name": "fd-c",
                        "zone": {"name": "zone-b", "network": {"name": "net-b"}},
                        "acsEndpoint": {"name": "s"},
                    },
                ]
            }
        )
        assert [z.name for z in spec.zones] == ["zone-a", "zone-b"]

    def test_endpoint_port_defaults_to_zero(self):
        spec = ClusterSpec.from_dict({"controlPlaneEndpoint": {"host": "1.2.3.4"}})
        assert spec.control_plane_endpoint.host == "1.2.3.4"
        assert spec.control_plane_endpoint.port == 0


class TestClusterStatus:
    """Tests for ClusterStatus dataclass."""

    def test_to_dict_minimal(self):
        assert ClusterStatus().to_dict() == {"phase": "Pending"}

    def test_round_trip_keys(self):
        status = ClusterStatus(
            phase=Phase.READY,
            zones={"z": Zone(name="z", id="zid", network=Network(name="n", id="1", type="Isolated"))},
            public_ip_id="ip-1",
            public_ip_network_id="net-1",
            lb_rule_id="lb-1",
            domain_id="dom-1",
        )
        data = status.to_dict()

        assert data["publicIPID"] == "ip-1"
        assert data["publicIPNetworkId"] == "net-1"
        assert data["lbRuleID"] == "lb-1"
        assert data["domainID"] == "dom-1"
        assert ClusterStatus.from_dict(data) == status

    def test_invalid_phase_falls_back_to_pending(self):
        assert ClusterStatus.from_dict({"phase": "Bogus"}).phase == Phase.PENDING


class TestCloudStackCluster:
    """Tests for CloudStackCluster dataclass."""

    def test_from_body(self):
        cluster = make_cluster(name="c1", namespace="ns", uid="u1")

        assert cluster.name == "c1"
        assert cluster.namespace == "ns"
        assert cluster.uid == "u1"
        assert cluster.kind == "CloudStackCluster"
        assert cluster.spec.failure_domains[0].acs_endpoint.namespace == "ns"

    def test_capi_cluster_name_from_label(self):
        body = make_cluster_body(name="infra-name")
        body["metadata"]["labels"]["cluster.x-k8s.io/cluster-name"] = "capi-name"
        assert CloudStackCluster.from_body(body).capi_cluster_name == "capi-name"

    def test_capi_cluster_name_falls_back_to_name(self):
        body = make_cluster_body(name="infra-name")
        body["metadata"]["labels"] = {}
        assert CloudStackCluster.from_body(body).capi_cluster_name == "infra-name"

    def test_account_falls_back_to_failure_domain(self):
        body = make_cluster_body()
        body["spec"]["failureDomains"][0]["account"] = "fd-acct"
        assert CloudStackCluster.from_body(body).account == "fd-acct"

    def test_spec_account_wins(self):
        assert make_cluster(account="spec-acct").account == "spec-acct"

    def test_failure_domain_lookup(self):
        cluster = make_cluster()
        assert cluster.failure_domain("fd-a").name == "fd-a"
        assert cluster.failure_domain("missing") is None


class TestPublicIpAddress:
    """Tests for PublicIpAddress dataclass."""

    def test_from_api(self):
        ip = PublicIpAddress.from_api(
            {
                "id": "ip-1",
                "ipaddress": "1.2.3.4",
                "allocated": "2024-01-01T00:00:00+0000",
                "associatednetworkid": "net-1",
            }
        )
        assert ip.address == "1.2.3.4"
        assert ip.is_allocated
        assert ip.associated_network_id == "net-1"

    def test_unallocated(self):
        assert not PublicIpAddress.from_api({"id": "ip-1", "ipaddress": "1.2.3.4"}).is_allocated


class TestLoadBalancerRule:
    """Tests for LoadBalancerRule dataclass."""

    def test_public_port_is_string(self):
        rule = LoadBalancerRule.from_api({"id": "lb-1", "publicport": 6443})
        assert rule.public_port == "6443"


class TestExceptions:
    """Tests for exception types."""

    def test_network_resolution_error_joins_messages(self):
        error = NetworkResolutionError([NoMatchError("a"), NoMatchError("b")])
        assert str(error) == "a; b"
        assert len(error.errors) == 2

    def test_credential_error_names_failure_domain(self):
        error = CredentialError("fd-a", "secret missing")
        assert error.failure_domain == "fd-a"
        assert "fd-a" in str(error)

    def test_no_load_balancer_rule_default_message(self):
        assert str(NoLoadBalancerRuleError()) == "no load balancer rule found"
