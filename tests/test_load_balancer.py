"""Tests for the control-plane load balancer rule."""

import pytest

from config import OperatorConfig
from fakes import FakeCloudStackClient, make_cluster
from models import CloudStackAPIError, NoLoadBalancerRuleError
from resources.load_balancer import LoadBalancerRuleManager


def _manager(client, **config):
    return LoadBalancerRuleManager(client, OperatorConfig(**config))


def _cluster(port=0):
    cluster = make_cluster(endpoint={"host": "10.0.0.1", "port": port})
    cluster.status.public_ip_id = "ip-1"
    cluster.status.public_ip_network_id = "net-1"
    return cluster


class TestResolveLoadBalancerRuleDetails:
    """Tests for LoadBalancerRuleManager.resolve_load_balancer_rule_details."""

    def test_matches_on_default_port(self):
        client = FakeCloudStackClient()
        client.add_lb_rule("lb-other", "ip-1", 22)
        client.add_lb_rule("lb-api", "ip-1", 6443)
        cluster = _cluster()

        rule = _manager(client).resolve_load_balancer_rule_details(cluster)

        assert rule.id == "lb-api"
        assert cluster.status.lb_rule_id == "lb-api"

    def test_matches_on_configured_port(self):
        client = FakeCloudStackClient()
        client.add_lb_rule("lb-6443", "ip-1", 6443)
        client.add_lb_rule("lb-8443", "ip-1", 8443)

        rule = _manager(client).resolve_load_balancer_rule_details(_cluster(port=8443))

        assert rule.id == "lb-8443"

    def test_no_rule(self):
        client = FakeCloudStackClient()
        client.add_lb_rule("lb-other", "ip-1", 22)

        with pytest.raises(NoLoadBalancerRuleError):
            _manager(client).resolve_load_balancer_rule_details(_cluster())


class TestGetOrCreateLoadBalancerRule:
    """Tests for LoadBalancerRuleManager.get_or_create_load_balancer_rule."""

    def test_creates_once(self):
        client = FakeCloudStackClient()
        manager = _manager(client)
        cluster = _cluster()

        first = manager.get_or_create_load_balancer_rule(cluster)
        second = manager.get_or_create_load_balancer_rule(cluster)

        assert first.id == second.id == cluster.status.lb_rule_id
        (_, kwargs), = client.called("create_load_balancer_rule")
        assert kwargs["algorithm"] == "roundrobin"
        assert kwargs["protocol"] == "tcp"
        assert kwargs["private_port"] == 6443
        assert kwargs["public_port"] == 6443
        assert kwargs["network_id"] == "net-1"
        assert kwargs["public_ip_id"] == "ip-1"

    def test_public_port_overridable(self):
        client = FakeCloudStackClient()

        _manager(client).get_or_create_load_balancer_rule(_cluster(port=8443))

        (_, kwargs), = client.called("create_load_balancer_rule")
        assert kwargs["private_port"] == 6443
        assert kwargs["public_port"] == 8443

    def test_listing_error_propagates(self):
        client = FakeCloudStackClient()
        client.fail["list_load_balancer_rules"] = CloudStackAPIError("listLoadBalancerRules failed")

        with pytest.raises(CloudStackAPIError):
            _manager(client).get_or_create_load_balancer_rule(_cluster())
        assert client.called("create_load_balancer_rule") == []


class TestAssignVmToLoadBalancerRule:
    """Tests for LoadBalancerRuleManager.assign_vm_to_load_balancer_rule."""

    def test_assigns_once(self):
        client = FakeCloudStackClient()
        client.add_lb_rule("lb-1", "ip-1", 6443)
        cluster = _cluster()
        cluster.status.lb_rule_id = "lb-1"
        manager = _manager(client)

        assert manager.assign_vm_to_load_balancer_rule(cluster, "vm-1")
        assert not manager.assign_vm_to_load_balancer_rule(cluster, "vm-1")

        assert client.lb_members["lb-1"] == ["vm-1"]
        assert len(client.called("assign_to_load_balancer_rule")) == 1

    def test_prefix_is_not_membership(self):
        client = FakeCloudStackClient()
        client.add_lb_rule("lb-1", "ip-1", 6443)
        client.lb_members["lb-1"] = ["vm-10"]
        cluster = _cluster()
        cluster.status.lb_rule_id = "lb-1"

        assert _manager(client).assign_vm_to_load_balancer_rule(cluster, "vm-1")
