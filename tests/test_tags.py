"""Tests for ownership tag bookkeeping."""

from config import OperatorConfig
from constants import RESOURCE_TYPE_NETWORK
from fakes import FakeCloudStackClient, make_cluster
from models import Network
from resources.tags import TagLedger


def _ledger(client):
    return TagLedger(client, OperatorConfig())


class TestAddClusterTags:
    """Tests for TagLedger.add_cluster_tags."""

    def test_adds_ownership_and_created_by(self):
        client = FakeCloudStackClient()
        cluster = make_cluster(uid="u1")

        applied = _ledger(client).add_cluster_tags(RESOURCE_TYPE_NETWORK, "net-1", cluster, True)

        assert applied == {"CAPC_cluster_u1": "1", "created_by_CAPC": "1"}
        assert client.tags[(RESOURCE_TYPE_NETWORK, "net-1")] == applied

    def test_ownership_only(self):
        client = FakeCloudStackClient()
        cluster = make_cluster(uid="u1")

        applied = _ledger(client).add_cluster_tags(RESOURCE_TYPE_NETWORK, "net-1", cluster, False)

        assert applied == {"CAPC_cluster_u1": "1"}

    def test_second_call_applies_nothing(self):
        client = FakeCloudStackClient()
        cluster = make_cluster(uid="u1")
        ledger = _ledger(client)

        ledger.add_cluster_tags(RESOURCE_TYPE_NETWORK, "net-1", cluster, True)
        applied = ledger.add_cluster_tags(RESOURCE_TYPE_NETWORK, "net-1", cluster, True)

        assert applied == {}
        assert len(client.called("add_tags")) == 1

    def test_leaves_other_clusters_tags(self):
        client = FakeCloudStackClient()
        client.tags[(RESOURCE_TYPE_NETWORK, "net-1")] = {"CAPC_cluster_other": "1"}

        _ledger(client).add_cluster_tags(
            RESOURCE_TYPE_NETWORK, "net-1", make_cluster(uid="u1"), False
        )

        assert client.tags[(RESOURCE_TYPE_NETWORK, "net-1")] == {
            "CAPC_cluster_other": "1",
            "CAPC_cluster_u1": "1",
        }


class TestRemoveClusterTag:
    """Tests for TagLedger.remove_cluster_tag_from_network."""

    def test_removes_only_own_tag(self):
        client = FakeCloudStackClient()
        client.tags[(RESOURCE_TYPE_NETWORK, "net-1")] = {
            "CAPC_cluster_u1": "1",
            "CAPC_cluster_u2": "1",
            "created_by_CAPC": "1",
        }
        net = Network(name="n", id="net-1")

        assert _ledger(client).remove_cluster_tag_from_network(make_cluster(uid="u1"), net)
        assert client.tags[(RESOURCE_TYPE_NETWORK, "net-1")] == {
            "CAPC_cluster_u2": "1",
            "created_by_CAPC": "1",
        }

    def test_absent_tag_is_noop(self):
        client = FakeCloudStackClient()
        net = Network(name="n", id="net-1")

        assert not _ledger(client).remove_cluster_tag_from_network(make_cluster(uid="u1"), net)
        assert client.called("delete_tags") == []


class TestDeleteNetworkIfNotInUse:
    """Tests for TagLedger.delete_network_if_not_in_use."""

    def test_deletes_unowned_network_we_created(self):
        client = FakeCloudStackClient()
        client.add_network("n", "net-1")
        client.tags[(RESOURCE_TYPE_NETWORK, "net-1")] = {"created_by_CAPC": "1"}

        assert _ledger(client).delete_network_if_not_in_use(Network(name="n", id="net-1"))
        assert "net-1" not in client.networks

    def test_keeps_network_with_other_owner(self):
        client = FakeCloudStackClient()
        client.add_network("n", "net-1")
        client.tags[(RESOURCE_TYPE_NETWORK, "net-1")] = {
            "created_by_CAPC": "1",
            "CAPC_cluster_u2": "1",
        }

        assert not _ledger(client).delete_network_if_not_in_use(Network(name="n", id="net-1"))
        assert "net-1" in client.networks

    def test_keeps_network_not_created_by_operator(self):
        client = FakeCloudStackClient()
        client.add_network("n", "net-1")

        assert not _ledger(client).delete_network_if_not_in_use(Network(name="n", id="net-1"))
        assert client.called("delete_network") == []

    def test_two_clusters_sharing_a_network(self):
        client = FakeCloudStackClient()
        client.add_network("n", "net-1")
        ledger = _ledger(client)
        net = Network(name="n", id="net-1")
        first, second = make_cluster(uid="u1"), make_cluster(uid="u2")

        ledger.add_network_cluster_tags(first, net, add_created_by=True)
        ledger.add_network_cluster_tags(second, net, add_created_by=False)

        ledger.remove_cluster_tag_from_network(first, net)
        assert not ledger.delete_network_if_not_in_use(net)

        ledger.remove_cluster_tag_from_network(second, net)
        assert ledger.delete_network_if_not_in_use(net)


class TestCountClusterTags:
    """Tests for TagLedger.count_cluster_tags."""

    def test_ignores_created_by_and_foreign_tags(self):
        ledger = _ledger(FakeCloudStackClient())
        tags = {"CAPC_cluster_a": "1", "CAPC_cluster_b": "1", "created_by_CAPC": "1", "env": "x"}
        assert ledger.count_cluster_tags(tags) == 2
