"""Tests for mapping reconcile outcomes onto kopf."""

import logging
from types import SimpleNamespace

import kopf
import pytest

import handlers.cluster as cluster_handlers
from cluster_reconciler import ClusterReconciliation
from config import OperatorConfig
from constants import DEFAULT_NETWORK_OFFERING
from credentials import CloudClientExtension
from fakes import FakeCloudStackClient, FakeStore, make_cluster_body, make_runner
from models import CloudStackCluster

SECRET = {"api-url": "https://cloud/client/api", "api-key": "k", "secret-key": "s"}


@pytest.fixture
def cloud():
    cloud = FakeCloudStackClient()
    cloud.add_zone("zone-a", "zid-a")
    cloud.add_offering(DEFAULT_NETWORK_OFFERING, "off-1")
    cloud.add_public_ip("ip-1", "10.0.0.1")
    return cloud


@pytest.fixture
def warned(monkeypatch, cloud):
    store = FakeStore()
    store.secrets[("default", "acs-secret")] = dict(SECRET)
    config = OperatorConfig(requeue_delay_seconds=3.0, error_retry_delay_seconds=30.0)

    def new_reconciliation(body, log):
        cluster = CloudStackCluster.from_body(body)
        ext = CloudClientExtension(client_factory=lambda secret, client_config: cloud)
        return ClusterReconciliation(make_runner(cluster, store, config), ext)

    warned = []
    monkeypatch.setattr(cluster_handlers, "new_reconciliation", new_reconciliation)
    monkeypatch.setattr(cluster_handlers, "get_config", lambda: config)
    monkeypatch.setattr(kopf, "warn", lambda body, reason, message: warned.append(reason))
    return warned


def _patch():
    return SimpleNamespace(status={}, spec={})


def _run(body, patch):
    cluster_handlers._reconcile(
        "reconcile", body, body["spec"], body["status"], patch, logging.getLogger(__name__)
    )


class TestReconcileHandler:
    """Tests for the cluster reconcile handler body."""

    def test_success_writes_status_and_endpoint(self, warned):
        body = make_cluster_body()
        patch = _patch()

        _run(body, patch)

        assert patch.status["phase"] == "Ready"
        assert patch.status["publicIPID"] == "ip-1"
        ready = patch.status["conditions"][0]
        assert (ready["type"], ready["status"]) == ("Ready", "True")
        assert patch.spec["controlPlaneEndpoint"] == {"host": "10.0.0.1", "port": 6443}
        assert warned == []

    def test_requeue_raises_temporary_error(self, warned):
        body = make_cluster_body(failure_domains=[])
        patch = _patch()

        with pytest.raises(kopf.TemporaryError) as exc_info:
            _run(body, patch)

        assert exc_info.value.delay == 3.0
        assert patch.status["conditions"][0]["reason"] == "Requeued"
        assert warned == []

    def test_failure_warns_and_marks_error(self, warned, cloud):
        cloud.offerings.clear()
        body = make_cluster_body()
        patch = _patch()

        with pytest.raises(kopf.TemporaryError) as exc_info:
            _run(body, patch)

        assert exc_info.value.delay == 30.0
        assert patch.status["phase"] == "Error"
        assert "network offering" in patch.status["conditions"][0]["message"]
        assert warned == ["ReconcileFailed"]
