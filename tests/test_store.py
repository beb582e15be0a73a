"""Tests for the Kubernetes object store."""

import base64
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from constants import API_GROUP, API_VERSION, FAILURE_DOMAIN_PLURAL
from store import KubeStore


@pytest.fixture
def apis():
    return MagicMock(), MagicMock()


@pytest.fixture
def store(apis):
    custom_api, core_api = apis
    return KubeStore(custom_api, core_api)


class TestCustomObjects:
    """Tests for custom object access."""

    def test_list_with_label_selector(self, store, apis):
        custom_api, _ = apis
        custom_api.list_namespaced_custom_object.return_value = {"items": [{"a": 1}]}

        items = store.list(FAILURE_DOMAIN_PLURAL, "ns", {"b": "2", "a": "1"})

        assert items == [{"a": 1}]
        custom_api.list_namespaced_custom_object.assert_called_once_with(
            API_GROUP, API_VERSION, "ns", FAILURE_DOMAIN_PLURAL, label_selector="a=1,b=2"
        )

    def test_list_without_labels(self, store, apis):
        custom_api, _ = apis
        custom_api.list_namespaced_custom_object.return_value = {}

        assert store.list(FAILURE_DOMAIN_PLURAL, "ns") == []
        custom_api.list_namespaced_custom_object.assert_called_once_with(
            API_GROUP, API_VERSION, "ns", FAILURE_DOMAIN_PLURAL
        )

    def test_delete(self, store, apis):
        custom_api, _ = apis

        store.delete(FAILURE_DOMAIN_PLURAL, "ns", "fd-1")

        custom_api.delete_namespaced_custom_object.assert_called_once_with(
            API_GROUP, API_VERSION, "ns", FAILURE_DOMAIN_PLURAL, "fd-1"
        )


class TestCoreObjects:
    """Tests for Secret and ConfigMap access."""

    def test_secret_is_decoded(self, store, apis):
        _, core_api = apis
        encoded = base64.b64encode(b"https://cloud/client/api").decode()
        core_api.read_namespaced_secret.return_value = SimpleNamespace(
            data={"api-url": encoded}
        )

        assert store.get_secret("ns", "acs") == {"api-url": "https://cloud/client/api"}
        core_api.read_namespaced_secret.assert_called_once_with("acs", "ns")

    def test_empty_config_map(self, store, apis):
        _, core_api = apis
        core_api.read_namespaced_config_map.return_value = SimpleNamespace(data=None)

        assert store.get_config_map("ns", "cfg") == {}

    def test_invalid_secret_data_raises_value_error(self, store, apis):
        _, core_api = apis
        core_api.read_namespaced_secret.return_value = SimpleNamespace(
            data={"api-key": "not base64!"}
        )

        with pytest.raises(ValueError):
            store.get_secret("ns", "acs")
