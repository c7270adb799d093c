"""Tests for pke_vsphere.driver.common."""

from __future__ import annotations

from unittest.mock import MagicMock

from conftest import ORG_ID, make_create_params, make_pool
from pke_vsphere.driver.common import (
    INSTANCE_TYPE_LABEL,
    NODE_POOL_NAME_LABEL,
    default_node_template,
    desired_node_pool_labels,
    get_or_create_ssh_key_pair,
    handle_cluster_error,
    http_proxy_config,
    sort_node_pools,
)
from pke_vsphere.secret import store as secrettype
from pke_vsphere.store.models import ERROR, HTTPProxy, HTTPProxyOptions
from pke_vsphere.workflow.models import NodePoolRef


class TestSortNodePools:
    def test_three_way_partition(self):
        existing = [make_pool("a", size=1), make_pool("b", size=2), make_pool("c", size=3)]
        incoming = [make_pool("b", size=4), make_pool("d", size=1)]

        to_create, to_update, to_delete = sort_node_pools(incoming, existing)

        assert [np.name for np in to_create] == ["d"]
        assert [np.name for np in to_update] == ["b"]
        assert to_update[0].size == 4
        assert to_delete == [NodePoolRef(name="a", size=1), NodePoolRef(name="c", size=3)]

    def test_one_of_each(self):
        existing = [make_pool("gone"), make_pool("kept")]
        incoming = [make_pool("kept"), make_pool("new")]

        to_create, to_update, to_delete = sort_node_pools(incoming, existing)

        assert [np.name for np in to_create] == ["new"]
        assert [np.name for np in to_update] == ["kept"]
        assert [ref.name for ref in to_delete] == ["gone"]

    def test_no_existing(self):
        to_create, to_update, to_delete = sort_node_pools([make_pool("a")], [])
        assert [np.name for np in to_create] == ["a"]
        assert to_update == []
        assert to_delete == []


class TestDesiredNodePoolLabels:
    def test_reserved_labels_win(self):
        pool = make_pool("workers", ram=2048, vcpu=4, labels={"team": "a", NODE_POOL_NAME_LABEL: "spoofed"})
        labels = desired_node_pool_labels([pool])
        assert labels == {
            "workers": {
                "team": "a",
                NODE_POOL_NAME_LABEL: "workers",
                INSTANCE_TYPE_LABEL: "4vcpu-2048mb",
            }
        }


class TestHTTPProxyConfig:
    def test_host_port(self):
        proxy = HTTPProxy(
            http=HTTPProxyOptions(host="proxy.local", port=3128, secret_id="s1"),
            https=HTTPProxyOptions(host="secure.local", scheme="https"),
        )
        config = http_proxy_config(proxy)
        assert config.http.host_port == "proxy.local:3128"
        assert config.http.secret_id == "s1"
        assert config.https.host_port == "secure.local"
        assert config.https.scheme == "https"

    def test_unset(self):
        config = http_proxy_config(HTTPProxy())
        assert config.http.host_port == ""
        assert config.https.host_port == ""


class TestSSHKeyPair:
    def test_generated_once(self, cluster_store, secret_store):
        cluster = cluster_store.create(make_create_params())

        values = get_or_create_ssh_key_pair(cluster, secret_store, cluster_store)
        assert values[secrettype.SSH_PUBLIC_KEY].startswith("ssh-rsa ")

        reloaded = cluster_store.get_by_id(cluster.id)
        assert reloaded.ssh_secret_id
        again = get_or_create_ssh_key_pair(reloaded, secret_store, cluster_store)
        assert again == values

    def test_existing_secret_used(self, cluster_store, secret_store):
        ssh_id = secret_store.store(ORG_ID, "mine", secrettype.SSH, {secrettype.SSH_PUBLIC_KEY: "ssh-rsa AAA"})
        cluster = cluster_store.create(make_create_params(ssh_secret_id=ssh_id))
        values = get_or_create_ssh_key_pair(cluster, secret_store, cluster_store)
        assert values == {secrettype.SSH_PUBLIC_KEY: "ssh-rsa AAA"}


class TestHandleClusterError:
    def test_status_set(self):
        store = MagicMock()
        handle_cluster_error(store, 1, ERROR, RuntimeError("boom"))
        store.set_status.assert_called_once_with(1, ERROR, "boom")

    def test_status_failure_logged(self, caplog):
        store = MagicMock()
        store.set_status.side_effect = RuntimeError("db down")
        handle_cluster_error(store, 1, ERROR, RuntimeError("boom"))
        assert "db down" in caplog.text


def test_default_node_template(cluster_store, secret_store, vsphere_secret_id):
    cluster = cluster_store.create(make_create_params(secret_id=vsphere_secret_id))
    assert default_node_template(secret_store, cluster) == "ubuntu-template"
