"""Tests for pke_vsphere.store: cluster records, status history and the workflow slot."""

from __future__ import annotations

import pytest

from conftest import ORG_ID, make_create_params, make_pool
from pke_vsphere.errors import (
    ClusterAlreadyExistsError,
    ClusterNotFoundError,
    NodePoolNotFoundError,
    StoreError,
    WorkflowConflictError,
    is_not_found,
)
from pke_vsphere.store.models import (
    CREATING,
    CREATING_MESSAGE,
    ERROR,
    RUNNING,
    RUNNING_MESSAGE,
    get_vm_name,
)


class TestGetVMName:
    def test_zero_padded_index(self):
        assert get_vm_name("c", "pool", 3) == "c-pool-03"

    def test_two_digit_index(self):
        assert get_vm_name("demo", "workers", 12) == "demo-workers-12"


class TestCreate:
    def test_create_persists_cluster_and_pools(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        assert cluster.id > 0
        assert cluster.uid
        assert cluster.status == CREATING
        assert cluster.status_message == CREATING_MESSAGE
        assert cluster.active_workflow_id == ""
        assert [np.name for np in cluster.node_pools] == ["master", "workers"]

        loaded = cluster_store.get_by_id(cluster.id)
        assert loaded.name == "demo"
        assert loaded.organization_id == ORG_ID
        assert loaded.kubernetes.version == "1.15.3"
        assert loaded.node_pools[1].size == 2

    def test_vm_names_split_by_role(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        assert cluster.master_vm_names() == ["demo-master-01"]
        assert cluster.worker_vm_names() == ["demo-workers-01", "demo-workers-02"]

    def test_duplicate_name_in_organization(self, cluster_store):
        cluster_store.create(make_create_params())
        assert cluster_store.exists(ORG_ID, "demo")
        assert not cluster_store.exists(ORG_ID + 1, "demo")

        with pytest.raises(ClusterAlreadyExistsError):
            cluster_store.create(make_create_params())

        cluster_store.create(make_create_params(name="demo2"))

    def test_get_missing_cluster_is_not_found(self, cluster_store):
        with pytest.raises(ClusterNotFoundError) as exc_info:
            cluster_store.get_by_id(999)
        assert is_not_found(exc_info.value)

    def test_cluster_id_zero_rejected(self, cluster_store):
        with pytest.raises(StoreError):
            cluster_store.get_by_id(0)

    def test_delete(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.delete(cluster.id)
        with pytest.raises(ClusterNotFoundError):
            cluster_store.get_by_id(cluster.id)


class TestSetStatus:
    def test_status_change_recorded_in_history(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.set_status(cluster.id, RUNNING, RUNNING_MESSAGE)

        assert cluster_store.get_by_id(cluster.id).status == RUNNING
        history = cluster_store.status_history(cluster.id)
        assert len(history) == 1
        assert history[0].from_status == CREATING
        assert history[0].to_status == RUNNING
        assert history[0].to_status_message == RUNNING_MESSAGE

    def test_repeating_status_adds_one_history_row(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.set_status(cluster.id, ERROR, "boom")
        cluster_store.set_status(cluster.id, ERROR, "boom")
        assert len(cluster_store.status_history(cluster.id)) == 1

    def test_same_status_new_message_is_recorded(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.set_status(cluster.id, CREATING, "waiting for Kubernetes master")
        assert len(cluster_store.status_history(cluster.id)) == 1

    def test_missing_cluster(self, cluster_store):
        with pytest.raises(ClusterNotFoundError):
            cluster_store.set_status(42, RUNNING, RUNNING_MESSAGE)


class TestActiveWorkflow:
    def test_acquire_when_idle(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.acquire_active_workflow(cluster.id, "wf-1")
        assert cluster_store.get_by_id(cluster.id).active_workflow_id == "wf-1"

    def test_acquire_conflict(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.acquire_active_workflow(cluster.id, "wf-1")
        with pytest.raises(WorkflowConflictError) as exc_info:
            cluster_store.acquire_active_workflow(cluster.id, "wf-2")
        assert exc_info.value.active_workflow_id == "wf-1"
        assert cluster_store.get_by_id(cluster.id).active_workflow_id == "wf-1"

    def test_acquire_with_expected_owner(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.acquire_active_workflow(cluster.id, "wf-1")
        cluster_store.acquire_active_workflow(cluster.id, "wf-2", expected="wf-1")
        assert cluster_store.get_by_id(cluster.id).active_workflow_id == "wf-2"

    def test_release(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.acquire_active_workflow(cluster.id, "wf-1")
        cluster_store.set_active_workflow_id(cluster.id, "")
        cluster_store.acquire_active_workflow(cluster.id, "wf-2")

    def test_acquire_missing_cluster(self, cluster_store):
        with pytest.raises(ClusterNotFoundError):
            cluster_store.acquire_active_workflow(5, "wf-1")


class TestSecretIDs:
    def test_config_secret_id(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.set_config_secret_id(cluster.id, "kubeconfig-id")
        assert cluster_store.get_config_secret_id(cluster.id) == "kubeconfig-id"
        assert cluster_store.get_by_id(cluster.id).config_secret_id == "kubeconfig-id"

    def test_ssh_secret_id(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.set_ssh_secret_id(cluster.id, "ssh-id")
        assert cluster_store.get_by_id(cluster.id).ssh_secret_id == "ssh-id"


class TestNodePools:
    def test_create_node_pool(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.create_node_pool(cluster.id, make_pool("extra", size=3))
        names = [np.name for np in cluster_store.get_by_id(cluster.id).node_pools]
        assert names == ["master", "workers", "extra"]

    def test_update_node_pool_size(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.update_node_pool_size(cluster.id, "workers", 5)
        assert cluster_store.get_by_id(cluster.id).node_pool("workers").size == 5

    def test_delete_node_pool(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        cluster_store.delete_node_pool(cluster.id, "workers")
        assert cluster_store.get_by_id(cluster.id).node_pool("workers") is None

    def test_missing_node_pool_is_not_found(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        with pytest.raises(NodePoolNotFoundError) as exc_info:
            cluster_store.delete_node_pool(cluster.id, "nope")
        assert is_not_found(exc_info.value)

    def test_empty_node_pool_name(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        with pytest.raises(StoreError):
            cluster_store.update_node_pool_size(cluster.id, "", 1)
