"""Tests for pke_vsphere.driver.preparers."""

from __future__ import annotations

import pytest

from conftest import ORG_ID, make_create_params, make_pool
from pke_vsphere.driver.params import ClusterCreationParams, ClusterUpdateParams
from pke_vsphere.driver.preparers import (
    DEFAULT_NETWORK_PROVIDER,
    DEFAULT_POD_CIDR,
    DEFAULT_SERVICE_CIDR,
    ClusterCreationParamsPreparer,
    ClusterUpdateParamsPreparer,
    KubernetesPreparer,
    NodePoolPreparer,
    NodePoolsPreparer,
    validate_ram,
)
from pke_vsphere.errors import ValidationError
from pke_vsphere.secret import store as secrettype
from pke_vsphere.store.models import MAX_RAM_MIB, ROLE_MASTER, ROLE_WORKER, Kubernetes


def _make_creation_params(**overrides) -> ClusterCreationParams:
    fields = {
        "name": "demo",
        "organization_id": ORG_ID,
        "secret_id": "vsphere-secret",
        "kubernetes": Kubernetes(version="1.15.3"),
        "node_pools": [
            make_pool("master", roles=[ROLE_MASTER], size=1),
            make_pool("workers", size=2),
        ],
    }
    fields.update(overrides)
    return ClusterCreationParams(**fields)


def _prepare_pool(pool, existing=None):
    NodePoolPreparer("pool", lambda name: existing).prepare(pool)
    return pool


# ---------------------------------------------------------------------------
# RAM bounds
# ---------------------------------------------------------------------------


class TestValidateRAM:
    @pytest.mark.parametrize("ram", [4, 1024, MAX_RAM_MIB])
    def test_accepted(self, ram):
        validate_ram("pool", ram)

    @pytest.mark.parametrize("ram", [3, 6, MAX_RAM_MIB + 4])
    def test_rejected(self, ram):
        with pytest.raises(ValidationError):
            validate_ram("pool", ram)


# ---------------------------------------------------------------------------
# Node pools
# ---------------------------------------------------------------------------


class TestNodePoolPreparer:
    def test_name_required(self):
        with pytest.raises(ValidationError, match="name must be specified"):
            _prepare_pool(make_pool(name=""))

    def test_new_pool_requires_ram(self):
        with pytest.raises(ValidationError, match="ram must be specified"):
            _prepare_pool(make_pool(ram=0))

    def test_new_pool_defaults_to_worker(self):
        pool = _prepare_pool(make_pool(roles=[]))
        assert pool.roles == [ROLE_WORKER]

    def test_unknown_role(self):
        with pytest.raises(ValidationError, match="unknown roles: bogus"):
            _prepare_pool(make_pool(roles=["bogus"]))

    def test_master_size_zero_raised_to_one(self):
        pool = _prepare_pool(make_pool(roles=[ROLE_MASTER], size=0))
        assert pool.size == 1

    def test_worker_size_zero_kept(self):
        pool = _prepare_pool(make_pool(size=0))
        assert pool.size == 0

    def test_existing_pool_keeps_persisted_shape(self):
        existing = make_pool("workers", size=2, ram=2048, vcpu=4, template_name="ubuntu", admin_username="ubuntu")
        incoming = make_pool("workers", roles=[ROLE_MASTER], size=5, ram=4096, vcpu=8, template_name="other")
        _prepare_pool(incoming, existing)

        assert incoming.size == 5
        assert incoming.ram == 2048
        assert incoming.vcpu == 4
        assert incoming.template_name == "ubuntu"
        assert incoming.admin_username == "ubuntu"
        assert incoming.roles == [ROLE_WORKER]

    def test_existing_pool_needs_no_ram(self):
        existing = make_pool("workers", ram=2048)
        pool = _prepare_pool(make_pool("workers", ram=0, roles=[]), existing)
        assert pool.ram == 2048
        assert pool.roles == [ROLE_WORKER]

    def test_prepare_is_idempotent(self):
        pool = _prepare_pool(make_pool(roles=[ROLE_MASTER], size=0))
        before = pool.model_dump()
        _prepare_pool(pool)
        assert pool.model_dump() == before


class TestNodePoolsPreparer:
    def test_duplicate_names(self):
        with pytest.raises(ValidationError, match="multiple node pools named 'a'"):
            NodePoolsPreparer().prepare([make_pool("a"), make_pool("a")])

    def test_error_names_the_pool_index(self):
        with pytest.raises(ValidationError, match=r"node_pools\[1\]\.ram"):
            NodePoolsPreparer().prepare([make_pool("a"), make_pool("b", ram=6)])


# ---------------------------------------------------------------------------
# Kubernetes
# ---------------------------------------------------------------------------


class TestKubernetesPreparer:
    def test_defaults(self):
        k8s = Kubernetes(version="1.15.3")
        KubernetesPreparer().prepare(k8s)
        assert k8s.network.service_cidr == DEFAULT_SERVICE_CIDR
        assert k8s.network.pod_cidr == DEFAULT_POD_CIDR
        assert k8s.network.provider == DEFAULT_NETWORK_PROVIDER

    def test_version_required(self):
        with pytest.raises(ValidationError, match="version must be specified"):
            KubernetesPreparer().prepare(Kubernetes())

    @pytest.mark.parametrize("version", ["1.15", "v1.16.2"])
    def test_valid_versions(self, version):
        KubernetesPreparer().prepare(Kubernetes(version=version))

    def test_invalid_version(self):
        with pytest.raises(ValidationError):
            KubernetesPreparer().prepare(Kubernetes(version="latest"))


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestClusterCreationParamsPreparer:
    def test_valid_request(self):
        params = _make_creation_params()
        ClusterCreationParamsPreparer().prepare(params)
        assert params.node_pools[1].roles == [ROLE_WORKER]

    @pytest.mark.parametrize("name", ["", "Demo", "-demo", "a" * 64, "demo_1"])
    def test_invalid_names(self, name):
        with pytest.raises(ValidationError):
            ClusterCreationParamsPreparer().prepare(_make_creation_params(name=name))

    def test_organization_required(self):
        with pytest.raises(ValidationError, match="organization_id"):
            ClusterCreationParamsPreparer().prepare(_make_creation_params(organization_id=0))

    def test_secret_required(self):
        with pytest.raises(ValidationError, match="secret_id"):
            ClusterCreationParamsPreparer().prepare(_make_creation_params(secret_id=""))

    def test_master_required(self):
        params = _make_creation_params(node_pools=[make_pool("workers", size=2)])
        with pytest.raises(ValidationError, match="master"):
            ClusterCreationParamsPreparer().prepare(params)

    def test_secret_checked_against_store(self, secret_store, vsphere_secret_id):
        ClusterCreationParamsPreparer(secret_store).prepare(_make_creation_params(secret_id=vsphere_secret_id))

        with pytest.raises(ValidationError, match="not found"):
            ClusterCreationParamsPreparer(secret_store).prepare(_make_creation_params(secret_id="missing"))

    def test_secret_type_checked(self, secret_store):
        ssh_id = secret_store.store(ORG_ID, "ssh", secrettype.SSH, {})
        with pytest.raises(ValidationError, match="must be of type vsphere"):
            ClusterCreationParamsPreparer(secret_store).prepare(_make_creation_params(secret_id=ssh_id))

    def test_name_unique_within_organization(self, cluster_store):
        cluster_store.create(make_create_params(name="demo"))

        with pytest.raises(ValidationError, match="already exists"):
            ClusterCreationParamsPreparer(store=cluster_store).prepare(_make_creation_params(name="demo"))

        ClusterCreationParamsPreparer(store=cluster_store).prepare(_make_creation_params(name="demo2"))
        ClusterCreationParamsPreparer(store=cluster_store).prepare(
            _make_creation_params(name="demo", organization_id=ORG_ID + 1)
        )


class TestClusterUpdateParamsPreparer:
    def test_missing_cluster(self, cluster_store):
        with pytest.raises(ValidationError, match="existing cluster"):
            ClusterUpdateParamsPreparer(cluster_store).prepare(ClusterUpdateParams(cluster_id=99))

    def test_cluster_id_required(self, cluster_store):
        with pytest.raises(ValidationError):
            ClusterUpdateParamsPreparer(cluster_store).prepare(ClusterUpdateParams())

    def test_existing_pools_keep_shape(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        params = ClusterUpdateParams(
            cluster_id=cluster.id,
            node_pools=[
                make_pool("master", roles=[], size=1, ram=0),
                make_pool("workers", roles=[], size=4, ram=0),
                make_pool("extra", size=1),
            ],
        )
        returned = ClusterUpdateParamsPreparer(cluster_store).prepare(params)

        assert returned.id == cluster.id
        assert params.node_pools[0].roles == [ROLE_MASTER]
        assert params.node_pools[1].ram == 1024
        assert params.node_pools[1].template_name == "ubuntu"
        assert params.node_pools[2].roles == [ROLE_WORKER]

    def test_master_resize_rejected(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        params = ClusterUpdateParams(
            cluster_id=cluster.id,
            node_pools=[make_pool("master", roles=[], size=3, ram=0), make_pool("workers", roles=[], size=2, ram=0)],
        )
        with pytest.raises(ValidationError, match=r"node_pools\[0\].size"):
            ClusterUpdateParamsPreparer(cluster_store).prepare(params)

    def test_new_master_pool_rejected(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        params = ClusterUpdateParams(
            cluster_id=cluster.id,
            node_pools=[
                make_pool("master", roles=[], size=1, ram=0),
                make_pool("masters-2", roles=[ROLE_MASTER], size=1),
            ],
        )
        with pytest.raises(ValidationError, match="cannot be added"):
            ClusterUpdateParamsPreparer(cluster_store).prepare(params)

    def test_master_pool_required(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        params = ClusterUpdateParams(cluster_id=cluster.id, node_pools=[make_pool("workers", roles=[], ram=0)])
        with pytest.raises(ValidationError, match="'master' cannot be removed"):
            ClusterUpdateParamsPreparer(cluster_store).prepare(params)

    def test_master_size_omitted_keeps_single_master(self, cluster_store):
        cluster = cluster_store.create(make_create_params())
        params = ClusterUpdateParams(cluster_id=cluster.id, node_pools=[make_pool("master", roles=[], size=0, ram=0)])
        ClusterUpdateParamsPreparer(cluster_store).prepare(params)
        assert params.node_pools[0].size == 1
