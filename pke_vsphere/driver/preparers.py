"""Request validation and defaulting.

Preparers run before any side effect.  They mutate the request in place,
filling in defaults, and raise :class:`~pke_vsphere.errors.ValidationError`
for anything that cannot be fixed up.

Node pool rules, applied per pool in request order:

1. names must be unique within the request
2. name is required; RAM, when given, must be a multiple of 4 within
   ``[MIN_RAM_MIB, MAX_RAM_MIB]``
3. a master pool never has size 0 (it is bumped to 1)
4. a new pool without roles becomes a worker pool
5. an existing pool keeps its persisted creator, roles, shape, template
   and admin user; incoming values that disagree are logged and ignored

Cluster name must be unused within the organization.  Updates cannot touch
master pools, see :class:`ClusterUpdateParamsPreparer`.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, List, Optional

from pke_vsphere.errors import SecretNotFoundError, ValidationError, is_not_found
from pke_vsphere.secret import store as secrettype
from pke_vsphere.secret.store import SecretStore
from pke_vsphere.store.models import (
    ALL_ROLES,
    MAX_RAM_MIB,
    MIN_RAM_MIB,
    ROLE_WORKER,
    Cluster,
    Kubernetes,
    NodePool,
)
from pke_vsphere.driver.params import ClusterCreationParams, ClusterUpdateParams

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_CIDR = "10.10.0.0/16"
DEFAULT_POD_CIDR = "10.20.0.0/16"
DEFAULT_NETWORK_PROVIDER = "calico"

_DNS1123_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_VERSION = re.compile(r"^v?\d+\.\d+(\.\d+)?$")


def validation_error(fmt: str, *args: Any) -> ValidationError:
    return ValidationError(fmt % args if args else fmt)


def log_mismatch(namespace: str, field: str, current: Any, incoming: Any) -> None:
    logger.warning(
        "%s.%s does not match the existing value and is ignored (existing=%r, incoming=%r)",
        namespace,
        field,
        current,
        incoming,
    )


# ---------------------------------------------------------------------------
# Kubernetes settings
# ---------------------------------------------------------------------------


class KubernetesPreparer:
    def __init__(self, namespace: str = "kubernetes") -> None:
        self.namespace = namespace

    def prepare(self, k8s: Kubernetes) -> None:
        if not k8s.version:
            raise validation_error("%s.version must be specified", self.namespace)
        if not _VERSION.match(k8s.version):
            raise validation_error("%s.version %r is not a valid version", self.namespace, k8s.version)

        net = k8s.network
        if not net.service_cidr:
            net.service_cidr = DEFAULT_SERVICE_CIDR
            logger.debug("%s.network.service_cidr not specified, defaulting to %s", self.namespace, net.service_cidr)
        if not net.pod_cidr:
            net.pod_cidr = DEFAULT_POD_CIDR
            logger.debug("%s.network.pod_cidr not specified, defaulting to %s", self.namespace, net.pod_cidr)
        if not net.provider:
            net.provider = DEFAULT_NETWORK_PROVIDER
            logger.debug("%s.network.provider not specified, defaulting to %s", self.namespace, net.provider)


# ---------------------------------------------------------------------------
# Node pools
# ---------------------------------------------------------------------------

ExistingPoolLookup = Callable[[str], Optional[NodePool]]


def _no_existing_pools(name: str) -> Optional[NodePool]:
    return None


class NodePoolPreparer:
    def __init__(self, namespace: str, existing: ExistingPoolLookup) -> None:
        self.namespace = namespace
        self.existing = existing

    def prepare(self, pool: NodePool) -> None:
        if not pool.name:
            raise validation_error("%s.name must be specified", self.namespace)

        if pool.ram:
            validate_ram(self.namespace, pool.ram)

        unknown = set(pool.roles) - ALL_ROLES
        if unknown:
            raise validation_error("%s.roles contains unknown roles: %s", self.namespace, ", ".join(sorted(unknown)))

        existing = self.existing(pool.name)
        if existing is None:
            self._prepare_new(pool)
        else:
            self._prepare_existing(pool, existing)

        if pool.is_master and pool.size == 0:
            pool.size = 1
            logger.debug("%s is a master node pool, size raised from 0 to 1", self.namespace)

    def _prepare_new(self, pool: NodePool) -> None:
        if not pool.ram:
            raise validation_error("%s.ram must be specified", self.namespace)
        if not pool.roles:
            pool.roles = [ROLE_WORKER]
            logger.debug("%s.roles not specified, defaulting to %s", self.namespace, pool.roles)

    def _prepare_existing(self, pool: NodePool, existing: NodePool) -> None:
        for field in ("created_by", "ram", "vcpu", "template_name", "admin_username"):
            incoming = getattr(pool, field)
            current = getattr(existing, field)
            if incoming != current:
                if incoming:
                    log_mismatch(self.namespace, field, current, incoming)
                setattr(pool, field, current)

        if set(pool.roles) != set(existing.roles):
            if pool.roles:
                log_mismatch(self.namespace, "roles", existing.roles, pool.roles)
            pool.roles = list(existing.roles)


def validate_ram(namespace: str, ram: int) -> None:
    if ram < MIN_RAM_MIB or ram > MAX_RAM_MIB:
        raise validation_error(
            "%s.ram must be between %d and %d MiB, got %d", namespace, MIN_RAM_MIB, MAX_RAM_MIB, ram
        )
    if ram % 4:
        raise validation_error("%s.ram must be a multiple of 4, got %d", namespace, ram)


class NodePoolsPreparer:
    def __init__(self, existing: ExistingPoolLookup = _no_existing_pools, namespace: str = "node_pools") -> None:
        self.existing = existing
        self.namespace = namespace

    def prepare(self, pools: List[NodePool]) -> None:
        names = set()
        for i, pool in enumerate(pools):
            if pool.name in names:
                raise validation_error("multiple node pools named %r", pool.name)
            names.add(pool.name)
            NodePoolPreparer(f"{self.namespace}[{i}]", self.existing).prepare(pool)


# ---------------------------------------------------------------------------
# Cluster requests
# ---------------------------------------------------------------------------


def _check_secret(secrets: SecretStore, organization_id: int, secret_id: str, expected_type: str, what: str) -> None:
    try:
        secret = secrets.get(organization_id, secret_id)
    except SecretNotFoundError:
        raise validation_error("%s %r not found", what, secret_id) from None
    if secret.type != expected_type:
        raise validation_error("%s %r must be of type %s, got %s", what, secret_id, expected_type, secret.type)


class ClusterCreationParamsPreparer:
    def __init__(self, secrets: Optional[SecretStore] = None, store=None) -> None:
        self.secrets = secrets
        self.store = store
        self.k8s_preparer = KubernetesPreparer()

    def prepare(self, params: ClusterCreationParams) -> None:
        if not params.name:
            raise validation_error("name cannot be empty")
        if len(params.name) > 63 or not _DNS1123_LABEL.match(params.name):
            raise validation_error("name %r must be a valid DNS-1123 label", params.name)
        if params.organization_id == 0:
            raise validation_error("organization_id cannot be 0")
        if self.store is not None and self.store.exists(params.organization_id, params.name):
            raise validation_error("a cluster named %r already exists", params.name)
        if not params.secret_id:
            raise validation_error("secret_id cannot be empty")

        if self.secrets is not None:
            _check_secret(self.secrets, params.organization_id, params.secret_id, secrettype.VSPHERE, "secret")
            if params.ssh_secret_id:
                _check_secret(self.secrets, params.organization_id, params.ssh_secret_id, secrettype.SSH, "SSH secret")

        self.k8s_preparer.prepare(params.kubernetes)
        NodePoolsPreparer().prepare(params.node_pools)

        if not any(np.is_master for np in params.node_pools):
            raise validation_error("at least one master node pool is required")


class ClusterUpdateParamsPreparer:
    """Validates update requests.

    Master pools keep the set and sizes they were created with.
    """

    def __init__(self, store) -> None:
        self.store = store

    def prepare(self, params: ClusterUpdateParams) -> Cluster:
        """Validate *params* and return the cluster they refer to."""
        if params.cluster_id == 0:
            raise validation_error("cluster_id cannot be 0")
        try:
            cluster = self.store.get_by_id(params.cluster_id)
        except Exception as exc:
            if is_not_found(exc):
                raise validation_error("cluster_id must refer to an existing cluster") from exc
            raise

        NodePoolsPreparer(cluster.node_pool).prepare(params.node_pools)

        incoming = {np.name: np for np in params.node_pools}
        for i, np in enumerate(params.node_pools):
            if not np.is_master:
                continue
            existing = cluster.node_pool(np.name)
            if existing is None:
                raise validation_error("node_pools[%d]: master node pools cannot be added to an existing cluster", i)
            if np.size != existing.size:
                raise validation_error(
                    "node_pools[%d].size: master node pool %r cannot be resized from %d to %d",
                    i,
                    np.name,
                    existing.size,
                    np.size,
                )

        for existing in cluster.node_pools:
            if existing.is_master and existing.name not in incoming:
                raise validation_error("master node pool %r cannot be removed", existing.name)

        return cluster
