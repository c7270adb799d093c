"""Cluster and node pool entities.

These are the values handed out by :class:`~pke_vsphere.store.cluster_store.SQLClusterStore`.
They are plain pydantic models; mutation always goes back through the store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

CREATING = "CREATING"
RUNNING = "RUNNING"
UPDATING = "UPDATING"
DELETING = "DELETING"
ERROR = "ERROR"
WARNING = "WARNING"

CREATING_MESSAGE = "Cluster creation is in progress"
RUNNING_MESSAGE = "Cluster is running"
UPDATING_MESSAGE = "Update is in progress"
DELETING_MESSAGE = "Termination is in progress"

#: Statuses in which no workflow owns the cluster.
IDLE_STATUSES = frozenset({RUNNING, ERROR, WARNING})

# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

ROLE_MASTER = "master"
ROLE_WORKER = "worker"
ROLE_PIPELINE_SYSTEM = "pipeline-system"

ALL_ROLES = frozenset({ROLE_MASTER, ROLE_WORKER, ROLE_PIPELINE_SYSTEM})

#: Largest VM memory vSphere 6.7 accepts, in MiB.
MAX_RAM_MIB = 6_275_072
MIN_RAM_MIB = 4


def get_vm_name(cluster_name: str, node_pool_name: str, index: int) -> str:
    """Return the VM name of the *index*-th (1-based) node of a pool."""
    return f"{cluster_name}-{node_pool_name}-{index:02d}"


# ---------------------------------------------------------------------------
# Kubernetes / proxy settings
# ---------------------------------------------------------------------------


class Network(BaseModel):
    service_cidr: str = ""
    pod_cidr: str = ""
    provider: str = ""


class Kubernetes(BaseModel):
    version: str = ""
    rbac: bool = True
    oidc: bool = False
    network: Network = Field(default_factory=Network)


class HTTPProxyOptions(BaseModel):
    host: str = ""
    port: int = 0
    scheme: str = ""
    secret_id: str = ""

    def host_port(self) -> str:
        if not self.host:
            return ""
        if not self.port:
            return self.host
        return f"{self.host}:{self.port}"


class HTTPProxy(BaseModel):
    http: HTTPProxyOptions = Field(default_factory=HTTPProxyOptions)
    https: HTTPProxyOptions = Field(default_factory=HTTPProxyOptions)
    exceptions: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Node pool
# ---------------------------------------------------------------------------


class NodePool(BaseModel):
    """A homogeneous group of VMs of one cluster.

    ``labels`` only travels with requests; it is applied to the Kubernetes
    nodes by the workflows and is not persisted.
    """

    name: str = ""
    created_by: int = 0
    roles: List[str] = Field(default_factory=list)
    size: int = 0
    vcpu: int = 0
    ram: int = 0
    admin_username: str = ""
    template_name: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def is_master(self) -> bool:
        return self.has_role(ROLE_MASTER)

    def instance_type(self) -> str:
        return f"{self.vcpu}vcpu-{self.ram}mb"

    def vm_names(self, cluster_name: str) -> List[str]:
        return [get_vm_name(cluster_name, self.name, i) for i in range(1, self.size + 1)]


# ---------------------------------------------------------------------------
# Cluster
# ---------------------------------------------------------------------------


class Cluster(BaseModel):
    id: int = 0
    uid: str = ""
    name: str = ""
    organization_id: int = 0
    created_by: int = 0
    creation_time: Optional[datetime] = None

    status: str = ""
    status_message: str = ""

    secret_id: str = ""
    config_secret_id: str = ""
    ssh_secret_id: str = ""

    kubernetes: Kubernetes = Field(default_factory=Kubernetes)
    http_proxy: HTTPProxy = Field(default_factory=HTTPProxy)

    resource_pool: str = ""
    folder: str = ""
    datastore: str = ""
    load_balancer_ip_range: str = ""

    active_workflow_id: str = ""
    node_pools: List[NodePool] = Field(default_factory=list)

    def node_pool(self, name: str) -> Optional[NodePool]:
        for np in self.node_pools:
            if np.name == name:
                return np
        return None

    def master_vm_names(self) -> List[str]:
        names: List[str] = []
        for np in self.node_pools:
            if np.is_master:
                names.extend(np.vm_names(self.name))
        return names

    def worker_vm_names(self) -> List[str]:
        names: List[str] = []
        for np in self.node_pools:
            if not np.is_master:
                names.extend(np.vm_names(self.name))
        return names


class CreateParams(BaseModel):
    """Values persisted when a cluster record is first created."""

    name: str
    organization_id: int
    created_by: int = 0
    secret_id: str = ""
    ssh_secret_id: str = ""
    kubernetes: Kubernetes = Field(default_factory=Kubernetes)
    http_proxy: HTTPProxy = Field(default_factory=HTTPProxy)
    resource_pool: str = ""
    folder: str = ""
    datastore: str = ""
    load_balancer_ip_range: str = ""
    node_pools: List[NodePool] = Field(default_factory=list)


class StatusHistoryEntry(BaseModel):
    cluster_id: int
    cluster_name: str
    from_status: str
    from_status_message: str
    to_status: str
    to_status_message: str
    created_at: Optional[datetime] = None
