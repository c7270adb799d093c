"""Driver request parameters."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from pke_vsphere.store.models import HTTPProxy, Kubernetes, NodePool


class ClusterCreationParams(BaseModel):
    name: str = ""
    organization_id: int = 0
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


class ClusterUpdateParams(BaseModel):
    cluster_id: int = 0
    node_pools: List[NodePool] = Field(default_factory=list)
