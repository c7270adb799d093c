"""Workflow and activity payloads.

Everything that crosses the Temporal boundary is a dataclass so the default
data converter can serialize it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List

MASTER_SCRIPT = "master"
WORKER_SCRIPT = "worker"


@dataclass
class ScriptParams:
    """Values substituted into a node bootstrap script.

    ``kind`` selects the master or the worker script.  Every field is a
    string; an unset field renders as an empty string.
    """

    kind: str = WORKER_SCRIPT
    cluster_id: str = ""
    cluster_name: str = ""
    org_id: str = ""
    node_pool_name: str = ""
    pipeline_url: str = ""
    pipeline_url_insecure: str = ""
    pke_version: str = ""
    kubernetes_version: str = ""
    kubernetes_master_mode: str = ""
    taints: str = ""
    public_address: str = ""
    http_proxy: str = ""
    https_proxy: str = ""
    no_proxy: str = ""
    oidc_issuer_url: str = ""
    oidc_client_id: str = ""
    lb_range: str = ""

    def with_proxy(self, proxy: "HTTPProxySettings") -> "ScriptParams":
        return replace(self, http_proxy=proxy.http_proxy_url, https_proxy=proxy.https_proxy_url)


@dataclass
class Node:
    name: str
    node_pool_name: str = ""
    master: bool = False
    vcpu: int = 0
    ram_mb: int = 0
    template_name: str = ""
    admin_username: str = ""
    ssh_public_key: str = ""
    script: ScriptParams = field(default_factory=ScriptParams)


@dataclass
class NodePoolRef:
    name: str
    size: int = 0


@dataclass
class ProxyOptions:
    host_port: str = ""
    scheme: str = ""
    secret_id: str = ""


@dataclass
class HTTPProxyConfig:
    http: ProxyOptions = field(default_factory=ProxyOptions)
    https: ProxyOptions = field(default_factory=ProxyOptions)


@dataclass
class HTTPProxySettings:
    http_proxy_url: str = ""
    https_proxy_url: str = ""


# ---------------------------------------------------------------------------
# Activity inputs
# ---------------------------------------------------------------------------


@dataclass
class CreateNodeInput:
    organization_id: int
    cluster_id: int
    secret_id: str
    cluster_name: str
    node: Node
    resource_pool_name: str = ""
    folder_name: str = ""
    datastore_name: str = ""


@dataclass
class DeleteNodeInput:
    organization_id: int
    secret_id: str
    cluster_name: str
    node_name: str


@dataclass
class DeleteK8sNodeInput:
    organization_id: int
    cluster_name: str
    k8s_secret_id: str
    name: str


@dataclass
class GetPublicAddressInput:
    organization_id: int
    secret_id: str
    node_name: str


@dataclass
class WaitForIPInput:
    organization_id: int
    secret_id: str
    cluster_name: str
    ref: str


@dataclass
class SetClusterStatusInput:
    cluster_id: int
    status: str
    status_message: str


@dataclass
class GenerateCertificatesInput:
    organization_id: int
    cluster_id: int
    cluster_uid: str


@dataclass
class OIDCClientInput:
    organization_id: int
    cluster_id: int
    cluster_uid: str


@dataclass
class AssembleHTTPProxySettingsInput:
    organization_id: int
    http: ProxyOptions = field(default_factory=ProxyOptions)
    https: ProxyOptions = field(default_factory=ProxyOptions)


@dataclass
class DownloadK8sConfigInput:
    organization_id: int
    cluster_id: int


@dataclass
class SetConfigSecretIDInput:
    cluster_id: int
    secret_id: str


@dataclass
class ConfigureNodePoolLabelsInput:
    organization_id: int
    config_secret_id: str
    labels: Dict[str, Dict[str, str]] = field(default_factory=dict)


@dataclass
class CreateSystemNamespaceInput:
    organization_id: int
    config_secret_id: str
    namespace: str = "pipeline-system"


@dataclass
class LabelKubeSystemNamespaceInput:
    organization_id: int
    config_secret_id: str


@dataclass
class ConfigureRBACInput:
    organization_id: int
    config_secret_id: str
    namespace: str = "pipeline-system"


@dataclass
class DeleteK8sResourcesInput:
    organization_id: int
    config_secret_id: str


@dataclass
class DeleteUnusedSecretsInput:
    organization_id: int
    cluster_id: int
    cluster_uid: str


@dataclass
class DeleteClusterRecordInput:
    cluster_id: int


@dataclass
class DeleteNodePoolRecordInput:
    cluster_id: int
    node_pool_name: str


# ---------------------------------------------------------------------------
# Workflow inputs
# ---------------------------------------------------------------------------


@dataclass
class CreateClusterWorkflowInput:
    organization_id: int
    cluster_id: int
    cluster_uid: str
    cluster_name: str
    secret_id: str
    nodes: List[Node] = field(default_factory=list)
    oidc_enabled: bool = False
    rbac_enabled: bool = False
    http_proxy: HTTPProxyConfig = field(default_factory=HTTPProxyConfig)
    node_pool_labels: Dict[str, Dict[str, str]] = field(default_factory=dict)
    resource_pool_name: str = ""
    folder_name: str = ""
    datastore_name: str = ""
    master_ready_timeout: int = 3600


@dataclass
class UpdateClusterWorkflowInput:
    organization_id: int
    cluster_id: int
    cluster_uid: str
    cluster_name: str
    secret_id: str
    k8s_secret_id: str
    master_node_names: List[str] = field(default_factory=list)
    nodes_to_create: List[Node] = field(default_factory=list)
    nodes_to_delete: List[str] = field(default_factory=list)
    node_pools_to_delete: List[NodePoolRef] = field(default_factory=list)
    http_proxy: HTTPProxyConfig = field(default_factory=HTTPProxyConfig)
    node_pool_labels: Dict[str, Dict[str, str]] = field(default_factory=dict)
    resource_pool_name: str = ""
    folder_name: str = ""
    datastore_name: str = ""


@dataclass
class DeleteClusterWorkflowInput:
    organization_id: int
    cluster_id: int
    cluster_uid: str
    cluster_name: str
    secret_id: str
    k8s_secret_id: str = ""
    forced: bool = False
    oidc_enabled: bool = False
    master_node_names: List[str] = field(default_factory=list)
    #: Worker VM names; masters are listed in master_node_names.
    node_names: List[str] = field(default_factory=list)


@dataclass
class DeleteNodePoolWorkflowInput:
    organization_id: int
    cluster_id: int
    cluster_name: str
    secret_id: str
    k8s_secret_id: str
    node_pool: NodePoolRef


@dataclass
class ClusterSetupWorkflowInput:
    organization_id: int
    cluster_id: int
    cluster_uid: str
    cluster_name: str
    config_secret_id: str
    node_pool_labels: Dict[str, Dict[str, str]] = field(default_factory=dict)
    rbac_enabled: bool = False


@dataclass
class DeleteK8sResourcesWorkflowInput:
    organization_id: int
    cluster_id: int
    config_secret_id: str
