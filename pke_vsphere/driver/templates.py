"""Per-VM node templates and bootstrap scripts.

:class:`NodeTemplateFactory` turns ``(node pool, index)`` into the
:class:`~pke_vsphere.workflow.models.Node` request CreateNode consumes.  The
bootstrap script itself is only rendered inside the activity, because the
one-time join token must not be recorded in workflow history.
"""

from __future__ import annotations

import base64
import gzip
import logging
from dataclasses import asdict, dataclass
from string import Template
from typing import Dict

import yaml

from pke_vsphere.config.models import DEFAULT_PKE_VERSION
from pke_vsphere.store.models import ROLE_PIPELINE_SYSTEM, NodePool, get_vm_name
from pke_vsphere.workflow.models import MASTER_SCRIPT, WORKER_SCRIPT, Node, ScriptParams

logger = logging.getLogger(__name__)

MASTER_NODE_TAINT = "node-role.kubernetes.io/master:NoSchedule"
NODE_POOL_NAME_TAINT_KEY = "nodepool.banzaicloud.io/name"
NO_TAINTS = ","

DEFAULT_ADMIN_USERNAME = "banzaicloud"

MASTER_MODE_DEFAULT = "default"
MASTER_MODE_HA = "ha"

# ScriptParams field -> template placeholder
_PLACEHOLDERS = {
    "cluster_id": "ClusterID",
    "cluster_name": "ClusterName",
    "org_id": "OrgID",
    "node_pool_name": "NodePoolName",
    "pipeline_url": "PipelineURL",
    "pipeline_url_insecure": "PipelineURLInsecure",
    "pke_version": "PKEVersion",
    "kubernetes_version": "KubernetesVersion",
    "kubernetes_master_mode": "KubernetesMasterMode",
    "taints": "Taints",
    "public_address": "PublicAddress",
    "http_proxy": "HttpProxy",
    "https_proxy": "HttpsProxy",
    "no_proxy": "NoProxy",
    "oidc_issuer_url": "OIDCIssuerURL",
    "oidc_client_id": "OIDCClientID",
    "lb_range": "LBRange",
}

_SCRIPT_PREAMBLE = """#!/bin/sh
export HTTP_PROXY="${HttpProxy}"
export HTTPS_PROXY="${HttpsProxy}"
export NO_PROXY="${NoProxy}"

until curl -v https://banzaicloud.com/downloads/pke/pke-${PKEVersion} -o /usr/local/bin/pke; do sleep 10; done
chmod +x /usr/local/bin/pke
export PATH=$PATH:/usr/local/bin/

PRIVATE_IP=$(hostname -I | cut -d" " -f 1)
"""

MASTER_SCRIPT_TEMPLATE = _SCRIPT_PREAMBLE + """PUBLIC_ADDRESS="${PublicAddress}"
[ -z "$PUBLIC_ADDRESS" ] && PUBLIC_ADDRESS=$PRIVATE_IP

pke install master --pipeline-url="${PipelineURL}" \\
--pipeline-insecure="${PipelineURLInsecure}" \\
--pipeline-token="${PipelineToken}" \\
--pipeline-org-id=${OrgID} \\
--pipeline-cluster-id=${ClusterID} \\
--kubernetes-cluster-name=${ClusterName} \\
--pipeline-nodepool=${NodePoolName} \\
--taints=${Taints} \\
--kubernetes-advertise-address=$PRIVATE_IP:6443 \\
--kubernetes-api-server=$PUBLIC_ADDRESS:6443 \\
--kubernetes-infrastructure-cidr=$PRIVATE_IP/32 \\
--kubernetes-version=${KubernetesVersion} \\
--kubernetes-master-mode=${KubernetesMasterMode} \\
--kubernetes-api-server-cert-sans="$PUBLIC_ADDRESS\""""

WORKER_SCRIPT_TEMPLATE = _SCRIPT_PREAMBLE + """
pke install worker --pipeline-url="${PipelineURL}" \\
--pipeline-insecure="${PipelineURLInsecure}" \\
--pipeline-token="${PipelineToken}" \\
--pipeline-org-id=${OrgID} \\
--pipeline-cluster-id=${ClusterID} \\
--pipeline-nodepool=${NodePoolName} \\
--taints=${Taints} \\
--kubernetes-cloud-provider=vsphere \\
--kubernetes-api-server=${PublicAddress}:6443 \\
--kubernetes-infrastructure-cidr=$PRIVATE_IP/32 \\
--kubernetes-version=${KubernetesVersion} \\
--kubernetes-pod-network-cidr="\""""

_TEMPLATES = {
    MASTER_SCRIPT: Template(MASTER_SCRIPT_TEMPLATE),
    WORKER_SCRIPT: Template(WORKER_SCRIPT_TEMPLATE),
}


def render_script(params: ScriptParams, token: str) -> str:
    """Render the bootstrap script selected by ``params.kind``.

    Shell variables in the templates are not placeholders and pass through
    untouched.
    """
    try:
        template = _TEMPLATES[params.kind]
    except KeyError:
        raise ValueError(f"unknown script kind {params.kind!r}") from None

    values = {_PLACEHOLDERS[k]: v for k, v in asdict(params).items() if k in _PLACEHOLDERS}
    values["PipelineToken"] = token
    script = template.safe_substitute(values)

    if params.kind == MASTER_SCRIPT:
        extra = []
        if params.oidc_issuer_url:
            extra.append(f'--kubernetes-oidc-issuer-url="{params.oidc_issuer_url}"')
            extra.append(f'--kubernetes-oidc-client-id="{params.oidc_client_id}"')
        if params.lb_range:
            extra.append(f"--lb-range={params.lb_range}")
        if extra:
            script += " \\\n" + " \\\n".join(extra)
    return script


def build_cloud_config(user: str, public_key: str, script: str) -> str:
    """Wrap *script* into a ``#cloud-config`` document.

    The admin user (default ``banzaicloud``) is only declared when there is
    a public key to authorize.
    """
    data: Dict[str, object] = {"runcmd": [script]}
    if public_key:
        data["users"] = [{"name": user or DEFAULT_ADMIN_USERNAME, "ssh-authorized-keys": [public_key]}]
    return "#cloud-config\n" + yaml.safe_dump(data, default_flow_style=False)


def encode_guestinfo(data: str) -> str:
    return base64.b64encode(gzip.compress(data.encode("utf-8"))).decode("ascii")


def guestinfo_extra_config(userdata: str, cluster_name: str, node_pool_name: str) -> Dict[str, str]:
    return {
        "disk.enableUUID": "true",
        "guestinfo.userdata.encoding": "gzip+base64",
        "guestinfo.userdata": encode_guestinfo(userdata),
        "guestinfo.pke.cluster": cluster_name,
        "guestinfo.pke.nodepool": node_pool_name,
    }


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@dataclass
class NodeTemplateFactory:
    cluster_id: int
    cluster_name: str
    organization_id: int
    kubernetes_version: str
    pipeline_external_url: str = ""
    pipeline_external_url_insecure: bool = False
    pke_version: str = DEFAULT_PKE_VERSION
    single_node_pool: bool = False
    ssh_public_key: str = ""
    no_proxy: str = ""
    oidc_issuer_url: str = ""
    oidc_client_id: str = ""
    load_balancer_ip_range: str = ""

    def taints(self, pool: NodePool) -> str:
        if pool.is_master:
            # a lone pool must accept workloads on its masters
            return NO_TAINTS if self.single_node_pool else MASTER_NODE_TAINT
        if pool.has_role(ROLE_PIPELINE_SYSTEM) and not self.single_node_pool:
            return f"{NODE_POOL_NAME_TAINT_KEY}={pool.name}:PreferNoSchedule"
        return NO_TAINTS

    def script_params(self, pool: NodePool) -> ScriptParams:
        params = ScriptParams(
            kind=MASTER_SCRIPT if pool.is_master else WORKER_SCRIPT,
            cluster_id=str(self.cluster_id),
            cluster_name=self.cluster_name,
            org_id=str(self.organization_id),
            node_pool_name=pool.name,
            pipeline_url=self.pipeline_external_url,
            pipeline_url_insecure=str(self.pipeline_external_url_insecure).lower(),
            pke_version=self.pke_version,
            kubernetes_version=self.kubernetes_version,
            taints=self.taints(pool),
            no_proxy=self.no_proxy,
        )
        if pool.is_master:
            params.kubernetes_master_mode = MASTER_MODE_HA if pool.size > 1 else MASTER_MODE_DEFAULT
            params.oidc_issuer_url = self.oidc_issuer_url
            params.oidc_client_id = self.oidc_client_id
            params.lb_range = self.load_balancer_ip_range
        return params

    def get_node(self, pool: NodePool, index: int) -> Node:
        return Node(
            name=get_vm_name(self.cluster_name, pool.name, index),
            node_pool_name=pool.name,
            master=pool.is_master,
            vcpu=pool.vcpu,
            ram_mb=pool.ram,
            template_name=pool.template_name,
            admin_username=pool.admin_username,
            ssh_public_key=self.ssh_public_key,
            script=self.script_params(pool),
        )
