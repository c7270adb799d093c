"""Helpers shared by the cluster drivers."""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from pke_vsphere.errors import error_message
from pke_vsphere.secret import pki
from pke_vsphere.secret import store as secrettype
from pke_vsphere.secret.store import SecretStore, cluster_id_tag, cluster_uid_tag
from pke_vsphere.store.models import Cluster, HTTPProxy, HTTPProxyOptions, NodePool
from pke_vsphere.workflow.models import HTTPProxyConfig, NodePoolRef, ProxyOptions

logger = logging.getLogger(__name__)

NODE_POOL_NAME_LABEL = "nodepool.banzaicloud.io/name"
INSTANCE_TYPE_LABEL = "node.banzaicloud.io/instanceType"


def sort_node_pools(
    incoming: List[NodePool], existing: List[NodePool]
) -> Tuple[List[NodePool], List[NodePool], List[NodePoolRef]]:
    """Partition *incoming* against *existing* by name.

    Returns ``(to_create, to_update, to_delete)``.  ``to_delete`` holds the
    persisted pools missing from *incoming*, in persisted order.
    """
    remaining: Dict[str, NodePool] = {np.name: np for np in existing}
    to_create: List[NodePool] = []
    to_update: List[NodePool] = []
    for np in incoming:
        if remaining.pop(np.name, None) is not None:
            to_update.append(np)
        else:
            to_create.append(np)
    to_delete = [NodePoolRef(name=np.name, size=np.size) for np in remaining.values()]
    return to_create, to_update, to_delete


def handle_cluster_error(store, cluster_id: int, status: str, exc: BaseException) -> None:
    """Record a driver-side failure on the cluster; failing to do so is logged."""
    try:
        store.set_status(cluster_id, status, error_message(exc))
    except Exception as status_exc:
        logger.error("failed to set cluster %d status to %s: %s", cluster_id, status, status_exc)


def get_or_create_ssh_key_pair(cluster: Cluster, secrets: SecretStore, store) -> Dict[str, str]:
    """Return the cluster's SSH key pair, generating and recording one if needed."""
    if cluster.ssh_secret_id:
        return secrets.get(cluster.organization_id, cluster.ssh_secret_id).values

    private_key, public_key, fingerprint = pki.generate_ssh_key_pair()
    values = {
        secrettype.SSH_USER: "banzaicloud",
        secrettype.SSH_PRIVATE_KEY: private_key,
        secrettype.SSH_PUBLIC_KEY: public_key,
        secrettype.SSH_FINGERPRINT: fingerprint,
    }
    secret_id = secrets.store(
        cluster.organization_id,
        f"ssh-cluster-{cluster.id}",
        secrettype.SSH,
        values,
        tags=[cluster_id_tag(cluster.id), cluster_uid_tag(cluster.uid)],
    )
    store.set_ssh_secret_id(cluster.id, secret_id)
    logger.info("Generated SSH key pair for cluster %s (%s)", cluster.name, fingerprint)
    return values


def desired_node_pool_labels(pools: List[NodePool]) -> Dict[str, Dict[str, str]]:
    """Labels every node of each pool should carry, keyed by pool name.

    Custom labels cannot override the reserved ones.
    """
    labels: Dict[str, Dict[str, str]] = {}
    for np in pools:
        pool_labels = dict(np.labels)
        pool_labels[NODE_POOL_NAME_LABEL] = np.name
        pool_labels[INSTANCE_TYPE_LABEL] = np.instance_type()
        labels[np.name] = pool_labels
    return labels


def _proxy_options(options: HTTPProxyOptions) -> ProxyOptions:
    return ProxyOptions(host_port=options.host_port(), scheme=options.scheme, secret_id=options.secret_id)


def http_proxy_config(proxy: HTTPProxy) -> HTTPProxyConfig:
    return HTTPProxyConfig(http=_proxy_options(proxy.http), https=_proxy_options(proxy.https))


def default_node_template(secrets: SecretStore, cluster: Cluster) -> str:
    secret = secrets.get(cluster.organization_id, cluster.secret_id)
    return secret.values.get(secrettype.VSPHERE_DEFAULT_NODE_TEMPLATE, "")
