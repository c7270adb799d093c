"""Cluster creation driver.

Validates a creation request, persists the cluster, builds one node
description per VM and starts the creation workflow.  Validation failures
are raised before anything is persisted; later failures mark the cluster
ERROR.
"""

from __future__ import annotations

import logging
from typing import Any, List

from pke_vsphere.config.models import ControlPlaneConfig
from pke_vsphere.driver.common import (
    desired_node_pool_labels,
    get_or_create_ssh_key_pair,
    handle_cluster_error,
    http_proxy_config,
)
from pke_vsphere.driver.params import ClusterCreationParams
from pke_vsphere.driver.preparers import ClusterCreationParamsPreparer
from pke_vsphere.driver.templates import DEFAULT_ADMIN_USERNAME, NodeTemplateFactory
from pke_vsphere.secret import store as secrettype
from pke_vsphere.secret.store import SecretStore
from pke_vsphere.store.cluster_store import SQLClusterStore
from pke_vsphere.store.models import ERROR, Cluster, CreateParams, NodePool
from pke_vsphere.workflow.models import CreateClusterWorkflowInput, Node
from pke_vsphere.workflow.names import CREATE_CLUSTER_WORKFLOW

logger = logging.getLogger(__name__)


def node_template_factory(
    config: ControlPlaneConfig, cluster: Cluster, ssh_public_key: str, single_node_pool: bool
) -> NodeTemplateFactory:
    """Node template factory for *cluster* under the control plane *config*."""
    tf = NodeTemplateFactory(
        cluster_id=cluster.id,
        cluster_name=cluster.name,
        organization_id=cluster.organization_id,
        kubernetes_version=cluster.kubernetes.version,
        pipeline_external_url=config.pipeline.external_url,
        pipeline_external_url_insecure=config.pipeline.external_url_insecure,
        pke_version=config.pke.version,
        single_node_pool=single_node_pool,
        ssh_public_key=ssh_public_key,
        no_proxy=",".join(cluster.http_proxy.exceptions),
        load_balancer_ip_range=cluster.load_balancer_ip_range,
    )
    if cluster.kubernetes.oidc:
        tf.oidc_issuer_url = config.pke.oidc_issuer_url
        tf.oidc_client_id = cluster.uid
    return tf


def apply_node_pool_defaults(pools: List[NodePool], default_template: str) -> None:
    for np in pools:
        if not np.template_name:
            np.template_name = default_template
        if not np.admin_username:
            np.admin_username = DEFAULT_ADMIN_USERNAME


class ClusterCreator:
    def __init__(
        self,
        config: ControlPlaneConfig,
        secrets: SecretStore,
        store: SQLClusterStore,
        client: Any,
    ) -> None:
        self.config = config
        self.secrets = secrets
        self.store = store
        self.client = client

    async def create(self, params: ClusterCreationParams) -> Cluster:
        ClusterCreationParamsPreparer(self.secrets, self.store).prepare(params)

        vsphere = self.secrets.get(params.organization_id, params.secret_id)
        apply_node_pool_defaults(
            params.node_pools, vsphere.values.get(secrettype.VSPHERE_DEFAULT_NODE_TEMPLATE, "")
        )

        cluster = self.store.create(
            CreateParams(
                name=params.name,
                organization_id=params.organization_id,
                created_by=params.created_by,
                secret_id=params.secret_id,
                ssh_secret_id=params.ssh_secret_id,
                kubernetes=params.kubernetes,
                http_proxy=params.http_proxy,
                resource_pool=params.resource_pool,
                folder=params.folder,
                datastore=params.datastore,
                load_balancer_ip_range=params.load_balancer_ip_range,
                node_pools=params.node_pools,
            )
        )

        workflow_id = f"pke-vsphere-create-{cluster.id}"
        acquired = False
        try:
            ssh = get_or_create_ssh_key_pair(cluster, self.secrets, self.store)
            tf = node_template_factory(
                self.config, cluster, ssh[secrettype.SSH_PUBLIC_KEY], len(cluster.node_pools) == 1
            )

            nodes: List[Node] = []
            for np in params.node_pools:
                for i in range(1, np.size + 1):
                    nodes.append(tf.get_node(np, i))

            input = CreateClusterWorkflowInput(
                organization_id=cluster.organization_id,
                cluster_id=cluster.id,
                cluster_uid=cluster.uid,
                cluster_name=cluster.name,
                secret_id=cluster.secret_id,
                nodes=nodes,
                oidc_enabled=cluster.kubernetes.oidc,
                rbac_enabled=cluster.kubernetes.rbac,
                http_proxy=http_proxy_config(cluster.http_proxy),
                node_pool_labels=desired_node_pool_labels(params.node_pools),
                resource_pool_name=cluster.resource_pool,
                folder_name=cluster.folder,
                datastore_name=cluster.datastore,
                master_ready_timeout=self.config.workflow.master_ready_timeout,
            )

            self.store.acquire_active_workflow(cluster.id, workflow_id)
            acquired = True
            await self.client.start_workflow(
                CREATE_CLUSTER_WORKFLOW,
                input,
                id=workflow_id,
                task_queue=self.config.temporal.task_queue,
            )
        except Exception as exc:
            handle_cluster_error(self.store, cluster.id, ERROR, exc)
            if acquired:
                self.store.set_active_workflow_id(cluster.id, "")
            raise

        logger.info("Started workflow %s creating cluster %s (id=%d)", workflow_id, cluster.name, cluster.id)
        return self.store.get_by_id(cluster.id)
