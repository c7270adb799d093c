"""Cluster update driver."""

from __future__ import annotations

import logging
import uuid
from typing import Any, List

from pke_vsphere.config.models import ControlPlaneConfig
from pke_vsphere.driver.common import (
    default_node_template,
    desired_node_pool_labels,
    get_or_create_ssh_key_pair,
    handle_cluster_error,
    http_proxy_config,
    sort_node_pools,
)
from pke_vsphere.driver.creator import apply_node_pool_defaults, node_template_factory
from pke_vsphere.driver.params import ClusterUpdateParams
from pke_vsphere.driver.preparers import ClusterUpdateParamsPreparer
from pke_vsphere.secret import store as secrettype
from pke_vsphere.secret.store import SecretStore
from pke_vsphere.store.cluster_store import SQLClusterStore
from pke_vsphere.store.models import UPDATING, UPDATING_MESSAGE, WARNING, Cluster, get_vm_name
from pke_vsphere.workflow.models import Node, UpdateClusterWorkflowInput
from pke_vsphere.workflow.names import UPDATE_CLUSTER_WORKFLOW

logger = logging.getLogger(__name__)


class ClusterUpdater:
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

    async def update(self, params: ClusterUpdateParams) -> Cluster:
        """Reconcile the cluster's node pools with *params* and start the update workflow.

        New pools are persisted and fully created.  Pools whose size
        changed get CreateNode for every index up to the new size (existing
        VMs are left alone) and, when shrunk, deletion of the indices past
        it.  Pools missing from *params* are deleted by a child workflow.
        Failures after validation leave the cluster in WARNING.
        """
        cluster = ClusterUpdateParamsPreparer(self.store).prepare(params)
        to_create, to_update, to_delete = sort_node_pools(params.node_pools, cluster.node_pools)

        workflow_id = f"pke-vsphere-update-{cluster.id}-{uuid.uuid4().hex[:8]}"
        self.store.acquire_active_workflow(cluster.id, workflow_id)

        try:
            ssh = get_or_create_ssh_key_pair(cluster, self.secrets, self.store)
            tf = node_template_factory(
                self.config, cluster, ssh[secrettype.SSH_PUBLIC_KEY], len(cluster.node_pools) == 1
            )
            apply_node_pool_defaults(to_create, default_node_template(self.secrets, cluster))

            nodes_to_create: List[Node] = []
            nodes_to_delete: List[str] = []

            for np in to_create:
                self.store.create_node_pool(cluster.id, np)
                for i in range(1, np.size + 1):
                    nodes_to_create.append(tf.get_node(np, i))

            for np in to_update:
                existing = cluster.node_pool(np.name)
                if existing is None or existing.size == np.size:
                    continue
                for i in range(1, np.size + 1):
                    nodes_to_create.append(tf.get_node(np, i))
                for i in range(np.size + 1, existing.size + 1):
                    nodes_to_delete.append(get_vm_name(cluster.name, np.name, i))
                self.store.update_node_pool_size(cluster.id, np.name, np.size)
                logger.info(
                    "Resizing node pool %s of cluster %s from %d to %d", np.name, cluster.name, existing.size, np.size
                )

            input = UpdateClusterWorkflowInput(
                organization_id=cluster.organization_id,
                cluster_id=cluster.id,
                cluster_uid=cluster.uid,
                cluster_name=cluster.name,
                secret_id=cluster.secret_id,
                k8s_secret_id=cluster.config_secret_id,
                master_node_names=cluster.master_vm_names(),
                nodes_to_create=nodes_to_create,
                nodes_to_delete=nodes_to_delete,
                node_pools_to_delete=to_delete,
                http_proxy=http_proxy_config(cluster.http_proxy),
                node_pool_labels=desired_node_pool_labels(params.node_pools),
                resource_pool_name=cluster.resource_pool,
                folder_name=cluster.folder,
                datastore_name=cluster.datastore,
            )

            self.store.set_status(cluster.id, UPDATING, UPDATING_MESSAGE)
            await self.client.start_workflow(
                UPDATE_CLUSTER_WORKFLOW,
                input,
                id=workflow_id,
                task_queue=self.config.temporal.task_queue,
            )
        except Exception as exc:
            handle_cluster_error(self.store, cluster.id, WARNING, exc)
            self.store.set_active_workflow_id(cluster.id, "")
            raise

        logger.info("Started workflow %s updating cluster %s (id=%d)", workflow_id, cluster.name, cluster.id)
        return self.store.get_by_id(cluster.id)
