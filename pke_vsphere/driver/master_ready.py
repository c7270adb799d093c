"""Delivery of the master-ready notification sent by a cluster's first master."""

from __future__ import annotations

import logging
from typing import Any

from pke_vsphere.errors import PKEError
from pke_vsphere.secret import store as secrettype
from pke_vsphere.secret.store import SecretStore, cluster_id_tag, cluster_uid_tag, kubeconfig_secret_name
from pke_vsphere.store.cluster_store import SQLClusterStore
from pke_vsphere.workflow.names import MASTER_READY_SIGNAL

logger = logging.getLogger(__name__)


class NoActiveWorkflowError(PKEError):
    def __init__(self, cluster_id: int) -> None:
        super().__init__(f"cluster {cluster_id} has no active workflow")
        self.cluster_id = cluster_id


class MasterReadyNotifier:
    def __init__(self, store: SQLClusterStore, secrets: SecretStore, client: Any) -> None:
        self.store = store
        self.secrets = secrets
        self.client = client

    async def notify(self, cluster_id: int, kubeconfig: str) -> str:
        """Store the uploaded *kubeconfig* and signal the cluster's active workflow.

        Returns the kubeconfig secret's ID.
        """
        cluster = self.store.get_by_id(cluster_id)
        if not cluster.active_workflow_id:
            raise NoActiveWorkflowError(cluster_id)

        secret_id = self.secrets.store(
            cluster.organization_id,
            kubeconfig_secret_name(cluster.id),
            secrettype.KUBERNETES,
            {secrettype.KUBECONFIG: kubeconfig},
            tags=[cluster_id_tag(cluster.id), cluster_uid_tag(cluster.uid)],
        )

        handle = self.client.get_workflow_handle(cluster.active_workflow_id)
        await handle.signal(MASTER_READY_SIGNAL)
        logger.info("Signalled %s of cluster %s (id=%d)", MASTER_READY_SIGNAL, cluster.name, cluster.id)
        return secret_id
