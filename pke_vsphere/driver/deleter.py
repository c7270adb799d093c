"""Cluster deletion driver."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Optional, Protocol, Set

from pke_vsphere.config.models import ControlPlaneConfig
from pke_vsphere.driver.common import handle_cluster_error
from pke_vsphere.errors import ClusterNotFoundError
from pke_vsphere.store.cluster_store import SQLClusterStore
from pke_vsphere.store.models import DELETING, DELETING_MESSAGE, ERROR, Cluster
from pke_vsphere.workflow.models import DeleteClusterWorkflowInput
from pke_vsphere.workflow.names import DELETE_CLUSTER_WORKFLOW

logger = logging.getLogger(__name__)


class ClusterEvents(Protocol):
    def cluster_deleted(self, organization_id: int, name: str) -> None: ...


class LoggingClusterEvents:
    def cluster_deleted(self, organization_id: int, name: str) -> None:
        logger.info("Cluster %s of organization %d deleted", name, organization_id)


class ClusterDeleter:
    """Starts deletion workflows and reports their completion.

    :meth:`delete` returns once the workflow has started.  A background
    task awaits its result and fires :meth:`ClusterEvents.cluster_deleted`
    once the cluster record is gone.
    """

    def __init__(
        self,
        config: ControlPlaneConfig,
        store: SQLClusterStore,
        client: Any,
        events: Optional[ClusterEvents] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.client = client
        self.events = events or LoggingClusterEvents()
        self._pending: Set[asyncio.Task] = set()

    async def delete(self, cluster_id: int, forced: bool = False) -> str:
        cluster = self.store.get_by_id(cluster_id)
        workflow_id = f"pke-vsphere-delete-{cluster.id}-{uuid.uuid4().hex[:8]}"

        # Forced deletion takes over from whatever workflow owns the cluster.
        if not forced:
            self.store.acquire_active_workflow(cluster.id, workflow_id)

        self.store.set_status(cluster.id, DELETING, DELETING_MESSAGE)

        input = DeleteClusterWorkflowInput(
            organization_id=cluster.organization_id,
            cluster_id=cluster.id,
            cluster_uid=cluster.uid,
            cluster_name=cluster.name,
            secret_id=cluster.secret_id,
            k8s_secret_id=cluster.config_secret_id,
            forced=forced,
            oidc_enabled=cluster.kubernetes.oidc,
            master_node_names=cluster.master_vm_names(),
            node_names=cluster.worker_vm_names(),
        )

        try:
            handle = await self.client.start_workflow(
                DELETE_CLUSTER_WORKFLOW,
                input,
                id=workflow_id,
                task_queue=self.config.temporal.task_queue,
            )
        except Exception as exc:
            handle_cluster_error(self.store, cluster.id, ERROR, exc)
            self.store.set_active_workflow_id(cluster.id, "")
            raise

        task = asyncio.create_task(self._wait(handle, cluster))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        if forced:
            self.store.set_active_workflow_id(cluster.id, workflow_id)

        logger.info("Started workflow %s deleting cluster %s (id=%d)", workflow_id, cluster.name, cluster.id)
        return workflow_id

    async def _wait(self, handle: Any, cluster: Cluster) -> None:
        try:
            await handle.result()
        except Exception as exc:
            logger.error("Deletion of cluster %s (id=%d) failed: %s", cluster.name, cluster.id, exc)
            return

        # Forced deletion succeeds even when removing the record failed.
        try:
            self.store.get_by_id(cluster.id)
        except ClusterNotFoundError:
            self.events.cluster_deleted(cluster.organization_id, cluster.name)
            return
        logger.warning(
            "Deletion workflow of cluster %s (id=%d) finished but its record still exists", cluster.name, cluster.id
        )

    async def wait_pending(self) -> None:
        """Wait for every deletion started by this deleter to finish."""
        if self._pending:
            await asyncio.gather(*self._pending)
