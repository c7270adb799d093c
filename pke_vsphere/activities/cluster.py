"""Cluster store activities."""

from __future__ import annotations

import logging

from temporalio import activity

from pke_vsphere.errors import is_not_found
from pke_vsphere.store.cluster_store import SQLClusterStore
from pke_vsphere.store.models import IDLE_STATUSES
from pke_vsphere.workflow.models import (
    DeleteClusterRecordInput,
    DeleteNodePoolRecordInput,
    SetClusterStatusInput,
    SetConfigSecretIDInput,
)
from pke_vsphere.workflow.names import (
    DELETE_CLUSTER_RECORD,
    DELETE_NODE_POOL_RECORD,
    SET_CLUSTER_STATUS,
    SET_CONFIG_SECRET_ID,
)

logger = logging.getLogger(__name__)


class ClusterActivities:
    def __init__(self, store: SQLClusterStore) -> None:
        self.store = store

    @activity.defn(name=SET_CLUSTER_STATUS)
    def set_cluster_status(self, input: SetClusterStatusInput) -> None:
        """Record the status; reaching an idle status releases the cluster."""
        self.store.set_status(input.cluster_id, input.status, input.status_message)
        if input.status in IDLE_STATUSES:
            self.store.set_active_workflow_id(input.cluster_id, "")

    @activity.defn(name=SET_CONFIG_SECRET_ID)
    def set_config_secret_id(self, input: SetConfigSecretIDInput) -> None:
        self.store.set_config_secret_id(input.cluster_id, input.secret_id)

    @activity.defn(name=DELETE_CLUSTER_RECORD)
    def delete_cluster_record(self, input: DeleteClusterRecordInput) -> None:
        try:
            self.store.delete(input.cluster_id)
        except Exception as exc:
            if not is_not_found(exc):
                raise
            logger.info("Cluster %d record already deleted", input.cluster_id)

    @activity.defn(name=DELETE_NODE_POOL_RECORD)
    def delete_node_pool_record(self, input: DeleteNodePoolRecordInput) -> None:
        try:
            self.store.delete_node_pool(input.cluster_id, input.node_pool_name)
        except Exception as exc:
            if not is_not_found(exc):
                raise
            logger.info("Node pool %s of cluster %d already deleted", input.node_pool_name, input.cluster_id)
