"""Temporal workflows of the cluster lifecycle."""

from pke_vsphere.workflow.create_cluster import CreateClusterWorkflow, run_create_cluster
from pke_vsphere.workflow.delete_cluster import DeleteClusterWorkflow, run_delete_cluster
from pke_vsphere.workflow.delete_node_pool import DeleteNodePoolWorkflow, run_delete_node_pool
from pke_vsphere.workflow.setup import (
    ClusterSetupWorkflow,
    DeleteK8sResourcesWorkflow,
    run_cluster_setup,
    run_delete_k8s_resources,
)
from pke_vsphere.workflow.update_cluster import UpdateClusterWorkflow, run_update_cluster

WORKFLOWS = [
    CreateClusterWorkflow,
    UpdateClusterWorkflow,
    DeleteClusterWorkflow,
    DeleteNodePoolWorkflow,
    ClusterSetupWorkflow,
    DeleteK8sResourcesWorkflow,
]

__all__ = [
    "WORKFLOWS",
    "ClusterSetupWorkflow",
    "CreateClusterWorkflow",
    "DeleteClusterWorkflow",
    "DeleteK8sResourcesWorkflow",
    "DeleteNodePoolWorkflow",
    "UpdateClusterWorkflow",
    "run_cluster_setup",
    "run_create_cluster",
    "run_delete_cluster",
    "run_delete_k8s_resources",
    "run_delete_node_pool",
    "run_update_cluster",
]
