"""Temporal activities, grouped by the dependency they drive."""

from pke_vsphere.activities.cluster import ClusterActivities
from pke_vsphere.activities.kubernetes import KubernetesActivities
from pke_vsphere.activities.nodes import NodeActivities
from pke_vsphere.activities.secrets import SecretActivities

__all__ = [
    "ClusterActivities",
    "KubernetesActivities",
    "NodeActivities",
    "SecretActivities",
]
