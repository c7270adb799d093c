"""Cluster drivers: request validation and workflow submission."""

from pke_vsphere.driver.creator import ClusterCreator
from pke_vsphere.driver.deleter import ClusterDeleter, ClusterEvents
from pke_vsphere.driver.master_ready import MasterReadyNotifier
from pke_vsphere.driver.params import ClusterCreationParams, ClusterUpdateParams
from pke_vsphere.driver.updater import ClusterUpdater

__all__ = [
    "ClusterCreationParams",
    "ClusterCreator",
    "ClusterDeleter",
    "ClusterEvents",
    "ClusterUpdateParams",
    "ClusterUpdater",
    "MasterReadyNotifier",
]
