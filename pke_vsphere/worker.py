"""Temporal worker hosting every workflow and activity of the control plane."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Tuple

from temporalio.client import Client
from temporalio.worker import Worker

from pke_vsphere.activities import (
    ClusterActivities,
    KubernetesActivities,
    NodeActivities,
    SecretActivities,
)
from pke_vsphere.config.models import ControlPlaneConfig
from pke_vsphere.k8s import KubernetesClientFactory
from pke_vsphere.secret.store import SecretStore, SQLSecretStore
from pke_vsphere.secret.tokens import SecretTokenGenerator
from pke_vsphere.store import make_engine
from pke_vsphere.store.cluster_store import SQLClusterStore
from pke_vsphere.vsphere.client import VSphereClientFactory
from pke_vsphere.workflow import WORKFLOWS

logger = logging.getLogger(__name__)


def open_stores(config: ControlPlaneConfig) -> Tuple[SQLClusterStore, SQLSecretStore]:
    engine = make_engine(config.database.url, echo=config.database.echo)
    return SQLClusterStore(engine), SQLSecretStore(engine, config.pipeline.encryption_key)


async def connect_client(config: ControlPlaneConfig) -> Client:
    logger.debug("Connecting to Temporal at %s (namespace %s)", config.temporal.address, config.temporal.namespace)
    return await Client.connect(config.temporal.address, namespace=config.temporal.namespace)


def build_activities(
    store: SQLClusterStore,
    secrets: SecretStore,
    vsphere: Optional[VSphereClientFactory] = None,
    kubernetes: Optional[KubernetesClientFactory] = None,
) -> List[Callable[..., Any]]:
    """Bound activity methods for a worker."""
    vsphere = vsphere or VSphereClientFactory(secrets)
    kubernetes = kubernetes or KubernetesClientFactory(secrets)

    nodes = NodeActivities(vsphere, SecretTokenGenerator(secrets), kubernetes)
    cluster = ClusterActivities(store)
    secret = SecretActivities(secrets)
    k8s = KubernetesActivities(kubernetes)

    return [
        nodes.create_node,
        nodes.delete_node,
        nodes.delete_k8s_node,
        nodes.get_public_address,
        nodes.wait_for_ip,
        cluster.set_cluster_status,
        cluster.set_config_secret_id,
        cluster.delete_cluster_record,
        cluster.delete_node_pool_record,
        secret.generate_certificates,
        secret.create_oidc_client,
        secret.delete_oidc_client,
        secret.assemble_http_proxy_settings,
        secret.download_k8s_config,
        secret.delete_unused_secrets,
        k8s.configure_node_pool_labels,
        k8s.create_system_namespace,
        k8s.label_kube_system_namespace,
        k8s.configure_rbac,
        k8s.delete_k8s_resources,
    ]


async def run_worker(config: ControlPlaneConfig) -> None:
    store, secrets = open_stores(config)
    client = await connect_client(config)

    with ThreadPoolExecutor(max_workers=config.workflow.activity_workers) as executor:
        worker = Worker(
            client,
            task_queue=config.temporal.task_queue,
            workflows=WORKFLOWS,
            activities=build_activities(store, secrets),
            activity_executor=executor,
        )
        logger.info("Worker listening on task queue %s", config.temporal.task_queue)
        await worker.run()
