"""Activities talking to the provisioned cluster's API server."""

from __future__ import annotations

import logging

from kubernetes import client
from kubernetes.client.rest import ApiException
from temporalio import activity

from pke_vsphere import k8s
from pke_vsphere.driver.common import NODE_POOL_NAME_LABEL
from pke_vsphere.errors import combine
from pke_vsphere.k8s import KubernetesClientFactory
from pke_vsphere.workflow.models import (
    ConfigureNodePoolLabelsInput,
    ConfigureRBACInput,
    CreateSystemNamespaceInput,
    DeleteK8sResourcesInput,
    LabelKubeSystemNamespaceInput,
)
from pke_vsphere.workflow.names import (
    CONFIGURE_NODE_POOL_LABELS,
    CONFIGURE_RBAC,
    CREATE_SYSTEM_NAMESPACE,
    DELETE_K8S_RESOURCES,
    LABEL_KUBE_SYSTEM_NAMESPACE,
)

logger = logging.getLogger(__name__)

KUBE_SYSTEM_NAMESPACE = "kube-system"
KUBE_SYSTEM_LABELS = {"name": KUBE_SYSTEM_NAMESPACE, "scan": "noscan"}

PIPELINE_SERVICE_ACCOUNT = "pipeline"
PIPELINE_CLUSTER_ROLE_BINDING = "pipeline-cluster-admin"


class KubernetesActivities:
    def __init__(self, kubernetes: KubernetesClientFactory) -> None:
        self.kubernetes = kubernetes

    @activity.defn(name=CONFIGURE_NODE_POOL_LABELS)
    def configure_node_pool_labels(self, input: ConfigureNodePoolLabelsInput) -> None:
        """Apply each pool's labels to the nodes registered under that pool."""
        core = self.kubernetes.core_v1(input.organization_id, input.config_secret_id)
        errors = []
        for pool_name, labels in input.labels.items():
            nodes = core.list_node(label_selector=f"{NODE_POOL_NAME_LABEL}={pool_name}")
            for node in nodes.items:
                try:
                    core.patch_node(node.metadata.name, {"metadata": {"labels": labels}})
                except ApiException as exc:
                    errors.append(exc)
                    logger.warning("Failed to label node %s: %s", node.metadata.name, exc.reason)
            logger.info("Labelled %d nodes of node pool %s", len(nodes.items), pool_name)

        err = combine(errors)
        if err is not None:
            raise err

    @activity.defn(name=CREATE_SYSTEM_NAMESPACE)
    def create_system_namespace(self, input: CreateSystemNamespaceInput) -> None:
        core = self.kubernetes.core_v1(input.organization_id, input.config_secret_id)
        body = client.V1Namespace(metadata=client.V1ObjectMeta(name=input.namespace))
        try:
            core.create_namespace(body)
        except ApiException as exc:
            if not k8s.is_conflict(exc):
                raise
            logger.debug("Namespace %s already exists", input.namespace)

    @activity.defn(name=LABEL_KUBE_SYSTEM_NAMESPACE)
    def label_kube_system_namespace(self, input: LabelKubeSystemNamespaceInput) -> None:
        core = self.kubernetes.core_v1(input.organization_id, input.config_secret_id)
        core.patch_namespace(KUBE_SYSTEM_NAMESPACE, {"metadata": {"labels": KUBE_SYSTEM_LABELS}})

    @activity.defn(name=CONFIGURE_RBAC)
    def configure_rbac(self, input: ConfigureRBACInput) -> None:
        """Create the pipeline service account and bind it to cluster-admin."""
        core = self.kubernetes.core_v1(input.organization_id, input.config_secret_id)
        rbac = self.kubernetes.rbac_v1(input.organization_id, input.config_secret_id)

        account = {"metadata": {"name": PIPELINE_SERVICE_ACCOUNT, "namespace": input.namespace}}
        binding = {
            "metadata": {"name": PIPELINE_CLUSTER_ROLE_BINDING},
            "roleRef": {"apiGroup": "rbac.authorization.k8s.io", "kind": "ClusterRole", "name": "cluster-admin"},
            "subjects": [
                {"kind": "ServiceAccount", "name": PIPELINE_SERVICE_ACCOUNT, "namespace": input.namespace},
            ],
        }
        self._create(core.create_namespaced_service_account, "service account", input.namespace, account)
        self._create(rbac.create_cluster_role_binding, "cluster role binding", binding)

    @staticmethod
    def _create(create, kind: str, *args) -> None:
        try:
            create(*args)
        except ApiException as exc:
            if not k8s.is_conflict(exc):
                raise
            logger.debug("%s already exists", kind.capitalize())
            return
        logger.info("Created %s", kind)

    @activity.defn(name=DELETE_K8S_RESOURCES)
    def delete_k8s_resources(self, input: DeleteK8sResourcesInput) -> None:
        """Release what outlives the VMs: load balancer services and volume claims."""
        core = self.kubernetes.core_v1(input.organization_id, input.config_secret_id)

        for svc in core.list_service_for_all_namespaces().items:
            if svc.spec is None or svc.spec.type != "LoadBalancer":
                continue
            self._delete(core.delete_namespaced_service, svc.metadata.namespace, svc.metadata.name, "service")

        for pvc in core.list_persistent_volume_claim_for_all_namespaces().items:
            self._delete(
                core.delete_namespaced_persistent_volume_claim,
                pvc.metadata.namespace,
                pvc.metadata.name,
                "persistent volume claim",
            )

    @staticmethod
    def _delete(delete, namespace: str, name: str, kind: str) -> None:
        try:
            delete(name, namespace)
        except ApiException as exc:
            if not k8s.is_not_found(exc):
                raise
            return
        logger.info("Deleted %s %s/%s", kind, namespace, name)
