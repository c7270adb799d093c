"""In-cluster workflows: post-creation setup and pre-deletion cleanup."""

from __future__ import annotations

from temporalio import workflow

with workflow.unsafe.imports_passed_through():
    from pke_vsphere.workflow.models import (
        ClusterSetupWorkflowInput,
        ConfigureNodePoolLabelsInput,
        ConfigureRBACInput,
        CreateSystemNamespaceInput,
        DeleteK8sResourcesInput,
        DeleteK8sResourcesWorkflowInput,
        LabelKubeSystemNamespaceInput,
    )
    from pke_vsphere.workflow.names import (
        CLUSTER_SETUP_WORKFLOW,
        CONFIGURE_NODE_POOL_LABELS,
        CONFIGURE_RBAC,
        CREATE_SYSTEM_NAMESPACE,
        DELETE_K8S_RESOURCES,
        DELETE_K8S_RESOURCES_WORKFLOW,
        LABEL_KUBE_SYSTEM_NAMESPACE,
    )
    from pke_vsphere.workflow.steps import Steps, execute


async def run_cluster_setup(steps: Steps, input: ClusterSetupWorkflowInput) -> None:
    """Prepare a freshly created cluster for pipeline workloads.

    The pipeline service account is bound to cluster-admin only when RBAC
    is enabled.
    """
    await steps.activity(
        CREATE_SYSTEM_NAMESPACE,
        CreateSystemNamespaceInput(input.organization_id, input.config_secret_id),
    )
    await steps.activity(
        LABEL_KUBE_SYSTEM_NAMESPACE,
        LabelKubeSystemNamespaceInput(input.organization_id, input.config_secret_id),
    )
    if input.rbac_enabled:
        await steps.activity(CONFIGURE_RBAC, ConfigureRBACInput(input.organization_id, input.config_secret_id))
    await steps.activity(
        CONFIGURE_NODE_POOL_LABELS,
        ConfigureNodePoolLabelsInput(input.organization_id, input.config_secret_id, input.node_pool_labels),
    )
    steps.logger.info("Cluster %s set up", input.cluster_name)


async def run_delete_k8s_resources(steps: Steps, input: DeleteK8sResourcesWorkflowInput) -> None:
    await steps.activity(
        DELETE_K8S_RESOURCES,
        DeleteK8sResourcesInput(input.organization_id, input.config_secret_id),
    )


@workflow.defn(name=CLUSTER_SETUP_WORKFLOW)
class ClusterSetupWorkflow:
    @workflow.run
    async def run(self, input: ClusterSetupWorkflowInput) -> None:
        await execute(run_cluster_setup, {}, input)


@workflow.defn(name=DELETE_K8S_RESOURCES_WORKFLOW)
class DeleteK8sResourcesWorkflow:
    @workflow.run
    async def run(self, input: DeleteK8sResourcesWorkflowInput) -> None:
        await execute(run_delete_k8s_resources, {}, input)
