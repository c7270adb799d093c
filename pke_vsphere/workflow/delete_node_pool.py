"""Node pool deletion workflow, run as a child of the update workflow."""

from __future__ import annotations

from temporalio import workflow

with workflow.unsafe.imports_passed_through():
    from pke_vsphere.store.models import get_vm_name
    from pke_vsphere.workflow.models import (
        DeleteK8sNodeInput,
        DeleteNodeInput,
        DeleteNodePoolRecordInput,
        DeleteNodePoolWorkflowInput,
    )
    from pke_vsphere.workflow.names import (
        DELETE_K8S_NODE,
        DELETE_NODE,
        DELETE_NODE_POOL_RECORD,
        DELETE_NODE_POOL_WORKFLOW,
    )
    from pke_vsphere.workflow.steps import Steps, execute, gather_errors


async def run_delete_node_pool(steps: Steps, input: DeleteNodePoolWorkflowInput) -> None:
    names = [
        get_vm_name(input.cluster_name, input.node_pool.name, index)
        for index in range(1, input.node_pool.size + 1)
    ]

    await gather_errors(
        {
            name: steps.activity(
                DELETE_K8S_NODE,
                DeleteK8sNodeInput(input.organization_id, input.cluster_name, input.k8s_secret_id, name),
            )
            for name in names
        },
        "deleting kubernetes node",
    )

    await gather_errors(
        {
            name: steps.activity(
                DELETE_NODE,
                DeleteNodeInput(input.organization_id, input.secret_id, input.cluster_name, name),
                result_type=bool,
            )
            for name in names
        },
        "deleting node",
    )

    await steps.activity(
        DELETE_NODE_POOL_RECORD,
        DeleteNodePoolRecordInput(input.cluster_id, input.node_pool.name),
    )
    steps.logger.info("Node pool %s of cluster %s deleted", input.node_pool.name, input.cluster_name)


@workflow.defn(name=DELETE_NODE_POOL_WORKFLOW)
class DeleteNodePoolWorkflow:
    @workflow.run
    async def run(self, input: DeleteNodePoolWorkflowInput) -> None:
        await execute(run_delete_node_pool, {}, input)
