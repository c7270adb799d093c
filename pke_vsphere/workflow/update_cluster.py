"""Cluster update workflow: grow, shrink and drop node pools."""

from __future__ import annotations

from typing import Any, Awaitable, Dict

from temporalio import workflow

with workflow.unsafe.imports_passed_through():
    from pke_vsphere.errors import error_message
    from pke_vsphere.store.models import RUNNING, RUNNING_MESSAGE, WARNING
    from pke_vsphere.workflow.create_cluster import assemble_http_proxy_settings, start_create_node
    from pke_vsphere.workflow.models import (
        ConfigureNodePoolLabelsInput,
        DeleteK8sNodeInput,
        DeleteNodeInput,
        DeleteNodePoolWorkflowInput,
        GetPublicAddressInput,
        UpdateClusterWorkflowInput,
    )
    from pke_vsphere.workflow.names import (
        CONFIGURE_NODE_POOL_LABELS,
        DELETE_K8S_NODE,
        DELETE_NODE,
        DELETE_NODE_POOL_WORKFLOW,
        GET_PUBLIC_ADDRESS,
        UPDATE_CLUSTER_WORKFLOW,
    )
    from pke_vsphere.workflow.steps import (
        StepError,
        Steps,
        execute,
        gather_errors,
        set_cluster_error_status,
        set_cluster_status,
    )


class NodePoolLabelsError(StepError):
    pass


async def _update_cluster(steps: Steps, input: UpdateClusterWorkflowInput) -> None:
    proxy = await assemble_http_proxy_settings(steps, input.organization_id, input.http_proxy)

    master_ip = await steps.activity(
        GET_PUBLIC_ADDRESS,
        GetPublicAddressInput(input.organization_id, input.secret_id, input.master_node_names[0]),
        result_type=str,
    )

    try:
        await steps.activity(
            CONFIGURE_NODE_POOL_LABELS,
            ConfigureNodePoolLabelsInput(input.organization_id, input.k8s_secret_id, input.node_pool_labels),
        )
    except Exception as exc:
        err = NodePoolLabelsError(f'"{CONFIGURE_NODE_POOL_LABELS}" activity failed: {error_message(exc)}')
        raise err from exc

    await gather_errors(
        {
            node.name: start_create_node(steps, input, node, proxy, public_address=master_ip)
            for node in input.nodes_to_create
            if not node.master
        },
        "creating node",
    )

    await gather_errors(
        {
            name: steps.activity(
                DELETE_K8S_NODE,
                DeleteK8sNodeInput(input.organization_id, input.cluster_name, input.k8s_secret_id, name),
            )
            for name in input.nodes_to_delete
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
            for name in input.nodes_to_delete
        },
        "deleting node",
    )

    children: Dict[str, Awaitable[Any]] = {}
    for pool in input.node_pools_to_delete:
        children[pool.name] = steps.child(
            DELETE_NODE_POOL_WORKFLOW,
            DeleteNodePoolWorkflowInput(
                organization_id=input.organization_id,
                cluster_id=input.cluster_id,
                cluster_name=input.cluster_name,
                secret_id=input.secret_id,
                k8s_secret_id=input.k8s_secret_id,
                node_pool=pool,
            ),
        )
    await gather_errors(children, "deleting node pool")

    await set_cluster_status(steps, input.cluster_id, RUNNING, RUNNING_MESSAGE)


async def run_update_cluster(steps: Steps, input: UpdateClusterWorkflowInput) -> None:
    """Apply a node pool diff to a running cluster.

    A failure to label nodes leaves the cluster in WARNING, any other
    failure in ERROR.
    """
    try:
        await _update_cluster(steps, input)
    except NodePoolLabelsError as exc:
        await set_cluster_error_status(steps, input.cluster_id, exc, status=WARNING)
        raise
    except Exception as exc:
        await set_cluster_error_status(steps, input.cluster_id, exc)
        raise


@workflow.defn(name=UPDATE_CLUSTER_WORKFLOW)
class UpdateClusterWorkflow:
    @workflow.run
    async def run(self, input: UpdateClusterWorkflowInput) -> None:
        await execute(run_update_cluster, {}, input)
