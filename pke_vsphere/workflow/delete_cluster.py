"""Cluster deletion workflow."""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from temporalio import workflow

with workflow.unsafe.imports_passed_through():
    from pke_vsphere.errors import error_message
    from pke_vsphere.workflow.models import (
        DeleteClusterRecordInput,
        DeleteClusterWorkflowInput,
        DeleteK8sResourcesWorkflowInput,
        DeleteNodeInput,
        DeleteUnusedSecretsInput,
        OIDCClientInput,
    )
    from pke_vsphere.workflow.names import (
        DELETE_CLUSTER_RECORD,
        DELETE_CLUSTER_WORKFLOW,
        DELETE_K8S_RESOURCES_WORKFLOW,
        DELETE_NODE,
        DELETE_OIDC_CLIENT,
        DELETE_UNUSED_SECRETS,
    )
    from pke_vsphere.workflow.steps import Steps, execute, gather_errors, set_cluster_error_status


class _Deletion:
    """Runs deletion steps, aborting on failure unless forced."""

    def __init__(self, steps: Steps, input: DeleteClusterWorkflowInput) -> None:
        self.steps = steps
        self.input = input

    async def run(self, what: str, start: Callable[[], Awaitable[Any]], best_effort: bool = False) -> None:
        try:
            await start()
        except Exception as exc:
            if not (self.input.forced or best_effort):
                raise
            self.steps.logger.warning(
                "%s of cluster %s failed, continuing: %s", what, self.input.cluster_name, error_message(exc)
            )

    def delete_node(self, name: str) -> Awaitable[bool]:
        return self.steps.activity(
            DELETE_NODE,
            DeleteNodeInput(self.input.organization_id, self.input.secret_id, self.input.cluster_name, name),
            result_type=bool,
        )


async def _delete_cluster(steps: Steps, input: DeleteClusterWorkflowInput) -> None:
    deletion = _Deletion(steps, input)

    if input.k8s_secret_id:
        await deletion.run(
            "deleting kubernetes resources",
            lambda: steps.child(
                DELETE_K8S_RESOURCES_WORKFLOW,
                DeleteK8sResourcesWorkflowInput(input.organization_id, input.cluster_id, input.k8s_secret_id),
            ),
        )

    for name in input.node_names:
        await deletion.run(f'deleting node "{name}"', lambda name=name: deletion.delete_node(name))

    await deletion.run(
        "deleting master nodes",
        lambda: gather_errors({name: deletion.delete_node(name) for name in input.master_node_names}, "deleting node"),
    )

    await deletion.run(
        "deleting unused secrets",
        lambda: steps.activity(
            DELETE_UNUSED_SECRETS,
            DeleteUnusedSecretsInput(input.organization_id, input.cluster_id, input.cluster_uid),
        ),
        best_effort=True,
    )

    if input.oidc_enabled:
        await deletion.run(
            "deleting OIDC client",
            lambda: steps.activity(
                DELETE_OIDC_CLIENT,
                OIDCClientInput(input.organization_id, input.cluster_id, input.cluster_uid),
            ),
        )

    await deletion.run(
        "deleting cluster record",
        lambda: steps.activity(DELETE_CLUSTER_RECORD, DeleteClusterRecordInput(input.cluster_id)),
    )


async def run_delete_cluster(steps: Steps, input: DeleteClusterWorkflowInput) -> None:
    """Tear down a cluster's nodes, secrets and record.

    Workers go one at a time, masters in parallel.  Without ``forced`` the
    first failing step marks the cluster ERROR and fails the workflow;
    with it every failure is logged and deletion carries on.  Secret
    cleanup never aborts.
    """
    try:
        await _delete_cluster(steps, input)
    except Exception as exc:
        await set_cluster_error_status(steps, input.cluster_id, exc)
        raise


@workflow.defn(name=DELETE_CLUSTER_WORKFLOW)
class DeleteClusterWorkflow:
    @workflow.run
    async def run(self, input: DeleteClusterWorkflowInput) -> None:
        await execute(run_delete_cluster, {}, input)
