"""Cluster creation workflow."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from typing import Any, Awaitable, Dict

from temporalio import workflow

with workflow.unsafe.imports_passed_through():
    from pke_vsphere.store.models import CREATING, RUNNING, RUNNING_MESSAGE
    from pke_vsphere.workflow.models import (
        AssembleHTTPProxySettingsInput,
        ClusterSetupWorkflowInput,
        CreateClusterWorkflowInput,
        CreateNodeInput,
        DownloadK8sConfigInput,
        GenerateCertificatesInput,
        HTTPProxyConfig,
        HTTPProxySettings,
        Node,
        OIDCClientInput,
        SetConfigSecretIDInput,
        WaitForIPInput,
    )
    from pke_vsphere.workflow.names import (
        ASSEMBLE_HTTP_PROXY_SETTINGS,
        CLUSTER_SETUP_WORKFLOW,
        CREATE_CLUSTER_WORKFLOW,
        CREATE_NODE,
        CREATE_OIDC_CLIENT,
        DOWNLOAD_K8S_CONFIG,
        GENERATE_CERTIFICATES,
        MASTER_READY_SIGNAL,
        SET_CONFIG_SECRET_ID,
        WAIT_FOR_IP,
    )
    from pke_vsphere.workflow.steps import (
        SignalTimeoutError,
        Steps,
        execute,
        gather_errors,
        set_cluster_error_status,
        set_cluster_status,
    )

WAITING_FOR_MASTER_MESSAGE = "waiting for Kubernetes master"


async def assemble_http_proxy_settings(
    steps: Steps, organization_id: int, proxy: HTTPProxyConfig
) -> HTTPProxySettings:
    return await steps.activity(
        ASSEMBLE_HTTP_PROXY_SETTINGS,
        AssembleHTTPProxySettingsInput(organization_id, proxy.http, proxy.https),
        result_type=HTTPProxySettings,
    )


def start_create_node(
    steps: Steps,
    input: Any,
    node: Node,
    proxy: HTTPProxySettings,
    public_address: str = "",
) -> Awaitable[str]:
    """Start CreateNode for *node* of the cluster described by *input*.

    Workers without an explicit public address join *public_address*.
    """
    script = node.script.with_proxy(proxy)
    if not script.public_address:
        script = replace(script, public_address=public_address)

    return steps.activity(
        CREATE_NODE,
        CreateNodeInput(
            organization_id=input.organization_id,
            cluster_id=input.cluster_id,
            secret_id=input.secret_id,
            cluster_name=input.cluster_name,
            node=replace(node, script=script),
            resource_pool_name=input.resource_pool_name,
            folder_name=input.folder_name,
            datastore_name=input.datastore_name,
        ),
        result_type=str,
    )


async def _create_cluster(steps: Steps, input: CreateClusterWorkflowInput) -> None:
    await steps.activity(
        GENERATE_CERTIFICATES,
        GenerateCertificatesInput(input.organization_id, input.cluster_id, input.cluster_uid),
        result_type=str,
    )

    if input.oidc_enabled:
        await steps.activity(
            CREATE_OIDC_CLIENT,
            OIDCClientInput(input.organization_id, input.cluster_id, input.cluster_uid),
            result_type=str,
        )

    proxy = await assemble_http_proxy_settings(steps, input.organization_id, input.http_proxy)

    masters = [node for node in input.nodes if node.master]
    refs = await gather_errors(
        {node.name: start_create_node(steps, input, node, proxy) for node in masters},
        "creating node",
    )
    master_ref = refs[masters[0].name]

    master_ip = await steps.activity(
        WAIT_FOR_IP,
        WaitForIPInput(input.organization_id, input.secret_id, input.cluster_name, master_ref),
        result_type=str,
    )
    steps.logger.info("Kubernetes master of cluster %s is at %s", input.cluster_name, master_ip)

    await set_cluster_status(steps, input.cluster_id, CREATING, WAITING_FOR_MASTER_MESSAGE)

    workers: Dict[str, Awaitable[str]] = {
        node.name: start_create_node(steps, input, node, proxy, public_address=master_ip)
        for node in input.nodes
        if not node.master
    }
    await gather_errors(workers, "creating node")

    if not await steps.wait_for_signal(MASTER_READY_SIGNAL, timedelta(seconds=input.master_ready_timeout)):
        raise SignalTimeoutError(MASTER_READY_SIGNAL)

    config_secret_id = await steps.activity(
        DOWNLOAD_K8S_CONFIG,
        DownloadK8sConfigInput(input.organization_id, input.cluster_id),
        result_type=str,
    )
    await steps.activity(SET_CONFIG_SECRET_ID, SetConfigSecretIDInput(input.cluster_id, config_secret_id))

    await steps.child(
        CLUSTER_SETUP_WORKFLOW,
        ClusterSetupWorkflowInput(
            organization_id=input.organization_id,
            cluster_id=input.cluster_id,
            cluster_uid=input.cluster_uid,
            cluster_name=input.cluster_name,
            config_secret_id=config_secret_id,
            node_pool_labels=input.node_pool_labels,
            rbac_enabled=input.rbac_enabled,
        ),
    )

    await set_cluster_status(steps, input.cluster_id, RUNNING, RUNNING_MESSAGE)


async def run_create_cluster(steps: Steps, input: CreateClusterWorkflowInput) -> None:
    """Provision every node of a new cluster and bring it to RUNNING.

    Masters are created first: workers join the address of the first
    master.  After the worker fan-out the workflow blocks until the master
    reports ready through the ``master-ready`` signal.  Any failure records
    ERROR on the cluster and fails the workflow.
    """
    try:
        await _create_cluster(steps, input)
    except Exception as exc:
        await set_cluster_error_status(steps, input.cluster_id, exc)
        raise


@workflow.defn(name=CREATE_CLUSTER_WORKFLOW)
class CreateClusterWorkflow:
    def __init__(self) -> None:
        self._signals: Dict[str, bool] = {}

    @workflow.signal(name=MASTER_READY_SIGNAL)
    def master_ready(self) -> None:
        self._signals[MASTER_READY_SIGNAL] = True

    @workflow.run
    async def run(self, input: CreateClusterWorkflowInput) -> None:
        await execute(run_create_cluster, self._signals, input)
