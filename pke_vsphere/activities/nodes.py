"""Node activities: one vSphere VM, or one Kubernetes node, per call.

Every activity is safe to retry.  CreateNode checks for a VM with the
target name before cloning, DeleteNode and DeleteK8sNode treat an absent
object as already deleted.
"""

from __future__ import annotations

import logging

from kubernetes.client.rest import ApiException
from temporalio import activity

from pke_vsphere import k8s
from pke_vsphere.driver.templates import build_cloud_config, guestinfo_extra_config, render_script
from pke_vsphere.errors import FatalActivityError
from pke_vsphere.k8s import KubernetesClientFactory
from pke_vsphere.secret.tokens import TokenGenerator
from pke_vsphere.vsphere.client import VSphereClientFactory, VSphereNotFoundError
from pke_vsphere.workflow.models import (
    CreateNodeInput,
    DeleteK8sNodeInput,
    DeleteNodeInput,
    GetPublicAddressInput,
    WaitForIPInput,
)
from pke_vsphere.workflow.names import (
    CREATE_NODE,
    DELETE_K8S_NODE,
    DELETE_NODE,
    GET_PUBLIC_ADDRESS,
    WAIT_FOR_IP,
)

logger = logging.getLogger(__name__)

# Below the activities' start-to-close timeout.
IP_WAIT_TIMEOUT = 540.0


class NodeActivities:
    def __init__(
        self,
        vsphere: VSphereClientFactory,
        tokens: TokenGenerator,
        kubernetes: KubernetesClientFactory,
        ip_wait_timeout: float = IP_WAIT_TIMEOUT,
    ) -> None:
        self.vsphere = vsphere
        self.tokens = tokens
        self.kubernetes = kubernetes
        self.ip_wait_timeout = ip_wait_timeout

    @activity.defn(name=CREATE_NODE)
    def create_node(self, input: CreateNodeInput) -> str:
        """Clone the node's template and return the new VM's reference."""
        node = input.node
        logger.info(
            "Creating virtual machine %s (organization=%d cluster=%s)",
            node.name,
            input.organization_id,
            input.cluster_name,
        )

        with self.vsphere.new(input.organization_id, input.secret_id) as client:
            existing = client.find_vms(node.name)
            if len(existing) > 1:
                raise FatalActivityError(f"found {len(existing)} virtual machines named {node.name!r}")
            if existing:
                vm = existing[0]
                logger.info("Virtual machine %s already exists, not cloning it again", node.name)
                if not client.is_powered_on(vm):
                    client.power_on(vm)
                return vm._moId

            _, token = self.tokens.generate_cluster_token(input.organization_id, input.cluster_id)
            userdata = build_cloud_config(node.admin_username, node.ssh_public_key, render_script(node.script, token))
            extra_config = guestinfo_extra_config(userdata, input.cluster_name, node.node_pool_name)

            try:
                folder = client.folder(input.folder_name)
                template = client.template(node.template_name)
                pool = client.resource_pool(input.resource_pool_name)
            except VSphereNotFoundError as exc:
                raise FatalActivityError(str(exc)) from exc

            spec = client.clone_spec(extra_config, pool, num_cpus=node.vcpu, memory_mb=node.ram_mb)
            try:
                spec.location.datastore = client.datastore(input.datastore_name)
            except VSphereNotFoundError:
                logger.debug("Datastore %s not found, falling back to Storage DRS", input.datastore_name)
                try:
                    pod = client.datastore_cluster(input.datastore_name)
                except VSphereNotFoundError:
                    raise FatalActivityError(
                        f"neither a datastore nor a datastore cluster named {input.datastore_name!r} found"
                    ) from None
                spec.location.datastore = client.recommend_datastore(pod, folder, template, node.name, spec)

            ref = client.clone(template, folder, node.name, spec)

        logger.info("Virtual machine %s created (%s)", node.name, ref)
        return ref

    @activity.defn(name=DELETE_NODE)
    def delete_node(self, input: DeleteNodeInput) -> bool:
        """Destroy the named VM; returns whether it existed."""
        with self.vsphere.new(input.organization_id, input.secret_id) as client:
            vms = client.find_vms(input.node_name)
            if len(vms) != 1:
                logger.info(
                    "Found %d virtual machines named %s, treating it as already deleted",
                    len(vms),
                    input.node_name,
                )
                return False

            vm = vms[0]
            if client.is_powered_on(vm):
                logger.info("Powering off virtual machine %s", input.node_name)
                client.power_off(vm)
            client.destroy(vm)

        logger.info("Virtual machine %s deleted", input.node_name)
        return True

    @activity.defn(name=DELETE_K8S_NODE)
    def delete_k8s_node(self, input: DeleteK8sNodeInput) -> None:
        if not input.k8s_secret_id:
            logger.info("Cluster %s has no kubeconfig, skipping node %s", input.cluster_name, input.name)
            return

        core = self.kubernetes.core_v1(input.organization_id, input.k8s_secret_id)
        try:
            core.read_node(input.name)
            core.delete_node(input.name)
        except ApiException as exc:
            if k8s.is_not_found(exc):
                logger.info("Kubernetes node %s does not exist", input.name)
                return
            raise
        logger.info("Kubernetes node %s deleted", input.name)

    @activity.defn(name=GET_PUBLIC_ADDRESS)
    def get_public_address(self, input: GetPublicAddressInput) -> str:
        with self.vsphere.new(input.organization_id, input.secret_id) as client:
            vms = client.find_vms(input.node_name)
            if not vms:
                raise VSphereNotFoundError("virtual machine", input.node_name)
            if len(vms) > 1:
                raise FatalActivityError(f"found {len(vms)} virtual machines named {input.node_name!r}")
            return client.wait_for_ip(vms[0], timeout=self.ip_wait_timeout)

    @activity.defn(name=WAIT_FOR_IP)
    def wait_for_ip(self, input: WaitForIPInput) -> str:
        with self.vsphere.new(input.organization_id, input.secret_id) as client:
            ip = client.wait_for_ip(client.vm_by_ref(input.ref), timeout=self.ip_wait_timeout)
        logger.info("Virtual machine %s of cluster %s got IP %s", input.ref, input.cluster_name, ip)
        return ip
