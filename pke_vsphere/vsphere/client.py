"""vSphere access over pyVmomi.

:class:`VSphereClient` exposes the handful of inventory operations the node
activities need: name lookups scoped to one datacenter, template cloning
(with Storage DRS placement), power management, destruction and IP
discovery.  Objects are plain pyVmomi managed objects; the opaque VM
reference handed between activities is the managed object ID.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List
from urllib.parse import urlparse

from pyVim.connect import Disconnect, SmartConnect
from pyVim.task import WaitForTask
from pyVmomi import vim

from pke_vsphere.errors import NotFoundError, PKEError
from pke_vsphere.secret import store as secrettype
from pke_vsphere.secret.store import SecretStore

logger = logging.getLogger(__name__)

POWERED_ON = vim.VirtualMachinePowerState.poweredOn
POWERED_OFF = vim.VirtualMachinePowerState.poweredOff


class VSphereNotFoundError(NotFoundError):
    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} {name!r} not found")
        self.kind = kind
        self.name = name


class VSphereError(PKEError):
    pass


class VSphereClient:
    """Session bound to one vCenter and one datacenter."""

    def __init__(self, service_instance: Any, datacenter_name: str = "") -> None:
        self.si = service_instance
        self.content = service_instance.RetrieveContent()
        self.datacenter = self._find_datacenter(datacenter_name)

    def close(self) -> None:
        Disconnect(self.si)

    def __enter__(self) -> "VSphereClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # -- lookups ------------------------------------------------------------

    def _find_datacenter(self, name: str) -> Any:
        datacenters = [
            e for e in self.content.rootFolder.childEntity if isinstance(e, vim.Datacenter)
        ]
        if name:
            for dc in datacenters:
                if dc.name == name:
                    return dc
            raise VSphereNotFoundError("datacenter", name)
        if len(datacenters) != 1:
            raise VSphereError(f"default datacenter resolves to {len(datacenters)} datacenters")
        return datacenters[0]

    def _list(self, vimtype: Any, root: Any = None) -> List[Any]:
        view = self.content.viewManager.CreateContainerView(
            root or self.datacenter, [vimtype], True
        )
        try:
            return list(view.view)
        finally:
            view.Destroy()

    def _find_one(self, vimtype: Any, kind: str, name: str) -> Any:
        for obj in self._list(vimtype):
            if obj.name == name:
                return obj
        raise VSphereNotFoundError(kind, name)

    def find_vms(self, name: str) -> List[Any]:
        """Return every VM called *name* (zero, one or several)."""
        return [vm for vm in self._list(vim.VirtualMachine) if vm.name == name]

    def vm_by_ref(self, ref: str) -> Any:
        return vim.VirtualMachine(ref, self.si._stub)

    def template(self, name: str) -> Any:
        return self._find_one(vim.VirtualMachine, "template", name)

    def folder(self, name: str = "") -> Any:
        if not name:
            return self.datacenter.vmFolder
        return self._find_one(vim.Folder, "folder", name)

    def resource_pool(self, name: str = "") -> Any:
        if name:
            return self._find_one(vim.ResourcePool, "resource pool", name)
        clusters = self._list(vim.ComputeResource)
        if len(clusters) != 1:
            raise VSphereError(f"default resource pool resolves to {len(clusters)} compute resources")
        return clusters[0].resourcePool

    def datastore(self, name: str = "") -> Any:
        if name:
            return self._find_one(vim.Datastore, "datastore", name)
        stores = list(self.datacenter.datastore)
        if len(stores) != 1:
            raise VSphereNotFoundError("datastore", "<default>")
        return stores[0]

    def datastore_cluster(self, name: str) -> Any:
        return self._find_one(vim.StoragePod, "datastore cluster", name)

    # -- cloning ------------------------------------------------------------

    @staticmethod
    def clone_spec(
        extra_config: Dict[str, str],
        pool: Any,
        datastore: Any = None,
        *,
        num_cpus: int = 0,
        memory_mb: int = 0,
    ) -> Any:
        config = vim.vm.ConfigSpec(
            extraConfig=[vim.option.OptionValue(key=k, value=v) for k, v in extra_config.items()]
        )
        if num_cpus:
            config.numCPUs = num_cpus
        if memory_mb:
            config.memoryMB = memory_mb
        location = vim.vm.RelocateSpec(pool=pool)
        if datastore is not None:
            location.datastore = datastore
        return vim.vm.CloneSpec(location=location, config=config, powerOn=True)

    def recommend_datastore(self, pod: Any, folder: Any, template: Any, name: str, clone_spec: Any) -> Any:
        """Ask Storage DRS where a clone of *template* should go."""
        placement = vim.storageDrs.StoragePlacementSpec(
            type="clone",
            cloneName=name,
            folder=folder,
            vm=template,
            cloneSpec=clone_spec,
            podSelectionSpec=vim.storageDrs.PodSelectionSpec(storagePod=pod),
        )
        result = self.content.storageResourceManager.RecommendDatastores(storageSpec=placement)
        if not result.recommendations:
            raise VSphereError("no datastore-cluster recommendations")
        return result.recommendations[0].action[0].destination

    def clone(self, template: Any, folder: Any, name: str, clone_spec: Any) -> str:
        task = template.Clone(folder=folder, name=name, spec=clone_spec)
        logger.info("Cloning template %s into %s (task %s)", template.name, name, task._moId)
        WaitForTask(task)
        return task.info.result._moId

    # -- lifecycle ----------------------------------------------------------

    @staticmethod
    def is_powered_on(vm: Any) -> bool:
        return vm.runtime.powerState == POWERED_ON

    def power_on(self, vm: Any) -> None:
        WaitForTask(vm.PowerOnVM_Task())

    def power_off(self, vm: Any) -> None:
        WaitForTask(vm.PowerOffVM_Task())

    def destroy(self, vm: Any) -> None:
        WaitForTask(vm.Destroy_Task())

    def wait_for_ip(self, vm: Any, timeout: float = 600.0, interval: float = 5.0) -> str:
        """Poll VMware Tools until the guest reports an IP address."""
        deadline = time.monotonic() + timeout
        while True:
            ip = vm.guest.ipAddress if vm.guest is not None else None
            if ip:
                return ip
            if time.monotonic() >= deadline:
                raise VSphereError(f"timed out waiting for the IP address of {vm.name}")
            time.sleep(interval)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def connect(values: Dict[str, str]) -> VSphereClient:
    """Open a session from the values of a ``vsphere`` secret."""
    url = urlparse(values[secrettype.VSPHERE_URL])
    fingerprint = values.get(secrettype.VSPHERE_FINGERPRINT, "")
    si = SmartConnect(
        host=url.hostname,
        port=url.port or 443,
        path=url.path or "/sdk",
        user=values[secrettype.VSPHERE_USER],
        pwd=values[secrettype.VSPHERE_PASSWORD],
        thumbprint=fingerprint or None,
        disableSslCertValidation=bool(fingerprint),
    )
    return VSphereClient(si, values.get(secrettype.VSPHERE_DATACENTER, ""))


class VSphereClientFactory:
    """Builds clients from organization secrets."""

    def __init__(self, secrets: SecretStore, connector=connect) -> None:
        self.secrets = secrets
        self._connect = connector

    def new(self, organization_id: int, secret_id: str) -> VSphereClient:
        secret = self.secrets.get(organization_id, secret_id)
        if secret.type != secrettype.VSPHERE:
            raise VSphereError(f"secret {secret_id!r} is not a {secrettype.VSPHERE} secret")
        return self._connect(secret.values)