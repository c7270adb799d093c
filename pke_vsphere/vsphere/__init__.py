"""vSphere integration."""

from pke_vsphere.vsphere.client import (
    VSphereClient,
    VSphereClientFactory,
    VSphereError,
    VSphereNotFoundError,
)

__all__ = ["VSphereClient", "VSphereClientFactory", "VSphereError", "VSphereNotFoundError"]
