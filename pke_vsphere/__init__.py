"""PKE on vSphere - cluster lifecycle control plane.

Validates cluster requests, persists cluster state and drives durable
Temporal workflows that clone, join, drain and destroy the vSphere VMs
backing each Kubernetes node.
"""

try:
    from importlib.metadata import version

    __version__ = version("pke-vsphere-control-plane")
except Exception:
    __version__ = "0.0.0.dev0"

__all__ = ["__version__"]
