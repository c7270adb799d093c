"""Control plane configuration."""

from pke_vsphere.config.loader import load_config, resolve_config_path
from pke_vsphere.config.models import ControlPlaneConfig

__all__ = ["ControlPlaneConfig", "load_config", "resolve_config_path"]
