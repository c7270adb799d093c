"""Configuration loading.

Resolution order for the file path:

1. explicit ``path`` argument (the CLI's ``--config``)
2. ``PKE_VSPHERE_CONFIG``
3. ``$XDG_CONFIG_HOME/pke-vsphere/config.yaml`` (``~/.config`` fallback)

A missing file yields the defaults.  Selected values can then be overridden
from the environment, see :data:`ENV_OVERRIDES`.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from pke_vsphere.config.models import ControlPlaneConfig

logger = logging.getLogger(__name__)

_APP_DIR = "pke-vsphere"
CONFIG_ENV = "PKE_VSPHERE_CONFIG"

# env var -> (section, key)
ENV_OVERRIDES = {
    "PKE_VSPHERE_DATABASE_URL": ("database", "url"),
    "PKE_VSPHERE_TEMPORAL_ADDRESS": ("temporal", "address"),
    "PKE_VSPHERE_ENCRYPTION_KEY": ("pipeline", "encryption_key"),
}


def default_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME", "")
    if not base:
        base = str(Path.home() / ".config")
    return Path(base) / _APP_DIR / "config.yaml"


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV, "")
    if env_path:
        return Path(env_path)
    return default_config_path()


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            section_raw = raw.get(section) or {}
            section_raw[key] = value
            raw[section] = section_raw
    return raw


def load_config(path: Optional[Union[str, Path]] = None) -> ControlPlaneConfig:
    """Load the control plane configuration."""
    cfg_path = resolve_config_path(path)
    raw: Dict[str, Any] = {}
    if cfg_path.exists():
        with open(cfg_path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        logger.debug("Loaded configuration from %s", cfg_path)
    else:
        logger.debug("No configuration file at %s, using defaults", cfg_path)

    return ControlPlaneConfig.model_validate(_apply_env_overrides(raw))
