"""Persistent cluster and node pool state."""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from pke_vsphere.store.cluster_store import SQLClusterStore
from pke_vsphere.store.models import (
    CREATING,
    DELETING,
    ERROR,
    RUNNING,
    UPDATING,
    WARNING,
    Cluster,
    CreateParams,
    HTTPProxy,
    HTTPProxyOptions,
    Kubernetes,
    Network,
    NodePool,
    StatusHistoryEntry,
    get_vm_name,
)


def make_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine for *url*.

    In-memory SQLite gets a single shared connection so every session sees
    the same database.
    """
    kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


__all__ = [
    "CREATING",
    "Cluster",
    "CreateParams",
    "DELETING",
    "ERROR",
    "HTTPProxy",
    "HTTPProxyOptions",
    "Kubernetes",
    "Network",
    "NodePool",
    "RUNNING",
    "SQLClusterStore",
    "StatusHistoryEntry",
    "UPDATING",
    "WARNING",
    "get_vm_name",
    "make_engine",
]
