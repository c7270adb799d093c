"""Shared fixtures: in-memory stores and a scripted ``Steps`` runner."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from cryptography.fernet import Fernet

from pke_vsphere.secret import store as secrettype
from pke_vsphere.secret.store import SQLSecretStore
from pke_vsphere.store import make_engine
from pke_vsphere.store.cluster_store import SQLClusterStore
from pke_vsphere.store.models import (
    ROLE_MASTER,
    ROLE_WORKER,
    CreateParams,
    Kubernetes,
    NodePool,
)

ORG_ID = 7


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    yield eng
    eng.dispose()


@pytest.fixture
def cluster_store(engine):
    store = SQLClusterStore(engine)
    store.create_schema()
    return store


@pytest.fixture
def secret_store(engine):
    store = SQLSecretStore(engine, Fernet.generate_key().decode())
    store.create_schema()
    return store


@pytest.fixture
def vsphere_secret_id(secret_store):
    return secret_store.store(
        ORG_ID,
        "vcenter",
        secrettype.VSPHERE,
        {
            secrettype.VSPHERE_URL: "https://vcenter.example.com/sdk",
            secrettype.VSPHERE_USER: "admin",
            secrettype.VSPHERE_PASSWORD: "secret",
            secrettype.VSPHERE_DEFAULT_NODE_TEMPLATE: "ubuntu-template",
        },
    )


def make_pool(name="pool1", roles=None, size=1, ram=1024, vcpu=2, **kwargs) -> NodePool:
    return NodePool(
        name=name,
        roles=[ROLE_WORKER] if roles is None else roles,
        size=size,
        ram=ram,
        vcpu=vcpu,
        **kwargs,
    )


def make_create_params(name="demo", secret_id="vsphere-secret", node_pools=None, **kwargs) -> CreateParams:
    if node_pools is None:
        node_pools = [
            make_pool("master", roles=[ROLE_MASTER], size=1, template_name="ubuntu", admin_username="banzaicloud"),
            make_pool("workers", size=2, template_name="ubuntu", admin_username="banzaicloud"),
        ]
    return CreateParams(
        name=name,
        organization_id=ORG_ID,
        secret_id=secret_id,
        kubernetes=Kubernetes(version="1.15.3"),
        node_pools=node_pools,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


class FakeSteps:
    """``Steps`` implementation that records calls and answers from handlers.

    *handlers* maps an activity or child workflow name to a callable taking
    the step argument; its return value is the step result and anything it
    raises is the step failure.  Steps without a handler return ``None``.
    """

    def __init__(
        self,
        handlers: Optional[Dict[str, Callable[[Any], Any]]] = None,
        signals: Tuple[str, ...] = (),
    ) -> None:
        self.handlers = dict(handlers or {})
        self.signals = set(signals)
        self.calls: List[Tuple[str, str, Any]] = []
        self.logger = logging.getLogger("tests.steps")

    async def _run(self, kind: str, name: str, arg: Any) -> Any:
        self.calls.append((kind, name, arg))
        handler = self.handlers.get(name)
        if handler is None:
            return None
        return handler(arg)

    def activity(self, name: str, arg: Any, result_type=None):
        return self._run("activity", name, arg)

    def child(self, name: str, arg: Any):
        return self._run("child", name, arg)

    async def wait_for_signal(self, name, timeout) -> bool:
        self.calls.append(("signal", name, timeout))
        return name in self.signals

    def names(self, kind: Optional[str] = None) -> List[str]:
        return [name for k, name, _ in self.calls if kind is None or k == kind]

    def args(self, name: str) -> List[Any]:
        return [arg for _, n, arg in self.calls if n == name]


def raises(exc: BaseException) -> Callable[[Any], Any]:
    def handler(arg: Any) -> Any:
        raise exc

    return handler
