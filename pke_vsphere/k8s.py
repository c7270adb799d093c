"""Kubernetes API clients built from stored kubeconfigs."""

from __future__ import annotations

import base64
import logging

import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from pke_vsphere.errors import PKEError
from pke_vsphere.secret import store as secrettype
from pke_vsphere.secret.store import SecretStore

logger = logging.getLogger(__name__)


class KubeconfigError(PKEError):
    pass


def decode_kubeconfig(value: str) -> str:
    """Kubeconfigs are stored base64-encoded; accept plain YAML too."""
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except ValueError:
        return value
    return decoded


def api_client_from_kubeconfig(kubeconfig: str) -> client.ApiClient:
    data = yaml.safe_load(decode_kubeconfig(kubeconfig))
    if not isinstance(data, dict):
        raise KubeconfigError("kubeconfig is not a YAML mapping")
    return config.new_client_from_config_dict(data)


def core_v1_from_kubeconfig(kubeconfig: str) -> client.CoreV1Api:
    return client.CoreV1Api(api_client_from_kubeconfig(kubeconfig))


def is_not_found(exc: ApiException) -> bool:
    return exc.status == 404


def is_conflict(exc: ApiException) -> bool:
    return exc.status == 409


class KubernetesClientFactory:
    """Resolves a cluster's kubeconfig secret into API clients."""

    def __init__(self, secrets: SecretStore) -> None:
        self.secrets = secrets

    def kubeconfig(self, organization_id: int, config_secret_id: str) -> str:
        secret = self.secrets.get(organization_id, config_secret_id)
        value = secret.values.get(secrettype.KUBECONFIG, "")
        if not value:
            raise KubeconfigError(f"secret {config_secret_id!r} holds no kubeconfig")
        return value

    def core_v1(self, organization_id: int, config_secret_id: str) -> client.CoreV1Api:
        return core_v1_from_kubeconfig(self.kubeconfig(organization_id, config_secret_id))

    def rbac_v1(self, organization_id: int, config_secret_id: str) -> client.RbacAuthorizationV1Api:
        kubeconfig = self.kubeconfig(organization_id, config_secret_id)
        return client.RbacAuthorizationV1Api(api_client_from_kubeconfig(kubeconfig))
