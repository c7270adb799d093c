"""Secret activities: cluster PKI, OIDC clients, proxy credentials, kubeconfig."""

from __future__ import annotations

import logging
import secrets as pysecrets
from urllib.parse import quote

import yaml
from temporalio import activity

from pke_vsphere.errors import FatalActivityError, SecretNotFoundError
from pke_vsphere.k8s import decode_kubeconfig
from pke_vsphere.secret import pki
from pke_vsphere.secret import store as secrettype
from pke_vsphere.secret.store import (
    SecretStore,
    certificates_secret_name,
    cluster_id_tag,
    cluster_uid_tag,
    kubeconfig_secret_name,
    oidc_client_secret_name,
)
from pke_vsphere.workflow.models import (
    AssembleHTTPProxySettingsInput,
    DeleteUnusedSecretsInput,
    DownloadK8sConfigInput,
    GenerateCertificatesInput,
    HTTPProxySettings,
    OIDCClientInput,
    ProxyOptions,
)
from pke_vsphere.workflow.names import (
    ASSEMBLE_HTTP_PROXY_SETTINGS,
    CREATE_OIDC_CLIENT,
    DELETE_OIDC_CLIENT,
    DELETE_UNUSED_SECRETS,
    DOWNLOAD_K8S_CONFIG,
    GENERATE_CERTIFICATES,
)

logger = logging.getLogger(__name__)


class SecretActivities:
    def __init__(self, secrets: SecretStore) -> None:
        self.secrets = secrets

    @activity.defn(name=GENERATE_CERTIFICATES)
    def generate_certificates(self, input: GenerateCertificatesInput) -> str:
        """Create the cluster's CA set once and return its secret ID."""
        name = certificates_secret_name(input.cluster_id)
        try:
            return self.secrets.get_by_name(input.organization_id, name).id
        except SecretNotFoundError:
            pass

        return self.secrets.store(
            input.organization_id,
            name,
            secrettype.PKE_CERTS,
            pki.generate_cluster_certificates(),
            tags=[cluster_id_tag(input.cluster_id), cluster_uid_tag(input.cluster_uid)],
        )

    @activity.defn(name=CREATE_OIDC_CLIENT)
    def create_oidc_client(self, input: OIDCClientInput) -> str:
        """Register the cluster as an OIDC client; the client ID is the cluster UID."""
        name = oidc_client_secret_name(input.cluster_id)
        try:
            return self.secrets.get_by_name(input.organization_id, name).id
        except SecretNotFoundError:
            pass

        return self.secrets.store(
            input.organization_id,
            name,
            secrettype.OIDC_CLIENT,
            {"client_id": input.cluster_uid, "client_secret": pysecrets.token_urlsafe(32)},
            tags=[cluster_id_tag(input.cluster_id), cluster_uid_tag(input.cluster_uid)],
        )

    @activity.defn(name=DELETE_OIDC_CLIENT)
    def delete_oidc_client(self, input: OIDCClientInput) -> None:
        try:
            secret = self.secrets.get_by_name(input.organization_id, oidc_client_secret_name(input.cluster_id))
            self.secrets.delete(input.organization_id, secret.id)
        except SecretNotFoundError:
            logger.info("Cluster %d has no OIDC client", input.cluster_id)

    def _proxy_url(self, organization_id: int, options: ProxyOptions) -> str:
        if not options.host_port:
            return ""
        scheme = options.scheme or "http"
        if not options.secret_id:
            return f"{scheme}://{options.host_port}"

        secret = self.secrets.get(organization_id, options.secret_id)
        if secret.type != secrettype.PASSWORD:
            raise FatalActivityError(f"proxy secret {options.secret_id!r} is not a {secrettype.PASSWORD} secret")
        user = quote(secret.values.get(secrettype.PASSWORD_USERNAME, ""), safe="")
        password = quote(secret.values.get(secrettype.PASSWORD_PASSWORD, ""), safe="")
        return f"{scheme}://{user}:{password}@{options.host_port}"

    @activity.defn(name=ASSEMBLE_HTTP_PROXY_SETTINGS)
    def assemble_http_proxy_settings(self, input: AssembleHTTPProxySettingsInput) -> HTTPProxySettings:
        return HTTPProxySettings(
            http_proxy_url=self._proxy_url(input.organization_id, input.http),
            https_proxy_url=self._proxy_url(input.organization_id, input.https),
        )

    @activity.defn(name=DOWNLOAD_K8S_CONFIG)
    def download_k8s_config(self, input: DownloadK8sConfigInput) -> str:
        """Return the ID of the kubeconfig secret the master uploaded."""
        secret = self.secrets.get_by_name(input.organization_id, kubeconfig_secret_name(input.cluster_id))
        kubeconfig = secret.values.get(secrettype.KUBECONFIG, "")
        try:
            parsed = yaml.safe_load(decode_kubeconfig(kubeconfig))
        except yaml.YAMLError as exc:
            raise FatalActivityError(f"kubeconfig of cluster {input.cluster_id} is not valid YAML") from exc
        if not isinstance(parsed, dict) or not parsed.get("clusters"):
            raise FatalActivityError(f"kubeconfig of cluster {input.cluster_id} defines no clusters")
        return secret.id

    @activity.defn(name=DELETE_UNUSED_SECRETS)
    def delete_unused_secrets(self, input: DeleteUnusedSecretsInput) -> None:
        """Best effort: delete every secret tagged with the cluster."""
        seen = set()
        for tag in (cluster_uid_tag(input.cluster_uid), cluster_id_tag(input.cluster_id)):
            for secret in self.secrets.list_by_tag(input.organization_id, tag):
                if secret.id in seen:
                    continue
                seen.add(secret.id)
                try:
                    self.secrets.delete(input.organization_id, secret.id)
                except Exception as exc:
                    logger.warning("Failed to delete secret %s of cluster %d: %s", secret.name, input.cluster_id, exc)
                else:
                    logger.info("Deleted secret %s of cluster %d", secret.name, input.cluster_id)
