"""One-time cluster join tokens.

Nodes authenticate back to the control plane (``--pipeline-token``) with a
token minted for their cluster.  Tokens are recorded in the secret store so
they can be revoked together with the cluster's other secrets.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from typing import Protocol, Tuple

from pke_vsphere.secret.store import JOIN_TOKEN, SecretStore, cluster_id_tag

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


class TokenGenerator(Protocol):
    def generate_cluster_token(self, organization_id: int, cluster_id: int) -> Tuple[str, str]: ...


class SecretTokenGenerator:
    """Token generator backed by a :class:`SecretStore`."""

    def __init__(self, secrets_store: SecretStore) -> None:
        self.secrets = secrets_store

    def generate_cluster_token(self, organization_id: int, cluster_id: int) -> Tuple[str, str]:
        """Mint a token and return ``(token_id, token)``."""
        token_id = str(uuid.uuid4())
        token = secrets.token_urlsafe(TOKEN_BYTES)
        self.secrets.store(
            organization_id,
            f"cluster-{cluster_id}-token-{token_id}",
            JOIN_TOKEN,
            {"token": token, "cluster_id": str(cluster_id)},
            tags=[cluster_id_tag(cluster_id)],
        )
        logger.debug("Issued join token %s for cluster %d", token_id, cluster_id)
        return token_id, token
