"""Organization-scoped secret storage.

Drivers and activities only depend on the :class:`SecretStore` protocol.
:class:`SQLSecretStore` is the bundled implementation: secret values are
Fernet-encrypted and kept next to the cluster tables.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel, Field
from sqlalchemy import JSON, Column, DateTime, Engine, Integer, String, Text, UniqueConstraint, select
from sqlalchemy.orm import Session

from pke_vsphere.errors import PKEError, SecretNotFoundError
from pke_vsphere.store.tables import Base

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Secret types and well-known keys
# ---------------------------------------------------------------------------

VSPHERE = "vsphere"
SSH = "ssh"
KUBERNETES = "kubernetes"
PKE_CERTS = "pkecert"
PASSWORD = "password"
OIDC_CLIENT = "oidc-client"
JOIN_TOKEN = "pke-join-token"

VSPHERE_URL = "url"
VSPHERE_USER = "user"
VSPHERE_PASSWORD = "password"
VSPHERE_FINGERPRINT = "fingerprint"
VSPHERE_DATACENTER = "datacenter"
VSPHERE_DATASTORE = "datastore"
VSPHERE_RESOURCE_POOL = "resourcePool"
VSPHERE_FOLDER = "folder"
VSPHERE_DEFAULT_NODE_TEMPLATE = "defaultNodeTemplate"

SSH_USER = "user"
SSH_PUBLIC_KEY = "public_key_data"
SSH_PRIVATE_KEY = "private_key_data"
SSH_FINGERPRINT = "public_key_fingerprint"

KUBECONFIG = "K8Sconfig"

PASSWORD_USERNAME = "username"
PASSWORD_PASSWORD = "password"


def cluster_uid_tag(cluster_uid: str) -> str:
    return f"clusterUID:{cluster_uid}"


def cluster_id_tag(cluster_id: int) -> str:
    return f"clusterID:{cluster_id}"


def kubeconfig_secret_name(cluster_id: int) -> str:
    return f"cluster-{cluster_id}-kubeconfig"


def certificates_secret_name(cluster_id: int) -> str:
    return f"cluster-{cluster_id}-pki"


def oidc_client_secret_name(cluster_id: int) -> str:
    return f"cluster-{cluster_id}-oidc-client"


class SecretItem(BaseModel):
    id: str
    organization_id: int
    name: str
    type: str
    values: Dict[str, str] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)


class SecretStore(Protocol):
    def get(self, organization_id: int, secret_id: str) -> SecretItem: ...

    def get_by_name(self, organization_id: int, name: str) -> SecretItem: ...

    def store(
        self,
        organization_id: int,
        name: str,
        secret_type: str,
        values: Dict[str, str],
        tags: Optional[List[str]] = None,
    ) -> str: ...

    def delete(self, organization_id: int, secret_id: str) -> None: ...

    def list_by_tag(self, organization_id: int, tag: str) -> List[SecretItem]: ...


# ---------------------------------------------------------------------------
# SQL implementation
# ---------------------------------------------------------------------------


class SecretRow(Base):
    __tablename__ = "secrets"

    id = Column(String(36), primary_key=True)
    organization_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(64), nullable=False)
    values = Column(Text, nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (UniqueConstraint("organization_id", "name", name="uq_secret_org_name"),)


class SecretDecryptionError(PKEError):
    pass


class SQLSecretStore:
    """Secret store persisting Fernet-encrypted values through SQLAlchemy."""

    def __init__(self, engine: Engine, encryption_key: str) -> None:
        if not encryption_key:
            raise ValueError("secret encryption key is not set")
        self.engine = engine
        self._cipher = Fernet(encryption_key.encode())

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine, tables=[SecretRow.__table__])

    def _encrypt(self, values: Dict[str, str]) -> str:
        return self._cipher.encrypt(json.dumps(values, sort_keys=True).encode()).decode()

    def _decrypt(self, data: str) -> Dict[str, str]:
        try:
            return json.loads(self._cipher.decrypt(data.encode()))
        except InvalidToken as exc:
            raise SecretDecryptionError("failed to decrypt secret values") from exc

    def _to_item(self, row: SecretRow) -> SecretItem:
        return SecretItem(
            id=row.id,
            organization_id=row.organization_id,
            name=row.name,
            type=row.type,
            values=self._decrypt(row.values),
            tags=list(row.tags or []),
        )

    def get(self, organization_id: int, secret_id: str) -> SecretItem:
        with Session(self.engine) as session:
            row = session.get(SecretRow, secret_id)
            if row is None or row.organization_id != organization_id:
                raise SecretNotFoundError(organization_id, secret_id)
            return self._to_item(row)

    def get_by_name(self, organization_id: int, name: str) -> SecretItem:
        with Session(self.engine) as session:
            row = session.execute(
                select(SecretRow)
                .where(SecretRow.organization_id == organization_id)
                .where(SecretRow.name == name)
            ).scalar_one_or_none()
            if row is None:
                raise SecretNotFoundError(organization_id, name)
            return self._to_item(row)

    def store(
        self,
        organization_id: int,
        name: str,
        secret_type: str,
        values: Dict[str, str],
        tags: Optional[List[str]] = None,
    ) -> str:
        """Create or overwrite the secret called *name* and return its ID."""
        with Session(self.engine) as session, session.begin():
            row = session.execute(
                select(SecretRow)
                .where(SecretRow.organization_id == organization_id)
                .where(SecretRow.name == name)
            ).scalar_one_or_none()
            if row is None:
                row = SecretRow(id=str(uuid.uuid4()), organization_id=organization_id, name=name)
                session.add(row)
            row.type = secret_type
            row.values = self._encrypt(values)
            row.tags = list(tags or [])
            secret_id = row.id

        logger.debug("Stored %s secret %r for organization %d", secret_type, name, organization_id)
        return secret_id

    def delete(self, organization_id: int, secret_id: str) -> None:
        with Session(self.engine) as session, session.begin():
            row = session.get(SecretRow, secret_id)
            if row is None or row.organization_id != organization_id:
                raise SecretNotFoundError(organization_id, secret_id)
            session.delete(row)

    def list_by_tag(self, organization_id: int, tag: str) -> List[SecretItem]:
        with Session(self.engine) as session:
            rows = session.execute(
                select(SecretRow).where(SecretRow.organization_id == organization_id)
            ).scalars()
            return [self._to_item(r) for r in rows if tag in (r.tags or [])]
