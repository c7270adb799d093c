"""Secret storage, key material and join tokens."""

from pke_vsphere.secret.store import SecretItem, SecretStore, SQLSecretStore
from pke_vsphere.secret.tokens import SecretTokenGenerator, TokenGenerator

__all__ = [
    "SQLSecretStore",
    "SecretItem",
    "SecretStore",
    "SecretTokenGenerator",
    "TokenGenerator",
]
