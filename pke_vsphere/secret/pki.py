"""Key material generation: cluster CA set and SSH key pairs."""

from __future__ import annotations

import base64
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

CA_VALIDITY = timedelta(days=3650)
CA_KEY_SIZE = 2048
SSH_KEY_SIZE = 2048

# Keys of the "pkecert" secret, one PEM value each.
CA_CERT = "caCert"
CA_KEY = "caKey"
ETCD_CA_CERT = "etcdCaCert"
ETCD_CA_KEY = "etcdCaKey"
FRONT_PROXY_CA_CERT = "frontProxyCaCert"
FRONT_PROXY_CA_KEY = "frontProxyCaKey"
SA_PUB = "saPub"
SA_KEY = "saKey"


def _private_key_pem(key: rsa.RSAPrivateKey) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


def generate_ca(common_name: str, *, now: Optional[datetime] = None) -> Tuple[str, str]:
    """Return a self-signed CA as ``(cert_pem, key_pem)``."""
    now = now or datetime.now(timezone.utc)
    key = rsa.generate_private_key(public_exponent=65537, key_size=CA_KEY_SIZE)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + CA_VALIDITY)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM).decode("utf-8"), _private_key_pem(key)


def generate_cluster_certificates() -> Dict[str, str]:
    """Generate the CA set a PKE cluster is bootstrapped with.

    Covers the Kubernetes CA, the etcd CA, the front proxy CA and the
    service account signing key pair.
    """
    values: Dict[str, str] = {}
    values[CA_CERT], values[CA_KEY] = generate_ca("kubernetes")
    values[ETCD_CA_CERT], values[ETCD_CA_KEY] = generate_ca("etcd-ca")
    values[FRONT_PROXY_CA_CERT], values[FRONT_PROXY_CA_KEY] = generate_ca("front-proxy-ca")

    sa_key = rsa.generate_private_key(public_exponent=65537, key_size=CA_KEY_SIZE)
    values[SA_KEY] = _private_key_pem(sa_key)
    values[SA_PUB] = (
        sa_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("utf-8")
    )
    return values


def generate_ssh_key_pair() -> Tuple[str, str, str]:
    """Return ``(private_pem, public_openssh, md5_fingerprint)``."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=SSH_KEY_SIZE)
    public = (
        key.public_key()
        .public_bytes(serialization.Encoding.OpenSSH, serialization.PublicFormat.OpenSSH)
        .decode("utf-8")
    )
    return _private_key_pem(key), public, ssh_fingerprint(public)


def ssh_fingerprint(public_openssh: str) -> str:
    """MD5 fingerprint of an OpenSSH public key, as ``aa:bb:...``."""
    blob = base64.b64decode(public_openssh.split()[1])
    digest = hashlib.md5(blob).hexdigest()
    return ":".join(digest[i : i + 2] for i in range(0, len(digest), 2))
