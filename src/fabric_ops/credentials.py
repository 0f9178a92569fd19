"""On-disk store for enrollment certificates and private keys."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    load_pem_private_key,
)

from fabric_ops.errors import CredentialStoreError
from fabric_ops.profile import ConnectionProfile

DEFAULT_CREDENTIAL_STORE_PATH = "./credentials"


@dataclass(frozen=True)
class StoredCredential:
    name: str
    org: str
    cert_path: Path
    key_path: Path

    def certificate(self) -> x509.Certificate:
        try:
            return x509.load_pem_x509_certificate(self.cert_path.read_bytes())
        except (OSError, ValueError) as exc:
            raise CredentialStoreError(f"invalid certificate file: {self.cert_path}") from exc


def _chmod_owner_only(path: Path) -> None:
    if os.name != "posix":
        return
    path.chmod(0o600)


def _as_pem_bytes(cert: Any) -> bytes:
    if isinstance(cert, bytes):
        return cert
    if isinstance(cert, str):
        return cert.encode("utf-8")
    if isinstance(cert, x509.Certificate):
        return cert.public_bytes(Encoding.PEM)
    raise CredentialStoreError(f"unsupported certificate type: {type(cert).__name__}")


def _private_key_pem(private_key: Any) -> bytes:
    if isinstance(private_key, bytes):
        return private_key
    try:
        return private_key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())
    except AttributeError as exc:
        raise CredentialStoreError(
            f"unsupported private key type: {type(private_key).__name__}"
        ) from exc


class CredentialStore:
    """Files are named ``<name>@<org>-cert.pem`` and ``<name>@<org>-priv.pem``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    @classmethod
    def from_profile(cls, profile: ConnectionProfile) -> "CredentialStore":
        configured = profile.get("client.credentialStore.path")
        if isinstance(configured, str) and configured.strip():
            return cls(configured.strip())
        return cls(DEFAULT_CREDENTIAL_STORE_PATH)

    def _paths(self, name: str, org: str) -> tuple[Path, Path]:
        stem = f"{name}@{org}"
        return self.root / f"{stem}-cert.pem", self.root / f"{stem}-priv.pem"

    def save(self, *, name: str, org: str, cert: Any, private_key: Any) -> StoredCredential:
        cert_pem = _as_pem_bytes(cert)
        key_pem = _private_key_pem(private_key)
        cert_path, key_path = self._paths(name, org)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            cert_path.write_bytes(cert_pem)
            key_path.write_bytes(key_pem)
        except OSError as exc:
            raise CredentialStoreError(f"failed to write credentials under {self.root}: {exc}") from exc
        _chmod_owner_only(key_path)
        return StoredCredential(name=name, org=org, cert_path=cert_path, key_path=key_path)

    def load(self, *, name: str, org: str) -> StoredCredential | None:
        cert_path, key_path = self._paths(name, org)
        if not cert_path.exists() or not key_path.exists():
            return None
        try:
            load_pem_private_key(key_path.read_bytes(), password=None)
        except (OSError, ValueError, TypeError) as exc:
            raise CredentialStoreError(f"invalid private key file: {key_path}") from exc
        stored = StoredCredential(name=name, org=org, cert_path=cert_path, key_path=key_path)
        stored.certificate()
        return stored


__all__ = ["DEFAULT_CREDENTIAL_STORE_PATH", "CredentialStore", "StoredCredential"]
