"""Connection profile entry schemas used by the membership client."""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fabric_ops.errors import ProfileError


class Registrar(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    enroll_id: str = Field(..., alias="enrollId", min_length=1)
    enroll_secret: Optional[str] = Field(default=None, alias="enrollSecret")


class TLSCACerts(BaseModel):
    model_config = ConfigDict(extra="allow")

    path: Optional[str] = None
    pem: Optional[Union[str, List[str]]] = None


class CertificateAuthorityEntry(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    url: str = Field(..., min_length=1)
    ca_name: Optional[str] = Field(default=None, alias="caName")
    tls_ca_certs: Optional[TLSCACerts] = Field(default=None, alias="tlsCACerts")
    registrar: List[Registrar] = Field(default_factory=list)

    @field_validator("registrar", mode="before")
    @classmethod
    def _registrar_as_list(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, dict):
            return [value]
        return value

    @property
    def registrar_id(self) -> Optional[str]:
        return self.registrar[0].enroll_id if self.registrar else None


def parse_certificate_authority(name: str, raw: object, *, profile_path: str) -> CertificateAuthorityEntry:
    if not isinstance(raw, dict):
        raise ProfileError(f"certificateAuthorities.{name} is not defined in {profile_path}")
    try:
        return CertificateAuthorityEntry.model_validate(raw)
    except ValidationError as exc:
        raise ProfileError(
            f"certificateAuthorities.{name} is not properly defined in {profile_path}: {exc}"
        ) from exc


SUPPORTED_SECURITY_LEVELS = (256, 384)
SUPPORTED_HASH_ALGORITHMS = ("SHA2", "SHA3")
SOFTWARE_PROVIDER = "SW"


class CryptoProvider(BaseModel):
    model_config = ConfigDict(extra="allow")

    provider: str = SOFTWARE_PROVIDER

    @field_validator("provider")
    @classmethod
    def _software_only(cls, value: str) -> str:
        # fabric-sdk-py signs in-process; HSM providers such as PKCS11 have no binding.
        if value.upper() != SOFTWARE_PROVIDER:
            raise ValueError(f"provider {value!r} is not supported, use {SOFTWARE_PROVIDER!r}")
        return SOFTWARE_PROVIDER


class CryptoSuiteConfig(BaseModel):
    """``client.BCCSP.security`` of a connection profile."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    level: int = 256
    hash_algorithm: str = Field(default="SHA2", alias="hashAlgorithm")
    default: CryptoProvider = Field(default_factory=CryptoProvider)

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: int) -> int:
        if value not in SUPPORTED_SECURITY_LEVELS:
            raise ValueError(f"level must be one of {SUPPORTED_SECURITY_LEVELS}")
        return value

    @field_validator("hash_algorithm")
    @classmethod
    def _known_hash(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in SUPPORTED_HASH_ALGORITHMS:
            raise ValueError(f"hashAlgorithm must be one of {SUPPORTED_HASH_ALGORITHMS}")
        return normalized


def parse_crypto_suite_config(raw: object, *, profile_path: str) -> CryptoSuiteConfig:
    if raw is None:
        return CryptoSuiteConfig()
    if not isinstance(raw, dict):
        raise ProfileError(f"client.BCCSP.security is not properly defined in {profile_path}")
    try:
        return CryptoSuiteConfig.model_validate(raw)
    except ValidationError as exc:
        raise ProfileError(
            f"client.BCCSP.security is not properly defined in {profile_path}: {exc}"
        ) from exc


__all__ = [
    "Registrar",
    "TLSCACerts",
    "CertificateAuthorityEntry",
    "CryptoProvider",
    "CryptoSuiteConfig",
    "parse_certificate_authority",
    "parse_crypto_suite_config",
]
