"""Capability contracts the command handlers use to reach the Fabric SDK."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

SUCCESS_STATUS = 200

# Signature policy satisfied by zero signatures ("0 of" an empty rule list).
ACCEPT_ALL_POLICY: dict[str, Any] = {"0-of": []}


@dataclass(frozen=True)
class IdentityRequest:
    id: str
    affiliation: str
    type: str = "client"
    secret: str | None = None
    max_enrollments: int = 1


@dataclass(frozen=True)
class IdentityResponse:
    id: str
    secret: str


@dataclass(frozen=True)
class InstallChaincodeRequest:
    name: str
    path: str
    version: str
    package: bytes


@dataclass(frozen=True)
class InstantiateChaincodeRequest:
    name: str
    path: str
    version: str
    args: tuple[bytes, ...] = ()
    policy: dict[str, Any] = field(default_factory=lambda: dict(ACCEPT_ALL_POLICY))


@dataclass(frozen=True)
class ChannelRequest:
    chaincode_id: str
    fcn: str
    args: tuple[bytes, ...] = ()


@dataclass(frozen=True)
class EndorsementResponse:
    status: int
    payload: bytes = b""
    message: str = ""
    endorser: str | None = None

    def __str__(self) -> str:
        return f"status:{self.status} message:{self.message!r} payload:{self.payload!r}"


@dataclass(frozen=True)
class ChannelResponse:
    transaction_id: str
    responses: tuple[EndorsementResponse, ...]


class ChannelAdmin(Protocol):
    def save_channel(
        self,
        *,
        channel_id: str,
        channel_config_path: str,
        signing_identities: Sequence[Any],
        orderer: str,
    ) -> None: ...

    def join_channel(self, channel_id: str, *, orderer: str, peer: str) -> None: ...


class ResourceManager(ChannelAdmin, Protocol):
    def package_chaincode(self, *, path: str, source_root: str) -> bytes: ...

    def install_chaincode(self, request: InstallChaincodeRequest, *, peer: str) -> None: ...

    def instantiate_chaincode(
        self,
        channel_id: str,
        request: InstantiateChaincodeRequest,
        *,
        orderer: str,
        peer: str,
    ) -> None: ...


class MembershipService(Protocol):
    def get_signing_identity(self, username: str) -> Any: ...

    def enroll(self, name: str, *, secret: str) -> None: ...

    def create_identity(self, request: IdentityRequest) -> IdentityResponse: ...


class TransactionSubmitter(Protocol):
    def query(self, request: ChannelRequest, *, targets: Sequence[str]) -> ChannelResponse: ...

    def execute(
        self,
        request: ChannelRequest,
        *,
        targets: Sequence[str],
        orderer: str | None = None,
    ) -> ChannelResponse: ...


class SDKHandle(Protocol):
    def membership(self, *, org: str) -> MembershipService: ...

    def resource_manager(self, *, user: str, org: str) -> ResourceManager: ...

    def channel_client(self, channel_id: str, *, user: str, org: str) -> TransactionSubmitter: ...

    def close(self) -> None: ...


__all__ = [
    "SUCCESS_STATUS",
    "ACCEPT_ALL_POLICY",
    "IdentityRequest",
    "IdentityResponse",
    "InstallChaincodeRequest",
    "InstantiateChaincodeRequest",
    "ChannelRequest",
    "EndorsementResponse",
    "ChannelResponse",
    "ChannelAdmin",
    "ResourceManager",
    "MembershipService",
    "TransactionSubmitter",
    "SDKHandle",
]
