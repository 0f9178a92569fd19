from __future__ import annotations

from typing import Any, Sequence

import pytest

from fabric_ops.errors import SDKOperationError
from fabric_ops.sdk import (
    ChannelRequest,
    ChannelResponse,
    EndorsementResponse,
    IdentityRequest,
    IdentityResponse,
    InstallChaincodeRequest,
    InstantiateChaincodeRequest,
)

PROFILE_YAML = """\
client:
  organization: Org1
channels:
  mychannel:
    peers:
      peer0: {}
organizations:
  Org1:
    mspid: Org1MSP
peers:
  peer0:
    url: grpcs://localhost:7051
orderers:
  orderer0:
    url: grpcs://localhost:7050
"""


class RecordingSDK:
    """Stands in for the Fabric SDK handle and records every delegated call."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, Exception] = {}
        self.response = ChannelResponse(
            transaction_id="tx-1",
            responses=(EndorsementResponse(status=200, payload=b"90"),),
        )
        self.closed = False
        self.profile_path: str | None = None

    def fail(self, operation: str, message: str = "boom") -> None:
        self.failures[operation] = SDKOperationError(message, operation=operation)

    def record(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, *args))
        if operation in self.failures:
            raise self.failures[operation]

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    def membership(self, *, org: str) -> "_Membership":
        self.record("membership", org)
        return _Membership(self)

    def resource_manager(self, *, user: str, org: str) -> "_ResourceManager":
        self.record("resource_manager", user, org)
        return _ResourceManager(self)

    def channel_client(self, channel_id: str, *, user: str, org: str) -> "_ChannelClient":
        self.record("channel_client", channel_id, user, org)
        return _ChannelClient(self)

    def close(self) -> None:
        self.closed = True


class _Membership:
    def __init__(self, sdk: RecordingSDK) -> None:
        self._sdk = sdk

    def get_signing_identity(self, username: str) -> Any:
        self._sdk.record("get_signing_identity", username)
        return f"identity:{username}"

    def enroll(self, name: str, *, secret: str) -> None:
        self._sdk.record("enroll", name, secret)

    def create_identity(self, request: IdentityRequest) -> IdentityResponse:
        self._sdk.record("create_identity", request)
        return IdentityResponse(id=request.id, secret="s3cr3t")


class _ResourceManager:
    def __init__(self, sdk: RecordingSDK) -> None:
        self._sdk = sdk

    def save_channel(
        self,
        *,
        channel_id: str,
        channel_config_path: str,
        signing_identities: Sequence[Any],
        orderer: str,
    ) -> None:
        self._sdk.record("save_channel", channel_id, channel_config_path, list(signing_identities), orderer)

    def join_channel(self, channel_id: str, *, orderer: str, peer: str) -> None:
        self._sdk.record("join_channel", channel_id, orderer, peer)

    def package_chaincode(self, *, path: str, source_root: str) -> bytes:
        self._sdk.record("package_chaincode", path, source_root)
        return b"package-bytes"

    def install_chaincode(self, request: InstallChaincodeRequest, *, peer: str) -> None:
        self._sdk.record("install_chaincode", request, peer)

    def instantiate_chaincode(
        self,
        channel_id: str,
        request: InstantiateChaincodeRequest,
        *,
        orderer: str,
        peer: str,
    ) -> None:
        self._sdk.record("instantiate_chaincode", channel_id, request, orderer, peer)


class _ChannelClient:
    def __init__(self, sdk: RecordingSDK) -> None:
        self._sdk = sdk

    def query(self, request: ChannelRequest, *, targets: Sequence[str]) -> ChannelResponse:
        self._sdk.record("query", request, list(targets))
        return self._sdk.response

    def execute(
        self,
        request: ChannelRequest,
        *,
        targets: Sequence[str],
        orderer: str | None = None,
    ) -> ChannelResponse:
        self._sdk.record("execute", request, list(targets), orderer)
        return self._sdk.response


@pytest.fixture
def fake_sdk() -> RecordingSDK:
    return RecordingSDK()


@pytest.fixture
def profile_file(tmp_path):
    path = tmp_path / "connection-profile.yaml"
    path.write_text(PROFILE_YAML, encoding="utf-8")
    return path


@pytest.fixture
def patched_sdk(monkeypatch, fake_sdk: RecordingSDK) -> RecordingSDK:
    def _factory(profile_path: str, profile: Any) -> RecordingSDK:  # noqa: ARG001
        fake_sdk.profile_path = profile_path
        return fake_sdk

    monkeypatch.setattr("fabric_ops.cli.main.FabricSDK", _factory)
    monkeypatch.delenv("FABRIC_OPS_PROFILE", raising=False)
    monkeypatch.delenv("FABRIC_OPS_USERNAME", raising=False)
    return fake_sdk
