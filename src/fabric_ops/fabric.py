"""fabric-sdk-py (``hfc``) implementation of the SDK capability contracts."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence

from fabric_ops.credentials import CredentialStore
from fabric_ops.errors import FabricOpsError, SDKOperationError, SDKUnavailableError
from fabric_ops.profile import (
    ConnectionProfile,
    organization_msp_id,
    resolve_certificate_authority,
)
from fabric_ops.schemas import (
    CertificateAuthorityEntry,
    parse_certificate_authority,
    parse_crypto_suite_config,
)
from fabric_ops.sdk import (
    SUCCESS_STATUS,
    ChannelRequest,
    ChannelResponse,
    EndorsementResponse,
    IdentityRequest,
    IdentityResponse,
    InstallChaincodeRequest,
    InstantiateChaincodeRequest,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HfcBindings:
    """The parts of fabric-sdk-py 1.0 this adapter calls."""

    client_class: Any
    crypto_suite: Callable[..., Any]
    ca_service: Callable[..., Any]
    create_user: Callable[..., Any]
    file_key_value_store: Callable[..., Any]
    package_chaincode: Callable[..., bytes]
    create_tx_context: Callable[..., Any]
    create_tx_prop_req: Callable[..., Any]
    tx_proposal_request: Callable[..., Any]
    build_tx_req: Callable[..., Any]
    send_transaction: Callable[..., Any]
    cc_type_golang: str = "GOLANG"
    cc_query: str = "query"
    cc_invoke: str = "invoke"


def _load_hfc() -> HfcBindings:
    try:
        from hfc.fabric import Client
        from hfc.fabric.transaction.tx_context import create_tx_context
        from hfc.fabric.transaction.tx_proposal_request import TXProposalRequest, create_tx_prop_req
        from hfc.fabric.user import create_user
        from hfc.fabric_ca.caservice import ca_service
        from hfc.util.consts import CC_INVOKE, CC_QUERY, CC_TYPE_GOLANG
        from hfc.util.crypto.crypto import ecies
        from hfc.util.keyvaluestore import FileKeyValueStore
        from hfc.util.utils import build_tx_req, package_chaincode, send_transaction
    except Exception as exc:  # pragma: no cover
        raise SDKUnavailableError(
            "Fabric SDK is not available. Install fabric-sdk-py "
            "(pip install 'fabric-ops[fabric]') to talk to a network."
        ) from exc
    return HfcBindings(
        client_class=Client,
        crypto_suite=ecies,
        ca_service=ca_service,
        create_user=create_user,
        file_key_value_store=FileKeyValueStore,
        package_chaincode=package_chaincode,
        create_tx_context=create_tx_context,
        create_tx_prop_req=create_tx_prop_req,
        tx_proposal_request=TXProposalRequest,
        build_tx_req=build_tx_req,
        send_transaction=send_transaction,
        cc_type_golang=CC_TYPE_GOLANG,
        cc_query=CC_QUERY,
        cc_invoke=CC_INVOKE,
    )


def _json_profile_path(profile_path: str, profile: ConnectionProfile) -> tuple[str, bool]:
    # hfc only reads JSON connection profiles.
    if profile_path.lower().endswith(".json"):
        return profile_path, False
    handle = tempfile.NamedTemporaryFile(
        "w", suffix=".json", prefix="fabric-ops-profile-", delete=False, encoding="utf-8"
    )
    with handle:
        json.dump(profile.data, handle, default=str)
    return handle.name, True


def _operation_error(operation: str, exc: Exception) -> SDKOperationError:
    return SDKOperationError(str(exc) or type(exc).__name__, operation=operation)


class FabricSDK:
    """Owns one ``hfc`` client and the event loop its coroutines run on."""

    def __init__(self, profile_path: str, profile: ConnectionProfile) -> None:
        self.hfc = _load_hfc()
        self.profile = profile
        self.crypto_config = parse_crypto_suite_config(
            profile.get_in("client", "BCCSP", "security"),
            profile_path=profile.path,
        )
        self.credentials = CredentialStore.from_profile(profile)
        self._crypto_suite: Any = None
        self._loop = asyncio.new_event_loop()
        self._net_profile, self._owns_net_profile = _json_profile_path(profile_path, profile)
        try:
            self.client = self.hfc.client_class(net_profile=self._net_profile)
        except Exception as exc:
            self._discard_net_profile()
            self._loop.close()
            raise SDKUnavailableError(
                f"failed to initialize Fabric SDK from {profile_path}: {exc}"
            ) from exc
        logger.debug("Fabric SDK initialized from %s", profile_path)

    def run(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        logger.debug("%s: started", operation)
        try:
            result = self._loop.run_until_complete(awaitable)
        except FabricOpsError:
            raise
        except Exception as exc:
            raise _operation_error(operation, exc) from exc
        logger.debug("%s: finished", operation)
        return result

    def call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Synchronous counterpart of :meth:`run` for plain SDK calls."""
        try:
            return func(*args, **kwargs)
        except FabricOpsError:
            raise
        except Exception as exc:
            raise _operation_error(operation, exc) from exc

    def crypto_suite(self) -> Any:
        if self._crypto_suite is None:
            config = self.crypto_config
            logger.debug(
                "crypto suite: provider=%s level=%s hash=%s",
                config.default.provider,
                config.level,
                config.hash_algorithm,
            )
            self._crypto_suite = self.call(
                "crypto_suite",
                self.hfc.crypto_suite,
                security_level=config.level,
                hash_algorithm=config.hash_algorithm,
            )
        return self._crypto_suite

    def _state_store(self) -> Any:
        if self.client.state_store is not None:
            return self.client.state_store
        return self.hfc.file_key_value_store(str(self.credentials.root / "state"))

    def user(self, org: str, name: str) -> Any:
        user = self.call("get_signing_identity", self.client.get_user, org_name=org, name=name)
        if user is not None:
            return user

        stored = self.credentials.load(name=name, org=org)
        if stored is None:
            raise SDKOperationError(
                f"user {name} not found in organization {org}",
                operation="get_signing_identity",
            )
        logger.debug("loading %s@%s from %s", name, org, self.credentials.root)
        return self.call(
            "get_signing_identity",
            self.hfc.create_user,
            name=name,
            org=org,
            state_store=self.call("get_signing_identity", self._state_store),
            msp_id=organization_msp_id(self.profile, org),
            key_path=str(stored.key_path),
            cert_path=str(stored.cert_path),
            crypto_suite=self.crypto_suite(),
        )

    def membership(self, *, org: str) -> "FabricMembership":
        return FabricMembership(self, org=org)

    def resource_manager(self, *, user: str, org: str) -> "FabricResourceManager":
        return FabricResourceManager(self, requestor=self.user(org, user), org=org)

    def channel_client(self, channel_id: str, *, user: str, org: str) -> "FabricChannelClient":
        return FabricChannelClient(self, channel_id=channel_id, requestor=self.user(org, user))

    def _discard_net_profile(self) -> None:
        if self._owns_net_profile:
            Path(self._net_profile).unlink(missing_ok=True)
            self._owns_net_profile = False

    def close(self) -> None:
        if self._loop.is_closed():
            return
        try:
            self._loop.run_until_complete(self.client.close_grpc_channels())
        except Exception as exc:  # pragma: no cover
            logger.debug("closing gRPC channels failed: %s", exc)
        finally:
            self._loop.close()
            self._discard_net_profile()


class FabricResourceManager:
    def __init__(self, sdk: FabricSDK, *, requestor: Any, org: str) -> None:
        self._sdk = sdk
        self._requestor = requestor
        self.org = org

    def save_channel(
        self,
        *,
        channel_id: str,
        channel_config_path: str,
        signing_identities: Sequence[Any],
        orderer: str,
    ) -> None:
        requestor = signing_identities[0] if signing_identities else self._requestor
        created = self._sdk.run(
            "save_channel",
            self._sdk.client.channel_create(
                orderer=orderer,
                channel_name=channel_id,
                requestor=requestor,
                config_tx=channel_config_path,
            ),
        )
        if not created:
            raise SDKOperationError(f"failed to create channel {channel_id}", operation="save_channel")

    def join_channel(self, channel_id: str, *, orderer: str, peer: str) -> None:
        self._sdk.call("join_channel", self._sdk.client.new_channel, channel_id)
        result = self._sdk.run(
            "join_channel",
            self._sdk.client.channel_join(
                requestor=self._requestor,
                channel_name=channel_id,
                peers=[peer],
                orderer=orderer,
            ),
        )
        # hfc reports join failures as False or the first peer's error message.
        if result is False or result is None:
            raise SDKOperationError(
                f"failed to join {peer} to channel {channel_id}", operation="join_channel"
            )
        if isinstance(result, str):
            raise SDKOperationError(result, operation="join_channel")

    def package_chaincode(self, *, path: str, source_root: str) -> bytes:
        gopath = str(Path(source_root).resolve())
        previous = os.environ.get("GOPATH")
        os.environ["GOPATH"] = gopath
        logger.debug("packaging chaincode %s from GOPATH=%s", path, gopath)
        try:
            return self._sdk.call(
                "package_chaincode",
                self._sdk.hfc.package_chaincode,
                path,
                self._sdk.hfc.cc_type_golang,
            )
        finally:
            if previous is None:
                os.environ.pop("GOPATH", None)
            else:
                os.environ["GOPATH"] = previous

    def install_chaincode(self, request: InstallChaincodeRequest, *, peer: str) -> None:
        installed = self._sdk.run(
            "install_chaincode",
            self._sdk.client.chaincode_install(
                requestor=self._requestor,
                peers=[peer],
                cc_path=request.path,
                cc_name=request.name,
                cc_version=request.version,
                packaged_cc=request.package,
            ),
        )
        if not installed:
            raise SDKOperationError(
                f"failed to install chaincode {request.name}:{request.version} on {peer}",
                operation="install_chaincode",
            )

    def instantiate_chaincode(
        self,
        channel_id: str,
        request: InstantiateChaincodeRequest,
        *,
        orderer: str,
        peer: str,
    ) -> None:
        policy = {
            "identities": [
                {"role": {"name": "member", "mspId": organization_msp_id(self._sdk.profile, self.org)}}
            ],
            "policy": request.policy,
        }
        logger.debug("instantiating %s on %s via orderer %s", request.name, channel_id, orderer)
        self._sdk.call("instantiate_chaincode", self._sdk.client.new_channel, channel_id)
        self._sdk.run(
            "instantiate_chaincode",
            self._sdk.client.chaincode_instantiate(
                requestor=self._requestor,
                channel_name=channel_id,
                peers=[peer],
                args=[arg.decode("utf-8") for arg in request.args],
                cc_name=request.name,
                cc_version=request.version,
                cc_endorsement_policy=policy,
                wait_for_event=True,
            ),
        )


class FabricMembership:
    """CA client for one organization; the CA is resolved on first use."""

    def __init__(self, sdk: FabricSDK, *, org: str) -> None:
        self._sdk = sdk
        self.org = org
        self.ca_name: str | None = None
        self._ca: CertificateAuthorityEntry | None = None
        self._enrollments: dict[str, Any] = {}
        self._service: Any = None

    def _authority(self) -> CertificateAuthorityEntry:
        if self._ca is None:
            profile = self._sdk.profile
            self.ca_name = resolve_certificate_authority(profile, self.org)
            self._ca = parse_certificate_authority(
                self.ca_name,
                profile.get_in("certificateAuthorities", self.ca_name),
                profile_path=profile.path,
            )
        return self._ca

    def _ca_service(self) -> Any:
        if self._service is not None:
            return self._service
        authority = self._authority()
        tls = authority.tls_ca_certs
        self._service = self._sdk.call(
            "ca_service",
            self._sdk.hfc.ca_service,
            target=authority.url,
            ca_certs_path=tls.path if tls is not None else None,
            crypto=self._sdk.crypto_suite(),
            ca_name=authority.ca_name or "",
        )
        return self._service

    def get_signing_identity(self, username: str) -> Any:
        return self._sdk.user(self.org, username)

    def enroll(self, name: str, *, secret: str) -> None:
        service = self._ca_service()
        logger.debug("enrolling %s at %s", name, self.ca_name)
        enrollment = self._sdk.call("enroll", service.enroll, name, secret)
        self._enrollments[name] = enrollment
        stored = self._sdk.credentials.save(
            name=name,
            org=self.org,
            cert=enrollment.cert,
            private_key=enrollment.private_key,
        )
        logger.debug("stored enrollment material at %s", stored.cert_path)

    def _registrar(self) -> Any:
        registrar_id = self._authority().registrar_id
        if registrar_id is not None and registrar_id in self._enrollments:
            return self._enrollments[registrar_id]
        if registrar_id is None and self._enrollments:
            return next(reversed(self._enrollments.values()))
        raise SDKOperationError(
            f"registrar {registrar_id or '(unknown)'} is not enrolled at {self.ca_name}",
            operation="create_identity",
        )

    def create_identity(self, request: IdentityRequest) -> IdentityResponse:
        registrar = self._registrar()
        service = self._ca_service()
        secret = self._sdk.call(
            "create_identity",
            lambda: service.newIdentityService().create(
                registrar,
                request.id,
                enrollmentSecret=request.secret,
                role=request.type,
                affiliation=request.affiliation,
                maxEnrollments=request.max_enrollments,
            ),
        )
        return IdentityResponse(id=request.id, secret=str(secret))


def _endorsement(reply: Any, endorser: str | None) -> EndorsementResponse:
    response = reply.response
    payload = response.payload
    return EndorsementResponse(
        status=int(response.status),
        payload=payload if isinstance(payload, bytes) else str(payload).encode("utf-8"),
        message=str(response.message),
        endorser=endorser,
    )


class FabricChannelClient:
    def __init__(self, sdk: FabricSDK, *, channel_id: str, requestor: Any) -> None:
        self._sdk = sdk
        self.channel_id = channel_id
        self._requestor = requestor

    def _target_peers(self, targets: Sequence[str]) -> list[Any]:
        peers = []
        for name in targets:
            peer = self._sdk.client.get_peer(name)
            if peer is None:
                raise SDKOperationError(f"peer {name} is not defined in the connection profile")
            peers.append(peer)
        return peers

    async def _propose(self, request: ChannelRequest, targets: Sequence[str], prop_type: str) -> tuple:
        hfc = self._sdk.hfc
        client = self._sdk.client
        channel = client.get_channel(self.channel_id) or client.new_channel(self.channel_id)
        tx_prop_req = hfc.create_tx_prop_req(
            prop_type=prop_type,
            fcn=request.fcn,
            cc_name=request.chaincode_id,
            cc_type=hfc.cc_type_golang,
            args=list(request.args),
        )
        tx_context = hfc.create_tx_context(self._requestor, self._requestor.cryptoSuite, tx_prop_req)
        responses, proposal, header = channel.send_tx_proposal(tx_context, self._target_peers(targets))
        replies = await asyncio.gather(*responses)
        return tx_context.tx_id, list(replies), proposal, header

    async def _query(self, request: ChannelRequest, targets: Sequence[str]) -> ChannelResponse:
        tx_id, replies, _, _ = await self._propose(request, targets, self._sdk.hfc.cc_query)
        return ChannelResponse(
            transaction_id=tx_id,
            responses=tuple(_endorsement(r, t) for r, t in zip(replies, targets)),
        )

    async def _execute(
        self, request: ChannelRequest, targets: Sequence[str], orderer: str | None
    ) -> ChannelResponse:
        hfc = self._sdk.hfc
        tx_id, replies, proposal, header = await self._propose(request, targets, hfc.cc_invoke)
        endorsements = tuple(_endorsement(r, t) for r, t in zip(replies, targets))
        if not endorsements or any(e.status != SUCCESS_STATUS for e in endorsements):
            return ChannelResponse(transaction_id=tx_id, responses=endorsements)

        client = self._sdk.client
        target_orderer = client.get_orderer(orderer) if orderer else None
        orderers = {orderer: target_orderer} if target_orderer is not None else client.orderers
        tran_req = hfc.build_tx_req((replies, proposal, header))
        tx_context = hfc.create_tx_context(
            self._requestor, self._requestor.cryptoSuite, hfc.tx_proposal_request()
        )
        async for reply in hfc.send_transaction(orderers, tran_req, tx_context):
            if reply.status != SUCCESS_STATUS:
                raise SDKOperationError(
                    f"orderer rejected transaction {tx_id}: {reply.status} {reply.info}",
                    operation="execute",
                )
            break
        return ChannelResponse(transaction_id=tx_id, responses=endorsements)

    def query(self, request: ChannelRequest, *, targets: Sequence[str]) -> ChannelResponse:
        return self._sdk.run("query", self._query(request, targets))

    def execute(
        self,
        request: ChannelRequest,
        *,
        targets: Sequence[str],
        orderer: str | None = None,
    ) -> ChannelResponse:
        return self._sdk.run("execute", self._execute(request, targets, orderer))


__all__ = [
    "HfcBindings",
    "FabricSDK",
    "FabricResourceManager",
    "FabricMembership",
    "FabricChannelClient",
]
