"""Command handlers: each runs one short sequence of SDK calls for a session."""

from __future__ import annotations

from typing import Sequence, TextIO

from fabric_ops.cli.config import CLIConfig
from fabric_ops.errors import SDKOperationError
from fabric_ops.sdk import (
    ACCEPT_ALL_POLICY,
    SUCCESS_STATUS,
    ChannelRequest,
    IdentityRequest,
    InstallChaincodeRequest,
    InstantiateChaincodeRequest,
)
from fabric_ops.session import Session

ENROLL_MESSAGE = (
    "Generating a pair of public/private keys, and sending Certificate Signing Request "
    "with the public key to a CA server..."
)
REENROLL_MESSAGE = (
    "Generating a pair of public/private keys, and requesting a CA server to revoke the "
    "old certificate, and create a new certificate with the public key..."
)


def _begin(stdout: TextIO, message: str) -> None:
    print(message, end="", file=stdout, flush=True)


def _done(stdout: TextIO) -> None:
    print(" done.", file=stdout)


def run_setup(session: Session, *, config: CLIConfig, stdout: TextIO) -> None:
    membership = session.sdk.membership(org=session.org)
    user = membership.get_signing_identity(session.username)
    resources = session.sdk.resource_manager(user=session.username, org=session.org)

    _begin(stdout, "Creating a channel...")
    resources.save_channel(
        channel_id=session.channel,
        channel_config_path=config.channel_config_path,
        signing_identities=[user],
        orderer=session.orderer,
    )
    _done(stdout)

    _begin(stdout, "Joining the channel...")
    resources.join_channel(session.channel, orderer=session.orderer, peer=session.peer)
    _done(stdout)

    _begin(stdout, "Installing a chaincode...")
    package = resources.package_chaincode(
        path=config.chaincode_path,
        source_root=config.chaincode_source_root,
    )
    resources.install_chaincode(
        InstallChaincodeRequest(
            name=config.chaincode_name,
            path=config.chaincode_path,
            version=config.chaincode_version,
            package=package,
        ),
        peer=session.peer,
    )
    _done(stdout)

    _begin(stdout, "Instantiating a chaincode...")
    resources.instantiate_chaincode(
        session.channel,
        InstantiateChaincodeRequest(
            name=config.chaincode_name,
            path=config.chaincode_path,
            version=config.chaincode_version,
            args=(),
            policy=dict(ACCEPT_ALL_POLICY),
        ),
        orderer=session.orderer,
        peer=session.peer,
    )
    _done(stdout)


def run_register(session: Session, name: str, *, config: CLIConfig, stdout: TextIO) -> None:
    _begin(stdout, "Creating a new user at CA server...")

    membership = session.sdk.membership(org=session.org)
    membership.enroll(config.bootstrap_admin, secret=config.bootstrap_secret)
    identity = membership.create_identity(
        IdentityRequest(id=name, affiliation=session.org, type="client")
    )
    _done(stdout)
    print(f"\nName: {identity.id}\nSecret: {identity.secret}", file=stdout)


def run_enroll(
    session: Session,
    name: str,
    secret: str,
    *,
    reenroll: bool = False,
    stdout: TextIO,
) -> None:
    # Reenrollment is the same CA call; the CA decides whether to reissue.
    _begin(stdout, REENROLL_MESSAGE if reenroll else ENROLL_MESSAGE)
    membership = session.sdk.membership(org=session.org)
    membership.enroll(name, secret=secret)
    _done(stdout)


def build_channel_request(chaincode_id: str, fn: str, args: Sequence[str]) -> ChannelRequest:
    return ChannelRequest(
        chaincode_id=chaincode_id,
        fcn=fn,
        args=tuple(arg.encode("utf-8") for arg in args),
    )


def run_invoke(
    session: Session,
    fn: str,
    args: Sequence[str],
    *,
    query: bool,
    config: CLIConfig,
    stdout: TextIO,
) -> None:
    print(
        f"Sending a signed transaction proposal with the certificate of {session.username}...",
        file=stdout,
    )
    client = session.sdk.channel_client(session.channel, user=session.username, org=session.org)
    request = build_channel_request(config.chaincode_name, fn, args)
    if query:
        response = client.query(request, targets=[session.peer])
    else:
        response = client.execute(request, targets=[session.peer], orderer=session.orderer or None)

    if not response.responses:
        raise SDKOperationError(
            f"no endorsement responses received from {session.peer}",
            operation="query" if query else "execute",
        )
    first = response.responses[0]
    if first.status == SUCCESS_STATUS:
        payload = first.payload.decode("utf-8", errors="replace")
        print(f"Success\nReturned payload: {payload}", file=stdout)
    else:
        print(first, file=stdout)


__all__ = [
    "ENROLL_MESSAGE",
    "REENROLL_MESSAGE",
    "run_setup",
    "run_register",
    "run_enroll",
    "run_invoke",
    "build_channel_request",
]
