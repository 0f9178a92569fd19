"""Per-invocation session: the SDK handle plus the resolved network selection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from fabric_ops.profile import (
    ConnectionProfile,
    load_connection_profile,
    resolve_channel,
    resolve_orderer,
    resolve_organization,
    resolve_peer,
)
from fabric_ops.sdk import SDKHandle

SDKFactory = Callable[[str, ConnectionProfile], SDKHandle]

logger = logging.getLogger(__name__)


@dataclass
class Session:
    sdk: SDKHandle
    profile_path: str
    profile: ConnectionProfile
    org: str
    channel: str
    peer: str
    username: str
    orderer: str = ""

    def set_orderer(self, orderer: str | None) -> None:
        self.orderer = resolve_orderer(orderer, self.profile)
        logger.debug("orderer resolved: %s", self.orderer)

    def close(self) -> None:
        self.sdk.close()


def build_session(
    *,
    profile_path: str,
    username: str,
    sdk_factory: SDKFactory,
    channel: str | None = None,
    org: str | None = None,
    peer: str | None = None,
) -> Session:
    profile = load_connection_profile(profile_path)

    resolved_channel = resolve_channel(channel, profile)
    resolved_org = resolve_organization(org, profile)
    resolved_peer = resolve_peer(peer, profile)
    logger.debug(
        "selection resolved: channel=%s org=%s peer=%s",
        resolved_channel,
        resolved_org,
        resolved_peer,
    )

    sdk = sdk_factory(profile_path, profile)
    return Session(
        sdk=sdk,
        profile_path=profile_path,
        profile=profile,
        org=resolved_org,
        channel=resolved_channel,
        peer=resolved_peer,
        username=username,
    )


__all__ = ["Session", "SDKFactory", "build_session"]
