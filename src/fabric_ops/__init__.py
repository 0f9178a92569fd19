"""fabric-ops public surface."""

from fabric_ops.errors import (
    ConfigurationError,
    CredentialStoreError,
    FabricOpsError,
    ProfileError,
    SDKOperationError,
    SDKUnavailableError,
)
from fabric_ops.profile import (
    ConnectionProfile,
    load_connection_profile,
    resolve_certificate_authority,
    resolve_channel,
    resolve_orderer,
    resolve_organization,
    resolve_peer,
    resolve_single_choice,
)
from fabric_ops.sdk import (
    ACCEPT_ALL_POLICY,
    ChannelAdmin,
    ChannelRequest,
    ChannelResponse,
    EndorsementResponse,
    IdentityRequest,
    IdentityResponse,
    MembershipService,
    ResourceManager,
    SDKHandle,
    TransactionSubmitter,
)
from fabric_ops.session import Session, build_session

__all__ = [
    "FabricOpsError",
    "ConfigurationError",
    "ProfileError",
    "SDKUnavailableError",
    "SDKOperationError",
    "CredentialStoreError",
    "ConnectionProfile",
    "load_connection_profile",
    "resolve_single_choice",
    "resolve_channel",
    "resolve_peer",
    "resolve_orderer",
    "resolve_organization",
    "resolve_certificate_authority",
    "ACCEPT_ALL_POLICY",
    "ChannelAdmin",
    "ResourceManager",
    "MembershipService",
    "TransactionSubmitter",
    "SDKHandle",
    "IdentityRequest",
    "IdentityResponse",
    "ChannelRequest",
    "ChannelResponse",
    "EndorsementResponse",
    "Session",
    "build_session",
]
