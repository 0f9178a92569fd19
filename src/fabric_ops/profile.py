"""Connection profile loading and default selection."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from fabric_ops.errors import ProfileError

DEFAULT_PROFILE_PATH = "connection-profile.yaml"


@dataclass(frozen=True)
class ConnectionProfile:
    path: str
    data: Mapping[str, Any] = field(default_factory=dict)

    def lookup(self, key: str) -> tuple[Any, bool]:
        node: Any = self.data
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return None, False
            node = node[part]
        return node, True

    def get_in(self, *keys: str, default: Any = None) -> Any:
        node: Any = self.data
        for key in keys:
            if not isinstance(node, Mapping) or key not in node:
                return default
            node = node[key]
        return node

    def get(self, key: str, default: Any = None) -> Any:
        value, found = self.lookup(key)
        return value if found else default


def load_connection_profile(path: str | Path) -> ConnectionProfile:
    profile_path = Path(path)
    if not profile_path.exists():
        raise ProfileError(f"connection profile not found: {profile_path}")
    try:
        payload = yaml.safe_load(profile_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ProfileError(f"invalid YAML in {profile_path}: {exc}") from exc
    except OSError as exc:
        raise ProfileError(f"cannot read connection profile {profile_path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ProfileError(f"connection profile {profile_path} must be a mapping")
    return ConnectionProfile(path=str(path), data=payload)


def resolve_single_choice(
    explicit: str | None,
    candidates: Any,
    *,
    entity: str,
    option: str,
    profile_path: str,
    plural: str | None = None,
) -> str:
    """Return ``explicit`` if given, else the only key of ``candidates``.

    ``candidates`` is the raw profile section, ``None`` when the profile has
    no such section. Zero or several candidates is an error; the operator has
    to name one with ``-<option>``.
    """
    if explicit:
        return explicit
    if candidates is None:
        raise ProfileError(
            f"{entity} is not defined in {profile_path}. Please use -{option} option"
        )
    if not isinstance(candidates, Mapping):
        raise ProfileError(
            f"{entity} is not properly defined in {profile_path}. Please use -{option} option"
        )
    if len(candidates) < 1:
        raise ProfileError(
            f"{entity} is not defined in {profile_path}. Please use -{option} option"
        )
    if len(candidates) > 1:
        raise ProfileError(
            f"multiple {plural or entity + 's'} are defined in {profile_path}. Please use -{option} option"
        )
    (only,) = candidates.keys()
    return str(only)


def _resolve_section(
    explicit: str | None,
    profile: ConnectionProfile,
    *,
    section: str,
    entity: str,
    option: str,
) -> str:
    if explicit:
        return explicit
    return resolve_single_choice(
        None,
        profile.get(section),
        entity=entity,
        option=option,
        profile_path=profile.path,
    )


def resolve_channel(explicit: str | None, profile: ConnectionProfile) -> str:
    return _resolve_section(explicit, profile, section="channels", entity="channel", option="channel")


def resolve_peer(explicit: str | None, profile: ConnectionProfile) -> str:
    return _resolve_section(explicit, profile, section="peers", entity="peer", option="peer")


def resolve_orderer(explicit: str | None, profile: ConnectionProfile) -> str:
    return _resolve_section(explicit, profile, section="orderers", entity="orderer", option="orderer")


def resolve_organization(explicit: str | None, profile: ConnectionProfile) -> str:
    if explicit:
        return explicit
    value, found = profile.lookup("client.organization")
    if not found:
        raise ProfileError(
            f"client.organization is not defined in {profile.path}. Please use -org option"
        )
    if not isinstance(value, str):
        raise ProfileError(
            f"client.organization is not properly defined in {profile.path}. Please use -org option"
        )
    return value


def resolve_certificate_authority(profile: ConnectionProfile, org: str) -> str:
    listed = profile.get_in("organizations", org, "certificateAuthorities")
    if isinstance(listed, list) and listed and isinstance(listed[0], str):
        return listed[0]
    # No flag selects a CA; the organization's listing does.
    hint = f"Please list one under organizations.{org}.certificateAuthorities"
    candidates = profile.get("certificateAuthorities")
    if candidates is not None and not isinstance(candidates, Mapping):
        raise ProfileError(f"certificate authority is not properly defined in {profile.path}. {hint}")
    if not candidates:
        raise ProfileError(f"certificate authority is not defined in {profile.path}. {hint}")
    if len(candidates) > 1:
        raise ProfileError(f"multiple certificate authorities are defined in {profile.path}. {hint}")
    (only,) = candidates.keys()
    return str(only)


def organization_msp_id(profile: ConnectionProfile, org: str) -> str:
    for key in ("mspid", "mspId", "mspID"):
        value = profile.get_in("organizations", org, key)
        if isinstance(value, str) and value:
            return value
    raise ProfileError(f"organizations.{org}.mspid is not defined in {profile.path}")


__all__ = [
    "DEFAULT_PROFILE_PATH",
    "ConnectionProfile",
    "load_connection_profile",
    "resolve_single_choice",
    "resolve_channel",
    "resolve_peer",
    "resolve_orderer",
    "resolve_organization",
    "resolve_certificate_authority",
    "organization_msp_id",
]
