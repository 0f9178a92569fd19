"""Configuration helpers for the fabric-ops CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fabric_ops.errors import ConfigurationError
from fabric_ops.profile import DEFAULT_PROFILE_PATH

DEFAULT_CONFIG_PATH = Path("fabric-ops.toml")
PROFILE_ENV_VAR = "FABRIC_OPS_PROFILE"
USERNAME_ENV_VAR = "FABRIC_OPS_USERNAME"


@dataclass(frozen=True)
class CLIConfig:
    profile: str = DEFAULT_PROFILE_PATH
    username: str = "Admin"
    channel_config_path: str = "./channel/mychannel.tx"
    chaincode_name: str = "example"
    chaincode_path: str = "example"
    chaincode_version: str = "v1"
    chaincode_source_root: str = "./chaincode/go"
    bootstrap_admin: str = "admin"
    bootstrap_secret: str = "adminpw"


class ConfigError(ConfigurationError):
    """Raised when CLI config is invalid."""


def _load_toml(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")

    try:  # Python 3.11+
        import tomllib  # type: ignore[attr-defined]
        try:
            return tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc
    except ModuleNotFoundError:
        try:
            import tomli
        except ModuleNotFoundError as exc:
            raise ConfigError("toml parser unavailable; install tomli for Python < 3.11") from exc
        try:
            return tomli.loads(raw)
        except tomli.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc


def _non_empty(source: dict[str, Any], key: str, default: str) -> str:
    value = source.get(key, default)
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ConfigError(f"{key} must be a string")
    text = str(value).strip()
    if not text:
        raise ConfigError(f"{key} must not be empty")
    return text


def load_cli_config(path: str | Path | None = None) -> CLIConfig:
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if path and not config_path.exists():
        raise ConfigError(f"config file not found: {config_path}")

    source: dict[str, Any] = {}
    if config_path.exists():
        parsed = _load_toml(config_path)
        section = parsed.get("cli")
        if isinstance(section, dict):
            source = section
        elif section is None:
            source = parsed
        else:
            raise ConfigError("[cli] must be a table")

    defaults = CLIConfig()
    chaincode = source.get("chaincode", {})
    if not isinstance(chaincode, dict):
        raise ConfigError("chaincode must be a table")

    env_profile = os.getenv(PROFILE_ENV_VAR)
    profile = _non_empty(source, "profile", defaults.profile)
    if env_profile and env_profile.strip():
        profile = env_profile.strip()

    env_username = os.getenv(USERNAME_ENV_VAR)
    username = _non_empty(source, "username", defaults.username)
    if env_username and env_username.strip():
        username = env_username.strip()

    return CLIConfig(
        profile=profile,
        username=username,
        channel_config_path=_non_empty(source, "channel_config_path", defaults.channel_config_path),
        chaincode_name=_non_empty(chaincode, "name", defaults.chaincode_name),
        chaincode_path=_non_empty(chaincode, "path", defaults.chaincode_path),
        chaincode_version=_non_empty(chaincode, "version", defaults.chaincode_version),
        chaincode_source_root=_non_empty(chaincode, "source_root", defaults.chaincode_source_root),
        bootstrap_admin=_non_empty(source, "bootstrap_admin", defaults.bootstrap_admin),
        bootstrap_secret=_non_empty(source, "bootstrap_secret", defaults.bootstrap_secret),
    )
