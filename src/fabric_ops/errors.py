"""Error types for fabric-ops."""

from __future__ import annotations


class FabricOpsError(RuntimeError):
    """Base fabric-ops error."""


class ConfigurationError(FabricOpsError, ValueError):
    """Selection or settings could not be resolved before touching the network."""


class ProfileError(ConfigurationError):
    """Connection profile is missing, unreadable, or lacks a required section."""


class SDKUnavailableError(FabricOpsError):
    """The Fabric SDK could not be imported or initialized."""


class SDKOperationError(FabricOpsError):
    """A delegated SDK call failed; the message is reported verbatim."""

    def __init__(self, message: str, *, operation: str | None = None, detail: object | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.detail = detail


class CredentialStoreError(FabricOpsError):
    """Enrollment material could not be read from or written to disk."""
