"""Exception taxonomy for capcat.

Malformed adapter entries are never exceptions (they are dropped and
counted). Everything below is raised and surfaced to the caller.
"""

from __future__ import annotations


class CapcatError(Exception):
    """Base exception for capcat operations."""

    def __init__(self, message: str, hint: str = ""):
        super().__init__(message)
        self.hint = hint

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} ({self.hint})" if self.hint else base


class ConfigError(CapcatError):
    """Raised when a configuration file is missing or structurally invalid."""


class CatalogValidationError(CapcatError):
    """Raised when a record fails canonical schema validation.

    This is always fatal: it means an upstream contract changed.
    """

    def __init__(self, item_id: str, issues: list[str]):
        self.item_id = item_id
        self.issues = issues
        summary = "; ".join(issues[:5])
        super().__init__(
            f"Catalog record '{item_id or '?'}' failed validation: {summary}",
            hint="check the registry adapter or the upstream payload format",
        )


class RemoteRegistryError(CapcatError):
    """Raised on transport failure, non-2xx responses or unexpected payloads."""

    def __init__(self, registry_id: str, message: str, hint: str = ""):
        self.registry_id = registry_id
        super().__init__(f"Remote registry {registry_id}: {message}", hint=hint)


class PaginationLimitError(RemoteRegistryError):
    """Raised when a registry keeps returning a next cursor past the page cap."""


class CatalogItemNotFoundError(CapcatError):
    """Raised when an id is not present in the persisted catalog."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(
            f"Catalog item not found: {item_id}",
            hint="run `capcat sync` or check the id with `capcat catalog list`",
        )


class InstallBlockedError(CapcatError):
    """Raised when the install gate refuses an item."""

    def __init__(self, item_id: str, reason: str, assessment=None):
        self.item_id = item_id
        self.reason = reason
        self.assessment = assessment
        super().__init__(
            f"Install of {item_id} blocked: {reason}",
            hint="re-run with --override-risk to force",
        )


class InstallerNotFoundError(CapcatError):
    """Raised when the external installer binary is not on PATH."""

    def __init__(self, binary: str, suggestion: str):
        self.binary = binary
        super().__init__(f"Installer binary '{binary}' not found on PATH", hint=suggestion)


class InstallError(CapcatError):
    """Raised when an installer process cannot be run to completion."""
