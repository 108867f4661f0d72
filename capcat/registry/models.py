"""Registry data models — source descriptors, remote fetch config, providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from capcat.errors import ConfigError
from capcat.models.catalog_item import CatalogKind


class SourceType(Enum):
    """Where a registry's data comes from."""

    PUBLIC_INDEX = "public-index"  # Official index
    VENDOR_FEED = "vendor-feed"
    COMMUNITY_LIST = "community-list"


class PayloadFormat(Enum):
    """Shape of a remote registry response."""

    JSON_ARRAY = "json-array"  # Bare array of entries
    CATALOG_JSON = "catalog-json"  # Object with entries at a path


ADAPTER_IDS = [
    "direct",
    "mcp-registry-v0.1",
    "openai-skills-v1",
    "claude-plugins-v0.1",
    "copilot-extensions-v0.1",
]


@dataclass
class PaginationConfig:
    """Cursor pagination for a remote registry."""

    cursor_param: str = "cursor"
    next_cursor_path: str = "next_cursor"
    limit_param: str = ""
    limit: int = 0
    max_pages: int = 100


@dataclass
class RemoteRegistryConfig:
    """How to fetch a registry over HTTP."""

    url: str
    format: PayloadFormat = PayloadFormat.JSON_ARRAY
    entry_path: str = ""
    supports_updated_since: bool = False
    updated_since_param: str = "updated_since"
    pagination: PaginationConfig | None = None
    timeout_ms: int = 10000
    auth_env: str = ""
    fallback_to_local: bool = True
    provider: str = ""
    official: bool = False

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


@dataclass
class Registry:
    """A named source of raw catalog entries."""

    id: str
    kind: CatalogKind
    source_type: SourceType
    adapter: str = "direct"
    enabled: bool = True
    entries: list[Any] = field(default_factory=list)  # Static / fallback entries
    remote: RemoteRegistryConfig | None = None
    official: bool = False

    @property
    def is_official(self) -> bool:
        return self.official or bool(self.remote and self.remote.official)


@dataclass
class ProviderConfig:
    """Sourcing policy for one provider ecosystem."""

    id: str
    official_only: bool = False
    enabled: bool = True


def _pick(data: dict, *keys: str, default=None):
    """Return the first present key; config accepts camelCase and snake_case."""
    for key in keys:
        if key in data:
            return data[key]
    return default


def dict_to_registry(data: dict) -> Registry:
    """Build a Registry from a parsed config mapping."""
    if not isinstance(data, dict) or not data.get("id"):
        raise ConfigError("Registry entry must be a mapping with an 'id'")

    registry_id = data["id"]
    try:
        kind = CatalogKind(data.get("kind", ""))
        source_type = SourceType(_pick(data, "sourceType", "source_type", default="public-index"))
    except ValueError as e:
        raise ConfigError(f"Registry {registry_id}: {e}") from e

    adapter = data.get("adapter", "direct")
    if adapter not in ADAPTER_IDS:
        raise ConfigError(
            f"Registry {registry_id}: unknown adapter '{adapter}'",
            hint=f"use one of {', '.join(ADAPTER_IDS)}",
        )

    entries = data.get("entries", [])
    if not isinstance(entries, list):
        raise ConfigError(f"Registry {registry_id}: 'entries' must be a list")

    remote_data = data.get("remote")
    remote = _dict_to_remote(registry_id, remote_data) if remote_data else None

    return Registry(
        id=registry_id,
        kind=kind,
        source_type=source_type,
        adapter=adapter,
        enabled=bool(data.get("enabled", True)),
        entries=entries,
        remote=remote,
        official=bool(_pick(data, "officialOnly", "official", default=False)),
    )


def _dict_to_remote(registry_id: str, data: dict) -> RemoteRegistryConfig:
    if not isinstance(data, dict) or not data.get("url"):
        raise ConfigError(f"Registry {registry_id}: remote config requires a 'url'")

    try:
        fmt = PayloadFormat(data.get("format", "json-array"))
    except ValueError as e:
        raise ConfigError(f"Registry {registry_id}: {e}") from e

    timeout_ms = int(_pick(data, "timeoutMs", "timeout_ms", default=10000))
    if not 100 <= timeout_ms <= 120000:
        raise ConfigError(f"Registry {registry_id}: timeoutMs must be within 100..120000")

    pagination = None
    page_data = data.get("pagination")
    if page_data:
        pagination = PaginationConfig(
            cursor_param=_pick(page_data, "cursorParam", "cursor_param", default="cursor"),
            next_cursor_path=_pick(
                page_data, "nextCursorPath", "next_cursor_path", default="next_cursor"
            ),
            limit_param=_pick(page_data, "limitParam", "limit_param", default=""),
            limit=int(page_data.get("limit", 0)),
            max_pages=int(_pick(page_data, "maxPages", "max_pages", default=100)),
        )

    return RemoteRegistryConfig(
        url=data["url"],
        format=fmt,
        entry_path=_pick(data, "entryPath", "entry_path", default=""),
        supports_updated_since=bool(
            _pick(data, "supportsUpdatedSince", "supports_updated_since", default=False)
        ),
        updated_since_param=_pick(
            data, "updatedSinceParam", "updated_since_param", default="updated_since"
        ),
        pagination=pagination,
        timeout_ms=timeout_ms,
        auth_env=_pick(data, "authEnv", "auth_env", default=""),
        fallback_to_local=bool(_pick(data, "fallbackToLocal", "fallback_to_local", default=True)),
        provider=data.get("provider", ""),
        official=bool(_pick(data, "officialOnly", "official", default=False)),
    )


def dict_to_provider(data: dict) -> ProviderConfig:
    if not isinstance(data, dict) or not data.get("id"):
        raise ConfigError("Provider entry must be a mapping with an 'id'")
    return ProviderConfig(
        id=data["id"],
        official_only=bool(_pick(data, "officialOnly", "official_only", default=False)),
        enabled=bool(data.get("enabled", True)),
    )
