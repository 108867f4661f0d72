"""Remote Resolver — fetch a registry's raw entries, or fall back to local ones.

Resolution order for one registry:

1. Offline mode, or no remote config: local entries.
2. Remote config names an auth env var that is unset: local entries.
3. Fetch (paginated when configured). On failure, local entries when the
   registry allows fallback and has some; otherwise the error propagates.
4. A fetch that yields nothing while local entries exist: local entries.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from capcat.config import RuntimeConfig
from capcat.errors import PaginationLimitError, RemoteRegistryError
from capcat.models.catalog_item import DEFAULT_ENTRY_KEYS, CatalogKind
from capcat.registry.models import PayloadFormat, Registry, RemoteRegistryConfig

logger = logging.getLogger(__name__)

REMOTE = "remote"
LOCAL = "local"


@dataclass
class ResolvedEntries:
    """Raw entries for one registry and where they came from."""

    entries: list[Any]
    source: str  # REMOTE or LOCAL
    pages: int = 0
    incremental: bool = False
    note: str = ""  # Why local entries were used, if they were

    @property
    def is_remote(self) -> bool:
        return self.source == REMOTE


class RemoteResolver:
    """Resolves registries over HTTP using a shared ``httpx.Client``.

    Pass ``client`` to control transport (tests use ``httpx.MockTransport``).
    A client created here is closed by ``close()`` or on context exit.
    """

    def __init__(self, config: RuntimeConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self._owns_client = client is None
        self.client = client or httpx.Client(follow_redirects=True)

    def __enter__(self) -> "RemoteResolver":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def resolve(self, registry: Registry, updated_since: str = "") -> ResolvedEntries:
        """Resolve a registry's entries following the fallback policy."""
        remote = registry.remote
        if self.config.offline:
            return _local(registry, "offline mode")
        if remote is None:
            return _local(registry, "")

        if remote.auth_env and not self.config.token_for(remote.auth_env):
            note = f"fallback used because auth token {remote.auth_env} is missing"
            logger.warning(
                "Registry %s: %s; set %s to fetch remotely", registry.id, note, remote.auth_env
            )
            return _local(registry, note)

        incremental = bool(remote.supports_updated_since and updated_since)
        try:
            entries, pages = self.fetch_all(registry, updated_since if incremental else "")
        except RemoteRegistryError as e:
            if remote.fallback_to_local and registry.entries:
                logger.warning(
                    "Remote registry %s fetch failed (%s); using %d local fallback entries",
                    registry.id,
                    e,
                    len(registry.entries),
                )
                return _local(registry, f"fallback used because remote fetch failed: {e}")
            raise

        if not entries and registry.entries:
            log = logger.info if incremental else logger.warning
            log(
                "Remote registry %s returned no entries%s; using %d local fallback entries",
                registry.id,
                " since last sync" if incremental else "",
                len(registry.entries),
            )
            return _local(
                registry, "fallback used because remote returned no entries", incremental=incremental
            )

        return ResolvedEntries(entries=entries, source=REMOTE, pages=pages, incremental=incremental)

    def fetch_all(self, registry: Registry, updated_since: str = "") -> tuple[list[Any], int]:
        """Fetch every page of a remote registry.

        Returns:
            (entries from all pages in order, number of pages fetched)
        """
        remote = registry.remote
        if remote is None:
            raise RemoteRegistryError(registry.id, "no remote definition")

        entries: list[Any] = []
        cursor = ""
        pages = 0
        max_pages = remote.pagination.max_pages if remote.pagination else 1

        while True:
            if pages >= max_pages:
                raise PaginationLimitError(
                    registry.id,
                    f"still returning a next cursor after {max_pages} pages",
                    hint="raise pagination.maxPages or check nextCursorPath",
                )
            payload = self._fetch_page(registry, remote, cursor, updated_since)
            pages += 1
            entries.extend(
                extract_entries(payload, remote.format, remote.entry_path, registry.kind, registry.id)
            )
            if remote.pagination is None:
                break
            cursor = resolve_next_cursor(payload, remote.pagination.next_cursor_path)
            if not cursor:
                break

        return entries, pages

    def _fetch_page(
        self, registry: Registry, remote: RemoteRegistryConfig, cursor: str, updated_since: str
    ) -> Any:
        """GET one page; ``timeoutMs`` bounds the whole request, body included."""
        headers = {"Accept": "application/json"}
        token = self.config.token_for(remote.auth_env)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        deadline = time.monotonic() + remote.timeout_seconds
        timed_out = RemoteRegistryError(registry.id, f"request timed out after {remote.timeout_ms}ms")
        try:
            with self.client.stream(
                "GET",
                remote.url,
                params=build_params(remote, cursor, updated_since),
                headers=headers,
                timeout=remote.timeout_seconds,
            ) as response:
                if not response.is_success:
                    raise RemoteRegistryError(
                        registry.id,
                        f"request failed with {response.status_code} {response.reason_phrase}",
                    )
                body = bytearray()
                for chunk in response.iter_bytes():
                    body.extend(chunk)
                    if time.monotonic() > deadline:
                        raise timed_out
        except httpx.TimeoutException as e:
            raise timed_out from e
        except httpx.HTTPError as e:
            raise RemoteRegistryError(registry.id, f"request failed: {e}") from e

        try:
            return json.loads(bytes(body))
        except ValueError as e:
            raise RemoteRegistryError(registry.id, "response is not valid JSON") from e


def _local(registry: Registry, note: str, incremental: bool = False) -> ResolvedEntries:
    return ResolvedEntries(
        entries=list(registry.entries), source=LOCAL, incremental=incremental, note=note
    )


def build_params(remote: RemoteRegistryConfig, cursor: str, updated_since: str) -> dict[str, str]:
    params: dict[str, str] = {}
    if remote.supports_updated_since and updated_since:
        params[remote.updated_since_param] = updated_since
    page = remote.pagination
    if page and page.limit_param and page.limit:
        params[page.limit_param] = str(page.limit)
    if page and cursor:
        params[page.cursor_param] = cursor
    return params


def extract_entries(
    payload: Any,
    fmt: PayloadFormat,
    entry_path: str,
    kind: CatalogKind,
    registry_id: str = "",
) -> list[Any]:
    """Pull the entry array out of a response payload.

    Anything other than an array at the expected location means the remote
    contract changed, and raises.
    """
    if fmt == PayloadFormat.JSON_ARRAY:
        if not isinstance(payload, list):
            raise RemoteRegistryError(registry_id, "expected remote payload to be an array")
        return payload

    if not isinstance(payload, dict):
        raise RemoteRegistryError(
            registry_id, "expected remote payload to be an object for catalog-json format"
        )

    path = entry_path or DEFAULT_ENTRY_KEYS[kind]
    resolved = resolve_path(payload, path)
    if not isinstance(resolved, list):
        raise RemoteRegistryError(
            registry_id, f"expected resolved catalog entries to be an array at path: {path}"
        )
    return resolved


def resolve_path(value: Any, path: str) -> Any:
    """Follow a dotted path through nested objects; None when it breaks."""
    current = value
    for segment in (s for s in path.split(".") if s):
        if not isinstance(current, dict):
            return None
        current = current.get(segment)
    return current


def resolve_next_cursor(payload: Any, path: str = "next_cursor") -> str:
    if not isinstance(payload, dict):
        return ""
    resolved = resolve_path(payload, path)
    if isinstance(resolved, (int, float)) and not isinstance(resolved, bool):
        return str(resolved)
    return resolved.strip() if isinstance(resolved, str) else ""
