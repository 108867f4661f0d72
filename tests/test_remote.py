"""Tests for the remote registry resolver."""

import time

import httpx
import pytest

from capcat.config import RuntimeConfig
from capcat.errors import PaginationLimitError, RemoteRegistryError
from capcat.models.catalog_item import CatalogKind
from capcat.registry.models import (
    PaginationConfig,
    PayloadFormat,
    Registry,
    RemoteRegistryConfig,
    SourceType,
)
from capcat.registry.remote import LOCAL, REMOTE, RemoteResolver, extract_entries, resolve_next_cursor


def _registry(remote=None, entries=None) -> Registry:
    return Registry(
        id="skills",
        kind=CatalogKind.SKILL,
        source_type=SourceType.PUBLIC_INDEX,
        entries=entries if entries is not None else [],
        remote=remote,
    )


def _resolver(handler, **config) -> RemoteResolver:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RemoteResolver(RuntimeConfig(**config), client=client)


def test_no_remote_returns_local():
    resolver = _resolver(lambda request: httpx.Response(500))
    resolved = resolver.resolve(_registry(entries=[{"id": "skill:a"}]))
    assert resolved.source == LOCAL
    assert resolved.entries == [{"id": "skill:a"}]


def test_offline_never_fetches():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    resolver = _resolver(handler, offline=True)
    resolved = resolver.resolve(_registry(RemoteRegistryConfig(url="https://r.test/skills"), [{"id": "x"}]))
    assert resolved.source == LOCAL
    assert resolved.note == "offline mode"
    assert calls == []


def test_failed_fetch_falls_back_to_local():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    resolver = _resolver(handler)
    registry = _registry(
        RemoteRegistryConfig(url="https://r.test/skills", fallback_to_local=True),
        entries=[{"id": "skill:local"}],
    )
    resolved = resolver.resolve(registry)
    assert resolved.entries == [{"id": "skill:local"}]
    assert resolved.source == LOCAL
    assert "remote fetch failed" in resolved.note


def test_failed_fetch_without_fallback_raises():
    resolver = _resolver(lambda request: httpx.Response(503))
    registry = _registry(
        RemoteRegistryConfig(url="https://r.test/skills", fallback_to_local=False),
        entries=[{"id": "skill:local"}],
    )
    with pytest.raises(RemoteRegistryError) as exc:
        resolver.resolve(registry)
    assert "503" in str(exc.value)


def test_failed_fetch_without_local_entries_raises():
    resolver = _resolver(lambda request: httpx.Response(404))
    with pytest.raises(RemoteRegistryError):
        resolver.resolve(_registry(RemoteRegistryConfig(url="https://r.test/skills")))


def test_timeout_is_a_remote_error():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    resolver = _resolver(handler)
    registry = _registry(RemoteRegistryConfig(url="https://r.test/skills", timeout_ms=500, fallback_to_local=False))
    with pytest.raises(RemoteRegistryError) as exc:
        resolver.resolve(registry)
    assert "500ms" in str(exc.value)


def test_missing_auth_token_falls_back_without_fetching():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    resolver = _resolver(handler, env={})
    registry = _registry(
        RemoteRegistryConfig(url="https://r.test/skills", auth_env="SKILLS_TOKEN"), [{"id": "x"}]
    )
    resolved = resolver.resolve(registry)
    assert resolved.source == LOCAL
    assert "SKILLS_TOKEN" in resolved.note
    assert calls == []


def test_auth_token_is_sent_as_bearer():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=[{"slug": "a"}])

    resolver = _resolver(handler, env={"SKILLS_TOKEN": "t0k"})
    resolved = resolver.resolve(
        _registry(RemoteRegistryConfig(url="https://r.test/skills", auth_env="SKILLS_TOKEN"))
    )
    assert resolved.source == REMOTE
    assert seen["auth"] == "Bearer t0k"


def test_cursor_pagination_concatenates_pages():
    calls = []

    def handler(request):
        calls.append(dict(request.url.params))
        if request.url.params.get("cursor") == "abc":
            return httpx.Response(200, json={"skills": [{"slug": "b"}]})
        return httpx.Response(200, json={"skills": [{"slug": "a"}], "nextCursor": "abc"})

    resolver = _resolver(handler)
    registry = _registry(
        RemoteRegistryConfig(
            url="https://r.test/skills",
            format=PayloadFormat.CATALOG_JSON,
            pagination=PaginationConfig(cursor_param="cursor", next_cursor_path="nextCursor"),
        )
    )
    resolved = resolver.resolve(registry)
    assert resolved.entries == [{"slug": "a"}, {"slug": "b"}]
    assert resolved.pages == 2
    assert len(calls) == 2
    assert "cursor" not in calls[0]


def test_runaway_pagination_is_capped():
    resolver = _resolver(lambda request: httpx.Response(200, json={"skills": [], "next_cursor": "again"}))
    registry = _registry(
        RemoteRegistryConfig(
            url="https://r.test/skills",
            format=PayloadFormat.CATALOG_JSON,
            pagination=PaginationConfig(max_pages=3),
            fallback_to_local=False,
        )
    )
    with pytest.raises(PaginationLimitError):
        resolver.resolve(registry)


def test_updated_since_is_sent_when_supported():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json=[{"slug": "a"}])

    resolver = _resolver(handler)
    registry = _registry(
        RemoteRegistryConfig(url="https://r.test/skills", supports_updated_since=True, updated_since_param="since")
    )
    resolved = resolver.resolve(registry, updated_since="2026-01-01T00:00:00+00:00")
    assert seen["since"] == "2026-01-01T00:00:00+00:00"
    assert resolved.incremental


def test_empty_remote_prefers_local_entries():
    resolver = _resolver(lambda request: httpx.Response(200, json=[]))
    registry = _registry(RemoteRegistryConfig(url="https://r.test/skills"), [{"id": "skill:local"}])
    resolved = resolver.resolve(registry)
    assert resolved.source == LOCAL
    assert resolved.entries == [{"id": "skill:local"}]


def test_empty_incremental_reply_falls_back_but_stays_incremental():
    resolver = _resolver(lambda request: httpx.Response(200, json=[]))
    remote = RemoteRegistryConfig(url="https://r.test/skills", supports_updated_since=True)
    resolved = resolver.resolve(_registry(remote, [{"id": "skill:local"}]), updated_since="2026-01-01T00:00:00+00:00")
    assert resolved.source == LOCAL
    assert resolved.incremental


class TrickleStream(httpx.SyncByteStream):
    """A body that arrives one byte at a time, slower than the registry timeout."""

    def __iter__(self):
        yield b"["
        for _ in range(4):
            time.sleep(0.05)
            yield b" "
        yield b"]"


def test_timeout_bounds_the_whole_response():
    resolver = _resolver(lambda request: httpx.Response(200, stream=TrickleStream()))
    registry = _registry(
        RemoteRegistryConfig(url="https://r.test/skills", timeout_ms=100, fallback_to_local=False)
    )
    with pytest.raises(RemoteRegistryError) as exc:
        resolver.resolve(registry)
    assert "timed out after 100ms" in str(exc.value)


def test_invalid_json_is_a_remote_error():
    resolver = _resolver(lambda request: httpx.Response(200, text="<html>"))
    registry = _registry(RemoteRegistryConfig(url="https://r.test/skills", fallback_to_local=False))
    with pytest.raises(RemoteRegistryError):
        resolver.resolve(registry)


# --- Extraction ---


def test_extract_entries_uses_kind_default_key():
    payload = {"mcps": [{"name": "a"}]}
    assert extract_entries(payload, PayloadFormat.CATALOG_JSON, "", CatalogKind.MCP) == [{"name": "a"}]


def test_extract_entries_follows_dotted_path():
    payload = {"data": {"items": [1, 2]}}
    assert extract_entries(payload, PayloadFormat.CATALOG_JSON, "data.items", CatalogKind.SKILL) == [1, 2]


def test_extract_entries_rejects_non_array():
    with pytest.raises(RemoteRegistryError):
        extract_entries({"skills": {"a": 1}}, PayloadFormat.CATALOG_JSON, "", CatalogKind.SKILL)
    with pytest.raises(RemoteRegistryError):
        extract_entries({"skills": []}, PayloadFormat.JSON_ARRAY, "", CatalogKind.SKILL)


def test_resolve_next_cursor():
    assert resolve_next_cursor({"meta": {"next": " n2 "}}, "meta.next") == "n2"
    assert resolve_next_cursor({"next_cursor": 7}) == "7"
    assert resolve_next_cursor({"next_cursor": None}) == ""
    assert resolve_next_cursor([1, 2]) == ""
