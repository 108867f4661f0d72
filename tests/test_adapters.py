"""Tests for the registry adapters."""

from capcat.models.catalog_item import CatalogKind
from capcat.registry.adapters import adapt_registry_entries
from capcat.registry.adapters import claude_plugins, copilot_extensions, mcp_registry, openai_skills
from capcat.registry.adapters.shared import (
    DROP_MISSING_IDENTIFIER,
    DROP_NOT_AN_OBJECT,
    to_count,
    to_score,
)
from capcat.registry.models import Registry, SourceType
from capcat.schema.validator import parse_catalog_item


def _registry(adapter: str, kind: CatalogKind = CatalogKind.MCP) -> Registry:
    return Registry(id="reg", kind=kind, source_type=SourceType.PUBLIC_INDEX, adapter=adapter)


# --- MCP registry ---


def test_mcp_unwraps_server_and_infers_compatibility():
    result = mcp_registry.adapt(
        "mcp-official",
        [
            {
                "server": {
                    "name": "io.example/filesystem",
                    "description": "Read and write files",
                    "packages": [
                        {"registryType": "npm", "identifier": "@example/fs", "transport": {"type": "stdio"}},
                        {"registryType": "oci", "identifier": "docker.io/example/fs"},
                    ],
                    "repository": {"url": "https://github.com/example/fs"},
                },
                "_meta": {"status": "active"},
            }
        ],
    )
    assert result.dropped_count == 0
    entry = result.entries[0]
    assert entry["id"] == "mcp:io.example/filesystem"
    assert entry["compatibility"] == ["container", "general", "node"]
    assert entry["install"] == {"kind": "skill.sh", "target": "@example/fs", "args": []}
    assert entry["metadata"]["transport"] == "stdio"
    assert entry["metadata"]["repository"] == "https://github.com/example/fs"
    assert entry["provenanceSignal"] == 90


def test_mcp_without_packages_defaults_to_general():
    entry = mcp_registry.adapt("reg", [{"name": "weather"}]).entries[0]
    assert entry["compatibility"] == ["general"]
    assert entry["install"]["target"] == "weather"
    assert entry["description"] == "MCP server weather"
    assert entry["metadata"] == {"transport": "stdio", "authModel": "custom"}


def test_mcp_normalizes_transport_and_auth():
    assert mcp_registry.normalize_transport("streamable-http") == "http"
    assert mcp_registry.normalize_transport("WS") == "websocket"
    assert mcp_registry.normalize_transport("") == "stdio"
    assert mcp_registry.normalize_auth_model("OAuth2") == "oauth"
    assert mcp_registry.normalize_auth_model("bearer") == "api_key"


def test_mcp_python_package_tag():
    assert mcp_registry.detect_compatibility({"registryType": "pypi", "identifier": "mcp-x"}) == ["python"]


# --- Dropping ---


def test_malformed_entries_are_dropped_and_counted():
    result = openai_skills.adapt("reg", ["nope", 42, None, {"description": "no id"}, {"slug": "ok"}])
    assert [e["id"] for e in result.entries] == ["skill:ok"]
    assert result.dropped == {DROP_NOT_AN_OBJECT: 3, DROP_MISSING_IDENTIFIER: 1}
    assert result.dropped_count == 4


def test_adapter_never_raises_on_odd_values():
    result = copilot_extensions.adapt(
        "reg",
        [{"slug": "x", "tags": "not-a-list", "adoptionSignal": "high", "securitySignals": [1, 2]}],
    )
    entry = result.entries[0]
    assert entry["capabilities"] == []
    assert entry["adoptionSignal"] == 50
    assert entry["securitySignals"]["knownVulnerabilities"] == 0


# --- Other formats ---


def test_openai_skill_defaults():
    entry = openai_skills.adapt(
        "openai", [{"slug": "pdf", "title": "PDF tools", "tags": ["pdf", "PDF"], "install": {"args": ["--global"]}}]
    ).entries[0]
    assert entry["id"] == "skill:pdf"
    assert entry["name"] == "PDF tools"
    assert entry["capabilities"] == ["pdf"]
    assert entry["compatibility"] == ["general"]
    assert entry["install"] == {"kind": "skill.sh", "target": "pdf", "args": ["--global"]}


def test_claude_plugin_is_manual():
    entry = claude_plugins.adapt(
        "claude", [{"id": "claude-plugin:review", "url": "https://example.com/review"}]
    ).entries[0]
    assert entry["id"] == "claude-plugin:review"
    assert entry["install"] == {
        "kind": "manual",
        "instructions": claude_plugins.DEFAULT_INSTRUCTIONS,
        "url": "https://example.com/review",
    }
    assert "claude" in entry["compatibility"]


def test_copilot_extension_uses_gh():
    entry = copilot_extensions.adapt(
        "copilot", [{"slug": "docs", "repository": "octo/gh-docs", "install": {"args": ["--pin", "v1"]}}]
    ).entries[0]
    assert entry["install"] == {"kind": "gh-cli", "target": "octo/gh-docs", "args": ["--pin", "v1"]}
    assert entry["compatibility"] == ["copilot", "github"]
    assert entry["provenanceSignal"] == 96


def test_adapted_entries_pass_schema_once_defaulted():
    for module, kind in [
        (mcp_registry, "mcp"),
        (openai_skills, "skill"),
        (claude_plugins, "claude-plugin"),
        (copilot_extensions, "copilot-extension"),
    ]:
        entry = module.adapt("reg", [{"name": "thing", "slug": "thing"}]).entries[0]
        item = parse_catalog_item({**entry, "lastSeenAt": "2026-01-01"})
        assert item.kind.value == kind


def test_direct_adapter_passes_entries_through():
    raw = [{"id": "skill:a", "name": "A"}, "junk"]
    result = adapt_registry_entries(_registry("direct", CatalogKind.SKILL), raw)
    assert result.entries == [{"id": "skill:a", "name": "A"}]
    assert result.dropped == {DROP_NOT_AN_OBJECT: 1}


def test_dispatch_by_adapter_id():
    result = adapt_registry_entries(_registry("mcp-registry-v0.1"), [{"name": "x"}])
    assert result.entries[0]["id"] == "mcp:x"


# --- Coercion ---


def test_to_score_clamps():
    assert to_score(150) == 100
    assert to_score(-3) == 0
    assert to_score("42.5") == 42.5
    assert to_score(None, 70) == 70
    assert to_score(True) == 50


def test_to_count_is_non_negative_int():
    assert to_count(3.9) == 3
    assert to_count(-1) == 0
    assert to_count("2") == 2
    assert to_count("many") == 0
