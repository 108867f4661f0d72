"""Adapter for the MCP registry v0.1 server listing.

Entries either describe the server at the top level or wrap it under a
``server`` key (with registry bookkeeping under ``_meta``).
"""

from __future__ import annotations

from typing import Optional

from capcat.registry.adapters.shared import (
    AdaptResult,
    extract_string_array,
    merge_tags,
    prefixed_id,
    read_nested_string,
    read_string,
    run_adapter,
    security_signals,
    to_score,
)

# Substrings in package metadata that imply a runtime tag.
COMPATIBILITY_KEYWORDS = {
    "node": ["npm", "node"],
    "python": ["pypi", "python"],
    "container": ["docker", "container"],
}


def adapt(source_id: str, raw_entries: list) -> AdaptResult:
    return run_adapter(source_id, raw_entries, map_entry)


def map_entry(source_id: str, record: dict) -> Optional[dict]:
    server = record.get("server")
    if isinstance(server, dict):
        record = server

    name = read_string(record, ["name", "id"])
    if not name:
        return None

    title = read_string(record, ["title", "displayName"]) or name
    description = read_string(record, ["description"]) or f"MCP server {name}"

    packages = record.get("packages")
    package_records = [p for p in packages if isinstance(p, dict)] if isinstance(packages, list) else []
    first_package = package_records[0] if package_records else {}

    transport = normalize_transport(
        read_nested_string(first_package, ["transport", "type"])
        or read_string(first_package, ["transport"])
        or read_string(record, ["transport"])
    )
    auth_model = normalize_auth_model(read_string(record, ["authModel", "auth"]))

    inferred: list[str] = []
    for package in package_records:
        inferred.extend(detect_compatibility(package))
    compatibility = merge_tags(inferred, extract_string_array(record, ["compatibility"]), ["general"])

    capabilities = merge_tags(
        extract_string_array(record, ["capabilities", "tools"]),
        extract_string_array(record, ["tags"]),
    )

    target = (
        read_string(first_package, ["identifier"])
        or read_string(first_package, ["name"])
        or name
    )

    metadata = {"transport": transport, "authModel": auth_model}
    version = read_string(record, ["version"])
    if version:
        metadata["version"] = version
    repository = read_nested_string(record, ["repository", "url"])
    if repository:
        metadata["repository"] = repository

    return {
        "id": prefixed_id(name, "mcp"),
        "kind": "mcp",
        "provider": "mcp",
        "name": title,
        "description": description,
        "capabilities": capabilities,
        "compatibility": compatibility,
        "source": source_id,
        "install": {"kind": "skill.sh", "target": target, "args": []},
        "adoptionSignal": to_score(record.get("adoptionSignal")),
        "maintenanceSignal": to_score(record.get("maintenanceSignal")),
        "provenanceSignal": to_score(record.get("provenanceSignal"), 90),
        "freshnessSignal": to_score(record.get("freshnessSignal"), 60),
        "securitySignals": security_signals(record),
        "metadata": metadata,
    }


def normalize_transport(value: str) -> str:
    normalized = value.lower()
    if normalized in ("http", "streamable-http"):
        return "http"
    if normalized == "sse":
        return "sse"
    if normalized in ("websocket", "ws"):
        return "websocket"
    return "stdio"


def normalize_auth_model(value: str) -> str:
    normalized = value.lower()
    if normalized in ("none", "noauth"):
        return "none"
    if normalized in ("api_key", "apikey", "bearer"):
        return "api_key"
    if normalized in ("oauth", "oauth2"):
        return "oauth"
    return "custom"


def detect_compatibility(package: dict) -> list[str]:
    """Infer runtime tags from package metadata by keyword match."""
    words = " ".join(
        read_string(package, [key]) for key in ("registryType", "runtime", "runtimeHint", "name", "identifier")
    ).lower()

    return [
        tag
        for tag, keywords in COMPATIBILITY_KEYWORDS.items()
        if any(keyword in words for keyword in keywords)
    ]
