"""Adapter for the Claude plugins v0.1 directory.

Plugins are enabled from the assistant's own catalog, so the install
directive is always manual.
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

DEFAULT_INSTRUCTIONS = "Enable from Claude plugin catalog."


def adapt(source_id: str, raw_entries: list) -> AdaptResult:
    return run_adapter(source_id, raw_entries, map_entry)


def map_entry(source_id: str, record: dict) -> Optional[dict]:
    slug = read_string(record, ["slug", "id", "name"])
    if not slug:
        return None

    name = read_string(record, ["title", "name"]) or slug
    description = read_string(record, ["description", "summary"]) or f"Claude plugin {name}"

    install = {
        "kind": "manual",
        "instructions": read_nested_string(record, ["install", "instructions"]) or DEFAULT_INSTRUCTIONS,
    }
    url = read_nested_string(record, ["install", "url"]) or read_string(record, ["url"])
    if url:
        install["url"] = url

    return {
        "id": prefixed_id(slug, "claude-plugin"),
        "kind": "claude-plugin",
        "provider": "anthropic",
        "name": name,
        "description": description,
        "capabilities": merge_tags(
            extract_string_array(record, ["capabilities", "tools"]),
            extract_string_array(record, ["tags"]),
        ),
        "compatibility": merge_tags(extract_string_array(record, ["compatibility", "targets"]), ["claude"]),
        "source": source_id,
        "install": install,
        "adoptionSignal": to_score(record.get("adoptionSignal")),
        "maintenanceSignal": to_score(record.get("maintenanceSignal")),
        "provenanceSignal": to_score(record.get("provenanceSignal"), 95),
        "freshnessSignal": to_score(record.get("freshnessSignal"), 65),
        "securitySignals": security_signals(record),
    }
