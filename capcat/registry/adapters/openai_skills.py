"""Adapter for the OpenAI skills v1 catalog."""

from __future__ import annotations

from typing import Optional

from capcat.registry.adapters.shared import (
    AdaptResult,
    extract_string_array,
    merge_tags,
    prefixed_id,
    read_nested_string,
    read_nested_string_array,
    read_string,
    run_adapter,
    security_signals,
    to_score,
)


def adapt(source_id: str, raw_entries: list) -> AdaptResult:
    return run_adapter(source_id, raw_entries, map_entry)


def map_entry(source_id: str, record: dict) -> Optional[dict]:
    slug = read_string(record, ["slug", "id", "name"])
    if not slug:
        return None

    name = read_string(record, ["title", "name"]) or slug
    description = read_string(record, ["description", "summary"]) or f"Skill {name}"
    capabilities = merge_tags(
        extract_string_array(record, ["capabilities", "tags"]),
        extract_string_array(record, ["features"]),
    )
    compatibility = merge_tags(
        extract_string_array(record, ["compatibility", "runtimes"]),
        extract_string_array(record, ["frameworks"]),
    )

    target = (
        read_nested_string(record, ["install", "target"])
        or read_nested_string(record, ["package", "name"])
        or read_string(record, ["package"])
        or slug
    )

    return {
        "id": prefixed_id(slug, "skill"),
        "kind": "skill",
        "provider": "openai",
        "name": name,
        "description": description,
        "capabilities": capabilities,
        "compatibility": compatibility or ["general"],
        "source": source_id,
        "install": {
            "kind": "skill.sh",
            "target": target,
            "args": read_nested_string_array(record, ["install", "args"]),
        },
        "adoptionSignal": to_score(record.get("adoptionSignal")),
        "maintenanceSignal": to_score(record.get("maintenanceSignal")),
        "provenanceSignal": to_score(record.get("provenanceSignal"), 75),
        "freshnessSignal": to_score(record.get("freshnessSignal"), 55),
        "securitySignals": security_signals(record),
    }
