"""Adapter for the Copilot extensions v0.1 marketplace feed."""

from __future__ import annotations

from typing import Optional

from capcat.registry.adapters.shared import (
    AdaptResult,
    extract_string_array,
    merge_tags,
    prefixed_id,
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
    description = read_string(record, ["description", "summary"]) or f"Copilot extension {name}"

    return {
        "id": prefixed_id(slug, "copilot-extension"),
        "kind": "copilot-extension",
        "provider": "github",
        "name": name,
        "description": description,
        "capabilities": merge_tags(
            extract_string_array(record, ["capabilities", "tools"]),
            extract_string_array(record, ["tags"]),
        ),
        "compatibility": merge_tags(
            extract_string_array(record, ["compatibility", "targets"]), ["copilot", "github"]
        ),
        "source": source_id,
        "install": {
            "kind": "gh-cli",
            "target": read_string(record, ["installId", "repository"]) or slug,
            "args": read_nested_string_array(record, ["install", "args"]),
        },
        "adoptionSignal": to_score(record.get("adoptionSignal")),
        "maintenanceSignal": to_score(record.get("maintenanceSignal")),
        "provenanceSignal": to_score(record.get("provenanceSignal"), 96),
        "freshnessSignal": to_score(record.get("freshnessSignal"), 70),
        "securitySignals": security_signals(record),
    }
