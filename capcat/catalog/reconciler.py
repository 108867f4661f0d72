"""Reconciler — merge entries from every registry into one catalog.

Entries are first defaulted and pushed through the schema gate, then
records sharing an id are merged. The merge is optimistic: sources are
assumed to add signal, never retract it, so it keeps the longer text, the
union of tags, the maximum of each 0-100 signal and the later sighting.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from capcat.errors import CatalogValidationError
from capcat.models.catalog_item import (
    DEFAULT_PROVIDERS,
    CatalogItem,
    CatalogKind,
    dedupe_tags,
)
from capcat.registry.models import Registry
from capcat.schema.validator import parse_catalog_item

_KIND_PREFIX_RE = re.compile(r"^[a-z-]+:")

_DEFAULT_SIGNALS = {
    "adoptionSignal": 50,
    "maintenanceSignal": 50,
    "provenanceSignal": 50,
    "freshnessSignal": 50,
}


def normalize_entries(entries: Iterable[Any], registry: Registry, today: str) -> list[CatalogItem]:
    """Default missing identity fields and validate each entry.

    Raises:
        CatalogValidationError: on the first entry that fails the schema.
    """
    items = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise CatalogValidationError("", [f"registry {registry.id}: expected an object entry"])
        items.append(parse_catalog_item(apply_defaults(entry, registry, today)))
    return sorted(items, key=lambda i: i.id)


def apply_defaults(entry: dict, registry: Registry, today: str) -> dict:
    value = dict(entry)
    kind = value.get("kind") or registry.kind.value
    value["kind"] = kind
    value["id"] = normalize_id(str(value.get("id") or ""), str(kind))
    if not value.get("provider"):
        value["provider"] = (registry.remote and registry.remote.provider) or _default_provider(kind)
    value["source"] = value.get("source") or registry.id
    value["lastSeenAt"] = value.get("lastSeenAt") or today
    value.setdefault("capabilities", [])
    value.setdefault("compatibility", [])
    value.setdefault("metadata", {})
    value.setdefault("securitySignals", {})
    for key, default in _DEFAULT_SIGNALS.items():
        value.setdefault(key, default)
    return value


def normalize_id(raw_id: str, kind: str) -> str:
    """Namespace an id by kind, replacing any other kind prefix."""
    if not raw_id:
        return ""
    if raw_id.startswith(f"{kind}:"):
        return raw_id
    return f"{kind}:{_KIND_PREFIX_RE.sub('', raw_id, count=1)}"


def _default_provider(kind: str) -> str:
    try:
        return DEFAULT_PROVIDERS[CatalogKind(kind)]
    except ValueError:
        return "unknown"


def merge_items(existing: CatalogItem, incoming: CatalogItem) -> CatalogItem:
    """Field-level merge of two records with the same id.

    Identity, install directive and security counters stay with ``existing``.
    """
    return CatalogItem(
        id=existing.id,
        kind=existing.kind,
        provider=existing.provider,
        source=existing.source,
        install=existing.install,
        security_signals=existing.security_signals,
        name=_longer(existing.name, incoming.name),
        description=_longer(existing.description, incoming.description),
        capabilities=dedupe_tags([*existing.capabilities, *incoming.capabilities]),
        compatibility=dedupe_tags([*existing.compatibility, *incoming.compatibility]),
        adoption_signal=max(existing.adoption_signal, incoming.adoption_signal),
        maintenance_signal=max(existing.maintenance_signal, incoming.maintenance_signal),
        provenance_signal=max(existing.provenance_signal, incoming.provenance_signal),
        freshness_signal=max(existing.freshness_signal, incoming.freshness_signal),
        last_seen_at=max(existing.last_seen_at, incoming.last_seen_at),
        metadata={**existing.metadata, **incoming.metadata},
    )


def _longer(current: str, candidate: str) -> str:
    return candidate if len(candidate) > len(current) else current


def reconcile(items: Iterable[CatalogItem]) -> list[CatalogItem]:
    """Merge same-id records and return the catalog sorted by id."""
    merged: dict[str, CatalogItem] = {}
    for item in items:
        existing = merged.get(item.id)
        merged[item.id] = merge_items(existing, item) if existing else item
    return [merged[key] for key in sorted(merged)]
