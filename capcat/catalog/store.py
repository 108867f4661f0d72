"""File-based catalog store.

Holds every durable document under one data directory:

- ``catalog/items.json`` -- canonical catalog, plus one legacy view per kind
- ``catalog/sync-state.json`` -- per-registry sync bookkeeping
- ``whitelist/approved.json`` -- ids approved for install
- ``quarantine/quarantined.json`` -- ids removed from trust
- ``security-reports/`` -- verification reports and install audits

Documents are schema-checked when read and written, and every write is an
atomic rename.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from capcat.errors import ConfigError
from capcat.catalog.sync_state import SyncState, dict_to_state, state_to_dict
from capcat.models.catalog_item import (
    LEGACY_VIEW_FILES,
    CatalogItem,
    item_to_dict,
)
from capcat.schema.validator import parse_catalog_item, require_valid
from capcat.utils.json_files import read_json, write_json_atomic

logger = logging.getLogger(__name__)


@dataclass
class QuarantineEntry:
    """An id removed from trust, and why."""

    id: str
    reason: str
    quarantined_at: str  # ISO 8601


class CatalogStore:
    """On-disk state for the catalog, whitelist, quarantine and sync runs."""

    ITEMS_FILE = "catalog/items.json"
    SYNC_STATE_FILE = "catalog/sync-state.json"
    WHITELIST_FILE = "whitelist/approved.json"
    QUARANTINE_FILE = "quarantine/quarantined.json"
    REPORTS_DIR = "security-reports"

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.items_path = self.data_dir / self.ITEMS_FILE
        self.sync_state_path = self.data_dir / self.SYNC_STATE_FILE
        self.whitelist_path = self.data_dir / self.WHITELIST_FILE
        self.quarantine_path = self.data_dir / self.QUARANTINE_FILE
        self.reports_dir = self.data_dir / self.REPORTS_DIR
        self.audits_dir = self.reports_dir / "audits"

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def load_items(self) -> list[CatalogItem]:
        """Load the canonical catalog, falling back to the legacy views."""
        if self.items_path.exists():
            return [parse_catalog_item(entry) for entry in self._read_list(self.items_path)]
        return self._load_legacy_items()

    def get(self, item_id: str) -> Optional[CatalogItem]:
        for item in self.load_items():
            if item.id == item_id:
                return item
        return None

    def save_catalog(self, items: list[CatalogItem], sync_state: Optional[SyncState] = None) -> None:
        """Persist the catalog, its legacy views and optionally sync state.

        Every document is built and validated before the first file is
        replaced.
        """
        ids = [item.id for item in items]
        if len(ids) != len(set(ids)):
            raise ValueError("Catalog ids must be unique")

        records = [item_to_dict(item) for item in sorted(items, key=lambda i: i.id)]
        for record in records:
            parse_catalog_item(record)

        views = {
            self.items_path.parent / filename: [r for r in records if r["kind"] == kind.value]
            for kind, filename in LEGACY_VIEW_FILES.items()
        }
        state_doc = state_to_dict(sync_state) if sync_state is not None else None
        if state_doc is not None:
            require_valid(state_doc, "sync-state")

        write_json_atomic(self.items_path, records)
        for path, view in views.items():
            write_json_atomic(path, view)
        if state_doc is not None:
            write_json_atomic(self.sync_state_path, state_doc)

    def _load_legacy_items(self) -> list[CatalogItem]:
        items = []
        for kind, filename in LEGACY_VIEW_FILES.items():
            path = self.items_path.parent / filename
            if not path.exists():
                continue
            for entry in self._read_list(path):
                if isinstance(entry, dict):
                    entry = {"kind": kind.value, **entry}
                items.append(parse_catalog_item(entry))
        return sorted(items, key=lambda i: i.id)

    def _read_list(self, path: Path) -> list:
        data = read_json(path)
        if not isinstance(data, list):
            raise ConfigError(f"Expected a JSON array in {path}", hint="re-run `capcat sync`")
        return data

    # ------------------------------------------------------------------
    # Sync state
    # ------------------------------------------------------------------

    def load_sync_state(self) -> SyncState:
        if not self.sync_state_path.exists():
            return SyncState()
        data = read_json(self.sync_state_path)
        require_valid(data, "sync-state", str(self.sync_state_path))
        return dict_to_state(data)

    def save_sync_state(self, state: SyncState) -> None:
        doc = state_to_dict(state)
        require_valid(doc, "sync-state")
        write_json_atomic(self.sync_state_path, doc)

    # ------------------------------------------------------------------
    # Whitelist
    # ------------------------------------------------------------------

    def load_whitelist(self) -> set[str]:
        if not self.whitelist_path.exists():
            return set()
        data = read_json(self.whitelist_path)
        require_valid(data, "whitelist", str(self.whitelist_path))
        return set(data["approved"])

    def save_whitelist(self, ids: Iterable[str]) -> None:
        doc = {"approved": sorted(set(ids))}
        require_valid(doc, "whitelist")
        write_json_atomic(self.whitelist_path, doc)

    # ------------------------------------------------------------------
    # Quarantine
    # ------------------------------------------------------------------

    def load_quarantine(self) -> list[QuarantineEntry]:
        if not self.quarantine_path.exists():
            return []
        data = read_json(self.quarantine_path)
        require_valid(data, "quarantine", str(self.quarantine_path))
        return [
            QuarantineEntry(id=e["id"], reason=e["reason"], quarantined_at=e["quarantinedAt"])
            for e in data["quarantined"]
        ]

    def save_quarantine(self, entries: Iterable[QuarantineEntry]) -> None:
        """Write the quarantine store, deduplicated by id (last write wins)."""
        deduped: dict[str, QuarantineEntry] = {}
        for entry in entries:
            deduped[entry.id] = entry
        doc = {
            "quarantined": [
                {"id": e.id, "reason": e.reason, "quarantinedAt": e.quarantined_at}
                for e in (deduped[key] for key in sorted(deduped))
            ]
        }
        require_valid(doc, "quarantine")
        write_json_atomic(self.quarantine_path, doc)

    def quarantined_ids(self) -> set[str]:
        return {entry.id for entry in self.load_quarantine()}
