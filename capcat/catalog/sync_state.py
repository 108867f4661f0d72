"""Sync state — per-registry bookkeeping between sync runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional


@dataclass
class RegistrySyncState:
    last_successful_sync_at: str = ""  # ISO 8601
    last_updated_since: str = ""  # Cursor sent as updated-since next run


@dataclass
class SyncState:
    """Sync bookkeeping for every registry ever resolved."""

    registries: dict[str, RegistrySyncState] = field(default_factory=dict)

    def get_updated_since(self, registry_id: str) -> str:
        entry = self.registries.get(registry_id)
        return entry.last_updated_since if entry else ""

    def mark_success(self, registry_id: str, timestamp: str) -> None:
        self.registries.setdefault(registry_id, RegistrySyncState()).last_successful_sync_at = timestamp

    def set_updated_since(self, registry_id: str, timestamp: str) -> None:
        self.registries.setdefault(registry_id, RegistrySyncState()).last_updated_since = timestamp


def stale_registries(
    state: SyncState,
    now: Optional[datetime] = None,
    stale_after_hours: int = 48,
    known_ids: Iterable[str] = (),
) -> list[str]:
    """Registries with no successful sync inside the staleness window.

    ``known_ids`` adds configured registries that were never synced at all.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=stale_after_hours)

    stale = {registry_id for registry_id in known_ids if registry_id not in state.registries}
    for registry_id, entry in state.registries.items():
        stamp = _parse_timestamp(entry.last_successful_sync_at)
        if stamp is None or stamp < cutoff:
            stale.add(registry_id)
    return sorted(stale)


def _parse_timestamp(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def state_to_dict(state: SyncState) -> dict:
    registries = {}
    for registry_id in sorted(state.registries):
        entry = state.registries[registry_id]
        data = {}
        if entry.last_successful_sync_at:
            data["lastSuccessfulSyncAt"] = entry.last_successful_sync_at
        if entry.last_updated_since:
            data["lastUpdatedSince"] = entry.last_updated_since
        registries[registry_id] = data
    return {"registries": registries}


def dict_to_state(data: dict) -> SyncState:
    registries = data.get("registries", {}) if isinstance(data, dict) else {}
    return SyncState(
        registries={
            registry_id: RegistrySyncState(
                last_successful_sync_at=entry.get("lastSuccessfulSyncAt", ""),
                last_updated_since=entry.get("lastUpdatedSince", ""),
            )
            for registry_id, entry in registries.items()
            if isinstance(entry, dict)
        }
    )
