"""Sync run — resolve every enabled registry and persist one reconciled catalog.

Registries are resolved one after another. A registry that fails remotely
keeps its previously persisted items and its sync-state entry; the other
registries still resolve. Nothing is written until every registry has been
handled, and a schema failure aborts the run before the first write.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from capcat.catalog.reconciler import normalize_entries, reconcile
from capcat.catalog.store import CatalogStore
from capcat.catalog.sync_state import stale_registries
from capcat.config import RuntimeConfig, load_providers, load_registries
from capcat.errors import RemoteRegistryError
from capcat.models.catalog_item import CatalogItem, CatalogKind
from capcat.registry.adapters import adapt_registry_entries
from capcat.registry.models import ProviderConfig, Registry, SourceType
from capcat.registry.remote import RemoteResolver

logger = logging.getLogger(__name__)


@dataclass
class RegistryOutcome:
    """What happened to one registry during a sync run."""

    registry_id: str
    source: str = ""  # remote / local, empty when skipped or failed
    item_count: int = 0
    pages: int = 0
    dropped: int = 0
    skipped: str = ""  # Reason the registry was not resolved
    error: str = ""
    note: str = ""


@dataclass
class SyncResult:
    items: list[CatalogItem] = field(default_factory=list)
    outcomes: list[RegistryOutcome] = field(default_factory=list)
    stale_registries: list[str] = field(default_factory=list)
    synced_at: str = ""

    @property
    def failed_registries(self) -> list[str]:
        return [o.registry_id for o in self.outcomes if o.error]

    def kind_counts(self) -> dict[str, int]:
        return dict(Counter(item.kind.value for item in self.items))


def sync_catalogs(
    config: RuntimeConfig,
    store: Optional[CatalogStore] = None,
    resolver: Optional[RemoteResolver] = None,
    kinds: Optional[Iterable[CatalogKind]] = None,
    now: Optional[datetime] = None,
) -> SyncResult:
    """Run one sync and persist the catalog, legacy views and sync state.

    Args:
        config: Runtime toggles and the home directory.
        store: Target store; defaults to ``config.data_dir``.
        resolver: Remote resolver; one is created (and closed) when omitted.
        kinds: Only resolve registries of these kinds. Items of other kinds
            already in the catalog are kept.
        now: Run timestamp, for tests.

    Raises:
        CatalogValidationError: a normalized record failed the schema.
        ConfigError: registries or providers config is invalid.
    """
    store = store or CatalogStore(config.data_dir)
    now = now or datetime.now(timezone.utc)
    synced_at = now.isoformat()
    today = config.effective_today()
    kind_filter = set(kinds) if kinds else None

    registries = load_registries(config)
    providers = load_providers(config)
    state = store.load_sync_state()
    previous = store.load_items()

    owns_resolver = resolver is None
    resolver = resolver or RemoteResolver(config)

    result = SyncResult(synced_at=synced_at)
    collected: list[CatalogItem] = []

    try:
        for registry in registries:
            if kind_filter is not None and registry.kind not in kind_filter:
                continue

            outcome = RegistryOutcome(registry_id=registry.id)
            result.outcomes.append(outcome)

            skip_reason = provider_skip_reason(registry, providers)
            if skip_reason:
                logger.warning("Skipping registry %s: %s", registry.id, skip_reason)
                outcome.skipped = skip_reason
                continue

            updated_since = ""
            if registry.remote and registry.remote.supports_updated_since:
                updated_since = state.get_updated_since(registry.id)

            try:
                resolved = resolver.resolve(registry, updated_since=updated_since)
            except RemoteRegistryError as e:
                logger.error("Registry %s failed: %s", registry.id, e)
                outcome.error = str(e)
                carried = [item for item in previous if item.source == registry.id]
                collected.extend(carried)
                outcome.item_count = len(carried)
                continue

            raw_entries = resolved.entries
            if resolved.is_remote:
                adapted = adapt_registry_entries(registry, raw_entries)
                raw_entries = adapted.entries
                outcome.dropped = adapted.dropped_count

            items = normalize_entries(raw_entries, registry, today)
            collected.extend(items)
            if resolved.incremental:
                # Unchanged entries are absent from an incremental response,
                # including an empty one answered from local entries.
                # Fresh records go first so their install and counters win.
                collected.extend(item for item in previous if item.source == registry.id)

            outcome.source = resolved.source
            outcome.pages = resolved.pages
            outcome.item_count = len(items)
            outcome.note = resolved.note

            state.mark_success(registry.id, synced_at)
            if resolved.is_remote and registry.remote and registry.remote.supports_updated_since:
                state.set_updated_since(registry.id, synced_at)
    finally:
        if owns_resolver:
            resolver.close()

    if kind_filter is not None:
        collected.extend(item for item in previous if item.kind not in kind_filter)

    result.items = reconcile(collected)
    store.save_catalog(result.items, state)

    result.stale_registries = stale_registries(
        state,
        now=now,
        stale_after_hours=config.stale_after_hours,
        known_ids=[r.id for r in registries],
    )
    if result.stale_registries:
        logger.warning("Stale registries: %s", ", ".join(result.stale_registries))

    logger.info(
        "Synced %d catalog items (%s)",
        len(result.items),
        ", ".join(f"{kind}={count}" for kind, count in sorted(result.kind_counts().items())),
    )
    return result


def provider_skip_reason(registry: Registry, providers: dict[str, ProviderConfig]) -> str:
    """Non-empty when provider policy forbids resolving this registry."""
    if registry.source_type != SourceType.COMMUNITY_LIST or registry.is_official:
        return ""
    provider_id = registry.remote.provider if registry.remote else ""
    policy = providers.get(provider_id)
    if policy and policy.official_only:
        return f"provider {provider_id} requires official sources"
    return ""
