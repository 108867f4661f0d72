"""Adapter Layer — map each registry's raw payload into canonical records.

Adapters are pure and total: anything that cannot be mapped is dropped and
counted, never raised. Output order is not guaranteed.
"""

from __future__ import annotations

import logging
from typing import Callable

from capcat.registry.adapters import (
    claude_plugins,
    copilot_extensions,
    mcp_registry,
    openai_skills,
)
from capcat.registry.adapters.shared import AdaptResult, run_adapter
from capcat.registry.models import Registry

logger = logging.getLogger(__name__)


def _direct(source_id: str, raw_entries: list) -> AdaptResult:
    """Pass-through for registries already in canonical shape."""
    return run_adapter(source_id, raw_entries, lambda _source, entry: dict(entry))


ADAPTERS: dict[str, Callable[[str, list], AdaptResult]] = {
    "direct": _direct,
    "mcp-registry-v0.1": mcp_registry.adapt,
    "openai-skills-v1": openai_skills.adapt,
    "claude-plugins-v0.1": claude_plugins.adapt,
    "copilot-extensions-v0.1": copilot_extensions.adapt,
}


def adapt_registry_entries(registry: Registry, raw_entries: list) -> AdaptResult:
    """Run the registry's adapter over raw entries."""
    adapter = ADAPTERS.get(registry.adapter, _direct)
    result = adapter(registry.id, raw_entries)
    if result.dropped_count:
        logger.info(
            "Adapter %s dropped %d of %d entries from %s (%s)",
            registry.adapter,
            result.dropped_count,
            len(raw_entries),
            registry.id,
            ", ".join(f"{reason}={count}" for reason, count in sorted(result.dropped.items())),
        )
    return result


__all__ = ["ADAPTERS", "AdaptResult", "adapt_registry_entries"]
