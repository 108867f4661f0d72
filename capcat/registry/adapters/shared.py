"""Helpers shared by every registry adapter.

All readers are total: they never raise on odd input, they just return an
empty value so the calling adapter can decide whether to drop the entry.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from capcat.models.catalog_item import dedupe_tags

logger = logging.getLogger(__name__)

DROP_NOT_AN_OBJECT = "not-an-object"
DROP_MISSING_IDENTIFIER = "missing-identifier"


@dataclass
class AdaptResult:
    """Canonical-shaped entries produced by an adapter, plus what it dropped."""

    entries: list[dict] = field(default_factory=list)
    dropped: dict[str, int] = field(default_factory=dict)  # reason -> count

    @property
    def dropped_count(self) -> int:
        return sum(self.dropped.values())


def run_adapter(
    source_id: str,
    raw_entries: list,
    mapper: Callable[[str, dict], Optional[dict]],
) -> AdaptResult:
    """Apply ``mapper`` to each object entry, counting what gets dropped.

    ``mapper`` returns ``None`` when the entry has no usable identifier.
    """
    result = AdaptResult()
    for index, entry in enumerate(raw_entries):
        if not isinstance(entry, dict):
            _drop(result, source_id, index, DROP_NOT_AN_OBJECT)
            continue
        mapped = mapper(source_id, entry)
        if mapped is None:
            _drop(result, source_id, index, DROP_MISSING_IDENTIFIER)
            continue
        result.entries.append(mapped)
    return result


def _drop(result: AdaptResult, source_id: str, index: int, reason: str) -> None:
    logger.debug("Dropping entry %d from %s: %s", index, source_id, reason)
    result.dropped[reason] = result.dropped.get(reason, 0) + 1


def read_string(record: dict, keys: list[str]) -> str:
    """Return the first non-blank string among ``keys``."""
    for key in keys:
        value = record.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def read_nested(record: dict, path: list[str]) -> Any:
    current: Any = record
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def read_nested_string(record: dict, path: list[str]) -> str:
    value = read_nested(record, path)
    return value.strip() if isinstance(value, str) and value.strip() else ""


def read_nested_string_array(record: dict, path: list[str]) -> list[str]:
    value = read_nested(record, path)
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


def extract_string_array(record: dict, keys: list[str]) -> list[str]:
    """Return the string items of the first key that holds a list."""
    for key in keys:
        value = record.get(key)
        if isinstance(value, list):
            return [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return []


def merge_tags(*groups: list[str]) -> list[str]:
    return dedupe_tags(tag for group in groups for tag in group)


def to_score(value: Any, fallback: float = 50) -> float:
    """Coerce to a 0-100 signal, using ``fallback`` for non-numeric input."""
    if isinstance(value, bool):
        return fallback
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(parsed):
        return fallback
    parsed = max(0.0, min(100.0, parsed))
    return int(parsed) if parsed.is_integer() else parsed


def to_count(value: Any) -> int:
    """Coerce to a non-negative integer counter."""
    if isinstance(value, bool):
        return 0
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(parsed) or parsed < 0:
        return 0
    return int(parsed)


def prefixed_id(slug: str, kind: str) -> str:
    return slug if slug.startswith(f"{kind}:") else f"{kind}:{slug}"


def security_signals(record: dict) -> dict[str, int]:
    """Read the five scanner counters, flat or under ``securitySignals``."""
    nested = record.get("securitySignals")
    source = nested if isinstance(nested, dict) else record
    return {
        key: to_count(source.get(key))
        for key in (
            "knownVulnerabilities",
            "suspiciousPatterns",
            "injectionFindings",
            "exfiltrationSignals",
            "integrityAlerts",
        )
    }
