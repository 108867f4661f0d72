"""Canonical catalog record and its install directive.

Every registry format is normalized into a ``CatalogItem``. The persisted
JSON shape uses camelCase keys; ``item_to_dict`` and ``dict_to_item`` are the
only translation points between the two.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Union


class CatalogKind(Enum):
    """Capability categories known to the catalog."""

    SKILL = "skill"
    MCP = "mcp"
    CLAUDE_PLUGIN = "claude-plugin"
    COPILOT_EXTENSION = "copilot-extension"


KIND_VALUES = [k.value for k in CatalogKind]

# Provider assumed when neither the entry nor the registry names one.
DEFAULT_PROVIDERS = {
    CatalogKind.SKILL: "openai",
    CatalogKind.MCP: "mcp",
    CatalogKind.CLAUDE_PLUGIN: "anthropic",
    CatalogKind.COPILOT_EXTENSION: "github",
}

# Key holding the entry array in a catalog-json payload.
DEFAULT_ENTRY_KEYS = {
    CatalogKind.SKILL: "skills",
    CatalogKind.MCP: "mcps",
    CatalogKind.CLAUDE_PLUGIN: "plugins",
    CatalogKind.COPILOT_EXTENSION: "extensions",
}

# File name of the legacy per-kind split view.
LEGACY_VIEW_FILES = {
    CatalogKind.SKILL: "skills.json",
    CatalogKind.MCP: "mcps.json",
    CatalogKind.CLAUDE_PLUGIN: "claude-plugins.json",
    CatalogKind.COPILOT_EXTENSION: "copilot-extensions.json",
}


# --- Install directive ---


@dataclass
class ScriptedInstall:
    """Install through the ``skill.sh`` installer script."""

    target: str
    args: list[str] = field(default_factory=list)
    kind: str = field(default="skill.sh", init=False)


@dataclass
class CliToolInstall:
    """Install through the ``gh`` CLI."""

    target: str
    args: list[str] = field(default_factory=list)
    kind: str = field(default="gh-cli", init=False)


@dataclass
class ManualInstall:
    """No installer: the user follows written instructions."""

    instructions: str
    url: str = ""
    kind: str = field(default="manual", init=False)


InstallMethod = Union[ScriptedInstall, CliToolInstall, ManualInstall]

INSTALL_KINDS = ["skill.sh", "gh-cli", "manual"]


def install_to_dict(install: InstallMethod) -> dict[str, Any]:
    if isinstance(install, ManualInstall):
        data: dict[str, Any] = {"kind": install.kind, "instructions": install.instructions}
        if install.url:
            data["url"] = install.url
        return data
    return {"kind": install.kind, "target": install.target, "args": list(install.args)}


def dict_to_install(data: dict) -> InstallMethod:
    kind = data.get("kind")
    if kind == "skill.sh":
        return ScriptedInstall(target=data["target"], args=list(data.get("args", [])))
    if kind == "gh-cli":
        return CliToolInstall(target=data["target"], args=list(data.get("args", [])))
    if kind == "manual":
        return ManualInstall(instructions=data["instructions"], url=data.get("url", ""))
    raise ValueError(f"Unknown installer kind: {kind!r}")


# --- Signals ---


@dataclass
class SecuritySignals:
    """Raw scanner counters for a catalog item."""

    known_vulnerabilities: int = 0
    suspicious_patterns: int = 0
    injection_findings: int = 0
    exfiltration_signals: int = 0
    integrity_alerts: int = 0


SIGNAL_KEYS = {
    "known_vulnerabilities": "knownVulnerabilities",
    "suspicious_patterns": "suspiciousPatterns",
    "injection_findings": "injectionFindings",
    "exfiltration_signals": "exfiltrationSignals",
    "integrity_alerts": "integrityAlerts",
}


# --- Item ---


@dataclass
class CatalogItem:
    """A single installable capability, regardless of source format."""

    id: str
    kind: CatalogKind
    name: str
    description: str
    provider: str
    source: str
    last_seen_at: str  # YYYY-MM-DD
    install: InstallMethod
    capabilities: list[str] = field(default_factory=list)
    compatibility: list[str] = field(default_factory=list)

    # Trust signals, 0-100
    adoption_signal: float = 50
    maintenance_signal: float = 50
    provenance_signal: float = 50
    freshness_signal: float = 50

    security_signals: SecuritySignals = field(default_factory=SecuritySignals)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.capabilities = dedupe_tags(self.capabilities)
        self.compatibility = dedupe_tags(self.compatibility)


def dedupe_tags(values: Iterable[str]) -> list[str]:
    """Case-insensitively dedupe, trim and sort a tag collection.

    The first spelling seen for a tag wins.
    """
    seen: dict[str, str] = {}
    for value in values:
        if not isinstance(value, str):
            continue
        trimmed = value.strip()
        if trimmed and trimmed.lower() not in seen:
            seen[trimmed.lower()] = trimmed
    return sorted(seen.values(), key=lambda v: (v.lower(), v))


def item_to_dict(item: CatalogItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "kind": item.kind.value,
        "provider": item.provider,
        "name": item.name,
        "description": item.description,
        "capabilities": list(item.capabilities),
        "compatibility": list(item.compatibility),
        "source": item.source,
        "lastSeenAt": item.last_seen_at,
        "install": install_to_dict(item.install),
        "adoptionSignal": item.adoption_signal,
        "maintenanceSignal": item.maintenance_signal,
        "provenanceSignal": item.provenance_signal,
        "freshnessSignal": item.freshness_signal,
        "securitySignals": {
            camel: getattr(item.security_signals, attr) for attr, camel in SIGNAL_KEYS.items()
        },
        "metadata": dict(item.metadata),
    }


def dict_to_item(data: dict) -> CatalogItem:
    """Build an item from an already-validated dict."""
    signals = data.get("securitySignals", {})
    return CatalogItem(
        id=data["id"],
        kind=CatalogKind(data["kind"]),
        provider=data["provider"],
        name=data["name"],
        description=data["description"],
        capabilities=data.get("capabilities", []),
        compatibility=data.get("compatibility", []),
        source=data["source"],
        last_seen_at=data["lastSeenAt"],
        install=dict_to_install(data["install"]),
        adoption_signal=data.get("adoptionSignal", 50),
        maintenance_signal=data.get("maintenanceSignal", 50),
        provenance_signal=data.get("provenanceSignal", 50),
        freshness_signal=data.get("freshnessSignal", 50),
        security_signals=SecuritySignals(
            **{attr: signals.get(camel, 0) for attr, camel in SIGNAL_KEYS.items()}
        ),
        metadata=dict(data.get("metadata", {})),
    )
