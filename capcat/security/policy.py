"""Security policy — the configurable rules behind every risk decision.

Tier thresholds, per-signal weights and the install gate all live in
``security-policy.yaml`` so posture can be tightened without a code change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from capcat.config import RuntimeConfig, read_config_file
from capcat.errors import ConfigError


class RiskTier(Enum):
    """Ordinal risk classification."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return TIER_ORDER.index(self)


TIER_ORDER = [RiskTier.LOW, RiskTier.MEDIUM, RiskTier.HIGH, RiskTier.CRITICAL]


@dataclass
class TierThresholds:
    """Inclusive upper bound of each tier's score band."""

    low_max: int = 24
    medium_max: int = 49
    high_max: int = 74
    critical_max: int = 100


@dataclass
class SignalWeights:
    """Risk points contributed by one count of each security signal."""

    vulnerability: int = 15
    suspicious: int = 10
    injection: int = 12
    exfiltration: int = 12
    integrity: int = 10


@dataclass
class InstallGate:
    block_tiers: set[RiskTier] = field(default_factory=lambda: {RiskTier.HIGH, RiskTier.CRITICAL})
    warn_tiers: set[RiskTier] = field(default_factory=lambda: {RiskTier.MEDIUM})


@dataclass
class SecurityPolicy:
    thresholds: TierThresholds = field(default_factory=TierThresholds)
    weights: SignalWeights = field(default_factory=SignalWeights)
    gate: InstallGate = field(default_factory=InstallGate)


def load_security_policy(config: RuntimeConfig) -> SecurityPolicy:
    """Load ``security-policy.yaml``; defaults apply when it is absent."""
    data = read_config_file(config.config_dir, "security-policy")
    return dict_to_security_policy(data or {})


def dict_to_security_policy(data: dict) -> SecurityPolicy:
    if not isinstance(data, dict):
        raise ConfigError("security policy must be a mapping")

    t = data.get("thresholds", {}) or {}
    s = data.get("scoring", {}) or {}
    g = data.get("installGate", data.get("install_gate", {})) or {}

    defaults = TierThresholds()
    thresholds = TierThresholds(
        low_max=_int_in_range(t, ["lowMax", "low_max"], defaults.low_max, 0, 100),
        medium_max=_int_in_range(t, ["mediumMax", "medium_max"], defaults.medium_max, 0, 100),
        high_max=_int_in_range(t, ["highMax", "high_max"], defaults.high_max, 0, 100),
        critical_max=_int_in_range(t, ["criticalMax", "critical_max"], defaults.critical_max, 0, 100),
    )
    if not thresholds.low_max < thresholds.medium_max < thresholds.high_max <= thresholds.critical_max:
        raise ConfigError(
            "security policy thresholds must be ascending: lowMax < mediumMax < highMax <= criticalMax"
        )

    w = SignalWeights()
    weights = SignalWeights(
        vulnerability=_int_in_range(s, ["vulnerabilityWeight", "vulnerability"], w.vulnerability, 0, 100),
        suspicious=_int_in_range(s, ["suspiciousWeight", "suspicious"], w.suspicious, 0, 100),
        injection=_int_in_range(s, ["injectionWeight", "injection"], w.injection, 0, 100),
        exfiltration=_int_in_range(s, ["exfiltrationWeight", "exfiltration"], w.exfiltration, 0, 100),
        integrity=_int_in_range(s, ["integrityWeight", "integrity"], w.integrity, 0, 100),
    )

    gate = InstallGate()
    if "blockTiers" in g or "block_tiers" in g:
        gate.block_tiers = _tiers(g.get("blockTiers", g.get("block_tiers")))
    if "warnTiers" in g or "warn_tiers" in g:
        gate.warn_tiers = _tiers(g.get("warnTiers", g.get("warn_tiers")))

    return SecurityPolicy(thresholds=thresholds, weights=weights, gate=gate)


def _int_in_range(data: dict, keys: list[str], default: int, low: int, high: int) -> int:
    value = default
    for key in keys:
        if key in data:
            value = data[key]
            break
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise ConfigError(f"security policy {keys[0]} must be an integer in {low}..{high}, got {value!r}")
    return value


def _tiers(values) -> set[RiskTier]:
    if not isinstance(values, list):
        raise ConfigError("security policy gate tiers must be a list")
    try:
        return {RiskTier(v) for v in values}
    except ValueError as e:
        raise ConfigError(f"security policy: {e}", hint="tiers are low, medium, high, critical") from e
