"""Ranking policy — component weights and tie-break order."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from capcat.config import RuntimeConfig, read_config_file
from capcat.errors import ConfigError
from capcat.security.policy import RiskTier

TIE_BREAKERS = ["trust", "risk", "name"]


@dataclass
class RankingWeights:
    """Fit and trust weights are percentages; the rest are point caps."""

    compatibility: float = 40
    capability_coverage: float = 25
    maintenance: float = 15
    provenance: float = 18
    adoption: float = 10
    freshness_bonus_max: float = 8
    security_penalty_max: float = 30
    blocked_penalty: float = 40


@dataclass
class RankingPolicy:
    weights: RankingWeights = field(default_factory=RankingWeights)
    tie_breakers: list[str] = field(default_factory=lambda: list(TIE_BREAKERS))
    blocked_floor_tier: Optional[RiskTier] = None  # Also block this tier and above


_WEIGHT_KEYS = {
    "compatibility": ("compatibility",),
    "capability_coverage": ("capabilityCoverage", "capability_coverage"),
    "maintenance": ("maintenance",),
    "provenance": ("provenance",),
    "adoption": ("adoption",),
    "freshness_bonus_max": ("freshnessBonusMax", "freshness_bonus_max"),
    "security_penalty_max": ("securityPenaltyMax", "security_penalty_max"),
    "blocked_penalty": ("blockedPenalty", "blocked_penalty"),
}


def load_ranking_policy(config: RuntimeConfig) -> RankingPolicy:
    """Load ``ranking-policy.yaml``; defaults apply when it is absent."""
    data = read_config_file(config.config_dir, "ranking-policy")
    return dict_to_ranking_policy(data or {})


def dict_to_ranking_policy(data: dict) -> RankingPolicy:
    if not isinstance(data, dict):
        raise ConfigError("ranking policy must be a mapping")

    raw_weights = data.get("weights", {}) or {}
    weights = RankingWeights()
    for attr, keys in _WEIGHT_KEYS.items():
        for key in keys:
            if key in raw_weights:
                value = raw_weights[key]
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                    raise ConfigError(f"ranking weight {keys[0]} must be a non-negative number")
                setattr(weights, attr, value)
                break

    tie_breakers = data.get("tieBreakers", data.get("tie_breakers", TIE_BREAKERS))
    if not isinstance(tie_breakers, list) or any(t not in TIE_BREAKERS for t in tie_breakers):
        raise ConfigError(
            f"ranking tieBreakers must be a list drawn from {', '.join(TIE_BREAKERS)}"
        )

    floor = data.get("blockedFloorTier", data.get("blocked_floor_tier"))
    try:
        floor_tier = RiskTier(floor) if floor else None
    except ValueError as e:
        raise ConfigError(f"ranking policy: {e}", hint="tiers are low, medium, high, critical") from e

    return RankingPolicy(weights=weights, tie_breakers=list(tie_breakers), blocked_floor_tier=floor_tier)
