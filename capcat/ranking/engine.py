"""Ranking engine — combine fit, trust, freshness and risk into one ordering.

Every recommendation carries its full score breakdown and the reasons
behind it; a rank is never an unexplained number.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from capcat.catalog.store import CatalogStore
from capcat.config import RuntimeConfig
from capcat.models.catalog_item import (
    CatalogItem,
    CatalogKind,
    InstallMethod,
    dedupe_tags,
    install_to_dict,
)
from capcat.ranking.policy import RankingPolicy, load_ranking_policy
from capcat.ranking.project_signals import ProjectSignals, detect_project_signals
from capcat.ranking.requirements import RequirementsProfile, load_requirements
from capcat.security.assessment import assess, is_blocked_tier, is_warn_tier
from capcat.security.policy import RiskTier, SecurityPolicy, load_security_policy

logger = logging.getLogger(__name__)

QUARANTINE_REASON = "Quarantined by whitelist verification"


@dataclass
class ScoreBreakdown:
    fit_score: float = 0.0
    trust_score: float = 0.0
    security_penalty: float = 0.0
    freshness_bonus: float = 0.0
    blocked_penalty: float = 0.0


@dataclass
class Recommendation:
    """One ranked candidate."""

    id: str
    kind: CatalogKind
    provider: str
    name: str
    rank_score: float
    score_breakdown: ScoreBreakdown
    risk_tier: RiskTier
    risk_score: float
    blocked: bool
    install: InstallMethod
    block_reason: str = ""
    fit_reasons: list[str] = field(default_factory=list)


def rank(
    catalog: Iterable[CatalogItem],
    project: ProjectSignals,
    requirements: RequirementsProfile,
    ranking_policy: RankingPolicy,
    security_policy: SecurityPolicy,
    quarantined: Iterable[str] = (),
    kinds: Optional[Iterable[CatalogKind]] = None,
) -> list[Recommendation]:
    """Score and order catalog items for a project.

    Sorted by rank descending, then by the policy's tie-breakers
    (trust descending, risk ascending, id), with id as the final key.
    """
    kind_filter = set(kinds) if kinds else None
    quarantined = set(quarantined)

    recommendations = [
        score_candidate(item, project, requirements, ranking_policy, security_policy, quarantined)
        for item in catalog
        if kind_filter is None or item.kind in kind_filter
    ]
    recommendations.sort(key=lambda r: _sort_key(r, ranking_policy.tie_breakers))
    return recommendations


def score_candidate(
    item: CatalogItem,
    project: ProjectSignals,
    requirements: RequirementsProfile,
    ranking_policy: RankingPolicy,
    security_policy: SecurityPolicy,
    quarantined: set[str],
) -> Recommendation:
    w = ranking_policy.weights
    assessment = assess(item, security_policy)

    wanted_compat = dedupe_tags([*project.compatibility_tags, *requirements.stack])
    wanted_caps = dedupe_tags([*requirements.required_capabilities, *project.inferred_capabilities])

    compatibility_score = overlap_score(item.compatibility, wanted_compat)
    capability_score = overlap_score(item.capabilities, wanted_caps)
    inferred_matches = count_matches(item.capabilities, project.inferred_capabilities)

    fit_score = compatibility_score * (w.compatibility / 100) + capability_score * (
        w.capability_coverage / 100
    )
    trust_score = (
        item.maintenance_signal * (w.maintenance / 100)
        + item.provenance_signal * (w.provenance / 100)
        + item.adoption_signal * (w.adoption / 100)
    )
    freshness_bonus = item.freshness_signal / 100 * w.freshness_bonus_max
    security_penalty = assessment.risk_score / 100 * w.security_penalty_max

    by_quarantine = item.id in quarantined
    by_policy = is_blocked_tier(assessment.risk_tier, security_policy)
    if requirements.strict and is_warn_tier(assessment.risk_tier, security_policy):
        by_policy = True
    floor = ranking_policy.blocked_floor_tier
    if floor is not None and assessment.risk_tier.rank >= floor.rank:
        by_policy = True

    blocked = by_quarantine or by_policy
    blocked_penalty = w.blocked_penalty if blocked else 0

    raw = fit_score + trust_score + freshness_bonus - security_penalty - blocked_penalty
    rank_score = max(0.0, min(100.0, raw))

    if by_quarantine:
        block_reason = QUARANTINE_REASON
    elif by_policy:
        block_reason = f"Blocked by security policy tier: {assessment.risk_tier.value}"
    else:
        block_reason = ""

    fit_reasons = [
        f"Project stack: {', '.join(project.stack) or 'unknown'}",
        f"Compatibility overlap: {compatibility_score:.1f}",
        f"Capability coverage: {capability_score:.1f}",
        f"Inferred capability matches: {inferred_matches}",
        f"Repo evidence signals: {len(project.evidence)}",
        f"Maintenance signal: {item.maintenance_signal}",
        f"Provenance signal: {item.provenance_signal}",
        f"Adoption signal: {item.adoption_signal}",
    ]

    return Recommendation(
        id=item.id,
        kind=item.kind,
        provider=item.provider,
        name=item.name,
        rank_score=rank_score,
        score_breakdown=ScoreBreakdown(
            fit_score=_round(fit_score),
            trust_score=_round(trust_score),
            security_penalty=_round(security_penalty),
            freshness_bonus=_round(freshness_bonus),
            blocked_penalty=_round(blocked_penalty),
        ),
        risk_tier=assessment.risk_tier,
        risk_score=assessment.risk_score,
        blocked=blocked,
        block_reason=block_reason,
        install=item.install,
        fit_reasons=fit_reasons,
    )


def recommend(
    config: RuntimeConfig,
    project_path: str | Path = ".",
    requirements_path: Optional[str | Path] = None,
    kinds: Optional[Iterable[CatalogKind]] = None,
    store: Optional[CatalogStore] = None,
) -> list[Recommendation]:
    """Rank the persisted catalog for the project at ``project_path``."""
    store = store or CatalogStore(config.data_dir)
    items = store.load_items()
    if not items:
        logger.warning("Catalog is empty; run `capcat sync` first")

    return rank(
        items,
        detect_project_signals(project_path),
        load_requirements(requirements_path),
        load_ranking_policy(config),
        load_security_policy(config),
        quarantined=store.quarantined_ids(),
        kinds=kinds,
    )


def overlap_score(left: list[str], right: list[str]) -> float:
    """Matches over the larger set, as a percentage; case-insensitive."""
    if not left or not right:
        return 0.0
    return count_matches(left, right) / max(len(left), len(right)) * 100


def count_matches(left: list[str], right: list[str]) -> int:
    right_set = {value.lower() for value in right}
    return sum(1 for value in left if value.lower() in right_set)


def recommendation_to_dict(rec: Recommendation) -> dict:
    b = rec.score_breakdown
    data = {
        "id": rec.id,
        "kind": rec.kind.value,
        "provider": rec.provider,
        "name": rec.name,
        "rankScore": _round(rec.rank_score),
        "scoreBreakdown": {
            "fitScore": b.fit_score,
            "trustScore": b.trust_score,
            "securityPenalty": b.security_penalty,
            "freshnessBonus": b.freshness_bonus,
            "blockedPenalty": b.blocked_penalty,
        },
        "riskTier": rec.risk_tier.value,
        "riskScore": rec.risk_score,
        "blocked": rec.blocked,
        "installMethod": install_to_dict(rec.install),
        "fitReasons": list(rec.fit_reasons),
    }
    if rec.block_reason:
        data["blockReason"] = rec.block_reason
    return data


def _sort_key(rec: Recommendation, tie_breakers: list[str]) -> tuple:
    key: list = [-rec.rank_score]
    for breaker in tie_breakers:
        if breaker == "trust":
            key.append(-rec.score_breakdown.trust_score)
        elif breaker == "risk":
            key.append(rec.risk_score)
        elif breaker == "name":
            key.append(rec.id)
    key.append(rec.id)
    return tuple(key)


def _round(value: float) -> float:
    return round(value, 1)
