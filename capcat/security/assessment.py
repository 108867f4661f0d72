"""Risk Assessor — turn an item's security counters into a score and tier.

Assessments are derived data: always recomputed from the item and the
current policy, never persisted as the source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from capcat.models.catalog_item import CatalogItem
from capcat.security.policy import RiskTier, SecurityPolicy


@dataclass
class RiskAssessment:
    """Score, tier and the evidence behind them for one item."""

    id: str
    risk_score: float
    risk_tier: RiskTier
    reasons: list[str] = field(default_factory=list)
    scanner_results: dict[str, int] = field(default_factory=dict)  # category -> findings
    assessed_at: str = ""


def assess(
    item: CatalogItem, policy: SecurityPolicy, now: Optional[datetime] = None
) -> RiskAssessment:
    """Assess an item under ``policy``.

    ``risk_score`` is the weighted sum of the five counters, capped at 100.
    """
    signals = item.security_signals
    weights = policy.weights

    points = (
        signals.known_vulnerabilities * weights.vulnerability
        + signals.suspicious_patterns * weights.suspicious
        + signals.injection_findings * weights.injection
        + signals.exfiltration_signals * weights.exfiltration
        + signals.integrity_alerts * weights.integrity
    )
    risk_score = min(100, points)

    # Emitted even when every count is zero so the output shape never varies
    reasons = [
        f"Integrity alerts: {signals.integrity_alerts}",
        f"Known vulnerabilities: {signals.known_vulnerabilities}",
        f"Suspicious patterns: {signals.suspicious_patterns}",
        f"Injection findings: {signals.injection_findings}",
        f"Exfiltration signals: {signals.exfiltration_signals}",
    ]

    return RiskAssessment(
        id=item.id,
        risk_score=risk_score,
        risk_tier=map_risk_tier(risk_score, policy),
        reasons=reasons,
        scanner_results={
            "packageIntegrity": signals.integrity_alerts,
            "vulnerabilityIntel": signals.known_vulnerabilities,
            "permissionPatterns": signals.suspicious_patterns,
            "injectionTests": signals.injection_findings,
            "exfiltrationHeuristics": signals.exfiltration_signals,
        },
        assessed_at=(now or datetime.now(timezone.utc)).isoformat(),
    )


def map_risk_tier(score: float, policy: SecurityPolicy) -> RiskTier:
    t = policy.thresholds
    if score <= t.low_max:
        return RiskTier.LOW
    if score <= t.medium_max:
        return RiskTier.MEDIUM
    if score <= t.high_max:
        return RiskTier.HIGH
    return RiskTier.CRITICAL


def is_blocked_tier(tier: RiskTier, policy: SecurityPolicy) -> bool:
    return tier in policy.gate.block_tiers


def is_warn_tier(tier: RiskTier, policy: SecurityPolicy) -> bool:
    return tier in policy.gate.warn_tiers


def assessment_to_dict(assessment: RiskAssessment) -> dict:
    return {
        "id": assessment.id,
        "riskScore": assessment.risk_score,
        "riskTier": assessment.risk_tier.value,
        "reasons": list(assessment.reasons),
        "scannerResults": {
            category: {"findings": findings}
            for category, findings in assessment.scanner_results.items()
        },
        "assessedAt": assessment.assessed_at,
    }
