"""Tests for the security policy and risk assessor."""

import tempfile
from pathlib import Path

import pytest
import yaml

from capcat.config import RuntimeConfig
from capcat.errors import ConfigError
from capcat.models.catalog_item import CatalogItem, CatalogKind, ScriptedInstall, SecuritySignals
from capcat.security.assessment import (
    assess,
    assessment_to_dict,
    is_blocked_tier,
    is_warn_tier,
    map_risk_tier,
)
from capcat.security.policy import (
    RiskTier,
    SecurityPolicy,
    dict_to_security_policy,
    load_security_policy,
)

SIGNAL_FIELDS = [
    "known_vulnerabilities",
    "suspicious_patterns",
    "injection_findings",
    "exfiltration_signals",
    "integrity_alerts",
]


def _item(**signals) -> CatalogItem:
    return CatalogItem(
        id="mcp:test",
        kind=CatalogKind.MCP,
        name="Test",
        description="Test server",
        provider="mcp",
        source="reg",
        last_seen_at="2026-01-01",
        install=ScriptedInstall(target="test"),
        security_signals=SecuritySignals(**signals),
    )


def test_all_zero_signals_are_low_risk():
    result = assess(_item(), SecurityPolicy())
    assert result.risk_score == 0
    assert result.risk_tier == RiskTier.LOW


def test_one_of_each_signal_scores_59_high():
    result = assess(_item(**{name: 1 for name in SIGNAL_FIELDS}), SecurityPolicy())
    assert result.risk_score == 59
    assert result.risk_tier == RiskTier.HIGH


def test_score_is_capped_at_100():
    result = assess(_item(known_vulnerabilities=50), SecurityPolicy())
    assert result.risk_score == 100
    assert result.risk_tier == RiskTier.CRITICAL


def test_score_is_monotonic_in_each_signal():
    policy = SecurityPolicy()
    for name in SIGNAL_FIELDS:
        scores = [assess(_item(**{name: n}), policy).risk_score for n in range(0, 12)]
        assert scores == sorted(scores), name


def test_tier_boundaries_are_inclusive():
    policy = SecurityPolicy()
    assert map_risk_tier(24, policy) == RiskTier.LOW
    assert map_risk_tier(25, policy) == RiskTier.MEDIUM
    assert map_risk_tier(49, policy) == RiskTier.MEDIUM
    assert map_risk_tier(50, policy) == RiskTier.HIGH
    assert map_risk_tier(74, policy) == RiskTier.HIGH
    assert map_risk_tier(75, policy) == RiskTier.CRITICAL


def test_reasons_are_always_present():
    result = assess(_item(), SecurityPolicy())
    assert result.reasons == [
        "Integrity alerts: 0",
        "Known vulnerabilities: 0",
        "Suspicious patterns: 0",
        "Injection findings: 0",
        "Exfiltration signals: 0",
    ]


def test_scanner_breakdown():
    data = assessment_to_dict(assess(_item(injection_findings=3), SecurityPolicy()))
    assert data["scannerResults"]["injectionTests"] == {"findings": 3}
    assert data["riskTier"] == "medium"
    assert data["riskScore"] == 36


def test_gate_tiers_come_from_policy():
    policy = SecurityPolicy()
    assert is_blocked_tier(RiskTier.HIGH, policy)
    assert not is_blocked_tier(RiskTier.MEDIUM, policy)
    assert is_warn_tier(RiskTier.MEDIUM, policy)

    strict = dict_to_security_policy({"installGate": {"blockTiers": ["medium", "high", "critical"], "warnTiers": ["low"]}})
    assert is_blocked_tier(RiskTier.MEDIUM, strict)
    assert is_warn_tier(RiskTier.LOW, strict)


def test_custom_weights_change_the_score():
    policy = dict_to_security_policy({"scoring": {"vulnerabilityWeight": 30}})
    assert assess(_item(known_vulnerabilities=1), policy).risk_score == 30


# --- Policy loading ---


def test_missing_policy_file_uses_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        policy = load_security_policy(RuntimeConfig(home=Path(tmpdir)))
        assert policy == SecurityPolicy()


def test_policy_file_is_loaded():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_dir = Path(tmpdir) / "config"
        config_dir.mkdir()
        with open(config_dir / "security-policy.yaml", "w") as f:
            yaml.safe_dump({"thresholds": {"lowMax": 10, "mediumMax": 20, "highMax": 30, "criticalMax": 100}}, f)
        policy = load_security_policy(RuntimeConfig(home=Path(tmpdir)))
        assert map_risk_tier(15, policy) == RiskTier.MEDIUM
        assert map_risk_tier(31, policy) == RiskTier.CRITICAL


def test_non_ascending_thresholds_are_rejected():
    with pytest.raises(ConfigError):
        dict_to_security_policy({"thresholds": {"lowMax": 50, "mediumMax": 40}})


def test_unknown_tier_is_rejected():
    with pytest.raises(ConfigError):
        dict_to_security_policy({"installGate": {"blockTiers": ["severe"]}})


def test_non_integer_weight_is_rejected():
    with pytest.raises(ConfigError):
        dict_to_security_policy({"scoring": {"injectionWeight": "high"}})
