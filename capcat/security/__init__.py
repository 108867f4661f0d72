"""Security — risk scoring and the approval/quarantine gate.

This package provides:
- Policy-as-config: tier thresholds, signal weights and gate tiers
- Risk assessment: a pure function of an item's counters and the policy
- Whitelist verification: re-checking past approvals against today's policy
- Quarantine: durable removal of ids that no longer pass
"""
