"""Whitelist/Quarantine gate — re-verify approvals and demote failures.

An id is approved (whitelisted), quarantined, or transiently neither.
Verification always recomputes risk under the current policy, so tightening
the policy retroactively re-judges every past approval.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from capcat.catalog.store import CatalogStore, QuarantineEntry
from capcat.catalog.sync_state import stale_registries
from capcat.config import RuntimeConfig, configured_registry_ids
from capcat.errors import CapcatError, CatalogItemNotFoundError, ConfigError
from capcat.schema.validator import require_valid
from capcat.security.assessment import assess, is_blocked_tier
from capcat.security.policy import RiskTier, SecurityPolicy
from capcat.utils.json_files import read_json, write_json_atomic

logger = logging.getLogger(__name__)

MISSING_ITEM_REASON = "Catalog item missing"


@dataclass
class FailedCheck:
    id: str
    risk_tier: RiskTier
    risk_score: float
    reasons: list[str] = field(default_factory=list)


@dataclass
class SecurityReport:
    """Outcome of one whitelist verification run."""

    generated_at: str
    stale_registries: list[str] = field(default_factory=list)
    passed: list[str] = field(default_factory=list)
    failed: list[FailedCheck] = field(default_factory=list)


@dataclass
class QuarantineResult:
    removed_from_whitelist: list[str] = field(default_factory=list)
    quarantined: list[QuarantineEntry] = field(default_factory=list)


class WhitelistGate:
    """Approval, verification and quarantine over a ``CatalogStore``."""

    def __init__(self, store: CatalogStore, policy: SecurityPolicy, config: RuntimeConfig):
        self.store = store
        self.policy = policy
        self.config = config

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    def approve(self, item_id: str, release: bool = False) -> None:
        """Add an id to the whitelist.

        A quarantined id is refused unless ``release`` lifts its quarantine.
        """
        if self.store.get(item_id) is None:
            raise CatalogItemNotFoundError(item_id)

        quarantine = self.store.load_quarantine()
        if any(entry.id == item_id for entry in quarantine):
            if not release:
                raise CapcatError(
                    f"{item_id} is quarantined",
                    hint="pass --release to lift the quarantine and approve it",
                )
            self.store.save_quarantine(e for e in quarantine if e.id != item_id)
            logger.info("Released %s from quarantine", item_id)

        approved = self.store.load_whitelist()
        approved.add(item_id)
        self.store.save_whitelist(approved)

    def is_quarantined(self, item_id: str) -> bool:
        return item_id in self.store.quarantined_ids()

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, now: Optional[datetime] = None) -> tuple[Path, SecurityReport]:
        """Re-assess every whitelisted id and write a dated report.

        Returns:
            (report path, report)
        """
        now = now or datetime.now(timezone.utc)
        catalog = {item.id: item for item in self.store.load_items()}

        report = SecurityReport(
            generated_at=now.isoformat(),
            stale_registries=stale_registries(
                self.store.load_sync_state(),
                now=now,
                stale_after_hours=self.config.stale_after_hours,
                known_ids=configured_registry_ids(self.config),
            ),
        )

        for item_id in sorted(self.store.load_whitelist()):
            item = catalog.get(item_id)
            if item is None:
                report.failed.append(
                    FailedCheck(
                        id=item_id,
                        risk_tier=RiskTier.CRITICAL,
                        risk_score=100,
                        reasons=[MISSING_ITEM_REASON],
                    )
                )
                continue

            assessment = assess(item, self.policy, now=now)
            if is_blocked_tier(assessment.risk_tier, self.policy):
                report.failed.append(
                    FailedCheck(
                        id=item_id,
                        risk_tier=assessment.risk_tier,
                        risk_score=assessment.risk_score,
                        reasons=list(assessment.reasons),
                    )
                )
            else:
                report.passed.append(item_id)

        doc = report_to_dict(report)
        require_valid(doc, "security-report")
        report_path = self.store.reports_dir / now.strftime("%Y-%m-%d") / "report.json"
        write_json_atomic(report_path, doc)

        logger.info(
            "Whitelist verification: %d passed, %d failed; report written to %s",
            len(report.passed),
            len(report.failed),
            report_path,
        )
        if report.stale_registries:
            logger.warning("Stale registries: %s", ", ".join(report.stale_registries))
        return report_path, report

    # ------------------------------------------------------------------
    # Quarantine
    # ------------------------------------------------------------------

    def apply_quarantine_from_report(
        self, report_path: str | Path, now: Optional[datetime] = None
    ) -> QuarantineResult:
        """Demote every failed id in a report from whitelist to quarantine.

        Re-applying the same report only refreshes ``quarantinedAt``.
        """
        path = Path(report_path)
        if not path.exists():
            raise ConfigError(
                f"Security report not found: {path}", hint="run `capcat whitelist verify` first"
            )
        data = read_json(path)
        require_valid(data, "security-report", str(path))
        report = dict_to_report(data)

        stamp = (now or datetime.now(timezone.utc)).isoformat()
        approved = self.store.load_whitelist()
        result = QuarantineResult()

        for failure in report.failed:
            if failure.id in approved:
                approved.discard(failure.id)
                result.removed_from_whitelist.append(failure.id)
            result.quarantined.append(
                QuarantineEntry(
                    id=failure.id,
                    reason=" | ".join(failure.reasons),
                    quarantined_at=stamp,
                )
            )

        self.store.save_whitelist(approved)
        self.store.save_quarantine([*self.store.load_quarantine(), *result.quarantined])

        for entry in result.quarantined:
            logger.warning("Quarantined %s: %s", entry.id, entry.reason)
        return result


def report_to_dict(report: SecurityReport) -> dict:
    return {
        "generatedAt": report.generated_at,
        "staleRegistries": list(report.stale_registries),
        "passed": list(report.passed),
        "failed": [
            {
                "id": f.id,
                "riskTier": f.risk_tier.value,
                "riskScore": f.risk_score,
                "reasons": list(f.reasons),
            }
            for f in report.failed
        ],
    }


def dict_to_report(data: dict) -> SecurityReport:
    return SecurityReport(
        generated_at=data["generatedAt"],
        stale_registries=list(data.get("staleRegistries", [])),
        passed=list(data.get("passed", [])),
        failed=[
            FailedCheck(
                id=f["id"],
                risk_tier=RiskTier(f["riskTier"]),
                risk_score=f["riskScore"],
                reasons=list(f["reasons"]),
            )
            for f in data.get("failed", [])
        ],
    )
