"""Installer — run a catalog item's install directive behind the risk gate.

Each attempt is judged against the live risk assessment and the live
quarantine set, never a cached report, and leaves one audit record.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from capcat.catalog.store import CatalogStore
from capcat.config import RuntimeConfig
from capcat.errors import (
    CatalogItemNotFoundError,
    InstallBlockedError,
    InstallError,
    InstallerNotFoundError,
)
from capcat.install.audit import (
    ALLOWED,
    BLOCKED,
    OVERRIDE_ALLOWED,
    AuditTrail,
    InstallAudit,
)
from capcat.models.catalog_item import (
    CliToolInstall,
    InstallMethod,
    ManualInstall,
    ScriptedInstall,
)
from capcat.security.assessment import RiskAssessment, assess, is_blocked_tier, is_warn_tier
from capcat.security.policy import SecurityPolicy

logger = logging.getLogger(__name__)

SKILL_SH = "skill.sh"
GH = "gh"

INSTALL_SUGGESTIONS = {
    SKILL_SH: "install skill.sh and make sure it is on PATH",
    GH: "install the GitHub CLI from https://cli.github.com and run `gh auth login`",
}

Runner = Callable[[list[str], int], int]

# Exit code recorded when the installer process could not finish
RUNNER_FAILED = -1


@dataclass
class InstallOutcome:
    audit: InstallAudit
    audit_path: Path
    assessment: RiskAssessment
    command: list[str] = field(default_factory=list)  # Empty for manual installs
    instructions: str = ""
    url: str = ""
    dry_run: bool = False


def run_process(command: list[str], timeout: int) -> int:
    """Run an installer in the foreground and return its exit code."""
    try:
        completed = subprocess.run(command, timeout=timeout, check=False)
    except subprocess.TimeoutExpired as e:
        raise InstallError(
            f"Installer timed out after {timeout}s: {' '.join(command)}",
            hint="retry, or raise the install timeout",
        ) from e
    except OSError as e:
        raise InstallError(f"Failed to execute {command[0]}: {e}") from e
    return completed.returncode


def build_skill_sh_args(target: str, args: list[str], yes: bool) -> list[str]:
    command_args = ["install", target, *args]
    if yes:
        command_args.append("--yes")
    return command_args


def plan_command(install: InstallMethod, yes: bool = False) -> list[str]:
    """The full command line for an install directive; empty for manual."""
    if isinstance(install, ScriptedInstall):
        return [SKILL_SH, *build_skill_sh_args(install.target, install.args, yes)]
    if isinstance(install, CliToolInstall):
        return [GH, "extension", "install", install.target, *install.args]
    return []


class Installer:
    """Executes installs for catalog items.

    ``runner`` and ``which`` are injectable so tests never spawn processes.
    """

    def __init__(
        self,
        store: CatalogStore,
        policy: SecurityPolicy,
        config: RuntimeConfig,
        runner: Runner = run_process,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.store = store
        self.policy = policy
        self.config = config
        self.runner = runner
        self.which = which
        self.audits = AuditTrail(store.audits_dir)

    def install(
        self,
        item_id: str,
        yes: bool = False,
        override_risk: bool = False,
        now: Optional[datetime] = None,
    ) -> InstallOutcome:
        """Install one catalog item.

        Raises:
            CatalogItemNotFoundError: the id is not in the catalog.
            InstallBlockedError: risk tier or quarantine blocks the item and
                ``override_risk`` was not given. A blocked audit is written.
            InstallerNotFoundError: the installer binary is missing.
            InstallError: the installer could not run to completion. An audit
                with exit code ``RUNNER_FAILED`` is written first.
        """
        item = self.store.get(item_id)
        if item is None:
            raise CatalogItemNotFoundError(item_id)

        now = now or datetime.now(timezone.utc)
        assessment = assess(item, self.policy, now=now)
        installer_kind = item.install.kind

        reason = ""
        if item_id in self.store.quarantined_ids():
            reason = "quarantined by whitelist verification"
        elif is_blocked_tier(assessment.risk_tier, self.policy):
            reason = (
                f"security policy tier {assessment.risk_tier.value} "
                f"(score={assessment.risk_score})"
            )

        if reason and not override_risk:
            self._audit(item_id, now, BLOCKED, False, installer_kind, 1)
            logger.warning("Install of %s blocked: %s", item_id, reason)
            raise InstallBlockedError(item_id, reason, assessment)

        if is_warn_tier(assessment.risk_tier, self.policy):
            logger.warning(
                "Security warning for %s: %s (%s)",
                item_id,
                assessment.risk_tier.value,
                assessment.risk_score,
            )
        if reason:
            logger.warning("Overriding risk gate for %s: %s", item_id, reason)

        decision = OVERRIDE_ALLOWED if override_risk else ALLOWED
        command = plan_command(item.install, yes)

        if isinstance(item.install, ManualInstall):
            audit, path = self._audit(item_id, now, decision, override_risk, installer_kind, 0)
            return InstallOutcome(
                audit=audit,
                audit_path=path,
                assessment=assessment,
                instructions=item.install.instructions,
                url=item.install.url,
                dry_run=self.config.dry_run,
            )

        if self.config.dry_run:
            logger.info("Dry-run: %s", " ".join(command))
            exit_code = 0
        else:
            binary = command[0]
            if self.which(binary) is None:
                raise InstallerNotFoundError(binary, INSTALL_SUGGESTIONS[binary])
            logger.info("Running %s", " ".join(command))
            try:
                exit_code = self.runner(command, self.config.install_timeout)
            except InstallError:
                self._audit(item_id, now, decision, override_risk, installer_kind, RUNNER_FAILED)
                raise

        audit, path = self._audit(item_id, now, decision, override_risk, installer_kind, exit_code)
        return InstallOutcome(
            audit=audit,
            audit_path=path,
            assessment=assessment,
            command=command,
            dry_run=self.config.dry_run,
        )

    def _audit(
        self,
        item_id: str,
        now: datetime,
        decision: str,
        override_used: bool,
        installer: str,
        exit_code: int,
    ) -> tuple[InstallAudit, Path]:
        audit = InstallAudit(
            id=item_id,
            requested_at=now.isoformat(),
            policy_decision=decision,
            override_used=override_used,
            installer=installer,
            exit_code=exit_code,
        )
        return audit, self.audits.record(audit)
