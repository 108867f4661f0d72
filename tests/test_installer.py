"""Tests for the gated installer and its audit trail."""

import json
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from capcat.catalog.store import CatalogStore, QuarantineEntry
from capcat.config import RuntimeConfig
from capcat.errors import (
    CatalogItemNotFoundError,
    InstallBlockedError,
    InstallError,
    InstallerNotFoundError,
)
from capcat.install.audit import AuditTrail, InstallAudit
from capcat.install.installer import RUNNER_FAILED, Installer, plan_command
from capcat.models.catalog_item import (
    CatalogItem,
    CatalogKind,
    CliToolInstall,
    ManualInstall,
    ScriptedInstall,
    SecuritySignals,
)
from capcat.security.policy import SecurityPolicy

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeRunner:
    def __init__(self, exit_code: int = 0):
        self.exit_code = exit_code
        self.calls = []

    def __call__(self, command, timeout):
        self.calls.append(command)
        return self.exit_code


def _item(item_id: str, install=None, **signals) -> CatalogItem:
    return CatalogItem(
        id=item_id,
        kind=CatalogKind.SKILL,
        name=item_id,
        description="Test item",
        provider="openai",
        source="reg",
        last_seen_at="2026-01-01",
        install=install or ScriptedInstall(target="acme/lint", args=["--global"]),
        security_signals=SecuritySignals(**signals),
    )


def _installer(tmpdir, items, runner=None, dry_run=False, which=lambda name: f"/usr/bin/{name}"):
    config = RuntimeConfig(home=Path(tmpdir), dry_run=dry_run)
    store = CatalogStore(config.data_dir)
    store.save_catalog(items)
    return Installer(store, SecurityPolicy(), config, runner=runner or FakeRunner(), which=which)


def _audits(installer: Installer) -> list[InstallAudit]:
    return AuditTrail(installer.store.audits_dir).list_audits()


# --- Command planning ---


def test_plan_command_per_installer():
    assert plan_command(ScriptedInstall(target="t", args=["-g"])) == ["skill.sh", "install", "t", "-g"]
    assert plan_command(ScriptedInstall(target="t"), yes=True) == ["skill.sh", "install", "t", "--yes"]
    assert plan_command(CliToolInstall(target="github/gh-copilot")) == [
        "gh",
        "extension",
        "install",
        "github/gh-copilot",
    ]
    assert plan_command(ManualInstall(instructions="do it")) == []


# --- Gate ---


def test_allowed_install_runs_and_audits():
    runner = FakeRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        installer = _installer(tmpdir, [_item("skill:lint")], runner=runner)
        outcome = installer.install("skill:lint", yes=True, now=NOW)

        assert runner.calls == [["skill.sh", "install", "acme/lint", "--global", "--yes"]]
        assert outcome.audit.policy_decision == "allowed"
        assert outcome.audit.exit_code == 0
        assert not outcome.audit.override_used
        record = json.loads(outcome.audit_path.read_text())
        assert record["installer"] == "skill.sh"
        assert record["requestedAt"] == NOW.isoformat()


def test_nonzero_exit_is_recorded():
    with tempfile.TemporaryDirectory() as tmpdir:
        installer = _installer(tmpdir, [_item("skill:lint")], runner=FakeRunner(exit_code=3))
        outcome = installer.install("skill:lint", now=NOW)
        assert outcome.audit.exit_code == 3
        assert _audits(installer)[0].exit_code == 3


def test_blocked_tier_writes_audit_and_raises():
    runner = FakeRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        installer = _installer(tmpdir, [_item("skill:bad", known_vulnerabilities=4)], runner=runner)
        with pytest.raises(InstallBlockedError) as exc:
            installer.install("skill:bad", now=NOW)

        assert "high" in exc.value.reason
        assert runner.calls == []
        audits = _audits(installer)
        assert len(audits) == 1
        assert audits[0].policy_decision == "blocked"
        assert audits[0].exit_code == 1


def test_quarantined_item_is_blocked_regardless_of_tier():
    with tempfile.TemporaryDirectory() as tmpdir:
        installer = _installer(tmpdir, [_item("skill:lint")])
        installer.store.save_quarantine([QuarantineEntry("skill:lint", "failed", NOW.isoformat())])
        with pytest.raises(InstallBlockedError) as exc:
            installer.install("skill:lint", now=NOW)
        assert "quarantined" in exc.value.reason


def test_override_allows_blocked_item():
    runner = FakeRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        installer = _installer(tmpdir, [_item("skill:bad", known_vulnerabilities=4)], runner=runner)
        outcome = installer.install("skill:bad", override_risk=True, now=NOW)
        assert outcome.audit.policy_decision == "override-allowed"
        assert outcome.audit.override_used
        assert len(runner.calls) == 1


def test_override_on_safe_item_is_still_recorded():
    with tempfile.TemporaryDirectory() as tmpdir:
        installer = _installer(tmpdir, [_item("skill:lint")])
        outcome = installer.install("skill:lint", override_risk=True, now=NOW)
        assert outcome.audit.policy_decision == "override-allowed"


def test_dry_run_does_not_execute_or_need_binary():
    runner = FakeRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        installer = _installer(tmpdir, [_item("skill:lint")], runner=runner, dry_run=True, which=lambda name: None)
        outcome = installer.install("skill:lint", now=NOW)
        assert runner.calls == []
        assert outcome.dry_run
        assert outcome.command[0] == "skill.sh"
        assert outcome.audit.exit_code == 0


def test_missing_binary_raises_without_audit():
    with tempfile.TemporaryDirectory() as tmpdir:
        item = _item("copilot-extension:x", install=CliToolInstall(target="github/gh-x"))
        installer = _installer(tmpdir, [item], which=lambda name: None)
        with pytest.raises(InstallerNotFoundError) as exc:
            installer.install("copilot-extension:x", now=NOW)
        assert exc.value.binary == "gh"
        assert "cli.github.com" in exc.value.hint
        assert _audits(installer) == []


def test_runner_failure_is_audited_then_raised():
    def timing_out(command, timeout):
        raise InstallError(f"Installer timed out after {timeout}s")

    with tempfile.TemporaryDirectory() as tmpdir:
        installer = _installer(tmpdir, [_item("skill:lint")], runner=timing_out)
        with pytest.raises(InstallError):
            installer.install("skill:lint", now=NOW)
        audits = _audits(installer)
        assert len(audits) == 1
        assert audits[0].policy_decision == "allowed"
        assert audits[0].exit_code == RUNNER_FAILED


def test_manual_install_returns_instructions():
    runner = FakeRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        item = _item("claude-plugin:review", install=ManualInstall(instructions="Enable in settings", url="https://x.test"))
        installer = _installer(tmpdir, [item], runner=runner)
        outcome = installer.install("claude-plugin:review", now=NOW)
        assert runner.calls == []
        assert outcome.instructions == "Enable in settings"
        assert outcome.url == "https://x.test"
        assert outcome.audit.installer == "manual"
        assert outcome.audit.exit_code == 0


def test_unknown_item():
    with tempfile.TemporaryDirectory() as tmpdir:
        installer = _installer(tmpdir, [_item("skill:lint")])
        with pytest.raises(CatalogItemNotFoundError):
            installer.install("skill:nope")


# --- Audit trail ---


def test_audit_records_never_overwrite():
    with tempfile.TemporaryDirectory() as tmpdir:
        trail = AuditTrail(Path(tmpdir))
        audit = InstallAudit("skill:a", NOW.isoformat(), "allowed", False, "skill.sh", 0)
        first = trail.record(audit)
        second = trail.record(audit)
        assert first != second
        assert ":" not in first.name
        assert len(trail.list_audits("skill:a")) == 2
        assert trail.list_audits("skill:b") == []
