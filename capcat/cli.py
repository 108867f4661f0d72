"""capcat CLI — sync, rank, assess and install catalog capabilities."""

import json
import logging
from dataclasses import replace

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from capcat import __version__
from capcat.config import RuntimeConfig
from capcat.errors import CapcatError
from capcat.models.catalog_item import KIND_VALUES, CatalogKind

console = Console()

TIER_STYLES = {"low": "green", "medium": "yellow", "high": "red", "critical": "bold red"}


class CapcatGroup(click.Group):
    """Command group that reports capcat errors instead of tracebacks."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except CapcatError as e:
            console.print(f"[red]Error:[/] {e}")
            ctx.exit(1)


def _kinds(values: tuple) -> list[CatalogKind]:
    return [CatalogKind(v) for v in values]


def _tier(tier: str) -> str:
    return f"[{TIER_STYLES[tier]}]{tier}[/]"


@click.group(cls=CapcatGroup)
@click.version_option(version=__version__)
@click.option("--home", envvar="CAPCAT_HOME", default=None, help="Directory holding config/ and data/")
@click.option("--offline", is_flag=True, help="Use local registry entries only")
@click.option("--dry-run", is_flag=True, help="Plan installs without running them")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx, home, offline, dry_run, verbose):
    """capcat — a curated, risk-gated catalog of agent capabilities.

    Syncs skills, MCP servers, Claude plugins and Copilot extensions from
    their registries, ranks them for a project, and installs them behind
    a security policy.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    config = RuntimeConfig.from_env(home=home)
    if offline:
        config = replace(config, offline=True)
    if dry_run:
        config = replace(config, dry_run=True)
    ctx.obj = config


# ── Sync ─────────────────────────────────────────────────────────────


@main.command()
@click.option("--kind", "kinds", multiple=True, type=click.Choice(KIND_VALUES), help="Only sync these kinds")
@click.pass_obj
def sync(config: RuntimeConfig, kinds: tuple):
    """Resolve every enabled registry and rebuild the catalog."""
    from capcat.catalog.sync import sync_catalogs

    console.print("\n[bold blue]capcat[/] — Syncing registries\n")
    result = sync_catalogs(config, kinds=_kinds(kinds))

    table = Table(title=f"Registries ({len(result.outcomes)})")
    table.add_column("Registry", style="cyan")
    table.add_column("Source")
    table.add_column("Items", justify="right")
    table.add_column("Dropped", justify="right")
    table.add_column("Notes")
    for outcome in result.outcomes:
        if outcome.skipped:
            source, notes = "[dim]skipped[/]", outcome.skipped
        elif outcome.error:
            source, notes = "[red]failed[/]", outcome.error
        else:
            source, notes = outcome.source, outcome.note
        table.add_row(
            outcome.registry_id, source, str(outcome.item_count), str(outcome.dropped), notes
        )
    console.print(table)

    counts = ", ".join(f"{k}={v}" for k, v in sorted(result.kind_counts().items()))
    console.print(f"\n[green]Synced {len(result.items)} items[/] ({counts or 'none'})")
    if result.stale_registries:
        console.print(f"[yellow]Stale registries:[/] {', '.join(result.stale_registries)}")


# ── Catalog ──────────────────────────────────────────────────────────


@main.group()
def catalog():
    """Inspect the persisted catalog."""


@catalog.command(name="list")
@click.option("--kind", "kinds", multiple=True, type=click.Choice(KIND_VALUES))
@click.pass_obj
def list_items(config: RuntimeConfig, kinds: tuple):
    """List catalog items."""
    from capcat.catalog.store import CatalogStore

    wanted = set(_kinds(kinds))
    items = [i for i in CatalogStore(config.data_dir).load_items() if not wanted or i.kind in wanted]
    if not items:
        console.print("[yellow]Catalog is empty.[/] Run `capcat sync` first.")
        return

    table = Table(title=f"Catalog ({len(items)} items)")
    table.add_column("ID", style="cyan")
    table.add_column("Kind")
    table.add_column("Provider")
    table.add_column("Installer")
    table.add_column("Last seen", style="dim")
    for item in items:
        table.add_row(item.id, item.kind.value, item.provider, item.install.kind, item.last_seen_at)
    console.print(table)


# ── Recommend ────────────────────────────────────────────────────────


@main.command()
@click.option("--project", "-p", default=".", type=click.Path(exists=True, file_okay=False), help="Project to analyze")
@click.option("--requirements", "-r", default=None, type=click.Path(exists=True, dir_okay=False), help="Requirements profile (.yaml/.json)")
@click.option("--kind", "kinds", multiple=True, type=click.Choice(KIND_VALUES))
@click.option("--format", "fmt", default="table", type=click.Choice(["table", "json"]))
@click.option("--limit", default=10, show_default=True, type=click.IntRange(min=1))
@click.pass_obj
def recommend(config: RuntimeConfig, project: str, requirements, kinds: tuple, fmt: str, limit: int):
    """Rank catalog items for a project."""
    from capcat.ranking.engine import recommend as run_recommend
    from capcat.ranking.engine import recommendation_to_dict

    recommendations = run_recommend(config, project, requirements, kinds=_kinds(kinds))[:limit]

    if fmt == "json":
        click.echo(json.dumps([recommendation_to_dict(r) for r in recommendations], indent=2))
        return

    if not recommendations:
        console.print("[yellow]No recommendations.[/] Run `capcat sync` first.")
        return

    table = Table(title=f"Recommendations for {project}")
    table.add_column("#", style="dim", width=3)
    table.add_column("ID", style="cyan")
    table.add_column("Rank", justify="right", style="green")
    table.add_column("Fit", justify="right")
    table.add_column("Trust", justify="right")
    table.add_column("Risk")
    table.add_column("Status")
    for i, rec in enumerate(recommendations, 1):
        status = f"[red]blocked[/] ({rec.block_reason})" if rec.blocked else "ok"
        table.add_row(
            str(i),
            rec.id,
            f"{rec.rank_score:.1f}",
            f"{rec.score_breakdown.fit_score:.1f}",
            f"{rec.score_breakdown.trust_score:.1f}",
            f"{_tier(rec.risk_tier.value)} ({rec.risk_score})",
            status,
        )
    console.print(table)


# ── Assess ───────────────────────────────────────────────────────────


@main.command()
@click.argument("item_id")
@click.option("--format", "fmt", default="table", type=click.Choice(["table", "json"]))
@click.pass_obj
def assess(config: RuntimeConfig, item_id: str, fmt: str):
    """Show the live risk assessment for ITEM_ID."""
    from capcat.catalog.store import CatalogStore
    from capcat.errors import CatalogItemNotFoundError
    from capcat.security.assessment import assess as run_assess
    from capcat.security.assessment import assessment_to_dict, is_blocked_tier
    from capcat.security.policy import load_security_policy

    item = CatalogStore(config.data_dir).get(item_id)
    if item is None:
        raise CatalogItemNotFoundError(item_id)
    policy = load_security_policy(config)
    result = run_assess(item, policy)

    if fmt == "json":
        click.echo(json.dumps(assessment_to_dict(result), indent=2))
        return

    tier = result.risk_tier.value
    console.print(f"\n[bold]{item_id}[/] — risk {result.risk_score}/100, tier {_tier(tier)}")
    if is_blocked_tier(result.risk_tier, policy):
        console.print("[red]Blocked for install by the current security policy.[/]")
    for reason in result.reasons:
        console.print(f"  • {reason}")


# ── Install ──────────────────────────────────────────────────────────


@main.command()
@click.argument("item_id")
@click.option("--yes", "-y", is_flag=True, help="Answer yes to installer prompts")
@click.option("--override-risk", is_flag=True, help="Install even if the risk gate blocks it")
@click.pass_obj
def install(config: RuntimeConfig, item_id: str, yes: bool, override_risk: bool):
    """Install ITEM_ID through its installer."""
    from capcat.catalog.store import CatalogStore
    from capcat.install.installer import Installer
    from capcat.security.policy import load_security_policy

    if override_risk and not yes:
        click.confirm(f"Override the risk gate for {item_id}?", abort=True)

    installer = Installer(CatalogStore(config.data_dir), load_security_policy(config), config)
    outcome = installer.install(item_id, yes=yes, override_risk=override_risk)

    if outcome.instructions:
        console.print(f"\n[bold]{item_id}[/] is installed manually:\n  {outcome.instructions}")
        if outcome.url:
            console.print(f"  {outcome.url}")
    elif outcome.dry_run:
        console.print(f"[dim]Dry-run:[/] {' '.join(outcome.command)}")

    exit_code = outcome.audit.exit_code
    if exit_code != 0:
        console.print(f"[red]Installer exited with {exit_code}[/] (audit: {outcome.audit_path})")
        raise SystemExit(exit_code)
    console.print(f"[green]{outcome.audit.policy_decision}[/] — audit written to {outcome.audit_path}")


# ── Whitelist ────────────────────────────────────────────────────────


def _gate(config: RuntimeConfig):
    from capcat.catalog.store import CatalogStore
    from capcat.security.policy import load_security_policy
    from capcat.security.whitelist import WhitelistGate

    return WhitelistGate(CatalogStore(config.data_dir), load_security_policy(config), config)


@main.group()
def whitelist():
    """Manage approved items."""


@whitelist.command(name="add")
@click.argument("item_id")
@click.option("--release", is_flag=True, help="Lift an existing quarantine")
@click.pass_obj
def whitelist_add(config: RuntimeConfig, item_id: str, release: bool):
    """Approve ITEM_ID for install."""
    _gate(config).approve(item_id, release=release)
    console.print(f"[green]Approved[/] {item_id}")


@whitelist.command()
@click.option("--allow-failures", is_flag=True, help="Exit 0 even when items fail")
@click.pass_obj
def verify(config: RuntimeConfig, allow_failures: bool):
    """Re-assess every approved item under the current policy."""
    report_path, report = _gate(config).verify()

    console.print(f"\n[bold blue]capcat[/] — Whitelist verification ({report.generated_at})\n")
    console.print(f"  [green]Passed:[/] {len(report.passed)}")
    console.print(f"  [red]Failed:[/] {len(report.failed)}")
    for failure in report.failed:
        console.print(f"    {failure.id} — {_tier(failure.risk_tier.value)} ({failure.risk_score})")
    if report.stale_registries:
        console.print(f"  [yellow]Stale registries:[/] {', '.join(report.stale_registries)}")
    console.print(f"\nReport written to {report_path}")

    if report.failed and not allow_failures:
        console.print(f"Run `capcat quarantine apply --report {report_path}` to quarantine failures.")
        raise SystemExit(1)


# ── Quarantine ───────────────────────────────────────────────────────


@main.group()
def quarantine():
    """Manage quarantined items."""


@quarantine.command()
@click.option("--report", "report_path", required=True, type=click.Path(dir_okay=False), help="Security report to apply")
@click.pass_obj
def apply(config: RuntimeConfig, report_path: str):
    """Quarantine every failed item in a verification report."""
    result = _gate(config).apply_quarantine_from_report(report_path)
    console.print(f"Removed from whitelist: {', '.join(result.removed_from_whitelist) or 'none'}")
    console.print(f"Quarantined: {len(result.quarantined)}")


@quarantine.command(name="list")
@click.pass_obj
def list_quarantine(config: RuntimeConfig):
    """List quarantined items."""
    from capcat.catalog.store import CatalogStore

    entries = CatalogStore(config.data_dir).load_quarantine()
    if not entries:
        console.print("[green]No quarantined items.[/]")
        return

    table = Table(title=f"Quarantine ({len(entries)})")
    table.add_column("ID", style="cyan")
    table.add_column("Since", style="dim")
    table.add_column("Reason")
    for entry in entries:
        table.add_row(entry.id, entry.quarantined_at, entry.reason)
    console.print(table)


# ── Doctor ───────────────────────────────────────────────────────────


@main.command()
@click.pass_obj
def doctor(config: RuntimeConfig):
    """Check installers, catalog health and sync freshness."""
    from capcat.doctor import CheckStatus, run_doctor_checks

    checks = run_doctor_checks(config)
    styles = {CheckStatus.PASS: "green", CheckStatus.WARN: "yellow", CheckStatus.FAIL: "red"}

    table = Table(title="capcat doctor")
    table.add_column("Check", style="cyan")
    table.add_column("Status")
    table.add_column("Details")
    table.add_column("Suggestion", style="dim")
    for check in checks:
        style = styles[check.status]
        table.add_row(check.name, f"[{style}]{check.status.value}[/]", check.message, check.suggestion)
    console.print(table)

    if any(c.status == CheckStatus.FAIL for c in checks):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
