"""CLI commands: scanward suppress add|list — manage suppression rules."""

from __future__ import annotations

import os
import sys

import click
from rich.console import Console
from rich.table import Table

from scanward.config import ScanwardConfig
from scanward.errors import PolicyLoadError
from scanward.policy.engine import PolicyEngine
from scanward.policy.loader import load_suppressions, parse_until
from scanward.policy.models import SuppressionTarget, SuppressionType

console = Console(stderr=True)


@click.group()
def suppress() -> None:
    """Manage finding suppressions."""


@suppress.command("add")
@click.option(
    "--type",
    "kind",
    type=click.Choice([t.value for t in SuppressionType]),
    default=SuppressionType.ISSUE.value,
    help="What the suppression applies to.",
)
@click.option("--rule", "rule_id", default=None, help="Rule id, or /regex/.")
@click.option("--package", default=None, help="Package name, or * for any.")
@click.option(
    "--vuln", "vulnerability_id", default=None, help="CVE/GHSA/OSV id, or /regex/."
)
@click.option(
    "--path",
    default=None,
    help="Path glob relative to the scanned directory, or a substring.",
)
@click.option("--reason", default="", help="Why this is acceptable.")
@click.option("--until", default=None, help="Expiry as an ISO date or datetime.")
@click.pass_context
def add(
    ctx: click.Context,
    kind: str,
    rule_id: str | None,
    package: str | None,
    vulnerability_id: str | None,
    path: str | None,
    reason: str,
    until: str | None,
) -> None:
    """Add a suppression rule and save it."""
    config: ScanwardConfig = ctx.obj["config"]
    try:
        expires = parse_until(until)
        engine = PolicyEngine(
            suppressions=load_suppressions(config.suppressions_path),
            suppressions_path=config.suppressions_path,
        )
    except PolicyLoadError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    target = SuppressionTarget(
        rule_id=rule_id,
        package=package,
        vulnerability_id=vulnerability_id,
        path=path,
    )
    suppression_id = engine.add_suppression(
        SuppressionType(kind),
        target,
        reason=reason,
        until=expires,
        created_by=os.environ.get("USER") or "unknown",
    )
    saved = engine.save_suppressions()
    console.print(f"Added suppression [cyan]{suppression_id}[/cyan] to {saved}")


@suppress.command("list")
@click.pass_context
def list_(ctx: click.Context) -> None:
    """List suppression rules."""
    config: ScanwardConfig = ctx.obj["config"]
    try:
        rules = load_suppressions(config.suppressions_path)
    except PolicyLoadError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if not rules:
        console.print("[dim]No suppressions.[/dim]")
        return

    table = Table(title="Suppressions", show_lines=False)
    table.add_column("Id", style="cyan")
    table.add_column("Type")
    table.add_column("Target")
    table.add_column("Until")
    table.add_column("Reason", max_width=40)

    for rule in rules:
        t = rule.target
        parts = [
            f"{label}={value}"
            for label, value in (
                ("rule", t.rule_id),
                ("package", t.package),
                ("vuln", t.vulnerability_id),
                ("path", t.path),
            )
            if value
        ]
        until = rule.until.isoformat() if rule.until else "never"
        if rule.is_expired():
            until = f"[dim]{until} (expired)[/dim]"
        table.add_row(rule.id, rule.type.value, ", ".join(parts) or "*", until, rule.reason)
    console.print(table)
