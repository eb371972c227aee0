"""CLI command: scanward history — recently persisted scans."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.table import Table

from scanward.config import ScanwardConfig
from scanward.storage.store import SecurityStore

console = Console(stderr=True)

_STATUS_COLORS = {
    "completed": "green",
    "failed": "red",
    "cancelled": "yellow",
}


async def _list_scans(config: ScanwardConfig, limit: int) -> list[dict]:
    async with SecurityStore(config.database) as store:
        return await store.list_scans(limit)


@click.command()
@click.option("--limit", "-n", default=20, show_default=True, help="Scans to show.")
@click.pass_context
def history(ctx: click.Context, limit: int) -> None:
    """Show recent scans recorded in the local database."""
    config: ScanwardConfig = ctx.obj["config"]
    scans = asyncio.run(_list_scans(config, limit))

    if not scans:
        console.print("[dim]No scans recorded yet.[/dim]")
        return

    table = Table(title="Scan history", show_lines=False)
    table.add_column("Scan", style="cyan")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Duration", justify="right")
    table.add_column("Issues", justify="right")
    table.add_column("Vulns", justify="right")
    table.add_column("Mode")

    for row in scans:
        summary = row["summary"]
        color = _STATUS_COLORS.get(row["status"], "white")
        table.add_row(
            row["id"],
            f"[{color}]{row['status']}[/{color}]",
            row["started_at"][:19],
            f"{row['duration']:.2f}s",
            str(summary.get("totalIssues", 0)),
            str(summary.get("totalVulnerabilities", 0)),
            "incremental" if row["incremental"] else "full",
        )
    console.print(table)
