"""CLI command: scanward scan <directory> — SAST and dependency scan."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from scanward.config import ScanwardConfig
from scanward.entities import EntityIndex
from scanward.scan.manager import SecurityScanner
from scanward.scan.models import ScanRequest, ScanStatus, SecurityScanResult
from scanward.scanner.models import ScanOptions, Severity
from scanward.storage.store import SecurityStore

console = Console(stderr=True)

SEVERITY_COLORS = {
    Severity.CRITICAL: "red",
    Severity.HIGH: "bright_red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
    Severity.INFO: "dim",
}


def severity_label(severity: Severity) -> str:
    color = SEVERITY_COLORS.get(severity, "white")
    return f"[{color}]{severity.value}[/{color}]"


async def _run_scan(
    config: ScanwardConfig,
    directory: str,
    index: EntityIndex,
    request: ScanRequest,
    options: ScanOptions,
    incremental: bool,
) -> SecurityScanResult:
    async with SecurityStore(config.database) as store:
        scanner = SecurityScanner.from_config(
            config, index, store=store, root=directory
        )
        await scanner.initialize()
        if incremental:
            return await scanner.perform_incremental_scan(request, options)
        return await scanner.perform_scan(request, options)


@click.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option("--incremental", "-i", is_flag=True, help="Only rescan changed files.")
@click.option("--baseline", default=None, help="Scan id to diff against.")
@click.option(
    "--severity",
    type=click.Choice([s.value for s in Severity]),
    default=Severity.INFO.value,
    help="Minimum severity to report.",
)
@click.option(
    "--confidence",
    type=click.FloatRange(0.0, 1.0),
    default=0.5,
    help="Minimum rule confidence.",
)
@click.option("--compliance", is_flag=True, help="Check findings against policies.")
@click.option("--no-osv", is_flag=True, help="Use only the built-in advisory table.")
@click.option(
    "--json",
    "json_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the full scan result as JSON.",
)
@click.option(
    "--exclude",
    "-e",
    multiple=True,
    help="Directory or file names to exclude from scan.",
)
@click.pass_context
def scan(
    ctx: click.Context,
    directory: str,
    incremental: bool,
    baseline: str | None,
    severity: str,
    confidence: float,
    compliance: bool,
    no_osv: bool,
    json_path: str | None,
    exclude: tuple[str, ...],
) -> None:
    """Scan source code and package manifests for security issues."""
    config: ScanwardConfig = ctx.obj["config"]
    if no_osv:
        config.osv_enabled = False

    index = EntityIndex.from_directory(directory, exclude)
    mode = "incremental" if incremental else "full"
    console.print(
        f"[bold]scanward[/bold] {mode} scan of [cyan]{directory}[/cyan] "
        f"({len(index)} files)\n"
    )

    request = ScanRequest(
        entity_ids=[e.id for e in index],
        baseline_scan_id=baseline,
    )
    options = ScanOptions(
        severity_threshold=Severity.parse(severity),
        confidence_threshold=confidence,
        include_compliance=compliance,
        max_file_size=config.max_file_size,
    )

    try:
        result = asyncio.run(
            _run_scan(config, directory, index, request, options, incremental)
        )
    except Exception as e:
        console.print(f"[red]Scan failed:[/red] {e}")
        sys.exit(1)

    if json_path:
        Path(json_path).write_text(json.dumps(result.to_dict(), indent=2))
        console.print(f"[dim]Wrote {json_path}[/dim]")

    _print_issues(result, directory)
    _print_vulnerabilities(result)
    _print_summary(result)

    if result.status is not ScanStatus.COMPLETED:
        sys.exit(1)
    critical = result.summary.by_severity.get(Severity.CRITICAL.value, 0)
    if critical > 0:
        console.print(f"\n[red]{critical} critical finding(s)[/red]")
        sys.exit(1)


def _print_issues(result: SecurityScanResult, directory: str) -> None:
    if not result.issues:
        console.print("[green]No code issues.[/green]")
        return

    issues = sorted(
        result.issues,
        key=lambda i: (-i.severity.rank, i.file_path, i.line_number),
    )
    table = Table(title="Code issues", show_lines=False)
    table.add_column("Severity", style="bold", width=10)
    table.add_column("File", style="cyan")
    table.add_column("Line", justify="right")
    table.add_column("Rule")
    table.add_column("Title", max_width=50)

    for issue in issues:
        table.add_row(
            severity_label(issue.severity),
            _shorten_path(issue.file_path, directory),
            str(issue.line_number),
            issue.rule_id,
            issue.title,
        )
    console.print(table)


def _print_vulnerabilities(result: SecurityScanResult) -> None:
    if not result.vulnerabilities:
        console.print("[green]No vulnerable dependencies.[/green]")
        return

    table = Table(title="Vulnerable dependencies", show_lines=False)
    table.add_column("Severity", style="bold", width=10)
    table.add_column("Package", style="cyan")
    table.add_column("Version")
    table.add_column("Advisory")
    table.add_column("Fixed in")

    for vuln in sorted(result.vulnerabilities, key=lambda v: -v.severity.rank):
        table.add_row(
            severity_label(vuln.severity),
            f"{vuln.package_name} ({vuln.ecosystem.value})",
            vuln.version,
            vuln.vulnerability_id,
            vuln.fixed_in_version or "-",
        )
    console.print(table)


def _print_summary(result: SecurityScanResult) -> None:
    summary = result.summary
    console.print(
        f"\nScan [bold]{result.scan_id}[/bold] {result.status.value}: "
        f"{summary.files_scanned} files in {result.duration:.2f}s"
    )
    skipped = getattr(result, "skipped_files", None)
    if skipped:
        console.print(f"  {len(skipped)} unchanged files carried forward")
    console.print(
        f"Total: {summary.total_issues} issues, "
        f"{summary.total_vulnerabilities} vulnerabilities"
    )
    if result.compliance is not None:
        status = "[green]compliant[/green]" if result.compliance.compliant else (
            f"[red]{len(result.compliance.violations)} policy violation(s)[/red]"
        )
        console.print(f"Compliance: {status}")


def _shorten_path(file_path: str, base_dir: str) -> str:
    """Shorten file path relative to scan directory."""
    try:
        return Path(file_path).resolve().relative_to(Path(base_dir).resolve()).as_posix()
    except ValueError:
        return file_path
