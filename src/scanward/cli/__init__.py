"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from scanward import __version__
from scanward.config import ScanwardConfig


@click.group()
@click.version_option(version=__version__, prog_name="scanward")
@click.option(
    "--policies",
    "-p",
    type=click.Path(exists=True),
    help="Path to a YAML or JSON policy file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, policies: str | None, verbose: bool) -> None:
    """scanward — static analysis and dependency vulnerability scanning."""
    config = ScanwardConfig.load()
    if policies:
        config.policies_path = Path(policies)
    config.verbose = verbose

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _register_commands() -> None:
    from scanward.cli.history import history  # noqa: F811
    from scanward.cli.scan import scan  # noqa: F811
    from scanward.cli.suppress import suppress  # noqa: F811

    main.add_command(scan)
    main.add_command(history)
    main.add_command(suppress)


_register_commands()
