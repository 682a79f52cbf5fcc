"""guidescout -- inspect which dependencies of a project ship guides.

Usage:
    guidescout discover [DIRECTORIES]... [--json] [--contrib]
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click

from guidescout import __version__
from guidescout.config import get_config
from guidescout.engine.workspace import Workspace


@click.group()
@click.version_option(__version__, prog_name="guidescout")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """guidescout -- find author-provided guides in project dependencies."""
    logging.basicConfig(
        level="DEBUG" if verbose else get_config().log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@cli.command()
@click.argument(
    "directories",
    nargs=-1,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--json", "as_json", is_flag=True, help="Print raw language contexts as JSON.")
@click.option("--contrib", is_flag=True, help="Also probe for contrib guide packages.")
def discover(directories: tuple[Path, ...], as_json: bool, contrib: bool) -> None:
    """Detect languages and guide packages in DIRECTORIES (default: cwd)."""
    roots = list(directories) or [Path.cwd()]
    workspace, contrib_found = asyncio.run(_discover(roots, contrib))

    if as_json:
        payload = {
            "languages": [c.to_dict() for c in workspace.languages],
            "packages": {
                p.name: str(p.guides_dir) for p in workspace.packages
            },
        }
        if contrib:
            payload["contrib"] = contrib_found
        click.echo(json.dumps(payload, indent=2))
        return

    if not workspace.languages:
        raise click.ClickException("No supported language detected.")

    for context in workspace.languages:
        details = ", ".join(
            f"{label}: {value}"
            for label, value in (
                ("runtime", context.runtime),
                ("version", context.runtime_version),
                ("package manager", context.package_manager),
            )
            if value
        )
        click.echo(f"{context.name}" + (f" ({details})" if details else ""))

    if not workspace.packages:
        click.echo("No .guides packages found in this workspace.")
    else:
        click.echo("Discovered .guides packages:")
        for pkg in workspace.packages:
            parts = []
            if pkg.guides:
                parts.append(f"{len(pkg.guides)} guides")
            if pkg.docs:
                parts.append(f"{len(pkg.docs)} docs")
            if pkg.commands:
                parts.append(f"{len(pkg.commands)} commands")
            suffix = f": {', '.join(parts)}" if parts else ""
            click.echo(f"  - {pkg.name}{suffix}")

    if contrib:
        if not contrib_found:
            click.echo("No contrib guide packages found.")
        for language, locations in contrib_found.items():
            click.echo(f"Contrib guides ({language}):")
            for location in locations:
                click.echo(f"  - {location}")


async def _discover(
    roots: list[Path], contrib: bool
) -> tuple[Workspace, dict[str, list[str]]]:
    workspace = await Workspace.load(roots)
    found = await workspace.discover_contrib() if contrib else {}
    return workspace, found


if __name__ == "__main__":
    cli()
