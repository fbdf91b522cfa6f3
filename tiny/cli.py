"""Command-line interface for tiny.

Commands:
- new: Scaffold a starter site.
- serve: Serve a site definition over HTTP.
- export: Write the static version of a site.
- check: Validate a site definition.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

import click

from . import __version__
from .errors import GeneratorError, SiteConfigError

logger = logging.getLogger(__name__)

LOG_LEVELS = ["critical", "error", "warning", "info", "debug"]

# Path to the starter site copied by `tiny new`
_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"

_site_argument = click.argument(
    "definition",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default="site.yml",
)


def _configure_logging(level_name: str) -> None:
    level_str = (os.getenv("TINY_LOG_LEVEL") or level_name or "info").upper()
    if level_str.lower() not in LOG_LEVELS:
        level_str = "INFO"
    logging.basicConfig(
        level=getattr(logging, level_str, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.debug("Logging configured at %s", level_str)


def _fail(title: str, exc: Exception) -> None:
    click.echo(click.style(f"{title}:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  Error: {exc}", fg="white"), err=True)
    raise SystemExit(1)


def _load(definition: Path):
    from .site import load_site

    try:
        return load_site(definition)
    except SiteConfigError as exc:
        _fail("Invalid site definition", exc)


@click.group()
@click.version_option(version=__version__, prog_name="tiny")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="info",
    show_default=True,
    help="Logging verbosity (TINY_LOG_LEVEL overrides it)",
)
def cli(log_level: str):
    """tiny: YAML defined sites rendered with Jinja templates."""
    _configure_logging(log_level)


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new site."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New tiny site created at {target}")


@cli.command()
@_site_argument
@click.option("--host", default="", help="Interface to bind, all by default")
@click.option("--port", type=int, default=8000, show_default=True, help="Port to listen on")
def serve(definition: Path, host: str, port: int):
    """Serve the site described by DEFINITION."""
    from .server import serve as run_server

    site = _load(definition)
    run_server(site, host=host, port=port)


@cli.command()
@_site_argument
@click.option("--watch", is_flag=True, help="Export again whenever a source file changes")
def export(definition: Path, watch: bool):
    """Write the static version of the site described by DEFINITION."""
    site = _load(definition)
    if not site.config.static_site.enable:
        raise click.ClickException("static_site.enable is false in the site definition")
    try:
        result = site.generate_static_site()
    except GeneratorError as exc:
        _fail("Export failed", exc)
    click.echo(f"Wrote {len(result.written)} pages into {result.output_dir}")
    if result.skipped:
        click.echo(f"Skipped {len(result.skipped)} paths: {', '.join(result.skipped)}")
    if watch:
        from .server import SiteWatcher
        from .site import load_site

        def rebuild():
            exported = load_site(definition).generate_static_site()
            click.echo(f"Wrote {len(exported.written)} pages into {exported.output_dir}")

        output = site.config.static_site.output
        watcher = SiteWatcher(
            definition.resolve().parent,
            rebuild,
            ignore=[output.root_dir, output.static_dir],
        )
        click.echo(f"Watching {watcher.root} for changes")
        watcher.run_forever()


@cli.command()
@_site_argument
def check(definition: Path):
    """Validate the site described by DEFINITION."""
    from .config import load_site_config
    from .site import Site

    try:
        config = load_site_config(definition)
    except SiteConfigError as exc:
        _fail("Invalid site definition", exc)
    # Report every problem instead of stopping at the first one.
    config.validate = False
    try:
        site = Site(config)
    except SiteConfigError as exc:
        _fail("Invalid site definition", exc)
    problems = site.validate()
    if problems:
        click.echo(click.style("Invalid site definition:", fg="red", bold=True), err=True)
        for problem in problems:
            click.echo(click.style(f"  - {problem}", fg="yellow"), err=True)
        raise SystemExit(1)
    click.echo(f"{definition}: {len(site.pages)} pages OK")


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Copy the starter site into root.

    Args:
        root: Directory of the new site.
    """
    for src_path in _SCAFFOLD_DIR.rglob("*"):
        if src_path.is_dir():
            continue
        rel_path = src_path.relative_to(_SCAFFOLD_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)
