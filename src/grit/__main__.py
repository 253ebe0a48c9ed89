"""CLI entry point for grit."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

import click

from grit import __version__
from grit.bootstrap import build_cache
from grit.config import GritConfig
from grit.core.cache import iter_records, purge_directory
from grit.paths import get_config_path, get_response_cache_dir


def _load_config(config_path: Path | None) -> GritConfig:
    return GritConfig.load(config_path)


def _format_age(seconds: float) -> str:
    seconds = max(0, int(seconds))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("--forge", "forge_name", default=None, help="Configured forge to open")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.toml",
)
@click.pass_context
def cli(
    ctx: click.Context, version: bool, forge_name: str | None, config_path: Path | None
) -> None:
    """Terminal dashboard for pull requests, issues, commits and CI."""
    if version:
        click.echo(f"grit {__version__}")
        ctx.exit(0)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path

    if ctx.invoked_subcommand is None:
        ctx.invoke(tui, forge_name=forge_name)


@cli.command()
@click.option("--forge", "forge_name", default=None, help="Configured forge to open")
@click.pass_context
def tui(ctx: click.Context, forge_name: str | None) -> None:
    """Start the dashboard (default command)."""
    from grit.tui.app import GritApp

    config_path = (ctx.obj or {}).get("config_path")
    config = _load_config(config_path)
    if forge_name is not None and config.get_forge(forge_name) is None:
        names = ", ".join(forge.name for forge in config.forges)
        raise click.BadParameter(f"unknown forge {forge_name!r} (configured: {names})")
    GritApp(config_path=config_path, forge_name=forge_name).run()


# =============================================================================
# cache
# =============================================================================


@cli.group()
def cache() -> None:
    """Inspect or clear the response cache."""


@cache.command("path")
def cache_path() -> None:
    """Print the cache directory."""
    click.echo(str(get_response_cache_dir()))


@cache.command("list")
@click.pass_context
def cache_list(ctx: click.Context) -> None:
    """List cached resources with their age."""
    config = _load_config((ctx.obj or {}).get("config_path"))
    manager = build_cache(config)
    entries = iter_records(get_response_cache_dir())
    readable = [entry for entry in entries if entry is not None]
    now = time.time()
    for entry in sorted(readable, key=lambda e: str(e.key)):
        stale = manager.is_stale(entry, now)
        state = click.style("stale", fg="yellow") if stale else click.style("fresh", fg="green")
        click.echo(f"{entry.key}  {_format_age(entry.age(now)):>4}  {state}")
    corrupt = len(entries) - len(readable)
    summary = f"{len(readable)} entries"
    if corrupt:
        summary += click.style(f", {corrupt} unreadable", fg="red")
    click.echo(summary)


@cache.command("purge")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def cache_purge(yes: bool) -> None:
    """Delete every cached response."""
    root = get_response_cache_dir()
    if not yes and not click.confirm(f"Delete all cached responses in {root}?", default=False):
        click.secho("Purge cancelled.", fg="green")
        return
    removed = purge_directory(root)
    click.echo(f"{click.style('✓', fg='green')} Removed {removed} cached responses")


# =============================================================================
# config
# =============================================================================


@cli.group("config")
def config_group() -> None:
    """Show or create the configuration file."""


@config_group.command("path")
@click.pass_context
def config_path_command(ctx: click.Context) -> None:
    """Print the config file location."""
    click.echo(str((ctx.obj or {}).get("config_path") or get_config_path()))


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration as TOML."""
    click.echo(_load_config((ctx.obj or {}).get("config_path")).to_toml(), nl=False)


@config_group.command("explain")
def config_explain() -> None:
    """Print every setting with its default and description."""
    click.echo(GritConfig().to_document(explain=True).as_string(), nl=False)


@config_group.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
def config_init(ctx: click.Context, force: bool) -> None:
    """Write a commented default config file."""
    path = (ctx.obj or {}).get("config_path") or get_config_path()
    if path.exists() and not force:
        raise click.ClickException(f"{path} already exists (use --force to overwrite)")
    asyncio.run(GritConfig().save(path, explain=True))
    click.echo(f"{click.style('✓', fg='green')} Config file written to {path}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
