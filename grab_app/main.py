"""Command-line interface for grabbing dependencies."""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import click
from rich.table import Table

from .console import console
from .console import error_console
from .errors import GrabError
from .logging_setup import init_json_logging
from .script import run_script
from .service import GrabService
from .service import create_grab_service
from .settings import SettingsManager
from .spec import AUTO_DOWNLOAD_SETTING
from .spec import DISABLE_CHECKSUMS_SETTING
from .spec import parse_coordinates

SCOPE_TO_SETTINGS = {"local": "local", "project": "project", "global": "user"}


def _settings_manager(ctx: click.Context) -> SettingsManager:
    return ctx.obj["settings_manager"]


def _service(ctx: click.Context) -> GrabService:
    if "service" not in ctx.obj:
        ctx.obj["service"] = create_grab_service(_settings_manager(ctx))
    return ctx.obj["service"]


def _fail(message: str) -> NoReturn:
    error_console.print(f"[red]Error:[/red] {message}")
    raise click.Abort()


@click.group(invoke_without_command=True)
@click.version_option(package_name="grab-app")
@click.option("--log-level", default=None, help="Log level for the JSONL log file (default: GRAB_LOG_LEVEL or INFO)")
@click.option("--log-path", default=None, help="JSONL log file (default: GRAB_LOG_PATH or ./grab.log.jsonl)")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, log_path: str | None):
    """Grab - fetch library artifacts at runtime."""
    init_json_logging(log_path, log_level)
    ctx.ensure_object(dict)
    ctx.obj.setdefault("settings_manager", SettingsManager())

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("resolve")
@click.argument("coordinates", nargs=-1, required=True)
@click.option("--repo", "repos", multiple=True, help="Extra repository URL (repeatable)")
@click.option("--offline", is_flag=True, help="Use only the local cache")
@click.option("--no-checksums", is_flag=True, help="Skip checksum verification")
@click.pass_context
def resolve_cmd(
    ctx: click.Context,
    coordinates: tuple[str, ...],
    repos: tuple[str, ...],
    offline: bool,
    no_checksums: bool,
):
    """Resolve group:module:version[:classifier][@ext] coordinates to local artifacts."""
    service = _service(ctx)
    if not service.is_grab_enabled():
        console.print("[yellow]Grabbing is disabled (grab.enabled / GRAB_ENABLE)[/yellow]")
        return

    options = {}
    if offline:
        options[AUTO_DOWNLOAD_SETTING] = False
    if no_checksums:
        options[DISABLE_CHECKSUMS_SETTING] = True

    deps_info: list[dict] = []
    try:
        for url in repos:
            service.add_resolver({"url": url})
        dependencies = [parse_coordinates(c) for c in coordinates]
        uris = service.resolve(options, *dependencies, deps_info=deps_info)
    except GrabError as e:
        _fail(str(e))

    table = Table(title="Resolved Artifacts", show_header=True, header_style="bold cyan")
    table.add_column("Group", style="green")
    table.add_column("Module", style="yellow")
    table.add_column("Revision", style="magenta")
    table.add_column("Location")
    for info, uri in zip(deps_info, uris, strict=False):
        table.add_row(info["group"], info["module"], info["revision"], uri)
    console.print(table)


@cli.command("list")
@click.pass_context
def list_cmd(ctx: click.Context):
    """List every artifact in the local cache."""
    grapes = _service(ctx).dependencies()
    if not grapes:
        console.print("[dim]No artifacts grabbed yet[/dim]")
        return

    table = Table(title="Grabbed Artifacts", show_header=True, header_style="bold cyan")
    table.add_column("Group", style="green")
    table.add_column("Module", style="yellow")
    table.add_column("Versions", style="magenta")
    for group, modules in grapes.items():
        for module, versions in modules.items():
            table.add_row(group, module, ", ".join(versions))
    console.print(table)


@cli.command("run", context_settings={"ignore_unknown_options": True})
@click.argument("script", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run_cmd(ctx: click.Context, script: Path, args: tuple[str, ...]):
    """Grab a script's #@dependency directives, then run it."""
    try:
        run_script(script, _service(ctx), args)
    except GrabError as e:
        _fail(str(e))


@cli.group(invoke_without_command=True)
@click.pass_context
def repo(ctx: click.Context):
    """Manage persistent repositories."""
    if ctx.invoked_subcommand is None:
        click.echo("\n" + ctx.get_help())
        ctx.exit()


@repo.command("add")
@click.argument("url")
@click.option("--name", default=None, help="Repository name (default: the URL)")
@click.option("--legacy-layout", is_flag=True, help="Group path is not dot-split (non-m2 layout)")
@click.option("--local", "scope_flag", flag_value="local", help="Add locally (just you)")
@click.option("--project", "scope_flag", flag_value="project", help="Add for project (team)")
@click.option("--global", "scope_flag", flag_value="global", help="Add globally (all projects)")
@click.pass_context
def repo_add(ctx: click.Context, url: str, name: str | None, legacy_layout: bool, scope_flag: str | None):
    """Add a repository to settings."""
    scope = scope_flag or "project"
    path = _settings_manager(ctx).add_repository(
        name or url, url, scope=SCOPE_TO_SETTINGS[scope], m2_compatible=not legacy_layout
    )
    console.print(f"[green]✓ Added repository {name or url}[/green] [dim]({path})[/dim]")


@repo.command("remove")
@click.argument("name")
@click.option("--local", "scope_flag", flag_value="local", help="Remove from local settings")
@click.option("--project", "scope_flag", flag_value="project", help="Remove from project settings")
@click.option("--global", "scope_flag", flag_value="global", help="Remove from global settings")
@click.pass_context
def repo_remove(ctx: click.Context, name: str, scope_flag: str | None):
    """Remove a repository from settings."""
    scope = scope_flag or "project"
    if _settings_manager(ctx).remove_repository(name, scope=SCOPE_TO_SETTINGS[scope]):
        console.print(f"[green]✓ Removed repository {name}[/green]")
    else:
        console.print(f"[yellow]Repository {name} not found at {scope} scope[/yellow]")


@repo.command("list")
@click.pass_context
def repo_list(ctx: click.Context):
    """List repositories configured in settings."""
    repositories = _settings_manager(ctx).get_repositories()
    if not repositories:
        console.print("[dim]No repositories configured (bundled defaults still apply)[/dim]")
        return

    table = Table(title="Configured Repositories", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="green")
    table.add_column("Root", style="magenta")
    table.add_column("Layout")
    for entry in repositories:
        layout = "m2" if entry.get("m2Compatible", True) else "legacy"
        table.add_row(entry["name"], str(entry["root"]), layout)
    console.print(table)


@cli.command("settings")
@click.pass_context
def settings_cmd(ctx: click.Context):
    """Show effective grab settings."""
    manager = _settings_manager(ctx)
    settings = manager.load_resolver_settings()

    table = Table(title="Grab Settings", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="green")
    table.add_column("Value", style="magenta")
    table.add_row("enabled", str(settings.grab_enabled))
    table.add_row("autoDownload", str(settings.auto_download))
    table.add_row("disableChecksums", str(settings.disable_checksums))
    table.add_row("root", str(manager.get_root()))
    console.print(table)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
