from __future__ import annotations

import json
from pathlib import Path

import typer

from . import __version__
from .config import ConfigError
from .handlers import default_handler_chain
from .logging import setup_logging
from .plugins import PluginDiscoveryError, Snapshot, discover
from .settings import GraceSettings, load_settings, load_settings_if_exists

_CONFIG_PATH_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to grace.toml (defaults to ~/.grace/grace.toml).",
)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Grace Assistant command plugin tooling.",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    setup_logging(debug=debug)


def _load_settings_or_exit(
    config_path: Path | None,
) -> tuple[GraceSettings, Path | None]:
    try:
        if config_path is not None:
            return load_settings(config_path)
        loaded = load_settings_if_exists()
    except ConfigError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if loaded is None:
        return GraceSettings(), None
    return loaded


def _print_snapshot(snapshot: Snapshot, *, prefix: str) -> None:
    for name, items in snapshot.categories.items():
        typer.echo(f"{name}:")
        if not items:
            typer.echo("  (none)")
            continue
        for item in items:
            aliases = f" (aliases: {', '.join(item.aliases)})" if item.aliases else ""
            typer.echo(f"  {prefix}{item.command}{aliases} - {item.description}")
    if snapshot.errors:
        typer.echo("errors:")
        for error in snapshot.errors:
            typer.echo(f"  {error.category}/{error.path.name}: {error.error}")


@app.command("plugins")
def plugins_cmd(config_path: Path | None = _CONFIG_PATH_OPTION) -> None:
    """Discover command plugins and list them by category."""
    settings, resolved = _load_settings_or_exit(config_path)
    try:
        snapshot = discover(settings.plugin_dirs(config_path=resolved))
    except PluginDiscoveryError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    _print_snapshot(snapshot, prefix=settings.prefix)
    if snapshot.errors:
        raise typer.Exit(code=1)


@app.command("handlers")
def handlers_cmd(config_path: Path | None = _CONFIG_PATH_OPTION) -> None:
    """List the message handlers and whether they are enabled."""
    settings, resolved = _load_settings_or_exit(config_path)
    base_dir = resolved.parent if resolved is not None else None
    chain = default_handler_chain(settings, base_dir=base_dir)
    for entry in chain.entries:
        status = "enabled" if entry.enabled else "disabled"
        typer.echo(f"{entry.name} ({status}) - {entry.description}")


@app.command("config")
def config_cmd(config_path: Path | None = _CONFIG_PATH_OPTION) -> None:
    """Print the effective settings as JSON."""
    settings, resolved = _load_settings_or_exit(config_path)
    typer.echo(f"# {resolved}" if resolved is not None else "# (defaults)")
    payload = settings.model_dump(mode="json")
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def main() -> None:
    app()
