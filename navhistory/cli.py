from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

import typer
from rich import print

from . import __version__
from .commands.common import read_config_or_exit, store_from_path, write_config_or_exit
from .commands.history_cmds import (
    clear_cmd,
    complete_cmd,
    favicon_cmd,
    recent_cmd,
    record_cmd,
    remove_cmd,
    search_cmd,
    show_cmd,
    stats_cmd,
)
from .commands.import_export_cmds import export_history_cmd, import_history_cmd
from .config import HistoryConfig, get_config_path, get_env_overrides, load_config

app = typer.Typer(help="navhistory: browsing history with frecency search")


def _store(db_path: str | None):
    return store_from_path(db_path)


@app.command()
def record(
    address: str = typer.Argument(..., help="Address or path that was visited"),
    title: str = typer.Option("", help="Page title"),
    transition: str = typer.Option(
        "link", help="How the visit happened: typed, link, reload, form_submit, other"
    ),
    db_path: str = typer.Option(None, help="Path to history database"),
) -> None:
    """Record a visit."""

    record_cmd(
        store_from_path=_store,
        db_path=db_path,
        address=address,
        title=title,
        transition=transition,
    )


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    limit: int = typer.Option(10, help="Max results"),
    db_path: str = typer.Option(None, help="Path to history database"),
) -> None:
    """Search history ranked by match quality and frecency."""

    search_cmd(store_from_path=_store, db_path=db_path, query=query, limit=limit)


@app.command()
def recent(
    limit: int = typer.Option(10, help="Max results"),
    db_path: str = typer.Option(None, help="Path to history database"),
) -> None:
    """Show recently visited entries."""

    recent_cmd(store_from_path=_store, db_path=db_path, limit=limit)


@app.command()
def complete(
    query: str = typer.Argument(..., help="Partially typed address"),
    db_path: str = typer.Option(None, help="Path to history database"),
) -> None:
    """Print the autocompleted address for a query (exit 1 if none)."""

    complete_cmd(store_from_path=_store, db_path=db_path, query=query)


@app.command()
def show(
    entry_id: str = typer.Argument(..., help="History entry id"),
    db_path: str = typer.Option(None, help="Path to history database"),
) -> None:
    """Print a history entry as JSON."""

    show_cmd(store_from_path=_store, db_path=db_path, entry_id=entry_id)


@app.command()
def remove(
    entry_id: str = typer.Argument(..., help="History entry id"),
    db_path: str = typer.Option(None, help="Path to history database"),
) -> None:
    """Delete a history entry."""

    remove_cmd(store_from_path=_store, db_path=db_path, entry_id=entry_id)


@app.command()
def clear(
    older_than: int = typer.Option(
        None, "--older-than", help="Only clear entries last visited at least this many days ago"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not prompt for confirmation"),
    db_path: str = typer.Option(None, help="Path to history database"),
) -> None:
    """Clear history."""

    clear_cmd(store_from_path=_store, db_path=db_path, older_than=older_than, yes=yes)


@app.command()
def favicon(
    address: str = typer.Argument(..., help="Address of an existing entry"),
    icon: Path = typer.Argument(..., help="Favicon file"),
    db_path: str = typer.Option(None, help="Path to history database"),
) -> None:
    """Store favicon bytes for an entry."""

    favicon_cmd(store_from_path=_store, db_path=db_path, address=address, icon=icon)


@app.command()
def stats(
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
    db_path: str = typer.Option(None, help="Path to history database"),
) -> None:
    """Show history statistics."""

    stats_cmd(store_from_path=_store, db_path=db_path, as_json=as_json)


@app.command("export")
def export_history(
    output: Path = typer.Argument(..., help="Destination JSON file"),
    db_path: str = typer.Option(None, help="Path to history database"),
) -> None:
    """Export history to JSON."""

    export_history_cmd(store_from_path=_store, db_path=db_path, output=output)


@app.command("import")
def import_history(
    input_file: Path = typer.Argument(..., help="JSON export to merge"),
    dry_run: bool = typer.Option(False, help="Preview without writing"),
    db_path: str = typer.Option(None, help="Path to history database"),
) -> None:
    """Merge a JSON export into the local history."""

    import_history_cmd(
        store_from_path=_store, db_path=db_path, input_file=input_file, dry_run=dry_run
    )


@app.command("config")
def config_cmd(
    set_values: list[str] = typer.Option(
        None, "--set", help="Set a config key, e.g. --set retention_days=90"
    ),
) -> None:
    """Show the effective config, or persist overrides to the config file."""

    if not set_values:
        cfg = load_config()
        print(f"[dim]{get_config_path()}[/dim]")
        payload = {"config": asdict(cfg), "env_overrides": get_env_overrides()}
        typer.echo(json.dumps(payload, indent=2))
        return
    data = read_config_or_exit()
    known = set(HistoryConfig.__dataclass_fields__)
    for item in set_values:
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or key not in known:
            print(f"[red]Unknown config setting: {item}[/red]")
            raise typer.Exit(code=1)
        data[key] = value.strip()
    write_config_or_exit(data)
    print(f"[green]Updated {get_config_path()}[/green]")


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)


def main() -> None:
    app()
