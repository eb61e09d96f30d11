from __future__ import annotations

import json
from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from ..store import TransitionKind
from ..urls import normalize_address
from .common import entry_payload, format_entry


def record_cmd(
    *,
    store_from_path,
    db_path: str | None,
    address: str,
    title: str,
    transition: str,
) -> None:
    """Record a visit to an address."""

    normalized = normalize_address(address)
    if normalized is None:
        print(f"[red]Not a valid address: {escape(address)}[/red]")
        raise typer.Exit(code=1)
    store = store_from_path(db_path)
    try:
        entry = store.record(normalized, title, TransitionKind.parse(transition))
    finally:
        store.close()
    print(format_entry(entry))


def search_cmd(*, store_from_path, db_path: str | None, query: str, limit: int) -> None:
    """Search history ranked by match quality and frecency."""

    store = store_from_path(db_path)
    try:
        results = store.search(query, limit=limit)
    finally:
        store.close()
    if not results:
        print("[yellow]No matching history[/yellow]")
        return
    for entry in results:
        print(format_entry(entry))


def recent_cmd(*, store_from_path, db_path: str | None, limit: int) -> None:
    """Show the most recently visited entries."""

    search_cmd(store_from_path=store_from_path, db_path=db_path, query="", limit=limit)


def complete_cmd(*, store_from_path, db_path: str | None, query: str) -> None:
    """Print the autocompletion for a partially typed address."""

    store = store_from_path(db_path)
    try:
        suggestion = store.autocomplete(query)
    finally:
        store.close()
    if suggestion is None:
        raise typer.Exit(code=1)
    typer.echo(suggestion)


def show_cmd(*, store_from_path, db_path: str | None, entry_id: str) -> None:
    """Print a history entry as JSON."""

    store = store_from_path(db_path)
    try:
        entry = store.get(entry_id)
    finally:
        store.close()
    if entry is None:
        print(f"[red]History entry {escape(entry_id)} not found[/red]")
        raise typer.Exit(code=1)
    typer.echo(json.dumps(entry_payload(entry), indent=2))


def remove_cmd(*, store_from_path, db_path: str | None, entry_id: str) -> None:
    """Delete a history entry by id."""

    store = store_from_path(db_path)
    try:
        removed = store.remove_entry(entry_id)
    finally:
        store.close()
    if not removed:
        print(f"[red]History entry {escape(entry_id)} not found[/red]")
        raise typer.Exit(code=1)
    print(f"Removed history entry {escape(entry_id)}")


def clear_cmd(
    *, store_from_path, db_path: str | None, older_than: int | None, yes: bool
) -> None:
    """Clear all history, or only entries older than a number of days."""

    if not yes:
        scope = "all history" if older_than is None else f"history older than {older_than} days"
        typer.confirm(f"Clear {scope}?", abort=True)
    store = store_from_path(db_path)
    try:
        if older_than is None:
            removed = store.clear_all()
        else:
            removed = store.clear_older_than(older_than)
    finally:
        store.close()
    print(f"Cleared {removed} history entries")


def favicon_cmd(*, store_from_path, db_path: str | None, address: str, icon: Path) -> None:
    """Attach favicon bytes to an existing entry."""

    try:
        data = icon.read_bytes()
    except OSError as exc:
        print(f"[red]Failed to read {escape(str(icon))}: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    store = store_from_path(db_path)
    try:
        updated = store.update_favicon(address, data)
    finally:
        store.close()
    if not updated:
        print(f"[yellow]No favicon stored for {escape(address)}[/yellow]")
        raise typer.Exit(code=1)
    print(f"Stored {len(data)} byte favicon for {escape(address)}")


def stats_cmd(*, store_from_path, db_path: str | None, as_json: bool) -> None:
    """Summarize the history store."""

    store = store_from_path(db_path)
    try:
        stats = store.stats()
    finally:
        store.close()
    if as_json:
        typer.echo(json.dumps(stats, indent=2))
        return
    print("[bold]History[/bold]")
    print(f"- Path: {stats['path']}")
    print(f"- Entries: {stats['entries']}")
    print(f"- Visits: {stats['visits']}")
    print(f"- Typed entries: {stats['typed_entries']}")
    print(f"- With favicon: {stats['with_favicon']}")
    print(f"- Oldest visit: {stats['oldest_visit'] or '-'}")
    print(f"- Newest visit: {stats['newest_visit'] or '-'}")
