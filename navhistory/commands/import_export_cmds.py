from __future__ import annotations

from pathlib import Path

import typer
from rich import print

from ..store import JsonFilePersistence, PersistenceLoadError, PersistenceSaveError


def export_history_cmd(*, store_from_path, db_path: str | None, output: Path) -> None:
    """Export history to a JSON file for backup or migration."""

    store = store_from_path(db_path)
    try:
        entries = store.entries()
    finally:
        store.close()
    if not entries:
        print("[yellow]No history to export[/yellow]")
        raise typer.Exit(code=0)
    entries.sort(key=lambda entry: entry.last_visit)
    try:
        JsonFilePersistence(output).save(entries)
    except PersistenceSaveError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    print(f"[green]Exported {len(entries)} history entries to {output}[/green]")


def import_history_cmd(
    *, store_from_path, db_path: str | None, input_file: Path, dry_run: bool
) -> None:
    """Merge history from a JSON export into the local store."""

    try:
        entries = JsonFilePersistence(input_file).load()
    except PersistenceLoadError as exc:
        print(f"[red]Failed to read {input_file}: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    if dry_run:
        print(f"[yellow]Dry run: would import {len(entries)} history entries[/yellow]")
        return
    store = store_from_path(db_path)
    try:
        merged = store.import_entries(entries)
        total = len(store)
    finally:
        store.close()
    print(f"[green]Imported {merged} history entries ({total} in store)[/green]")
