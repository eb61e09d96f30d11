from __future__ import annotations

from typing import Any

import typer
from rich import print
from rich.markup import escape

from navhistory.config import load_config, read_config_file, write_config_file
from navhistory.store import HistoryEntry, HistoryStore


def store_from_path(db_path: str | None) -> HistoryStore:
    cfg = load_config()
    if db_path:
        cfg.db_path = db_path
    return HistoryStore.from_config(cfg)


def read_config_or_exit() -> dict[str, Any]:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def write_config_or_exit(data: dict[str, Any]) -> None:
    try:
        write_config_file(data)
    except OSError as exc:
        print(f"[red]Failed to write config: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def format_entry(entry: HistoryEntry) -> str:
    return (
        f"({entry.id}) {escape(entry.title)}\n"
        f"{escape(entry.address)}\n"
        f"visits={entry.visit_count} typed={entry.typed_count} "
        f"last_visit={entry.last_visit.isoformat()}\n"
    )


def entry_payload(entry: HistoryEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "address": entry.address,
        "title": entry.title,
        "last_visit": entry.last_visit.isoformat(),
        "visit_count": entry.visit_count,
        "typed_count": entry.typed_count,
        "favicon_bytes": len(entry.favicon) if entry.favicon is not None else None,
    }
