from __future__ import annotations

import base64
import binascii
import datetime as dt
import json
import os
import sqlite3
import tempfile
from collections.abc import Iterable, Sequence
from contextlib import closing
from pathlib import Path
from typing import Any, Protocol

from .. import db
from ..config import DEFAULT_DB_PATH
from .types import HistoryEntry

JSON_FORMAT_VERSION = 1


class PersistenceError(Exception):
    pass


class PersistenceLoadError(PersistenceError):
    pass


class HistoryNotFoundError(PersistenceLoadError):
    pass


class HistoryDecodeError(PersistenceLoadError):
    pass


class PersistenceSaveError(PersistenceError):
    pass


class PersistenceAdapter(Protocol):
    def load(self) -> list[HistoryEntry]: ...

    def save(self, entries: Sequence[HistoryEntry]) -> None: ...


def _parse_timestamp(value: Any) -> dt.datetime:
    if not isinstance(value, str) or not value:
        raise HistoryDecodeError(f"invalid last_visit: {value!r}")
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError as exc:
        raise HistoryDecodeError(f"invalid last_visit: {value!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=dt.UTC)
    return parsed


def entry_to_dict(entry: HistoryEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "address": entry.address,
        "title": entry.title,
        "last_visit": entry.last_visit.isoformat(),
        "visit_count": entry.visit_count,
        "typed_count": entry.typed_count,
        "favicon": (
            base64.b64encode(entry.favicon).decode("ascii") if entry.favicon is not None else None
        ),
    }


def entry_from_dict(data: Any) -> HistoryEntry:
    if not isinstance(data, dict):
        raise HistoryDecodeError("history entry must be an object")
    address = data.get("address")
    if not isinstance(address, str) or not address:
        raise HistoryDecodeError("history entry is missing an address")
    favicon_text = data.get("favicon")
    favicon = None
    if favicon_text is not None:
        try:
            favicon = base64.b64decode(favicon_text, validate=True)
        except (binascii.Error, TypeError, ValueError) as exc:
            raise HistoryDecodeError(f"invalid favicon for {address}") from exc
    try:
        visit_count = int(data.get("visit_count") or 1)
        typed_count = int(data.get("typed_count") or 0)
    except (TypeError, ValueError) as exc:
        raise HistoryDecodeError(f"invalid counts for {address}") from exc
    entry_id = data.get("id")
    kwargs: dict[str, Any] = {}
    if isinstance(entry_id, str) and entry_id:
        kwargs["id"] = entry_id
    return HistoryEntry(
        address=address,
        title=str(data.get("title") or ""),
        last_visit=_parse_timestamp(data.get("last_visit")),
        visit_count=visit_count,
        typed_count=typed_count,
        favicon=favicon,
        **kwargs,
    )


def entries_from_json(payload: Any) -> list[HistoryEntry]:
    if isinstance(payload, dict):
        items = payload.get("entries")
    else:
        items = payload
    if not isinstance(items, list):
        raise HistoryDecodeError("history file must contain a list of entries")
    return [entry_from_dict(item) for item in items]


def entries_to_json(entries: Iterable[HistoryEntry]) -> dict[str, Any]:
    return {
        "version": JSON_FORMAT_VERSION,
        "exported_at": dt.datetime.now(dt.UTC).isoformat(),
        "entries": [entry_to_dict(entry) for entry in entries],
    }


class JsonFilePersistence:
    """Whole-collection JSON document, replaced atomically on each save."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def load(self) -> list[HistoryEntry]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise HistoryNotFoundError(str(self.path)) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise HistoryDecodeError(f"unreadable history file {self.path}") from exc
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise HistoryDecodeError(f"invalid history json in {self.path}") from exc
        return entries_from_json(payload)

    def save(self, entries: Sequence[HistoryEntry]) -> None:
        text = json.dumps(entries_to_json(entries), ensure_ascii=False, indent=2)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
                handle.write("\n")
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            raise PersistenceSaveError(f"failed to write {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass


class SQLitePersistence:
    """History table in a single SQLite file.

    A connection is opened per call so saves can run on the writer thread.
    """

    def __init__(self, path: Path | str = DEFAULT_DB_PATH):
        self.path = Path(path).expanduser()

    def load(self) -> list[HistoryEntry]:
        if not self.path.exists():
            raise HistoryNotFoundError(str(self.path))
        try:
            with closing(db.connect(self.path)) as conn:
                if not db.table_exists(conn, "history_entries"):
                    return []
                rows = conn.execute(
                    """
                    SELECT id, address, title, last_visit, visit_count, typed_count, favicon
                    FROM history_entries
                    ORDER BY last_visit DESC
                    """
                ).fetchall()
        except sqlite3.DatabaseError as exc:
            raise HistoryDecodeError(f"unreadable history database {self.path}: {exc}") from exc
        entries: list[HistoryEntry] = []
        for row in rows:
            favicon = row["favicon"]
            entries.append(
                HistoryEntry(
                    id=str(row["id"]),
                    address=str(row["address"]),
                    title=str(row["title"] or ""),
                    last_visit=_parse_timestamp(row["last_visit"]),
                    visit_count=int(row["visit_count"]),
                    typed_count=int(row["typed_count"]),
                    favicon=bytes(favicon) if favicon is not None else None,
                )
            )
        return entries

    def save(self, entries: Sequence[HistoryEntry]) -> None:
        rows = [
            (
                entry.id,
                entry.address,
                entry.title,
                entry.last_visit.isoformat(),
                entry.visit_count,
                entry.typed_count,
                entry.favicon,
            )
            for entry in entries
        ]
        try:
            with closing(db.connect(self.path)) as conn:
                db.initialize_schema(conn)
                with conn:
                    conn.execute("DELETE FROM history_entries")
                    conn.executemany(
                        """
                        INSERT INTO history_entries(
                            id, address, title, last_visit, visit_count, typed_count, favicon
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        rows,
                    )
        except (sqlite3.Error, OSError) as exc:
            raise PersistenceSaveError(f"failed to write {self.path}: {exc}") from exc


def persistence_for(path: Path | str, storage: str = "sqlite") -> PersistenceAdapter:
    if storage == "json":
        return JsonFilePersistence(path)
    return SQLitePersistence(path)
