from __future__ import annotations

import datetime as dt
import logging
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from ..config import DEFAULT_DB_PATH, HistoryConfig, load_config
from . import search as store_search
from .persistence import (
    HistoryNotFoundError,
    PersistenceAdapter,
    PersistenceLoadError,
    persistence_for,
)
from .types import HistoryEntry, TransitionKind
from .writer import SnapshotWriter

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class HistoryStore:
    RETENTION_DAYS = 365
    MAX_ENTRIES = 10000

    def __init__(
        self,
        path: Path | str | None = None,
        *,
        persistence: PersistenceAdapter | None = None,
        storage: str = "sqlite",
        retention_days: int = RETENTION_DAYS,
        max_entries: int = MAX_ENTRIES,
        favicon_max_bytes: int = 0,
        clock: Callable[[], dt.datetime] | None = None,
        autoload: bool = True,
    ):
        if persistence is None:
            persistence = persistence_for(Path(path or DEFAULT_DB_PATH).expanduser(), storage)
        self.persistence = persistence
        self.retention_days = retention_days
        self.max_entries = max_entries
        self.favicon_max_bytes = favicon_max_bytes
        self._clock = clock or _utcnow
        self._lock = threading.RLock()
        self._entries: dict[str, HistoryEntry] = {}
        self._listeners: list[Listener] = []
        self._writer = SnapshotWriter(self.persistence.save, self.entries)
        if autoload:
            self.load()

    @classmethod
    def from_config(cls, cfg: HistoryConfig | None = None, **kwargs: Any) -> HistoryStore:
        cfg = cfg or load_config()
        return cls(
            cfg.db_path,
            storage=cfg.storage,
            retention_days=cfg.retention_days,
            max_entries=cfg.max_entries,
            favicon_max_bytes=cfg.favicon_max_bytes,
            **kwargs,
        )

    @property
    def last_save_error(self) -> Exception | None:
        return self._writer.last_error

    def _now(self) -> dt.datetime:
        now = self._clock()
        if now.tzinfo is None:
            return now.replace(tzinfo=dt.UTC)
        return now

    def _snapshot(self) -> tuple[list[HistoryEntry], dt.datetime]:
        with self._lock:
            return [entry.copy() for entry in self._entries.values()], self._now()

    def entries(self) -> list[HistoryEntry]:
        with self._lock:
            return [entry.copy() for entry in self._entries.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, entry_id: str) -> HistoryEntry | None:
        with self._lock:
            for entry in self._entries.values():
                if entry.id == entry_id:
                    return entry.copy()
        return None

    def get_by_address(self, address: str) -> HistoryEntry | None:
        with self._lock:
            entry = self._entries.get(address)
            return entry.copy() if entry else None

    # Loading / persistence

    def load(self) -> int:
        try:
            loaded = self.persistence.load()
        except HistoryNotFoundError:
            logger.debug("no history file yet; starting empty")
            loaded = []
        except PersistenceLoadError as exc:
            logger.warning("history file unreadable; starting empty", exc_info=exc)
            loaded = []
        with self._lock:
            self._entries = {}
            self._merge_locked(loaded, sum_counts=False)
            self._cleanup_locked(self._now())
            count = len(self._entries)
        self._notify("load")
        return count

    def flush(self, timeout: float | None = None) -> bool:
        return self._writer.flush(timeout)

    def close(self) -> None:
        self._writer.close()

    # Mutations

    def record(
        self,
        address: str,
        title: str = "",
        transition: TransitionKind | str = TransitionKind.LINK,
    ) -> HistoryEntry:
        """Record a visit, creating the entry on first sight of ``address``."""
        if not address or not address.strip():
            raise ValueError("address is required")
        typed = TransitionKind.parse(transition) is TransitionKind.TYPED
        with self._lock:
            now = self._now()
            entry = self._entries.get(address)
            if entry is None:
                entry = HistoryEntry(
                    address=address,
                    title=title,
                    last_visit=now,
                    visit_count=1,
                    typed_count=1 if typed else 0,
                )
                self._entries[address] = entry
            else:
                if title:
                    entry.title = title
                entry.last_visit = max(entry.last_visit, now)
                entry.visit_count += 1
                if typed:
                    entry.typed_count += 1
            result = entry.copy()
            self._cleanup_locked(now, keep=address)
        self._changed("record")
        return result

    def update_favicon(self, address: str, data: bytes) -> bool:
        if self.favicon_max_bytes > 0 and len(data) > self.favicon_max_bytes:
            logger.warning(
                "favicon for %s rejected: %d bytes exceeds limit of %d",
                address,
                len(data),
                self.favicon_max_bytes,
            )
            return False
        with self._lock:
            entry = self._entries.get(address)
            if entry is None:
                return False
            entry.favicon = bytes(data)
        self._changed("favicon")
        return True

    def remove_entry(self, entry_id: str) -> bool:
        with self._lock:
            address = next(
                (a for a, entry in self._entries.items() if entry.id == entry_id),
                None,
            )
            if address is None:
                return False
            del self._entries[address]
        self._changed("remove")
        return True

    def clear_all(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries = {}
        self._changed("clear")
        return removed

    def clear_older_than(self, days: int) -> int:
        """Drop entries last visited at or before ``now - days``.

        The cutoff is inclusive, so ``days=0`` clears every entry whose last
        visit is not in the future.
        """
        with self._lock:
            cutoff = self._now() - dt.timedelta(days=days)
            stale = [a for a, entry in self._entries.items() if entry.last_visit <= cutoff]
            for address in stale:
                del self._entries[address]
        self._changed("clear")
        return len(stale)

    def import_entries(self, entries: Iterable[HistoryEntry]) -> int:
        """Merge entries from another history file, summing visit statistics."""
        with self._lock:
            merged = self._merge_locked(entries, sum_counts=True)
            self._cleanup_locked(self._now())
        self._changed("import")
        return merged

    def cleanup(self) -> int:
        with self._lock:
            removed = self._cleanup_locked(self._now())
        if removed:
            self._changed("cleanup")
        return removed

    def _cleanup_locked(self, now: dt.datetime, *, keep: str | None = None) -> int:
        removed = 0
        if self.retention_days > 0:
            horizon = now - dt.timedelta(days=self.retention_days)
            expired = [a for a, entry in self._entries.items() if entry.last_visit < horizon]
            for address in expired:
                del self._entries[address]
            removed += len(expired)
        if self.max_entries > 0 and len(self._entries) > self.max_entries:
            # The entry named by `keep` was just recorded and is never evicted.
            ordered = sorted(
                self._entries.values(),
                key=lambda entry: (entry.address == keep, entry.last_visit),
                reverse=True,
            )
            for entry in ordered[self.max_entries :]:
                del self._entries[entry.address]
                removed += 1
        return removed

    def _merge_locked(self, entries: Iterable[HistoryEntry], *, sum_counts: bool) -> int:
        merged = 0
        for incoming in entries:
            if not incoming.address:
                continue
            incoming = incoming.copy()
            incoming.visit_count = max(1, incoming.visit_count)
            incoming.typed_count = min(max(0, incoming.typed_count), incoming.visit_count)
            existing = self._entries.get(incoming.address)
            merged += 1
            if existing is None:
                self._entries[incoming.address] = incoming
                continue
            newer = incoming if incoming.last_visit > existing.last_visit else existing
            if sum_counts:
                existing.visit_count += incoming.visit_count
                existing.typed_count += incoming.typed_count
                if newer is incoming and incoming.title:
                    existing.title = incoming.title
                if incoming.favicon is not None and (
                    existing.favicon is None or newer is incoming
                ):
                    existing.favicon = incoming.favicon
                existing.last_visit = max(existing.last_visit, incoming.last_visit)
            elif newer is incoming:
                self._entries[incoming.address] = incoming
        return merged

    # Queries

    def search(self, query: str, limit: int = 10) -> list[HistoryEntry]:
        return store_search.search(self, query, limit=limit)

    def autocomplete(self, query: str) -> str | None:
        return store_search.autocomplete(self, query)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            entries = list(self._entries.values())
            visits = [entry.last_visit for entry in entries]
            return {
                "entries": len(entries),
                "visits": sum(entry.visit_count for entry in entries),
                "typed_entries": sum(1 for entry in entries if entry.typed_count > 0),
                "with_favicon": sum(1 for entry in entries if entry.favicon is not None),
                "oldest_visit": min(visits).isoformat() if visits else None,
                "newest_visit": max(visits).isoformat() if visits else None,
                "path": str(getattr(self.persistence, "path", "")) or None,
            }

    # Change notification

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _changed(self, change: str) -> None:
        self._writer.request()
        self._notify(change)

    def _notify(self, change: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(change)
            except Exception as exc:
                logger.exception("history listener failed", exc_info=exc)
