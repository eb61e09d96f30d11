from __future__ import annotations

import datetime as dt
from collections.abc import Sequence
from typing import TYPE_CHECKING

from ..urls import address_host
from .scoring import matches, ranking_key
from .types import HistoryEntry

if TYPE_CHECKING:
    from ._store import HistoryStore


def recent(entries: Sequence[HistoryEntry], limit: int) -> list[HistoryEntry]:
    if limit <= 0:
        return []
    ordered = sorted(entries, key=lambda entry: entry.last_visit, reverse=True)
    return ordered[:limit]


def rank(
    entries: Sequence[HistoryEntry],
    query: str,
    limit: int,
    now: dt.datetime,
) -> list[HistoryEntry]:
    if limit <= 0:
        return []
    candidates = [entry for entry in entries if matches(entry, query)]
    candidates.sort(key=lambda entry: ranking_key(entry, query, now), reverse=True)
    return candidates[:limit]


def search(store: HistoryStore, query: str, limit: int = 10) -> list[HistoryEntry]:
    entries, now = store._snapshot()
    if not query:
        return recent(entries, limit)
    return rank(entries, query, limit, now)


def completes(entry: HistoryEntry, query: str) -> bool:
    """True when the entry's address can replace what the user is typing."""
    lowered = query.lower()
    if entry.address.lower().startswith(lowered):
        return True
    host = address_host(entry.address)
    return bool(host and host.startswith(lowered))


def autocomplete(store: HistoryStore, query: str) -> str | None:
    if not query:
        return None
    best = search(store, query, limit=1)
    if not best:
        return None
    if completes(best[0], query):
        return best[0].address
    return None
