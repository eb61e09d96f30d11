from __future__ import annotations

from ._store import HistoryStore
from .persistence import (
    HistoryDecodeError,
    HistoryNotFoundError,
    JsonFilePersistence,
    PersistenceAdapter,
    PersistenceError,
    PersistenceLoadError,
    PersistenceSaveError,
    SQLitePersistence,
)
from .scoring import frecency_score, match_score, matches
from .types import HistoryEntry, TransitionKind

__all__ = [
    "HistoryDecodeError",
    "HistoryEntry",
    "HistoryNotFoundError",
    "HistoryStore",
    "JsonFilePersistence",
    "PersistenceAdapter",
    "PersistenceError",
    "PersistenceLoadError",
    "PersistenceSaveError",
    "SQLitePersistence",
    "TransitionKind",
    "frecency_score",
    "match_score",
    "matches",
]
