from __future__ import annotations

import datetime as dt
from collections.abc import Sequence
from pathlib import Path

import pytest

from navhistory.config import CONFIG_ENV_OVERRIDES
from navhistory.store import (
    HistoryEntry,
    HistoryNotFoundError,
    HistoryStore,
    PersistenceSaveError,
)


class FakeClock:
    def __init__(self, start: dt.datetime | None = None) -> None:
        self.now = start or dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.UTC)

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs: float) -> dt.datetime:
        self.now += dt.timedelta(**kwargs)
        return self.now


class MemoryPersistence:
    def __init__(self) -> None:
        self.saved: list[HistoryEntry] | None = None
        self.saves = 0
        self.fail = False

    def load(self) -> list[HistoryEntry]:
        if self.saved is None:
            raise HistoryNotFoundError("memory")
        return [entry.copy() for entry in self.saved]

    def save(self, entries: Sequence[HistoryEntry]) -> None:
        if self.fail:
            raise PersistenceSaveError("disk full")
        self.saved = [entry.copy() for entry in entries]
        self.saves += 1


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for env_var in CONFIG_ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.setenv("NAVHISTORY_CONFIG", str(tmp_path / "config" / "config.json"))
    monkeypatch.setenv("NAVHISTORY_DB", str(tmp_path / "history.sqlite"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def persistence() -> MemoryPersistence:
    return MemoryPersistence()


@pytest.fixture
def store(clock: FakeClock, persistence: MemoryPersistence):
    history = HistoryStore(persistence=persistence, clock=clock)
    yield history
    history.close()
