from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol

from .config import HistoryConfig, load_config
from .store import HistoryEntry, HistoryStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 300


class _Timer(Protocol):
    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[..., _Timer]
SessionListener = Callable[["SearchSession"], None]


class SearchSession:
    """Debounced, cancellable search front-end for keystroke-driven queries.

    Every ``query()`` cancels the pending timer and bumps a generation counter;
    a dispatched search only publishes if its generation is still current, so
    a later query always supersedes an earlier one.
    """

    def __init__(
        self,
        store: HistoryStore,
        *,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        limit: int = 10,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.store = store
        self.debounce_ms = debounce_ms
        self.limit = limit
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._dispatch_lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._timer: _Timer | None = None
        self._generation = 0
        self._results: list[HistoryEntry] = []
        self._suggestion: str | None = None
        self._searching = False
        self._listeners: list[SessionListener] = []

    @classmethod
    def from_config(
        cls, store: HistoryStore, cfg: HistoryConfig | None = None, **kwargs: Any
    ) -> SearchSession:
        cfg = cfg or load_config()
        return cls(
            store, debounce_ms=cfg.search_debounce_ms, limit=cfg.search_limit, **kwargs
        )

    @property
    def results(self) -> list[HistoryEntry]:
        with self._lock:
            return list(self._results)

    @property
    def is_searching(self) -> bool:
        with self._lock:
            return self._searching

    @property
    def autocomplete_suggestion(self) -> str | None:
        with self._lock:
            return self._suggestion

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def query(self, text: str) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            generation = self._generation
            if not text:
                self._publish_locked([], None)
                dispatch_now = False
            else:
                self._searching = True
                dispatch_now = self.debounce_ms <= 0
                if not dispatch_now:
                    timer = self._timer_factory(
                        self.debounce_ms / 1000.0, self._dispatch, args=(generation, text)
                    )
                    timer.daemon = True
                    self._timer = timer
                    timer.start()
        if dispatch_now:
            self._dispatch(generation, text)
        elif not text:
            self._notify()

    def clear(self) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            self._publish_locked([], None)
        self._notify()

    def show_recent(self, limit: int = 10) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            generation = self._generation
        recent = self.store.search("", limit=limit)
        with self._lock:
            if generation != self._generation:
                return
            self._publish_locked(recent, None)
        self._notify()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until no search is outstanding."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._searching, timeout)

    def close(self) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            self._searching = False
            self._idle.notify_all()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _publish_locked(self, results: list[HistoryEntry], suggestion: str | None) -> None:
        self._results = results
        self._suggestion = suggestion
        self._searching = False
        self._idle.notify_all()

    def _dispatch(self, generation: int, text: str) -> None:
        with self._dispatch_lock:
            with self._lock:
                if generation != self._generation:
                    return
                self._timer = None
            results = self.store.search(text, limit=self.limit)
            suggestion = self.store.autocomplete(text)
            with self._lock:
                if generation != self._generation:
                    return
                self._publish_locked(results, suggestion)
        self._notify()

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(self)
            except Exception as exc:
                logger.exception("search session listener failed", exc_info=exc)
