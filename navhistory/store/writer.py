from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence

from .persistence import PersistenceSaveError
from .types import HistoryEntry

logger = logging.getLogger(__name__)


class SnapshotWriter:
    """Writes the latest store snapshot on a background thread.

    Requests only mark the store dirty; the snapshot is taken when the write
    starts, so a burst of requests collapses into a single save.
    """

    def __init__(
        self,
        save: Callable[[Sequence[HistoryEntry]], None],
        snapshot: Callable[[], Sequence[HistoryEntry]],
        *,
        name: str = "navhistory-writer",
    ) -> None:
        self._save = save
        self._snapshot = snapshot
        self._name = name
        self._cond = threading.Condition()
        self._pending = False
        self._busy = False
        self._closed = False
        self._thread: threading.Thread | None = None
        self.saves = 0
        self.last_error: Exception | None = None

    def request(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._pending = True
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
                self._thread.start()
            self._cond.notify_all()

    def flush(self, timeout: float | None = None) -> bool:
        """Block until nothing is pending or being written."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._pending and not self._busy, timeout)

    def close(self, timeout: float | None = None) -> None:
        self.flush(timeout)
        with self._cond:
            self._closed = True
            thread = self._thread
            self._cond.notify_all()
        if thread is not None:
            thread.join(timeout)

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._pending and not self._closed:
                    self._cond.wait()
                if not self._pending:
                    return
                self._pending = False
                self._busy = True
            try:
                self._write_once()
            finally:
                with self._cond:
                    self._busy = False
                    self._cond.notify_all()

    def _write_once(self) -> None:
        try:
            entries = self._snapshot()
            self._save(entries)
        except PersistenceSaveError as exc:
            self.last_error = exc
            logger.warning("history save failed; keeping changes in memory", exc_info=exc)
            return
        except Exception as exc:
            # The writer thread must survive so the next mutation can retry.
            self.last_error = exc
            logger.exception("history writer failed", exc_info=exc)
            return
        self.last_error = None
        self.saves += 1
