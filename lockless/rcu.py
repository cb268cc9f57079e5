"""Read-copy-update cell with deferred reclamation callbacks.

Each value set in an :class:`RcuCell` lives in its own version. Readers
acquire the current version and release it when done; callbacks postponed on
a version run once it has been replaced and the last reader has released it.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from types import TracebackType
from typing import Any

from lockless.locks import SpinLock


class RcuSnapshot:
    """One version of an :class:`RcuCell`'s value, reference counted."""

    def __init__(self, value: Any) -> None:
        self.value = value
        self._refs = 1
        self._refs_lock = threading.Lock()
        self._callbacks: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()
        self._cb_lock = SpinLock()

    @property
    def references(self) -> int:
        """Number of live references to this version."""
        return self._refs

    def _retain(self) -> None:
        with self._refs_lock:
            if self._refs <= 0:
                raise RuntimeError("version already reclaimed")
            self._refs += 1

    def postpone(self, callback: Callable[..., Any], *args: Any) -> None:
        """Run ``callback(*args)`` when this version is no longer used."""
        with self._cb_lock:
            self._callbacks.append((callback, args))

    def release(self) -> None:
        """Drop one reference, reclaiming the version when it was the last."""
        with self._refs_lock:
            if self._refs <= 0:
                raise RuntimeError("version released more often than acquired")
            self._refs -= 1
            last = self._refs == 0
        if last:
            self._free()

    def _free(self) -> None:
        while True:
            with self._cb_lock:
                if not self._callbacks:
                    return
                callback, args = self._callbacks.popleft()
            callback(*args)

    def __enter__(self) -> RcuSnapshot:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class RcuCell:
    """A shared reference readers can use while a writer replaces it."""

    def __init__(self, value: Any) -> None:
        self._current: RcuSnapshot | None = RcuSnapshot(value)
        self._lock = threading.Lock()

    def _require(self) -> RcuSnapshot:
        if self._current is None:
            raise RuntimeError("RCU cell has been destroyed")
        return self._current

    def acquire(self) -> RcuSnapshot:
        """Take a reference to the current version."""
        with self._lock:
            current = self._require()
            current._retain()
            return current

    def set(self, value: Any) -> None:
        """Publish a new value; the old version is reclaimed once unused."""
        new = RcuSnapshot(value)
        with self._lock:
            old = self._require()
            self._current = new
        old.release()

    def destroy(self) -> None:
        """Drop the cell's own reference; no snapshot may still be held."""
        with self._lock:
            current = self._require()
            if current.references != 1:
                raise RuntimeError("RCU cell destroyed while snapshots are held")
            self._current = None
        current.release()