"""Small synchronisation primitives: a spin lock and a reader fence."""

from __future__ import annotations

import threading
import time
from types import TracebackType


class SpinLock:
    """A lock acquired by busy-waiting rather than sleeping."""

    def __init__(self) -> None:
        self._flag = threading.Lock()

    def acquire(self) -> None:
        """Spin until the lock is taken."""
        while not self._flag.acquire(blocking=False):
            time.sleep(0)

    def release(self) -> None:
        """Release the lock; it must be held."""
        if not self._flag.locked():
            raise RuntimeError("spin lock released while not held")
        self._flag.release()

    def locked(self) -> bool:
        return self._flag.locked()

    def __enter__(self) -> SpinLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class Fence:
    """A gate that, while locked, holds back every thread calling :meth:`wait`."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._locked = False

    def lock(self) -> None:
        """Close the gate."""
        self._locked = True

    def unlock(self) -> None:
        """Open the gate and wake all waiters."""
        with self._cond:
            self._locked = False
            self._cond.notify_all()

    def wait(self) -> None:
        """Block until the gate is open."""
        with self._cond:
            self._cond.wait_for(lambda: not self._locked)

    def is_locked(self) -> bool:
        return self._locked