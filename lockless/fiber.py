"""Lightweight concurrent tasks sharing memory, started and awaited as a group."""

from __future__ import annotations

import argparse
import threading
import time
from collections.abc import Callable

MAX_FIBERS = 10

Emit = Callable[[str], None]


class FiberError(RuntimeError):
    """Raised when a fiber cannot be started or waited for."""


def _print_line(line: str) -> None:
    print(line, flush=True)


def fiber_yield() -> None:
    """Give up the processor to another ready fiber."""
    time.sleep(0)


class FiberGroup:
    """A bounded set of running fibers owned by the thread that created it."""

    def __init__(self, max_fibers: int = MAX_FIBERS) -> None:
        if max_fibers <= 0:
            raise ValueError("maximum number of fibers must be positive")
        self.max_fibers = max_fibers
        self._fibers: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._parent = threading.get_ident()

    def spawn(self, func: Callable[[], object]) -> None:
        """Start a new fiber running ``func``."""
        with self._lock:
            if len(self._fibers) >= self.max_fibers:
                raise FiberError("too many fibers")
            thread = threading.Thread(target=func, daemon=True)
            try:
                thread.start()
            except RuntimeError as exc:
                raise FiberError("cannot start fiber") from exc
            self._fibers.append(thread)

    def wait_all(self) -> None:
        """Wait until every fiber has finished.

        Only the thread that created the group may wait.
        """
        if threading.get_ident() != self._parent:
            raise FiberError("cannot wait for fibers from inside a fiber")
        while True:
            with self._lock:
                if not self._fibers:
                    return
                thread = self._fibers[-1]
            thread.join()
            with self._lock:
                self._fibers.remove(thread)

    def __len__(self) -> int:
        with self._lock:
            return len(self._fibers)


def fibonacci(emit: Emit = _print_line) -> None:
    """Emit Fib(0) to Fib(14), yielding after each computed term."""
    emit("Fib(0) = 0")
    emit("Fib(1) = 1")
    a, b = 0, 1
    for i in range(2, 15):
        a, b = b, a + b
        emit(f"Fib({i}) = {b}")
        fiber_yield()


def squares(emit: Emit = _print_line) -> None:
    """Emit the squares of 1 to 9, yielding after each."""
    for i in range(1, 10):
        emit(f"{i} * {i} = {i * i}")
        fiber_yield()


def main(argv: list[str] | None = None) -> int:
    """Run the Fibonacci and squares fibers side by side."""
    parser = argparse.ArgumentParser(description="Run two fibers concurrently.")
    parser.parse_args(argv)
    group = FiberGroup()
    group.spawn(fibonacci)
    group.spawn(squares)
    group.wait_all()
    return 0