"""Cooperative round-robin scheduling of generator tasks."""

from __future__ import annotations

import argparse
from collections import deque
from collections.abc import Callable, Generator, Iterator

Emit = Callable[[str], None]


def fib_sequence(k: int) -> int:
    """Return the ``k``-th Fibonacci number, with fib(0) = 0 and fib(1) = 1."""
    if k < 0:
        raise ValueError("index must not be negative")
    a, b = 0, 1
    for _ in range(k):
        a, b = b, a + b
    return a


def fib_task(
    name: str, n: int, i: int, emit: Emit = print
) -> Generator[None, None, None]:
    """Emit every second Fibonacci number from index ``i`` below ``n``,
    yielding control after each one."""
    emit(f"{name}: n = {n}")
    yield
    while i < n:
        emit(f"{name} fib({i}) = {fib_sequence(i)}")
        yield
        emit(f"{name}: resume")
        i += 2
    emit(f"{name}: complete")


def count_task(
    name: str, n: int, i: int, emit: Emit = print
) -> Generator[None, None, None]:
    """Emit the numbers from ``i`` below ``n``, yielding control after each one."""
    emit(f"{name}: n = {n}")
    yield
    while i < n:
        emit(f"{name} {i}")
        yield
        emit(f"{name}: resume")
        i += 1
    emit(f"{name}: complete")


class Scheduler:
    """Runs tasks one step at a time in the order they were added."""

    def __init__(self) -> None:
        self._tasks: deque[Iterator[None]] = deque()

    def add(self, task: Iterator[None]) -> None:
        """Queue a task to run after those already queued."""
        self._tasks.append(task)

    def run(self) -> None:
        """Resume tasks in turn until every task has finished."""
        while self._tasks:
            task = self._tasks.popleft()
            try:
                next(task)
            except StopIteration:
                continue
            self._tasks.append(task)


def main(argv: list[str] | None = None) -> int:
    """Interleave two Fibonacci tasks and a counting task."""
    parser = argparse.ArgumentParser(description="Run three cooperative tasks.")
    parser.add_argument("-n", type=int, default=70, help="iteration limit")
    args = parser.parse_args(argv)

    scheduler = Scheduler()
    scheduler.add(fib_task("Task 0", args.n, 0))
    scheduler.add(fib_task("Task 1", args.n, 1))
    scheduler.add(count_task("Task 2", args.n, 0))
    scheduler.run()
    return 0