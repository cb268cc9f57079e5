import re
import threading

import pytest

from lockless.fiber import FiberError, FiberGroup, fibonacci, main, squares

FIB_VALUES = [0, 1, 1, 2, 3, 5, 8, 13, 21, 34, 55, 89, 144, 233, 377]


class _Lines(list):
    """Collects emitted lines."""

    def __call__(self, line):
        self.append(line)


def test_fibonacci_terms_follow_recurrence():
    lines = _Lines()
    fibonacci(lines)
    assert list(lines) == [f"Fib({i}) = {v}" for i, v in enumerate(FIB_VALUES)]


def test_squares_lines():
    lines = _Lines()
    squares(lines)
    parsed = [
        tuple(int(g) for g in re.fullmatch(r"(\d+) \* (\d+) = (\d+)", line).groups())
        for line in lines
    ]
    assert parsed == [(i, i, i * i) for i in range(1, 10)]
    assert lines[0] == "1 * 1 = 1"
    assert lines[-1] == "9 * 9 = 81"


def test_spawn_and_wait_all_runs_every_fiber():
    results = []
    lock = threading.Lock()
    group = FiberGroup()

    def make(n):
        def run():
            with lock:
                results.append(n)
        return run

    for n in range(5):
        group.spawn(make(n))
    group.wait_all()
    assert sorted(results) == [0, 1, 2, 3, 4]
    assert len(group) == 0


def test_spawn_beyond_limit_raises():
    group = FiberGroup(1)
    event = threading.Event()
    group.spawn(event.wait)
    with pytest.raises(FiberError):
        group.spawn(lambda: None)
    event.set()
    group.wait_all()
    assert len(group) == 0


class _WaitInside:
    """Fiber body that calls wait_all on its own group."""

    def __init__(self, group):
        self.group = group
        self.caught = []

    def __call__(self):
        try:
            self.group.wait_all()
        except FiberError as exc:
            self.caught.append(exc)


def test_wait_all_from_inside_fiber_raises():
    group = FiberGroup()
    inner = _WaitInside(group)
    group.spawn(inner)
    group.wait_all()
    assert len(group) == 0
    assert len(inner.caught) == 1
    assert isinstance(inner.caught[0], FiberError)


def test_invalid_max_fibers():
    with pytest.raises(ValueError):
        FiberGroup(0)


def test_main_prints_both_sequences(capsys):
    assert main([]) == 0
    out = capsys.readouterr().out
    assert "Fib(0) = 0" in out
    assert "9 * 9 = 81" in out