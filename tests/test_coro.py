import pytest

from lockless.coro import Scheduler, count_task, fib_sequence, fib_task, main


def test_fib_sequence_base_cases():
    assert fib_sequence(0) == 0
    assert fib_sequence(1) == 1


def test_fib_sequence_known_value():
    assert fib_sequence(10) == 55


@pytest.mark.parametrize("k", range(2, 40))
def test_fib_sequence_recurrence(k):
    assert fib_sequence(k) == fib_sequence(k - 1) + fib_sequence(k - 2)


def test_fib_sequence_negative_rejected():
    with pytest.raises(ValueError):
        fib_sequence(-1)


def test_single_fib_task_output():
    lines = []
    scheduler = Scheduler()
    scheduler.add(fib_task("A", 3, 0, lines.append))
    scheduler.run()
    assert lines == [
        "A: n = 3",
        f"A fib(0) = {fib_sequence(0)}",
        "A: resume",
        f"A fib(2) = {fib_sequence(2)}",
        "A: resume",
        "A: complete",
    ]


def test_count_tasks_interleave():
    lines = []
    scheduler = Scheduler()
    scheduler.add(count_task("A", 2, 0, lines.append))
    scheduler.add(count_task("B", 2, 0, lines.append))
    scheduler.run()
    assert lines == [
        "A: n = 2",
        "B: n = 2",
        "A 0",
        "B 0",
        "A: resume",
        "A 1",
        "B: resume",
        "B 1",
        "A: resume",
        "A: complete",
        "B: resume",
        "B: complete",
    ]


def test_task_with_nothing_to_do():
    lines = []
    scheduler = Scheduler()
    scheduler.add(count_task("Z", 0, 0, lines.append))
    scheduler.run()
    assert lines == ["Z: n = 0", "Z: complete"]


def test_shorter_task_finishes_first():
    lines = []
    scheduler = Scheduler()
    scheduler.add(count_task("long", 5, 0, lines.append))
    scheduler.add(count_task("short", 1, 0, lines.append))
    scheduler.run()
    assert lines.index("short: complete") < lines.index("long: complete")
    assert lines[-1] == "long: complete"


def test_main_output(capsys):
    assert main([]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[:3] == ["Task 0: n = 70", "Task 1: n = 70", "Task 2: n = 70"]
    assert f"Task 1 fib(69) = {fib_sequence(69)}" in lines
    assert "Task 2 69" in lines
    completes = [line for line in lines if line.endswith(": complete")]
    assert sorted(completes) == [
        "Task 0: complete",
        "Task 1: complete",
        "Task 2: complete",
    ]
    assert lines[-1] == "Task 2: complete"