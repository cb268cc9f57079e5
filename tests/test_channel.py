import threading
import time

import pytest

from lockless.channel import Channel, ChannelClosed, main, run_channel_test


def test_buffered_fifo_order():
    ch = Channel(4)
    for value in ["a", "b", "c"]:
        ch.send(value)
    assert [ch.recv() for _ in range(3)] == ["a", "b", "c"]


def test_buffered_try_send_when_full():
    ch = Channel(2)
    assert ch.try_send(1) is True
    assert ch.try_send(2) is True
    assert ch.try_send(3) is False
    assert ch.try_recv() == (True, 1)


def test_buffered_try_recv_when_empty():
    ch = Channel(3)
    assert ch.try_recv() == (False, None)


def test_closed_channel_rejects_send_and_recv():
    ch = Channel(3)
    ch.send(1)
    ch.close()
    with pytest.raises(ChannelClosed):
        ch.send(2)
    with pytest.raises(ChannelClosed):
        ch.recv()
    with pytest.raises(ChannelClosed):
        ch.try_recv()


def test_closed_unbuffered_channel_rejects_send():
    ch = Channel(0)
    ch.close()
    with pytest.raises(ChannelClosed):
        ch.send(1)
    with pytest.raises(ChannelClosed):
        ch.try_send(1)


def test_channel_closed_is_broken_pipe():
    ch = Channel(1)
    ch.close()
    with pytest.raises(BrokenPipeError):
        ch.recv()


def test_negative_capacity_rejected():
    with pytest.raises(ValueError):
        Channel(-1)


def test_unbuffered_rendezvous():
    ch = Channel(0)
    sender = threading.Thread(target=ch.send, args=("hello",))
    sender.start()
    received = ch.recv()
    sender.join(5)
    assert received == "hello"
    assert not sender.is_alive()


def test_unbuffered_try_send_without_receiver():
    ch = Channel(0)
    assert ch.try_send(5) is False


def test_unbuffered_try_send_with_waiting_receiver():
    ch = Channel(0)
    got = []
    receiver = threading.Thread(target=lambda: got.append(ch.recv()))
    receiver.start()
    sent = False
    deadline = time.monotonic() + 5.0
    while not sent and time.monotonic() < deadline:
        sent = ch.try_send("x")
        if not sent:
            time.sleep(0.001)
    receiver.join(5)
    assert sent is True
    assert got == ["x"]


def test_unbuffered_try_recv_with_waiting_sender():
    ch = Channel(0)
    sender = threading.Thread(target=ch.send, args=(42,))
    sender.start()
    result = (False, None)
    deadline = time.monotonic() + 5.0
    while not result[0] and time.monotonic() < deadline:
        result = ch.try_recv()
        if not result[0]:
            time.sleep(0.001)
    sender.join(5)
    assert result == (True, 42)
    assert not sender.is_alive()


def test_close_wakes_blocked_receiver():
    ch = Channel(0)
    closer = threading.Timer(0.05, ch.close)
    closer.start()
    with pytest.raises(ChannelClosed):
        ch.recv()
    closer.join(5)


def test_close_wakes_blocked_buffered_sender():
    ch = Channel(1)
    ch.send(0)
    closer = threading.Timer(0.05, ch.close)
    closer.start()
    with pytest.raises(ChannelClosed):
        ch.send(1)
    closer.join(5)


@pytest.mark.parametrize("cap", [0, 7])
def test_run_channel_test_delivers_each_message_once(cap):
    counts = run_channel_test(2, cap, 60, 4, 3)
    assert len(counts) == 60
    assert all(count == 1 for count in counts)


def test_run_channel_test_limits():
    with pytest.raises(ValueError):
        run_channel_test(1, 0, 100001, 1, 1)
    with pytest.raises(ValueError):
        run_channel_test(1, 0, 10, 1025, 1)


def test_main_runs_small_configuration(capsys):
    assert main(["--repeat", "1", "--messages", "20", "--threads", "3"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "cap=0 readers=3 writers=3 msgs=20 ... 1/1"
    assert lines[1] == "cap=7 readers=3 writers=3 msgs=20 ... 1/1"