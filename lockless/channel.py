"""Go-style channels: buffered queues and unbuffered rendezvous points.

A channel with capacity 0 hands each value directly from one sender to one
receiver; both sides block until the exchange has taken place. A channel with
a positive capacity holds up to that many values in FIFO order.

Once closed, every send and receive fails with :class:`ChannelClosed`, even
if buffered values remain.
"""

from __future__ import annotations

import argparse
import threading
from collections import deque
from collections.abc import Iterator
from typing import Any

MSG_MAX = 100000
THREAD_MAX = 1024


class ChannelClosed(BrokenPipeError):
    """Raised when sending to or receiving from a closed channel."""


class Channel:
    """A channel carrying arbitrary Python objects."""

    def __init__(self, cap: int = 0) -> None:
        if cap < 0:
            raise ValueError("capacity must not be negative")
        self.cap = cap
        self._cond = threading.Condition()
        self._closed = False
        self._buffer: deque[Any] = deque()
        # Rendezvous state for unbuffered channels.
        self._send_lock = threading.Lock()
        self._recv_lock = threading.Lock()
        self._pending: tuple[Any] | None = None
        self._taken = False
        self._recv_waiting = 0

    def _check_open(self) -> None:
        if self._closed:
            raise ChannelClosed("channel is closed")

    # Unbuffered helpers; each is called with the condition held.

    def _handoff(self, data: Any) -> None:
        self._pending = (data,)
        self._taken = False
        self._cond.notify_all()
        while not self._taken:
            if self._closed:
                self._pending = None
                raise ChannelClosed("channel closed before the value was taken")
            self._cond.wait()
        self._taken = False

    def _take(self) -> Any:
        assert self._pending is not None
        (data,) = self._pending
        self._pending = None
        self._taken = True
        self._cond.notify_all()
        return data

    def send(self, data: Any) -> None:
        """Send a value, blocking while the channel is full or, if unbuffered,
        until a receiver has taken it."""
        if self.cap:
            with self._cond:
                while True:
                    self._check_open()
                    if len(self._buffer) < self.cap:
                        self._buffer.append(data)
                        self._cond.notify_all()
                        return
                    self._cond.wait()
        with self._cond:
            self._check_open()
        with self._send_lock, self._cond:
            self._check_open()
            self._handoff(data)

    def recv(self) -> Any:
        """Receive a value, blocking until one is available."""
        if self.cap:
            with self._cond:
                while True:
                    self._check_open()
                    if self._buffer:
                        data = self._buffer.popleft()
                        self._cond.notify_all()
                        return data
                    self._cond.wait()
        with self._cond:
            self._check_open()
        with self._recv_lock, self._cond:
            self._check_open()
            self._recv_waiting += 1
            try:
                while self._pending is None:
                    self._check_open()
                    self._cond.wait()
            finally:
                self._recv_waiting -= 1
            return self._take()

    def try_send(self, data: Any) -> bool:
        """Send without waiting for room or a receiver; return whether it was sent."""
        if self.cap:
            with self._cond:
                self._check_open()
                if len(self._buffer) >= self.cap:
                    return False
                self._buffer.append(data)
                self._cond.notify_all()
                return True
        if not self._send_lock.acquire(blocking=False):
            with self._cond:
                self._check_open()
            return False
        try:
            with self._cond:
                self._check_open()
                if not self._recv_waiting or self._pending is not None:
                    return False
                self._handoff(data)
                return True
        finally:
            self._send_lock.release()

    def try_recv(self) -> tuple[bool, Any]:
        """Receive without waiting; return ``(True, value)`` or ``(False, None)``."""
        if self.cap:
            with self._cond:
                self._check_open()
                if not self._buffer:
                    return False, None
                data = self._buffer.popleft()
                self._cond.notify_all()
                return True, data
        if not self._recv_lock.acquire(blocking=False):
            with self._cond:
                self._check_open()
            return False, None
        try:
            with self._cond:
                self._check_open()
                if self._pending is None:
                    return False, None
                return True, self._take()
        finally:
            self._recv_lock.release()

    def close(self) -> None:
        """Close the channel and wake every blocked sender and receiver."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()


def _partition(total: int, n: int) -> Iterator[tuple[int, int]]:
    """Split ``range(total)`` into ``n`` contiguous batches, larger ones first."""
    each, left = divmod(total, n)
    start = 0
    for i in range(n):
        batch = each + (1 if i < left else 0)
        yield start, start + batch
        start += batch


def run_channel_test(
    repeat: int, cap: int, total: int, n_readers: int, n_writers: int
) -> list[int]:
    """Pass ``total`` numbers through one channel with many threads, ``repeat`` times.

    Every number must arrive exactly once in every round. Returns how often
    each number was received in the last round.
    """
    if n_readers > THREAD_MAX or n_writers > THREAD_MAX:
        raise ValueError("too many threads to create")
    if n_readers < 1 or n_writers < 1:
        raise ValueError("at least one reader and one writer are needed")
    if total > MSG_MAX:
        raise ValueError("too many messages to send")

    ch = Channel(cap)
    counts = [0] * total

    def writer(start: int, stop: int) -> None:
        try:
            for value in range(start, stop):
                ch.send(value)
        except ChannelClosed:
            pass

    def reader(expect: int, out: list[int]) -> None:
        try:
            while len(out) < expect:
                out.append(ch.recv())
        except ChannelClosed:
            pass

    try:
        for rep in range(repeat):
            print(
                f"cap={cap} readers={n_readers} writers={n_writers} "
                f"msgs={total} ... {rep + 1}/{repeat}"
            )
            received: list[list[int]] = []
            threads = []
            for start, stop in _partition(total, n_readers):
                out: list[int] = []
                received.append(out)
                threads.append(
                    threading.Thread(target=reader, args=(stop - start, out))
                )
            threads += [
                threading.Thread(target=writer, args=batch)
                for batch in _partition(total, n_writers)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            counts = [0] * total
            for out in received:
                for value in out:
                    counts[value] += 1
            bad = [value for value, count in enumerate(counts) if count != 1]
            if bad:
                raise RuntimeError(
                    f"message {bad[0]} received {counts[bad[0]]} times"
                )
    finally:
        ch.close()
    return counts


def main(argv: list[str] | None = None) -> int:
    """Stress an unbuffered and a buffered channel."""
    parser = argparse.ArgumentParser(description="Stress test for channels.")
    parser.add_argument("--repeat", type=int, default=50)
    parser.add_argument("--messages", type=int, default=500)
    parser.add_argument("--threads", type=int, default=80)
    args = parser.parse_args(argv)
    try:
        for cap in (0, 7):
            run_channel_test(
                args.repeat, cap, args.messages, args.threads, args.threads
            )
    except (ValueError, RuntimeError) as exc:
        parser.exit(1, f"{parser.prog}: {exc}\n")
    return 0