"""Two-lock FIFO queue for handing accepted connections to worker threads.

Producers and consumers take separate locks, so enqueueing never waits for
a dequeue in progress. A dequeue blocks until an item is available.
"""

from __future__ import annotations

import threading
from typing import Any


class _Node:
    __slots__ = ("item", "next")

    def __init__(self, item: Any) -> None:
        self.item = item
        self.next: _Node | None = None


class ConnectionQueue:
    """Unbounded FIFO queue with a head lock and a tail lock."""

    def __init__(self) -> None:
        dummy = _Node(None)
        self._head = dummy
        self._tail = dummy
        self._head_lock = threading.Lock()
        self._tail_lock = threading.Lock()
        self._non_empty = threading.Condition(self._head_lock)
        self._size_lock = threading.Lock()
        self._size = 0

    def _adjust_size(self, delta: int) -> None:
        with self._size_lock:
            self._size += delta

    def enqueue(self, item: Any) -> None:
        """Append ``item`` and wake one waiting consumer."""
        node = _Node(item)
        with self._tail_lock:
            self._tail.next = node
            self._tail = node
            self._adjust_size(1)
        with self._non_empty:
            self._non_empty.notify()

    def dequeue(self) -> Any:
        """Remove and return the oldest item, waiting until there is one."""
        with self._non_empty:
            while self._head.next is None:
                self._non_empty.wait()
            first = self._head.next
            item = first.item
            first.item = None
            self._head = first
            self._adjust_size(-1)
        return item

    def __len__(self) -> int:
        with self._size_lock:
            return self._size