"""Multi-publisher, multi-subscriber broadcast ring.

Publishers never block: when the ring is full the oldest message is
dropped. Each subscriber reads at its own pace and learns how many
messages it missed.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from typing import NamedTuple

from lockless.pool import Pool

ESTIMATED_PUBLISHERS = 16
_SIZE_FIELD = 8


class _Slot(NamedTuple):
    tag: int
    elt: bytearray


class Broadcast:
    """A ring of ``depth`` messages of at most ``max_msg_size`` bytes."""

    def __init__(self, depth: int, max_msg_size: int) -> None:
        if depth <= 0 or depth & (depth - 1):
            raise ValueError("depth must be a power of two")
        if max_msg_size <= 0:
            raise ValueError("maximum message size must be positive")
        self.depth = depth
        self.max_msg_size = max_msg_size
        self._mask = depth - 1
        self._slots: list[_Slot | None] = [None] * depth
        # Indices start at 1; tag 0 would mean "unused".
        self._head = 1
        self._tail = 1
        self._pool = Pool(depth + ESTIMATED_PUBLISHERS, _SIZE_FIELD + max_msg_size)
        self._lock = threading.Lock()

    def _drop_head(self) -> None:
        slot = self._slots[self._head & self._mask]
        self._head += 1
        if slot is not None:
            self._pool.release(slot.elt)

    def publish(self, msg: bytes) -> bool:
        """Append a message, dropping the oldest if full.

        Returns False when no message buffer is available.
        """
        data = bytes(msg)
        if len(data) > self.max_msg_size:
            raise ValueError(
                f"message of {len(data)} bytes exceeds {self.max_msg_size}"
            )
        elt = self._pool.acquire()
        if elt is None:
            return False
        elt[:_SIZE_FIELD] = len(data).to_bytes(_SIZE_FIELD, "little")
        elt[_SIZE_FIELD:_SIZE_FIELD + len(data)] = data

        with self._lock:
            while True:
                index = self._tail & self._mask
                current = self._slots[index]
                if current is not None and self._head <= current.tag:
                    self._drop_head()
                    continue
                self._slots[index] = _Slot(self._tail, elt)
                self._tail += 1
                return True

    def subscribe(self) -> Subscriber:
        """Start a subscriber at the oldest message still held."""
        return Subscriber(self)


class Subscriber:
    """A reading position in a :class:`Broadcast`."""

    def __init__(self, bcast: Broadcast) -> None:
        self._bcast = bcast
        with bcast._lock:
            self._idx = bcast._head

    def next(self) -> tuple[bytes, int] | None:
        """Return ``(payload, drops)`` for the next message, or None if caught up.

        ``drops`` counts the messages lost since the previous delivery.
        """
        b = self._bcast
        drops = 0
        with b._lock:
            while True:
                if self._idx == b._tail:
                    return None
                slot = b._slots[self._idx & b._mask]
                if slot is None or slot.tag != self._idx:
                    self._idx += 1
                    drops += 1
                    continue
                size = int.from_bytes(slot.elt[:_SIZE_FIELD], "little")
                payload = bytes(slot.elt[_SIZE_FIELD:_SIZE_FIELD + size])
                self._idx += 1
                return payload, drops

    def __iter__(self) -> Iterator[tuple[bytes, int]]:
        while (item := self.next()) is not None:
            yield item