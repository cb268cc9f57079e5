"""Fixed-capacity pool of reusable, equally sized byte buffers."""

from __future__ import annotations

import threading

ELEMENT_ALIGN = 16


def _align_up(size: int, align: int) -> int:
    return (size + align - 1) & ~(align - 1)


class Pool:
    """Thread-safe free list of zero-initialised buffers.

    Element sizes are rounded up to a multiple of 16 bytes. Buffers are
    handed out last-released first.
    """

    def __init__(self, num_elts: int, elt_size: int) -> None:
        if elt_size <= 0:
            raise ValueError("element size must be positive")
        if num_elts < 0:
            raise ValueError("number of elements must not be negative")
        self.num_elts = num_elts
        self.elt_size = _align_up(elt_size, ELEMENT_ALIGN)
        self._lock = threading.Lock()
        self._free = [bytearray(self.elt_size) for _ in range(num_elts)]
        # The first buffer is handed out first.
        self._free.reverse()

    def acquire(self) -> bytearray | None:
        """Take a buffer from the pool, or return None when it is empty."""
        with self._lock:
            return self._free.pop() if self._free else None

    def release(self, elt: bytearray) -> None:
        """Give a buffer back to the pool."""
        with self._lock:
            self._free.append(elt)

    def __len__(self) -> int:
        with self._lock:
            return len(self._free)