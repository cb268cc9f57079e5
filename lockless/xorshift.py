"""Xorshift32 pseudo-random numbers with a per-thread default generator."""

from __future__ import annotations

import threading
import time

MASK32 = 0xFFFFFFFF


class XorShift32:
    """Marsaglia's 13/17/5 xorshift generator on 32-bit state.

    A zero seed is replaced by the current time, since zero is a fixed point.
    """

    def __init__(self, seed: int = 0) -> None:
        self.seed = 0
        self.set_seed(seed)

    def set_seed(self, seed: int) -> None:
        """Reset the state to ``seed`` (or the time, when it is zero)."""
        seed &= MASK32
        while not seed:
            seed = int(time.time()) & MASK32
        self.seed = seed

    def next_uint32(self) -> int:
        """Advance the state and return it."""
        x = self.seed
        x ^= (x << 13) & MASK32
        x ^= x >> 17
        x ^= (x << 5) & MASK32
        self.seed = x
        return x


_local = threading.local()


def _generator() -> XorShift32:
    gen = getattr(_local, "gen", None)
    if gen is None:
        gen = XorShift32(0)
        _local.gen = gen
    return gen


def random_set_seed(seed: int) -> None:
    """Seed the calling thread's generator."""
    _local.gen = XorShift32(seed)


def random_uint32() -> int:
    """Draw from the calling thread's generator, seeding it by time if needed."""
    return _generator().next_uint32()