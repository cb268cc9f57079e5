"""Hazard-pointer domain for safely replacing shared objects.

Readers announce the object they use with :meth:`Domain.load` and withdraw
the announcement with :meth:`Domain.drop`. Writers replace the object with
:meth:`Domain.swap`; the old one is handed to the deallocator only once no
reader still announces it.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

_SPIN_DELAY = 10e-6


class _Slot:
    __slots__ = ("value", "next")

    def __init__(self, value: Any, next_: _Slot | None) -> None:
        self.value = value
        self.next = next_


class PointerList:
    """A grow-only list of slots, each holding an object or None when free.

    Objects are matched by identity.
    """

    def __init__(self) -> None:
        self._head: _Slot | None = None
        self._lock = threading.Lock()

    def _slots(self) -> Iterator[_Slot]:
        node = self._head
        while node is not None:
            yield node
            node = node.next

    def _cas(self, slot: _Slot, expected: Any, desired: Any) -> bool:
        with self._lock:
            if slot.value is expected:
                slot.value = desired
                return True
            return False

    def _append(self, value: Any) -> _Slot:
        with self._lock:
            slot = _Slot(value, self._head)
            self._head = slot
        return slot

    def insert_or_append(self, value: Any) -> _Slot:
        """Store ``value`` in a free slot, adding one if none is free."""
        for slot in self._slots():
            if slot.value is None and self._cas(slot, None, value):
                return slot
        return self._append(value)

    def remove(self, value: Any) -> bool:
        """Free one slot holding ``value``; return whether one was found."""
        for slot in self._slots():
            if slot.value is value and self._cas(slot, value, None):
                return True
        return False

    def __contains__(self, value: object) -> bool:
        return any(slot.value is value for slot in self._slots())

    def __len__(self) -> int:
        return sum(1 for slot in self._slots() if slot.value is not None)

    def __iter__(self) -> Iterator[Any]:
        for slot in self._slots():
            value = slot.value
            if value is not None:
                yield value


class SharedRef:
    """A shared reference whose value is replaced atomically."""

    def __init__(self, value: Any) -> None:
        self.value = value
        self._lock = threading.Lock()

    def exchange(self, new_value: Any) -> Any:
        """Store ``new_value`` and return the previous value."""
        with self._lock:
            old, self.value = self.value, new_value
            return old


@dataclass
class WriterState:
    """Objects a writer has retired but not yet deallocated."""

    retired: PointerList = field(default_factory=PointerList)
    r_count: int = 0


class Domain:
    """A set of hazard pointers sharing one deallocator."""

    def __init__(self, deallocator: Callable[[Any], None]) -> None:
        self.deallocator = deallocator
        self.pointers = PointerList()

    def load(self, ref: SharedRef) -> Any:
        """Return the value of ``ref``, protected until :meth:`drop` is called."""
        while True:
            value = ref.value
            slot = self.pointers.insert_or_append(value)
            if ref.value is value:
                return value
            # Being replaced concurrently: withdraw and try again.
            if not self.pointers._cas(slot, value, None):
                self.pointers.remove(value)

    def drop(self, value: Any) -> None:
        """Withdraw protection of a value obtained from :meth:`load`."""
        if not self.pointers.remove(value):
            raise ValueError("value is not protected in this domain")

    def _wait_unused(self, value: Any) -> None:
        while value in self.pointers:
            time.sleep(_SPIN_DELAY)

    def _cleanup_value(self, writer: WriterState, value: Any, defer: bool) -> None:
        if value not in self.pointers:
            self.deallocator(value)
        elif defer:
            writer.retired.insert_or_append(value)
            writer.r_count += 1
        else:
            self._wait_unused(value)
            self.deallocator(value)

    def swap(
        self, writer: WriterState, ref: SharedRef, new_value: Any, defer: bool = False
    ) -> None:
        """Replace the value of ``ref`` and reclaim the old one.

        Without ``defer`` this waits until no reader holds the old value;
        with it, a still-used value is retired for a later :meth:`cleanup`.
        """
        old = ref.exchange(new_value)
        self._cleanup_value(writer, old, defer)

    def cleanup(self, writer: WriterState, defer: bool = False) -> None:
        """Deallocate retired values no reader holds any more.

        Without ``defer`` this waits for every retired value to be released.
        """
        for value in list(writer.retired):
            if value not in self.pointers:
                if writer.retired.remove(value):
                    self.deallocator(value)
            elif not defer:
                self._wait_unused(value)
                if writer.retired.remove(value):
                    self.deallocator(value)