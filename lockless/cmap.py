"""Concurrent hash map with many readers and a single writer.

Readers take a :class:`CMapState` snapshot, iterate, and release it. When the
map grows, the new table is filled only after every reader of the old table
has released it; until then lookups on the new table wait.

Only one thread may call :meth:`CMap.insert` and :meth:`CMap.remove` at a
time.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

from lockless.locks import Fence
from lockless.rcu import RcuCell, RcuSnapshot

MAP_INITIAL_SIZE = 512
_MASK32 = 0xFFFFFFFF


@dataclass(eq=False)
class CMapNode:
    """An entry of a :class:`CMap`; compared by identity."""

    value: Any = None
    hash: int = 0
    next: CMapNode | None = field(default=None, repr=False)


class _Table:
    def __init__(self, size: int) -> None:
        self.buckets: list[CMapNode | None] = [None] * size
        self.max = size - 1
        self.count = 0
        self.utilization = 0
        self.fence = Fence()
        self.lock = threading.Lock()

    def insert(self, node: CMapNode) -> None:
        with self.lock:
            i = node.hash & self.max
            first = self.buckets[i]
            node.next = first
            if first is None:
                self.utilization += 1
            self.buckets[i] = node


def _rehash(old: _Table, new: _Table) -> None:
    for head in old.buckets:
        node = head
        while node is not None:
            following = node.next
            new.insert(node)
            node = following
    new.fence.unlock()


def _clear(table: _Table) -> None:
    table.buckets = [None] * len(table.buckets)


def _chain(node: CMapNode | None) -> Iterator[CMapNode]:
    while node is not None:
        following = node.next
        yield node
        node = following


class CMapState:
    """A snapshot of a :class:`CMap` for lookups and iteration."""

    def __init__(self, snapshot: RcuSnapshot) -> None:
        self._snapshot = snapshot

    def _table(self) -> _Table:
        table: _Table = self._snapshot.value
        # Hold back reads while the table is still being filled.
        table.fence.wait()
        return table

    def find(self, hash_: int) -> Iterator[CMapNode]:
        """Yield the nodes in the bucket of ``hash_``, newest first."""
        table = self._table()
        yield from _chain(table.buckets[hash_ & table.max])

    def __iter__(self) -> Iterator[CMapNode]:
        table = self._table()
        for head in table.buckets:
            yield from _chain(head)

    def release(self) -> None:
        """Give up the snapshot."""
        self._snapshot.release()

    def __enter__(self) -> CMapState:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class CMap:
    """Hash map of :class:`CMapNode` entries keyed by a 32-bit hash."""

    def __init__(self) -> None:
        self._cell = RcuCell(_Table(MAP_INITIAL_SIZE))

    def insert(self, node: CMapNode, hash_: int) -> int:
        """Insert ``node`` under ``hash_``; return the element count."""
        node.hash = hash_ & _MASK32
        with self._cell.acquire() as snap:
            table: _Table = snap.value
            table.insert(node)
            table.count += 1
            count = table.count
            expand = table.count > table.max * 2
        if expand:
            self._expand()
        return count

    def _expand(self) -> None:
        snap = self._cell.acquire()
        old: _Table = snap.value
        # Only one expansion may be pending at a time.
        while old.fence.is_locked():
            snap.release()
            old.fence.wait()
            snap = self._cell.acquire()
            old = snap.value

        new = _Table((old.max + 1) * 2)
        new.count = old.count
        new.fence.lock()
        snap.postpone(_rehash, old, new)
        snap.release()
        self._cell.set(new)

    def remove(self, node: CMapNode) -> int:
        """Unlink ``node`` if present; return the element count."""
        with self._cell.acquire() as snap:
            table: _Table = snap.value
            pos = node.hash & table.max
            with table.lock:
                prev: CMapNode | None = None
                cur = table.buckets[pos]
                while cur is not None:
                    if cur is node:
                        if prev is None:
                            table.buckets[pos] = node.next
                        else:
                            prev.next = node.next
                        table.count -= 1
                        break
                    prev, cur = cur, cur.next
            return table.count

    def __len__(self) -> int:
        with self._cell.acquire() as snap:
            return snap.value.count

    def utilization(self) -> float:
        """Fraction of buckets that have ever held a node in the current table."""
        with self._cell.acquire() as snap:
            table: _Table = snap.value
            return table.utilization / (table.max + 1)

    def snapshot(self) -> CMapState:
        """Acquire a snapshot; release it when done."""
        return CMapState(self._cell.acquire())

    def destroy(self) -> None:
        """Tear the map down; no snapshot may still be held."""
        snap = self._cell.acquire()
        snap.postpone(_clear, snap.value)
        snap.release()
        self._cell.destroy()