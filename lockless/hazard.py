"""Hazard pointers and a lock-free ordered set of integer keys built on them.

A thread announces the objects it is reading in its hazard slots. An object
removed from a shared structure is retired; it is handed to the delete
function only once no thread announces it any more.

:class:`OrderedList` keeps keys in ascending order. A node is deleted in two
steps: its outgoing link is marked first, then it is unlinked. Any
traversal that meets a marked node helps unlink it.
"""

from __future__ import annotations

import argparse
import sys
import threading
from collections.abc import Callable, Iterator
from typing import Any, NamedTuple

HP_MAX_THREADS = 128
HP_MAX_HPS = 5
HP_THRESHOLD_R = 0
HP_MAX_RETIRED = HP_MAX_THREADS * HP_MAX_HPS

HP_NEXT = 0
HP_CURR = 1
HP_PREV = 2

KEY_MIN = 0
KEY_MAX = (1 << 64) - 1

N_ELEMENTS = 128
N_THREADS = 128 // 2

_CAS_LOCK = threading.Lock()


class HazardPointers:
    """Per-thread hazard slots with per-thread lists of retired objects.

    Objects are matched by identity.
    """

    def __init__(self, max_hps: int, deletefunc: Callable[[Any], Any]) -> None:
        if max_hps < 0:
            raise ValueError("number of hazard pointers must not be negative")
        self.max_hps = max_hps or HP_MAX_HPS
        self.deletefunc = deletefunc
        self._local = threading.local()
        self._lock = threading.Lock()
        self._hazards: list[list[Any]] = []
        self._retired: list[list[Any]] = []

    def _tid(self) -> int:
        tid = getattr(self._local, "tid", None)
        if tid is None:
            with self._lock:
                if len(self._hazards) >= HP_MAX_THREADS:
                    raise RuntimeError("too many threads use these hazard pointers")
                tid = len(self._hazards)
                self._hazards.append([None] * self.max_hps)
                self._retired.append([])
            self._local.tid = tid
        return tid

    def clear(self) -> None:
        """Withdraw every hazard announced by the calling thread."""
        slots = self._hazards[self._tid()]
        for i in range(len(slots)):
            slots[i] = None

    def protect(self, ihp: int, ptr: Any) -> Any:
        """Announce ``ptr`` in slot ``ihp`` of the calling thread; return it."""
        if not 0 <= ihp < self.max_hps:
            raise IndexError(f"hazard slot {ihp} out of range")
        self._hazards[self._tid()][ihp] = ptr
        return ptr

    def _is_hazard(self, obj: Any) -> bool:
        for slots in list(self._hazards):
            if any(slot is obj for slot in slots):
                return True
        return False

    def retire(self, ptr: Any) -> None:
        """Retire ``ptr`` and delete every retired object nobody announces."""
        retired = self._retired[self._tid()]
        retired.append(ptr)
        if len(retired) >= HP_MAX_RETIRED:
            retired.pop()
            raise RuntimeError("too many retired objects")
        if len(retired) < HP_THRESHOLD_R:
            return

        kept = []
        for obj in retired:
            if self._is_hazard(obj):
                kept.append(obj)
            else:
                self.deletefunc(obj)
        retired[:] = kept

    def destroy(self) -> None:
        """Delete every object still retired, whatever its hazards."""
        with self._lock:
            lists = list(self._retired)
        for retired in lists:
            pending = list(retired)
            retired.clear()
            for obj in pending:
                self.deletefunc(obj)


class _Link(NamedTuple):
    node: _Node | None
    marked: bool


class _Cell:
    __slots__ = ("value",)

    def __init__(self, value: _Link) -> None:
        self.value = value

    def load(self) -> _Link:
        return self.value

    def store(self, value: _Link) -> None:
        self.value = value

    def cas(self, expected: _Link, desired: _Link) -> bool:
        with _CAS_LOCK:
            if self.value == expected:
                self.value = desired
                return True
            return False


class _Node:
    __slots__ = ("key", "next", "destroyed")

    def __init__(self, key: int) -> None:
        self.key = key
        self.next = _Cell(_Link(None, False))
        self.destroyed = False


class OrderedList:
    """Lock-free set of integer keys strictly between 0 and 2**64 - 1."""

    def __init__(self) -> None:
        self._count_lock = threading.Lock()
        self.inserts = 0
        self.deletes = 0
        head = self._new_node(KEY_MIN)
        tail = self._new_node(KEY_MAX)
        head.next.store(_Link(tail, False))
        self._head = _Cell(_Link(head, False))
        self._tail = tail
        self.hp = HazardPointers(3, self._destroy_node)

    def _new_node(self, key: int) -> _Node:
        with self._count_lock:
            self.inserts += 1
        return _Node(key)

    def _destroy_node(self, node: _Node) -> None:
        if node.destroyed:
            raise RuntimeError(f"node {node.key} destroyed twice")
        node.destroyed = True
        with self._count_lock:
            self.deletes += 1

    @staticmethod
    def _check_key(key: int) -> None:
        if not KEY_MIN < key < KEY_MAX:
            raise ValueError(f"key {key} out of range")

    def _search(self, key: int) -> tuple[bool, _Cell, _Node, _Link] | None:
        """One traversal attempt; None means it must start over."""
        hp = self.hp
        prev = self._head
        curr = prev.load().node
        assert curr is not None
        hp.protect(HP_CURR, curr)
        if prev.load() != _Link(curr, False):
            return None
        while True:
            nxt = curr.next.load()
            hp.protect(HP_NEXT, nxt.node)
            if curr.next.load() != nxt:
                return None
            if prev.load() != _Link(curr, False):
                return None
            if not nxt.marked:
                if not curr.key < key:
                    return curr.key == key, prev, curr, nxt
                prev = curr.next
                hp.protect(HP_PREV, curr)
            else:
                # curr is logically deleted: help unlink it.
                if not prev.cas(_Link(curr, False), _Link(nxt.node, False)):
                    return None
                hp.retire(curr)
            assert nxt.node is not None
            curr = nxt.node
            hp.protect(HP_CURR, curr)

    def _find(self, key: int) -> tuple[bool, _Cell, _Node, _Link]:
        while True:
            result = self._search(key)
            if result is not None:
                return result

    def insert(self, key: int) -> bool:
        """Add ``key``; return False if it was already present."""
        self._check_key(key)
        node = self._new_node(key)
        while True:
            found, prev, curr, _ = self._find(key)
            if found:
                self._destroy_node(node)
                self.hp.clear()
                return False
            node.next.store(_Link(curr, False))
            if prev.cas(_Link(curr, False), _Link(node, False)):
                self.hp.clear()
                return True

    def delete(self, key: int) -> bool:
        """Remove ``key``; return False if it was not present."""
        self._check_key(key)
        while True:
            found, prev, curr, nxt = self._find(key)
            if not found:
                self.hp.clear()
                return False
            if not curr.next.cas(_Link(nxt.node, False), _Link(nxt.node, True)):
                continue
            unlinked = prev.cas(_Link(curr, False), _Link(nxt.node, False))
            self.hp.clear()
            if unlinked:
                self.hp.retire(curr)
            return True

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, int) or not KEY_MIN < key < KEY_MAX:
            return False
        found = self._find(key)[0]
        self.hp.clear()
        return found

    def __iter__(self) -> Iterator[int]:
        node = self._head.load().node
        assert node is not None
        node = node.next.load().node
        while node is not None and node is not self._tail:
            link = node.next.load()
            if not link.marked:
                yield node.key
            node = link.node

    def destroy(self) -> None:
        """Destroy every node, linked or retired. Not safe while in use."""
        node = self._head.load().node
        while node is not None:
            following = node.next.load().node
            self._destroy_node(node)
            node = following
        self.hp.destroy()


def main(argv: list[str] | None = None) -> int:
    """Insert and delete keys from many threads, then check every node was freed."""
    parser = argparse.ArgumentParser(description="Stress the hazard-pointer list.")
    parser.add_argument("--threads", type=int, default=N_THREADS)
    parser.add_argument("--elements", type=int, default=N_ELEMENTS)
    args = parser.parse_args(argv)
    if not 0 < args.threads < HP_MAX_THREADS:
        parser.error(f"--threads must be between 1 and {HP_MAX_THREADS - 1}")
    if args.elements <= 0:
        parser.error("--elements must be positive")

    lst = OrderedList()
    n = args.elements

    def keys(t: int) -> range:
        return range(t * n + 1, (t + 1) * n + 1)

    def inserter(t: int) -> None:
        for key in keys(t):
            lst.insert(key)

    def deleter(t: int) -> None:
        for key in keys(t):
            lst.delete(key)

    threads = [
        threading.Thread(target=deleter if t & 1 else inserter, args=(t,))
        for t in range(args.threads)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    for i in range(n):
        for t in range(args.threads):
            lst.delete(t * n + i + 1)

    lst.destroy()
    print(f"inserts = {lst.inserts}, deletes = {lst.deletes}", file=sys.stderr)
    return 0 if lst.inserts == lst.deletes else 1