# lockless

Small concurrency building blocks written with Python's `threading`
primitives. Nothing outside the standard library is needed.

## What is inside

| Module | Provides |
| --- | --- |
| `lockless.pool` | `Pool`, a thread-safe free list of zero-initialised `bytearray` buffers whose size is rounded up to a multiple of 16 bytes; `acquire()` returns `None` when the pool is empty |
| `lockless.broadcast` | `Broadcast` and `Subscriber`: a ring of `depth` messages (a power of two) where publishers never block and the oldest message is dropped when full; `Subscriber.next()` returns `(payload, drops)` or `None` when caught up |
| `lockless.channel` | `Channel`, a Go-style channel (unbuffered when `cap` is 0, buffered otherwise) with `send`, `recv`, `try_send`, `try_recv` and `close`; any operation on a closed channel raises `ChannelClosed`. `run_channel_test` passes numbers through a channel from many threads and checks each arrives exactly once |
| `lockless.coro` | `Scheduler`, a round-robin scheduler for generator tasks, with `fib_sequence` and the sample tasks `fib_task` and `count_task` |
| `lockless.fiber` | `FiberGroup`, which runs up to `max_fibers` functions in threads and waits for them with `wait_all`; raises `FiberError` past the limit or when waited on from another thread. Also `fiber_yield`, `fibonacci` and `squares` |
| `lockless.hashing` | 32-bit Murmur-style mixing: `hash_rot`, `mhash_add`, `mhash_finish`, `hash_add`, `hash_finish`, `hash_2words`, `hash_int` |
| `lockless.xorshift` | `XorShift32`, a 13/17/5 xorshift generator, plus per-thread `random_set_seed` / `random_uint32` |
| `lockless.locks` | `SpinLock` (also a context manager) and `Fence`, a gate that blocks callers of `wait()` while it is locked |
| `lockless.rcu` | `RcuCell` and `RcuSnapshot`: read-copy-update where callbacks given to `postpone` run once a version has been replaced and its last reader has released it |
| `lockless.cmap` | `CMap`, a hash map of `CMapNode` entries keyed by a 32-bit hash, with one writer and many readers; lookups (`find`) and iteration go through `CMapState` snapshots from `snapshot()` |
| `lockless.hazard_domain` | `Domain`, `SharedRef`, `WriterState` and `PointerList`: readers `load`/`drop` a shared value, writers `swap` it and the old value is handed to the deallocator once no reader holds it |
| `lockless.hazard` | `HazardPointers` and `OrderedList`, a lock-free ordered set of integer keys built on hazard pointers |
| `lockless.connqueue` | `ConnectionQueue`, a two-lock FIFO queue whose `dequeue` blocks until an item is available |
| `lockless.httpd` | a minimal threaded HTTP/1.x server: `parse_request`, `response_head`, `handle_connection`, `serve` |

## Installing

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## A short example

```python
import threading

from lockless.channel import Channel, ChannelClosed

ch = Channel(0)          # unbuffered: every send meets a receive

def producer():
    for i in range(5):
        ch.send(i)

t = threading.Thread(target=producer)
t.start()
received = [ch.recv() for _ in range(5)]
t.join()
ch.close()

try:
    ch.send(99)
except ChannelClosed:
    pass
```

## Commands

```
lockless-channel [--repeat N] [--messages N] [--threads N]
    many readers and writers over an unbuffered and a buffered (cap 7) channel
lockless-coro [-n N]
    two Fibonacci tasks and a counting task taking turns
lockless-fiber
    a Fibonacci and a squares function run side by side until both finish
lockless-hazard [--threads N] [--elements N]
    concurrent inserts and deletes on OrderedList; exits 1 if not every node was freed
lockless-httpd [--port PORT] [--root DIR] [--threads N]
    serve index.html from DIR (default ./resources) on port 9000
```

## What it does not do

- There is no general key/value map with arbitrary keys and user-supplied
  compare functions. `CMap` stores caller-made `CMapNode` objects under a
  32-bit hash, and the caller matches values itself.
- The HTTP server answers only `GET` and `HEAD` for `/` and `/index.html`;
  every other path gets 404. Request headers are read but ignored, and no
  other files, types or methods are served.