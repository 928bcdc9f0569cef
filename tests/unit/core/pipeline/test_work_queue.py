from __future__ import annotations

"""
Unit tests for the Thread-Safe Work Queue.

Verifies FIFO ordering, the empty sentinel, duplicate suppression (queued,
in flight and time window) and consistency under concurrent producers.
"""

import threading
from typing import List

from scribewatch.core.pipeline.work_queue import WorkQueue


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_fifo_order_and_empty_sentinel() -> None:
    q = WorkQueue()
    assert q.dequeue() is None

    for name in ("/in/a.mp3", "/in/b.mp3", "/in/c.mp3"):
        assert q.enqueue(name) is True

    assert len(q) == 3
    assert q.snapshot() == ["/in/a.mp3", "/in/b.mp3", "/in/c.mp3"]
    assert [q.dequeue(), q.dequeue(), q.dequeue()] == ["/in/a.mp3", "/in/b.mp3", "/in/c.mp3"]
    assert q.dequeue() is None


def test_duplicate_within_window_is_suppressed() -> None:
    clock = FakeClock()
    q = WorkQueue(duplicate_window=60.0, clock=clock)

    assert q.enqueue("/in/memo.m4a") is True
    assert q.enqueue("/in/memo.m4a") is False
    assert len(q) == 1

    # Still suppressed after dequeue + completion while inside the window
    assert q.dequeue() == "/in/memo.m4a"
    q.task_done("/in/memo.m4a")
    clock.now += 30
    assert q.enqueue("/in/memo.m4a") is False


def test_duplicate_outside_window_is_allowed() -> None:
    clock = FakeClock()
    q = WorkQueue(duplicate_window=60.0, clock=clock)

    q.enqueue("/in/memo.m4a")
    q.task_done(q.dequeue())
    clock.now += 61

    assert q.enqueue("/in/memo.m4a") is True
    assert len(q) == 1


def test_in_flight_item_is_suppressed_even_after_window() -> None:
    clock = FakeClock()
    q = WorkQueue(duplicate_window=10.0, clock=clock)

    q.enqueue("/in/long.wav")
    assert q.dequeue() == "/in/long.wav"
    clock.now += 600

    assert q.contains("/in/long.wav")
    assert q.enqueue("/in/long.wav") is False

    q.task_done("/in/long.wav")
    assert not q.contains("/in/long.wav")
    assert q.enqueue("/in/long.wav") is True


def test_concurrent_producers_keep_one_entry_per_path() -> None:
    q = WorkQueue(duplicate_window=60.0)
    paths = [f"/in/file_{i}.mp3" for i in range(50)]
    accepted: List[str] = []
    lock = threading.Lock()

    def produce() -> None:
        for p in paths:
            if q.enqueue(p):
                with lock:
                    accepted.append(p)

    threads = [threading.Thread(target=produce) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(q) == 50
    assert sorted(accepted) == sorted(paths)
