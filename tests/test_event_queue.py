"""Tests for the in-memory event queue."""

import threading

import pytest
from loguru import logger

from analytics_client.core import ConfigurationError, NewEvent
from analytics_client.queuer import EventQueue, OverflowPolicy, QueueConfig


def _event(name: str, producer: str = "p0"):
    return NewEvent(name).identify(producer).build()


def test_drain_returns_events_in_enqueue_order():
    queue = EventQueue(QueueConfig(max_size=100))
    for i in range(10):
        assert queue.enqueue(_event(f"e{i}"))

    batch = queue.drain()

    assert [event.name for event in batch] == [f"e{i}" for i in range(10)]
    assert queue.is_empty(), "Drain must leave the queue empty"


def test_consecutive_drains_partition_events():
    queue = EventQueue(QueueConfig(max_size=100))
    for i in range(5):
        queue.enqueue(_event(f"a{i}"))
    first = queue.drain()
    second = queue.drain()
    for i in range(3):
        queue.enqueue(_event(f"b{i}"))
    third = queue.drain()

    assert [e.name for e in first] == [f"a{i}" for i in range(5)]
    assert second.is_empty(), "Back-to-back drain must not return events twice"
    assert [e.name for e in third] == [f"b{i}" for i in range(3)]
    assert queue.get_stats()["total_drained"] == 8


def test_drop_oldest_overflow():
    """Enqueuing N > max events drops exactly N - max of the oldest."""
    queue = EventQueue(QueueConfig(max_size=10, overflow_policy=OverflowPolicy.DROP_OLDEST))

    results = [queue.enqueue(_event(f"e{i}")) for i in range(25)]

    assert all(results), "Drop-oldest always accepts the new event"
    assert queue.size() == 10
    stats = queue.get_stats()
    assert stats["total_dropped"] == 15
    assert stats["total_enqueued"] == 25
    assert [e.name for e in queue.drain()] == [f"e{i}" for i in range(15, 25)]


def test_reject_new_overflow():
    queue = EventQueue(QueueConfig(max_size=3, overflow_policy=OverflowPolicy.REJECT_NEW))

    results = [queue.enqueue(_event(f"e{i}")) for i in range(5)]

    assert results == [True, True, True, False, False]
    assert queue.get_stats()["total_dropped"] == 2
    assert [e.name for e in queue.drain()] == ["e0", "e1", "e2"]


def test_overflow_warning_logged_once_per_episode(log_records):
    queue = EventQueue(QueueConfig(max_size=2))
    for i in range(6):
        queue.enqueue(_event(f"e{i}"))

    warnings = [message for level, message in log_records if level == "WARNING"]
    assert len(warnings) == 1, f"Expected one overflow warning, got {warnings}"

    queue.drain()
    for i in range(3):
        queue.enqueue(_event(f"f{i}"))

    warnings = [message for level, message in log_records if level == "WARNING"]
    assert len(warnings) == 2, "A new overflow episode after a drain warns again"


def test_concurrent_enqueue_loses_nothing():
    """50 producers x 100 events with no flush leave exactly 5000 events."""
    queue = EventQueue(QueueConfig(max_size=10_000))
    start = threading.Barrier(50)

    def produce(producer_id: int) -> None:
        start.wait()
        for i in range(100):
            queue.enqueue(_event(f"p{producer_id}-{i}", producer=f"p{producer_id}"))

    threads = [threading.Thread(target=produce, args=(n,)) for n in range(50)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert queue.size() == 5000

    batch = queue.drain()
    names = [event.name for event in batch]
    assert len(set(names)) == 5000, "No event may be duplicated"

    # Per-producer order is preserved
    for producer_id in range(50):
        own = [name for name in names if name.startswith(f"p{producer_id}-")]
        assert own == [f"p{producer_id}-{i}" for i in range(100)]

    logger.info("✓ Concurrent enqueue test passed")


def test_concurrent_drains_never_overlap():
    queue = EventQueue(QueueConfig(max_size=100_000))
    drained = []
    drained_lock = threading.Lock()
    stop = threading.Event()

    def drainer() -> None:
        while not stop.is_set():
            batch = queue.drain()
            with drained_lock:
                drained.extend(event.name for event in batch)

    drainers = [threading.Thread(target=drainer) for _ in range(4)]
    for thread in drainers:
        thread.start()

    for i in range(3000):
        queue.enqueue(_event(f"e{i}"))

    stop.set()
    for thread in drainers:
        thread.join()
    drained.extend(event.name for event in queue.drain())

    assert len(drained) == 3000
    assert len(set(drained)) == 3000, "Every event belongs to exactly one batch"


def test_closed_queue_rejects_but_stays_drainable():
    queue = EventQueue(QueueConfig(max_size=10))
    queue.enqueue(_event("before"))
    queue.close()
    queue.close()

    assert not queue.enqueue(_event("after"))
    assert not queue.accepting
    assert queue.get_stats()["total_rejected"] == 1
    assert [e.name for e in queue.drain()] == ["before"]


def test_queue_requires_positive_max_size():
    with pytest.raises(ConfigurationError):
        EventQueue(QueueConfig(max_size=0))


def test_queue_stats():
    queue = EventQueue(QueueConfig(max_size=4))
    queue.enqueue(_event("a"))
    queue.enqueue(_event("b"))

    stats = queue.get_stats()

    assert stats["current_size"] == 2
    assert stats["max_size"] == 4
    assert stats["utilization"] == 0.5
    assert stats["overflow_policy"] == "drop_oldest"
    assert stats["accepting"] is True
    assert not queue.is_full()
