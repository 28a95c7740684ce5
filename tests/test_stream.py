"""Tests for the bounded producer/consumer stream."""

import threading

import pytest

from imap_cleaner.stream import BoundedStream


def test_yields_in_order():
    """Items arrive in the order they were emitted."""
    def produce(emit):
        for i in range(100):
            emit(i)

    assert list(BoundedStream(produce, maxsize=4)) == list(range(100))


def test_producer_is_bounded():
    """The producer stops once the buffer is full."""
    emitted = []

    def produce(emit):
        for i in range(50):
            emit(i)
            emitted.append(i)

    stream = BoundedStream(produce, maxsize=3)
    iterator = iter(stream)
    assert next(iterator) == 0
    # the queue holds at most 3 items, plus one blocked in put
    assert len(emitted) <= 5
    iterator.close()


def test_error_after_items():
    """A producer error follows the items before it."""
    def produce(emit):
        emit("a")
        emit("b")
        raise RuntimeError("boom")

    received = []
    with pytest.raises(RuntimeError, match="boom"):
        for item in BoundedStream(produce):
            received.append(item)
    assert received == ["a", "b"]


def test_abandoned_stream_stops_producer():
    """Leaving the loop stops the producer."""
    stopped = threading.Event()

    def produce(emit):
        try:
            i = 0
            while True:
                emit(i)
                i += 1
        finally:
            stopped.set()

    for item in BoundedStream(produce, maxsize=2):
        if item == 5:
            break
    assert stopped.wait(timeout=5)


def test_consumed_once():
    """A stream can only be iterated once."""
    stream = BoundedStream(lambda emit: emit(1))
    assert list(stream) == [1]
    with pytest.raises(RuntimeError):
        list(stream)


def test_empty():
    """A producer that emits nothing gives an empty stream."""
    assert list(BoundedStream(lambda emit: None)) == []
