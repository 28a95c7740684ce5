"""Single-producer/single-consumer stream over a bounded queue."""

from __future__ import annotations

import queue
import threading
from typing import Callable, Generic, Iterator, TypeVar

from .constants import STREAM_BUFFER_SIZE

T = TypeVar("T")

_DONE = object()
_POLL_INTERVAL = 0.1


class _Cancelled(Exception):
    pass


class BoundedStream(Generic[T]):
    """Run ``produce(emit)`` on a background thread and iterate what it emits.

    The producer blocks once ``maxsize`` items are waiting, so a large fetch
    never sits in memory all at once.  An exception raised by the producer
    is re-raised to the consumer after the items already queued.  Closing the
    stream (or abandoning the iteration) stops the producer and waits for it
    to exit.
    """

    def __init__(
        self,
        produce: Callable[[Callable[[T], None]], None],
        maxsize: int = STREAM_BUFFER_SIZE,
        name: str = "stream",
    ) -> None:
        self._produce = produce
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._stop = threading.Event()
        self._error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, name=f"producer-{name}", daemon=True)
        self._started = False

    def _put(self, item: object) -> bool:
        while not self._stop.is_set():
            try:
                self._queue.put(item, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _emit(self, item: T) -> None:
        if not self._put(item):
            raise _Cancelled()

    def _run(self) -> None:
        try:
            self._produce(self._emit)
        except _Cancelled:
            pass
        except BaseException as exc:  # noqa: BLE001 - handed to the consumer
            self._error = exc
        finally:
            self._put(_DONE)

    def __iter__(self) -> Iterator[T]:
        if self._started:
            raise RuntimeError("a BoundedStream can only be consumed once")
        self._started = True
        self._thread.start()
        try:
            while True:
                item = self._queue.get()
                if item is _DONE:
                    break
                yield item
            if self._error is not None:
                raise self._error
        finally:
            self.close()

    def close(self) -> None:
        """Stop the producer and wait for its thread to finish."""
        self._stop.set()
        if self._started and self._thread.is_alive():
            self._thread.join()
