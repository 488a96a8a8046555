"""Concurrency-related helpers."""
from __future__ import annotations

import queue
import time
from threading import Event, Lock
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


def sleep_with_stop(seconds: float, stop_event: Event) -> None:
    deadline = time.monotonic() + max(0.0, seconds)
    while time.monotonic() < deadline and not stop_event.is_set():
        remaining = deadline - time.monotonic()
        time.sleep(max(0.0, min(remaining, 0.25)))


class _Handoff(Generic[T]):
    __slots__ = ("item", "taken", "cancelled")

    def __init__(self, item: T) -> None:
        self.item = item
        self.taken = Event()
        self.cancelled = False


class HandoffQueue(Generic[T]):
    """Unbuffered channel: ``put`` returns only once a consumer took the item.

    Several producers may block at once; their items are handed over in the
    order they were offered.
    """

    def __init__(self) -> None:
        self._pending: "queue.Queue[_Handoff[T]]" = queue.Queue()
        self._lock = Lock()

    def put(self, item: T, *, stop_event: Optional[Event] = None) -> bool:
        """Offer ``item`` and block until it is taken.

        Returns ``False`` when ``stop_event`` fired before a consumer arrived;
        the item is then withdrawn.
        """

        handoff = _Handoff(item)
        self._pending.put(handoff)
        while not handoff.taken.wait(0.25):
            if stop_event is not None and stop_event.is_set():
                with self._lock:
                    if handoff.taken.is_set():
                        return True
                    handoff.cancelled = True
                return False
        return True

    def get(self, timeout: Optional[float] = None) -> T:
        """Take the next offered item, raising ``queue.Empty`` on timeout."""

        while True:
            handoff = self._pending.get(timeout=timeout)
            with self._lock:
                if handoff.cancelled:
                    continue
                handoff.taken.set()
            return handoff.item

    def waiting(self) -> int:
        """Approximate number of producers currently blocked in ``put``."""

        return self._pending.qsize()


__all__ = ["HandoffQueue", "sleep_with_stop"]
