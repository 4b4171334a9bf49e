"""
Thread-safe buffer that hands its contents over in one atomic swap.

Fetch tasks publish trades from the worker pool while the trade saver thread
drains the buffer in batches; neither side blocks the other for longer than
a list copy.
"""

import threading
from collections import deque
from typing import Any, Deque, Iterable, List, Optional


class SwappableQueue:
    """
    Buffer with a size threshold and an atomic swap.

    Usage:
        buffer = SwappableQueue(threshold=500)
        buffer.put(trade)                 # producer threads

        if buffer.wait_for_threshold(timeout=5.0):
            batch = buffer.swap()         # consumer thread, buffer now empty
    """

    def __init__(self, threshold: int = 1000):
        """
        Args:
            threshold: Number of buffered items that wakes the consumer
        """
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self._buffer: Deque[Any] = deque()
        self._lock = threading.Lock()
        self._threshold = threshold
        self._threshold_event = threading.Event()
        self._shutdown = False

    @property
    def threshold(self) -> int:
        return self._threshold

    def put(self, item: Any) -> None:
        """Add one item."""
        with self._lock:
            self._buffer.append(item)
            if len(self._buffer) >= self._threshold:
                self._threshold_event.set()

    def put_many(self, items: Iterable[Any]) -> None:
        """Add several items under a single lock acquisition."""
        with self._lock:
            self._buffer.extend(items)
            if len(self._buffer) >= self._threshold:
                self._threshold_event.set()

    def size(self) -> int:
        with self._lock:
            return len(self._buffer)

    def empty(self) -> bool:
        return self.size() == 0

    def should_swap(self) -> bool:
        """True once the threshold has been reached."""
        with self._lock:
            return len(self._buffer) >= self._threshold

    def swap(self) -> List[Any]:
        """
        Take everything buffered so far, in insertion order, and leave the
        buffer empty.
        """
        with self._lock:
            items = list(self._buffer)
            self._buffer = deque()
            self._threshold_event.clear()
            return items

    def wait_for_threshold(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the threshold is reached, shutdown is signaled or the
        timeout expires.

        Returns:
            True if the threshold was reached, False on timeout or shutdown
        """
        reached = self._threshold_event.wait(timeout)
        return reached and not self._shutdown

    def shutdown(self) -> None:
        """Wake any waiting consumer and make further waits return False."""
        self._shutdown = True
        self._threshold_event.set()

    def is_shutdown(self) -> bool:
        return self._shutdown
