"""Thread-safe bounded window of raw log lines."""

import collections
import threading


class RingBuffer:
    """Most-recent-N raw lines backed by a bounded deque.

    One writer (the capture routine), many readers. Readers get a list copy,
    so a concurrent eviction never changes a snapshot already handed out.
    """

    def __init__(self, capacity=5000):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._lines = collections.deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._first_write = threading.Event()
        self._total_count = 0

    def extend(self, lines):
        with self._lock:
            for line in lines:
                self._lines.append(line)
                self._total_count += 1
            has_lines = bool(self._lines)
        if has_lines:
            self._first_write.set()

    def snapshot(self):
        """Return all retained lines, oldest first."""
        with self._lock:
            return list(self._lines)

    def wait_for_data(self, timeout):
        """Block until the first line arrives or `timeout` seconds pass.

        Returns True if the window holds data.
        """
        return self._first_write.wait(timeout)

    @property
    def total_count(self):
        """Number of lines ever appended, including evicted ones."""
        return self._total_count

    def __len__(self):
        return len(self._lines)
