"""
Fixed-capacity ring buffers for samples, peaks and interval histories.

Storage is allocated once as numpy arrays; the write index wraps modulo the
capacity and nothing grows afterwards. A monotonic write counter lets a
consumer ask for everything written since a given sequence number and learn
how many samples were overwritten before it got there.
"""
import threading
from typing import Optional, Tuple

import numpy as np


class RingBuffer:
    """Fixed-capacity circular store of (value, timestamp) pairs"""

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = int(capacity)
        self._values = np.zeros(self.capacity, dtype=np.float64)
        self._timestamps = np.zeros(self.capacity, dtype=np.int64)
        self._index = 0
        self._total = 0

    @property
    def total(self) -> int:
        """Number of items ever appended (not bounded by capacity)"""
        return self._total

    def __len__(self):
        return min(self._total, self.capacity)

    def append(self, value: float, timestamp: int):
        self._values[self._index] = value
        self._timestamps[self._index] = timestamp
        self._index = (self._index + 1) % self.capacity
        self._total += 1

    def _read(self, n: Optional[int]) -> Tuple[np.ndarray, np.ndarray]:
        size = len(self)
        if n is not None:
            size = max(0, min(size, int(n)))
        start = (self._index - size) % self.capacity
        idx = (start + np.arange(size)) % self.capacity
        # Fancy indexing copies, so callers never alias the storage
        return self._values[idx], self._timestamps[idx]

    def snapshot(self, n: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Return the most recent items ordered from oldest to newest.

        Args:
            n: Maximum number of items to return. None returns everything held.

        Returns:
            Tuple of (values, timestamps) numpy arrays.
        """
        return self._read(n)

    def since(self, sequence: int) -> Tuple[np.ndarray, np.ndarray, int, int]:
        """
        Return items appended after the given sequence number.

        Args:
            sequence: Value of `total` at the previous read.

        Returns:
            Tuple of (values, timestamps, next_sequence, lost) where `lost` is
            the number of items overwritten before they could be read.
        """
        oldest = self._total - len(self)
        lost = max(0, oldest - sequence)
        start = max(sequence, oldest)
        values, timestamps = self._read(self._total - start)
        return values, timestamps, self._total, lost

    def clear(self):
        self._values.fill(0)
        self._timestamps.fill(0)
        self._index = 0
        self._total = 0


class SampleBuffer(RingBuffer):
    """
    Single-producer / single-consumer sample ring.

    The producer calls write() from the sampling context; the consumer reads
    with snapshot() or since(). A short lock covers the write-and-advance step
    and the consumer's copy, so the consumer never sees a torn index.
    """

    def __init__(self, capacity: int, valid_range: Tuple[float, float]):
        super().__init__(capacity)
        self.valid_range = valid_range
        self.rejected = 0
        self._lock = threading.Lock()

    def write(self, value: float, timestamp: int) -> bool:
        """Store a sample; out-of-range or NaN values are counted and dropped"""
        low, high = self.valid_range
        if not low <= value <= high:
            self.rejected += 1
            return False
        with self._lock:
            self.append(value, timestamp)
        return True

    def snapshot(self, n: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
        with self._lock:
            return self._read(n)

    def since(self, sequence: int) -> Tuple[np.ndarray, np.ndarray, int, int]:
        with self._lock:
            return super().since(sequence)

    def clear(self):
        with self._lock:
            super().clear()
            self.rejected = 0
