# history/metrics_history.py
"""
Rolling chart data.

RingBuffer overwrites its oldest slot once full instead of shifting a list on
every tick. MetricsHistory keeps one buffer per chart and turns cumulative
network counters into a rate.
"""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from connectors.schema import Metrics

T = TypeVar("T")

DEFAULT_CAPACITY = 50


class RingBuffer(Generic[T]):

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._slots: List[Optional[T]] = [None] * capacity
        self._cursor = 0    # next slot to write
        self._size = 0

    def append(self, value: T):
        self._slots[self._cursor] = value
        self._cursor = (self._cursor + 1) % self.capacity
        self._size = min(self._size + 1, self.capacity)

    def values(self) -> List[T]:
        """Oldest first."""
        if self._size < self.capacity:
            return list(self._slots[:self._size])
        return self._slots[self._cursor:] + self._slots[:self._cursor]

    def latest(self) -> Optional[T]:
        if not self._size:
            return None
        return self._slots[(self._cursor - 1) % self.capacity]

    def clear(self):
        self._slots = [None] * self.capacity
        self._cursor = 0
        self._size = 0

    def __len__(self):
        return self._size


class MetricsHistory:
    """
    CPU, memory, network rate (MB/s) and request rate series.

    The first snapshot after construction or reset() is a baseline: network
    rate only starts once the previous snapshot had non-zero in and out
    counters, and reads 0.0 until then.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self.cpu = RingBuffer(capacity)
        self.memory = RingBuffer(capacity)
        self.network = RingBuffer(capacity)
        self.requests = RingBuffer(capacity)
        self.timestamps = RingBuffer(capacity)
        self._last_in = 0.0
        self._last_out = 0.0
        self._last_at: Optional[datetime] = None

    def _network_rate(self, m: Metrics) -> float:
        if not (self._last_in > 0 and self._last_out > 0):
            return 0.0
        interval = 1.0
        if self._last_at is not None and m.timestamp is not None:
            elapsed = (m.timestamp - self._last_at).total_seconds()
            if elapsed > 0:
                interval = elapsed
        delta = (m.network_in - self._last_in) + (m.network_out - self._last_out)
        return delta / interval

    def add(self, m: Metrics) -> float:
        """Record a snapshot; returns the network rate stored for it."""
        rate = self._network_rate(m)
        self._last_in = m.network_in
        self._last_out = m.network_out
        self._last_at = m.timestamp

        self.cpu.append(m.cpu)
        self.memory.append(m.memory)
        self.network.append(rate)
        self.requests.append(m.request_rate)
        self.timestamps.append(m.timestamp)
        return rate

    def reset(self):
        for buf in (self.cpu, self.memory, self.network, self.requests, self.timestamps):
            buf.clear()
        self._last_in = 0.0
        self._last_out = 0.0
        self._last_at = None

    def __len__(self):
        return len(self.cpu)
