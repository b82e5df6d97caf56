# voltlink/runtime/sample_window.py
from __future__ import annotations

import math
import threading
from collections import deque
from typing import Deque, List

from voltlink.model.sample import Sample


def window_capacity(window_ms: float, period_ms: float) -> int:
    """Max samples kept: ceil(W / period) + 2."""
    if window_ms <= 0 or period_ms <= 0:
        raise ValueError(f"window_ms and period_ms must be > 0, got {window_ms}, {period_ms}")
    return int(math.ceil(window_ms / period_ms)) + 2


class SampleWindow:
    """
    Time-ascending sample history bounded by age and count.

    Age is measured against the newest appended sample, not the wall clock,
    so eviction only depends on the data. Readers get copies.
    """

    def __init__(self, window_ms: float = 30_000, period_ms: float = 100):
        self.window_ms = float(window_ms)
        self.period_ms = float(period_ms)
        self.capacity = window_capacity(self.window_ms, self.period_ms)

        self._samples: Deque[Sample] = deque()
        self._lock = threading.Lock()

    def append(self, sample: Sample) -> None:
        with self._lock:
            if self._samples and sample.ts_ms < self._samples[-1].ts_ms:
                raise ValueError(
                    f"sample out of order: ts_ms={sample.ts_ms} < last={self._samples[-1].ts_ms}"
                )
            self._samples.append(sample)

            min_ts = sample.ts_ms - self.window_ms
            while self._samples and self._samples[0].ts_ms < min_ts:
                self._samples.popleft()

            while len(self._samples) > self.capacity:
                self._samples.popleft()

    def snapshot(self) -> List[Sample]:
        with self._lock:
            return list(self._samples)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
