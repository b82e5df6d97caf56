# voltlink/runtime/sampler.py
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

MeasureFn = Callable[[], Optional[float]]
# (generation, value) -> None; called from the sampler thread
ValueCallback = Callable[[int, float], None]


class TelemetrySampler(threading.Thread):
    """
    Thread polling the converter every period while its session is active.

    Each sampler carries the generation of the session that started it. The
    owner drops values from stale generations, so a request that resolves
    after stop() can never reach the sample window.
    """

    def __init__(
        self,
        measure: MeasureFn,
        on_value: ValueCallback,
        *,
        generation: int,
        period_s: float = 0.1,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(daemon=True, name=f"telemetry-sampler-{generation}")
        self._measure = measure
        self._on_value = on_value
        self.generation = int(generation)
        self.period_s = float(period_s)
        self._log = logger or logging.getLogger(__name__)
        self._stop_event = threading.Event()

        self.ticks = 0
        self.misses = 0

    def run(self) -> None:
        self._log.debug("SAMPLER_START generation=%d period_s=%.3f", self.generation, self.period_s)
        # wait first: no replay of missed ticks after a restart
        while not self._stop_event.wait(self.period_s):
            self.ticks += 1
            try:
                value = self._measure()
            except Exception:
                self._log.exception("SAMPLER_MEASURE_ERROR generation=%d", self.generation)
                value = None

            if self._stop_event.is_set():
                break

            if value is None:
                self.misses += 1
                self._log.debug("MEASUREMENT_MISS generation=%d", self.generation)
                continue

            try:
                self._on_value(self.generation, value)
            except Exception:
                self._log.exception("SAMPLER_CALLBACK_ERROR generation=%d", self.generation)

        self._log.debug(
            "SAMPLER_STOP generation=%d ticks=%d misses=%d", self.generation, self.ticks, self.misses
        )

    def stop(self) -> None:
        self._stop_event.set()
