# voltlink/model/sample.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Sample:
    """One voltage reading; ts_ms is the sampler clock (monotonic ms)."""
    ts_ms: float
    value: float
