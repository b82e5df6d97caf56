# voltlink/runtime/validation.py
"""
Command gating rules for the converter set-point and output relay.

All functions are pure: they never raise for malformed operator input and
never touch the network.
"""
from __future__ import annotations

import math
from typing import Optional

MIN_VOLTAGE = 20.0
MAX_VOLTAGE = 150.0


def parse_voltage(raw: str) -> Optional[float]:
    """Parse operator text as a finite float, or None."""
    try:
        value = float(str(raw).strip())
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def validate_voltage(raw: str, min_v: float = MIN_VOLTAGE, max_v: float = MAX_VOLTAGE) -> bool:
    value = parse_voltage(raw)
    return value is not None and min_v <= value <= max_v


def format_voltage(volts: float) -> float:
    """
    Quantize to 0.1 V.

    Uses Python's round(), ties to even: 100.25 -> 100.2, 100.75 -> 100.8.
    Only values whose x10 product is an exact binary .5 are ties.
    """
    return round(volts * 10) / 10


def can_apply_voltage(validated: bool, connected: bool) -> bool:
    return bool(validated) and bool(connected)


def can_toggle_output(connected: bool, applied_voltage: float) -> bool:
    return bool(connected) and applied_voltage > 0
