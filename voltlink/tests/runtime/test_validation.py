from __future__ import annotations

import pytest

from voltlink.runtime.validation import (
    can_apply_voltage,
    can_toggle_output,
    format_voltage,
    parse_voltage,
    validate_voltage,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("20.0", True),
        ("19.9", False),
        ("150.0", True),
        ("150.1", False),
        ("abc", False),
        ("", False),
        ("  48.5 ", True),
        ("100", True),
        ("1e2", True),
        ("nan", False),
        ("inf", False),
        ("-50", False),
    ],
)
def test_validate_voltage_default_range(raw, expected):
    assert validate_voltage(raw) is expected


def test_validate_voltage_custom_range():
    assert validate_voltage("5", min_v=0.0, max_v=10.0) is True
    assert validate_voltage("20", min_v=0.0, max_v=10.0) is False


def test_parse_voltage_non_string_input():
    assert parse_voltage(None) is None  # type: ignore[arg-type]
    assert parse_voltage("12.5") == 12.5


def test_format_voltage_quantizes_to_tenths():
    assert format_voltage(100.37) == 100.4
    assert format_voltage(100.34) == 100.3
    assert format_voltage(20.0) == 20.0


def test_format_voltage_ties_go_to_even():
    assert format_voltage(100.25) == 100.2
    assert format_voltage(100.75) == 100.8


@pytest.mark.parametrize("v", [20.0, 24.55, 47.123, 99.99, 100.37, 149.96, 150.0])
def test_format_voltage_idempotent(v):
    once = format_voltage(v)
    assert format_voltage(once) == once


def test_can_apply_voltage_requires_both():
    assert can_apply_voltage(True, True) is True
    assert can_apply_voltage(True, False) is False
    assert can_apply_voltage(False, True) is False


def test_can_toggle_output():
    assert can_toggle_output(connected=True, applied_voltage=0.0) is False
    assert can_toggle_output(connected=True, applied_voltage=24.5) is True
    assert can_toggle_output(connected=False, applied_voltage=24.5) is False
