from __future__ import annotations

import threading
import time

from voltlink.runtime.sampler import TelemetrySampler


def _wait_until(pred, timeout=1.0):
    deadline = time.time() + timeout
    while not pred() and time.time() < deadline:
        time.sleep(0.005)
    return pred()


class FakeMeter:
    def __init__(self, values=None, raise_once=False):
        self.values = list(values or [])
        self.calls = 0
        self.raise_once = raise_once

    def __call__(self):
        self.calls += 1
        if self.raise_once:
            self.raise_once = False
            raise RuntimeError("boom")
        if self.values:
            return self.values.pop(0)
        return 1.0


def test_sampler_delivers_values_with_generation():
    meter = FakeMeter([10.0, 11.0, 12.0])
    got = []
    s = TelemetrySampler(meter, lambda gen, v: got.append((gen, v)), generation=7, period_s=0.005)

    s.start()
    assert _wait_until(lambda: len(got) >= 3)
    s.stop()
    s.join(timeout=0.5)

    assert not s.is_alive()
    assert got[:3] == [(7, 10.0), (7, 11.0), (7, 12.0)]


def test_sampler_skips_misses():
    meter = FakeMeter([None, 5.0, None, 6.0])
    got = []
    s = TelemetrySampler(meter, lambda gen, v: got.append(v), generation=1, period_s=0.005)

    s.start()
    assert _wait_until(lambda: len(got) >= 2)
    s.stop()
    s.join(timeout=0.5)

    assert got[:2] == [5.0, 6.0]
    assert s.misses >= 2


def test_sampler_keeps_running_after_measure_exception():
    meter = FakeMeter(raise_once=True)
    got = []
    s = TelemetrySampler(meter, lambda gen, v: got.append(v), generation=1, period_s=0.005)

    s.start()
    assert _wait_until(lambda: len(got) >= 1)
    s.stop()
    s.join(timeout=0.5)

    assert meter.calls >= 2


def test_sampler_waits_one_period_before_first_request():
    meter = FakeMeter()
    s = TelemetrySampler(meter, lambda gen, v: None, generation=1, period_s=0.2)

    s.start()
    time.sleep(0.05)
    s.stop()
    s.join(timeout=0.5)

    assert meter.calls == 0


def test_value_resolving_after_stop_is_not_delivered():
    started = threading.Event()
    release = threading.Event()

    def slow_measure():
        started.set()
        release.wait(1.0)
        return 42.0

    got = []
    s = TelemetrySampler(slow_measure, lambda gen, v: got.append(v), generation=1, period_s=0.005)

    s.start()
    assert started.wait(0.5)
    s.stop()
    release.set()
    s.join(timeout=0.5)

    assert got == []


def test_sampler_requests_at_most_once_per_period():
    meter = FakeMeter()
    got = []
    period = 0.02
    s = TelemetrySampler(meter, lambda gen, v: got.append(v), generation=1, period_s=period)

    t0 = time.monotonic()
    s.start()
    time.sleep(0.2)
    s.stop()
    elapsed = time.monotonic() - t0
    s.join(timeout=0.5)

    assert meter.calls >= 1
    assert meter.calls <= elapsed / period + 1
    assert len(got) <= meter.calls
