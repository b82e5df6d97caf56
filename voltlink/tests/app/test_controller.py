from __future__ import annotations

import time

import pytest

from voltlink.app.config import ConverterConfig
from voltlink.app.controller import ConverterController, build_session
from voltlink.core.errors import ConverterNotRespondingError, PreconditionError
from voltlink.runtime.converter_session import ConverterSession
from voltlink.runtime.device_link import DeviceLink
from voltlink.runtime.state import ConnectionPhase


class FakeLink:
    def __init__(self, probe_ok=True):
        self.target = None
        self.probe_ok = probe_ok
        self.voltage_calls = []

    def retarget(self, target):
        self.target = target

    def probe(self):
        return self.probe_ok

    def set_voltage(self, volts):
        self.voltage_calls.append(volts)
        return True

    def set_output(self, on):
        return True

    def get_measurement(self):
        return 24.0


class ListSink:
    def __init__(self):
        self.samples = []
        self.closed = False

    def on_sample(self, sample):
        self.samples.append(sample)

    def close(self):
        self.closed = True


class BrokenSink(ListSink):
    def on_sample(self, sample):
        raise RuntimeError("nope")

    def close(self):
        raise RuntimeError("close failed")


def _controller(link, cfg=None):
    cfg = cfg or ConverterConfig(sample_period_ms=10, failed_revert_ms=50)
    session = ConverterSession(
        link=link,
        target=cfg.target,
        sample_period_ms=cfg.sample_period_ms,
        failed_revert_s=cfg.failed_revert_ms / 1000.0,
        info=cfg.info,
    )
    return ConverterController(cfg, session=session)


def test_build_session_from_config():
    cfg = ConverterConfig(host="10.0.0.9", port=81, command_timeout_s=1.5, measurement_timeout_s=0.5)
    s = build_session(cfg)
    try:
        assert s.connection.target == cfg.target
        assert s.status().info.max_voltage == 150.0
        link = s._link
        assert isinstance(link, DeviceLink)
        assert link.command_timeout_s == 1.5
        assert link.measurement_timeout_s == 0.5
    finally:
        s.close()


def test_connect_blocking_success_and_passthrough():
    link = FakeLink()
    with _controller(link) as ctl:
        ctl.connect_blocking()
        assert ctl.status().connection.is_connected
        assert ctl.apply_voltage("48.04").result(timeout=1.0) is True
        assert link.voltage_calls == [48.0]
        assert ctl.toggle_output().result(timeout=1.0) is True
        assert ctl.status().output_on is True
        assert ctl.disconnect() is True


def test_connect_blocking_when_already_connected_is_ok():
    with _controller(FakeLink()) as ctl:
        ctl.connect_blocking()
        ctl.connect_blocking()


def test_connect_blocking_failure_raises():
    with _controller(FakeLink(probe_ok=False)) as ctl:
        with pytest.raises(ConverterNotRespondingError) as ei:
            ctl.connect_blocking()
        assert ei.value.code == "converter_not_responding"
        assert ei.value.hint


def test_connect_blocking_while_failed_raises_precondition():
    cfg = ConverterConfig(sample_period_ms=10, failed_revert_ms=500)
    with _controller(FakeLink(probe_ok=False), cfg) as ctl:
        with pytest.raises(ConverterNotRespondingError):
            ctl.connect_blocking()
        assert ctl.status().connection.phase is ConnectionPhase.FAILED
        with pytest.raises(PreconditionError) as ei:
            ctl.connect_blocking()
        assert "failed" in ei.value.message
        assert "in progress" not in ei.value.message
        assert ei.value.details == {"phase": "failed"}


def test_sinks_receive_samples_and_are_closed():
    sink = ListSink()
    broken = BrokenSink()
    ctl = _controller(FakeLink())
    ctl.add_sink(broken)
    ctl.add_sink(sink)
    ctl.add_sink(sink)

    ctl.connect_blocking()
    ctl.set_measurement_enabled(True)

    deadline = time.time() + 1.0
    while len(sink.samples) < 3 and time.time() < deadline:
        time.sleep(0.005)
    assert len(sink.samples) >= 3
    assert all(s.value == 24.0 for s in sink.samples)
    assert ctl.samples()

    ctl.close()
    assert sink.closed is True
    assert ctl.status().connection.phase is ConnectionPhase.DISCONNECTED


def test_removed_sink_gets_nothing():
    sink = ListSink()
    with _controller(FakeLink()) as ctl:
        ctl.add_sink(sink)
        ctl.remove_sink(sink)
        ctl.connect_blocking()
        ctl.set_measurement_enabled(True)
        time.sleep(0.05)
        assert sink.samples == []
